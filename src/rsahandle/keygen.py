"""Probable-prime search and RSA key pair assembly for the engine.

Loosely follows FIPS 186-5 Appendix A.1.3 / C.3: random odd candidates with the two top bits set, a trial division
pre-filter over a cached table of small primes, then Miller-Rabin with the iteration counts of Appendix C.1.
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import math
import secrets
import typing

SUPPORTED_KEY_SIZES: tuple[int, ...] = (1024, 2048, 3072, 4096)
DEFAULT_PUBLIC_EXPONENT: int = 65537

_SMALL_PRIMES: list[int] = []
_SMALL_PRIMES_CAP: int = 0
_MINIMUM_PRIME_SEPARATION: int = 100


class KeyNumbers(typing.NamedTuple):
    """Integer components of a freshly generated two-prime key."""
    n: int
    e: int
    d: int
    p: int
    q: int


def _sieve(n: int = 10000) -> list[int]:
    """Sieve of Eratosthenes over odd numbers only, returning every prime up to `n`."""
    if n < 2:
        return []
    i_size = (n - 1) // 2
    candidate: list[bool] = [True] * i_size
    for i in range(int(n**0.5) // 2):
        if candidate[i]:
            r = 2 * i + 3
            for j in range((r * r - 3) // 2, i_size, r):
                candidate[j] = False
    return [2] + [(no * 2 + 3) for no, ele in enumerate(candidate) if ele]


def get_pre_primes(n: int = 10000, change: bool = False) -> list[int]:
    """Get the small primes, sieving only when the cache cannot answer.

    Args:
        n: The number up to which primes are needed. Must be >= 0.
        change: Force a fresh sieve even if the cache covers `n`.

    Returns:
        Ascending list of primes covering at least `n`, exactly `n` if `change` is set.

    Raises:
        ValueError: If `n` is negative.
    """
    if n < 0:
        raise ValueError("n must be >= 0")
    global _SMALL_PRIMES
    global _SMALL_PRIMES_CAP
    if n > _SMALL_PRIMES_CAP or change or not _SMALL_PRIMES:
        _SMALL_PRIMES = _sieve(n)
        _SMALL_PRIMES_CAP = n
    return _SMALL_PRIMES


def _trial_division(no: int, n: int = 10000) -> bool:
    """Returns False when a small prime up to `n` divides `no`; True means "not excluded"."""
    if no < 2:
        return False
    for prime in get_pre_primes(n):
        if prime**2 > no:
            return True
        if no % prime == 0:
            return False
    return True


def _miller_rabin(w: int, iters: int) -> bool:
    """Miller-Rabin probabilistic primality test (FIPS 186-5 B.3.1).

    Args:
        w: Odd integer to be tested.
        iters: Number of rounds with random bases.

    Returns:
        True if `w` is probably prime, False if it is certainly composite.
    """
    if w <= 3:
        return w in (2, 3)
    if w % 2 == 0:
        return False
    tw = w - 1
    a = (tw & -tw).bit_length() - 1
    m = tw >> a
    for _ in range(iters):
        b = secrets.randbelow(w - 3) + 2
        z = pow(b, m, w)
        if z in (1, w - 1):
            continue
        for _ in range(1, a):
            z = pow(z, 2, w)
            if z == w - 1:
                break
            if z == 1:
                return False
        else:
            return False
    return True


def check_prime(candidate: int, iters: int | None = None, n: int = 10000) -> bool:
    """Trial division against primes up to `n`, followed by Miller-Rabin.

    Args:
        candidate: The number to test.
        iters: Miller-Rabin rounds. Defaults to the FIPS 186-5 Appendix C.1 count for the candidate size.
        n: Bound of the trial division table.

    Returns:
        True if `candidate` is probably prime.
    """
    if candidate < 2:
        return False
    if not _trial_division(candidate, n):
        return False
    if iters is None:
        bits = candidate.bit_length()
        if bits <= 512:
            iters = 40
        elif bits <= 1024:
            iters = 56
        elif bits <= 1536:
            iters = 64
        elif bits <= 2048:
            iters = 70
        else:
            iters = 74
    return _miller_rabin(candidate, iters)


def _generate_probable_prime(size: int, pub: int = DEFAULT_PUBLIC_EXPONENT, prm_p: int | None = None) -> int:
    """Draws a `size`-bit probable prime `x` with ``gcd(x - 1, pub) == 1``.

    Args:
        size: Bit length of the prime.
        pub: Public exponent the prime must be compatible with.
        prm_p: The first prime of the pair, when generating the second. The two must differ in their top
            `_MINIMUM_PRIME_SEPARATION` bits.

    Returns:
        A probable prime.

    Raises:
        RuntimeError: If no prime turns up within ``5 * size`` (``10 * size`` for the second prime) draws.
    """
    rep_cap = size * 5 * (1 if prm_p is None else 2)
    msk = (1 << size - 1) | (1 << size - 2) | 1
    for _ in range(rep_cap):
        cand = secrets.randbits(size) | msk
        if prm_p is not None and abs(prm_p - cand) <= (1 << (size - _MINIMUM_PRIME_SEPARATION)):
            continue
        if math.gcd(cand - 1, pub) == 1 and check_prime(cand):
            return cand
    raise RuntimeError(f"No prime found in {rep_cap} draws. Check system random number generator.")


def validate_parameters(size: int, pub: int) -> None:
    """Rejects key sizes outside `SUPPORTED_KEY_SIZES` and public exponents outside ``(2**16, 2**256)`` or even.

    Raises:
        ValueError: On either violation.
    """
    if size not in SUPPORTED_KEY_SIZES:
        raise ValueError(f"Key size must be one of {SUPPORTED_KEY_SIZES}, got {size}.")
    if pub % 2 == 0 or not 2**16 < pub < 2**256:
        raise ValueError("Public exponent does not meet requirements.")


def generate_primes(size: int, pub: int = DEFAULT_PUBLIC_EXPONENT) -> tuple[int, int]:
    """Generates a pair of distinct primes suitable for a `size`-bit modulus.

    Raises:
        ValueError: If `size` or `pub` is not supported.
    """
    validate_parameters(size, pub)
    p = _generate_probable_prime(size // 2, pub)
    q = _generate_probable_prime(size // 2, pub, p)
    while p == q:
        q = _generate_probable_prime(size // 2, pub, p)
    return p, q


def generate_key_numbers(size: int, pub: int = DEFAULT_PUBLIC_EXPONENT) -> KeyNumbers:
    """Generates every integer of a two-prime RSA key.

    The private exponent is taken modulo ``lcm(p - 1, q - 1)``, as FIPS 186-5 requires.

    Args:
        size: Modulus size in bits, one of `SUPPORTED_KEY_SIZES`.
        pub: Public exponent.

    Returns:
        The modulus, both exponents and both primes.
    """
    p, q = generate_primes(size, pub)
    if p < q:
        p, q = q, p
    totient = math.lcm(p - 1, q - 1)
    d = pow(pub, -1, totient)
    return KeyNumbers(p * q, pub, d, p, q)
