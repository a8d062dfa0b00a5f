"""The RSA engine: raw key material, the RSA primitive, and the table of live key handles.

Callers never see key material. They receive an integer handle into `Engine`'s table and pass it back for every
operation. The facade modules (`keys`, `signing`, `cipher`, `export`) are the only intended callers.

Key material is never mutated after registration, so transforms run outside the table lock and any number of
threads may use the same handle concurrently.
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import hmac
import itertools
import logging
import threading
import time

from rsahandle import codec
from rsahandle import keygen
from rsahandle import padding
from rsahandle import pem
from rsahandle.digest import HashAlgorithm
from rsahandle.errors import DecryptionError
from rsahandle.errors import EngineFailure
from rsahandle.errors import InvalidKeyType
from rsahandle.errors import InvalidParameter
from rsahandle.padding import PaddingScheme

logger = logging.getLogger(__name__)


class RawPublicKey:
    """Public RSA key material: modulus and public exponent.

    Attributes:
        mod: The modulus of the keypair.
        expo: The public exponent.
        bsize: Modulus length in bytes.
    """

    def __init__(self, mod: int, expo: int) -> None:
        self.mod = mod
        self.expo = expo
        self.bsize = (self.mod.bit_length() + 7) // 8

    @property
    def pub(self) -> "RawPublicKey":
        return self

    def c_rsa(self, message: int) -> int:
        """RSAEP / RSAVP1.

        Raises:
            ValueError: If the message is out of range for the current key.
        """
        if not 0 <= message < self.mod:
            raise ValueError("Message representative must be in range [0, mod-1]")
        return pow(message, self.expo, self.mod)

    def numbers(self) -> codec.PublicNumbers:
        return codec.PublicNumbers(self.mod, self.expo)


class RawPrivateKey(RawPublicKey):
    """Private RSA key material with CRT components.

    Attributes:
        mod: The modulus of the keypair.
        expo: The private exponent.
        pub: The matching public key material.
        p: Private Prime 1.
        q: Private Prime 2.
    """

    def __init__(self,
                 mod: int,
                 pub_exp: int,
                 priv_exp: int,
                 p: int,
                 q: int,
                 exp1: int | None = None,
                 exp2: int | None = None,
                 coeff: int | None = None) -> None:
        super().__init__(mod, priv_exp)
        self._pub = RawPublicKey(mod, pub_exp)
        self.p = p
        self.q = q
        self.exp1 = exp1 if exp1 is not None else priv_exp % (p - 1)
        self.exp2 = exp2 if exp2 is not None else priv_exp % (q - 1)
        self.coeff = coeff if coeff is not None else pow(q, -1, p)

    @property
    def pub(self) -> RawPublicKey:
        return self._pub

    def c_rsa(self, message: int) -> int:
        """RSADP / RSASP1, accelerated with the CRT.

        Raises:
            ValueError: If the message is out of range for the current key.
        """
        if not 0 <= message < self.mod:
            raise ValueError("Message representative must be in range [0, mod-1]")
        m_1 = pow(message, self.exp1, self.p)
        m_2 = pow(message, self.exp2, self.q)
        h = ((m_1 - m_2) * self.coeff) % self.p
        return m_2 + self.q * h

    def numbers(self) -> codec.PrivateNumbers:
        return codec.PrivateNumbers(self.mod, self._pub.expo, self.expo, self.p, self.q, self.exp1, self.exp2,
                                    self.coeff)


class Engine:
    """Owns all key material and hands out opaque integer handles to it.

    Every handle returned by `parse_private`, `parse_public`, `generate` or `derive_public` must be passed to
    `release` exactly once.
    """

    def __init__(self) -> None:
        self._keys: dict[int, RawPublicKey] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)

    def _register(self, key: RawPublicKey) -> int:
        with self._lock:
            handle = next(self._ids)
            self._keys[handle] = key
        logger.debug("Allocated %s handle %d (%d bits)", type(key).__name__, handle, key.mod.bit_length())
        return handle

    def _lookup(self, handle: int) -> RawPublicKey:
        with self._lock:
            key = self._keys.get(handle)
        if key is None:
            raise EngineFailure(f"Unknown or released key handle {handle}.")
        return key

    def _private(self, handle: int) -> RawPrivateKey:
        key = self._lookup(handle)
        if not isinstance(key, RawPrivateKey):
            raise InvalidKeyType(f"Key handle {handle} holds no private key.")
        return key

    def release(self, handle: int) -> None:
        with self._lock:
            key = self._keys.pop(handle, None)
        if key is not None:
            logger.debug("Released handle %d", handle)

    def parse_private(self, der: bytes, password: bytes | None = None) -> int:
        """Registers the private key encoded in `der` (PKCS#1, PKCS#8 or encrypted PKCS#8)."""
        nums = codec.decode_private(der, password)
        return self._register(RawPrivateKey(nums.n, nums.e, nums.d, nums.p, nums.q, nums.dp, nums.dq, nums.qinv))

    def parse_public(self, der: bytes) -> int:
        """Registers the public key encoded in `der` (PKCS#1 or SubjectPublicKeyInfo)."""
        nums = codec.decode_public(der)
        return self._register(RawPublicKey(nums.n, nums.e))

    def generate(self, bits: int, public_exponent: int = keygen.DEFAULT_PUBLIC_EXPONENT) -> int:
        """Generates and registers a new private key.

        Raises:
            InvalidParameter: If `bits` or `public_exponent` is unsupported.
            EngineFailure: If the prime search gives up.
        """
        try:
            keygen.validate_parameters(bits, public_exponent)
        except ValueError as exc:
            raise InvalidParameter(str(exc)) from exc
        logger.debug("Generating %d-bit RSA key", bits)
        start = time.perf_counter()
        try:
            nums = keygen.generate_key_numbers(bits, public_exponent)
        except RuntimeError as exc:
            raise EngineFailure(str(exc)) from exc
        logger.debug("Generated %d-bit RSA key in %.3fs", bits, time.perf_counter() - start)
        return self._register(RawPrivateKey(nums.n, nums.e, nums.d, nums.p, nums.q))

    def derive_public(self, handle: int) -> int:
        """Registers the public half of a key as a handle of its own."""
        pub = self._lookup(handle).pub
        return self._register(RawPublicKey(pub.mod, pub.expo))

    def key_size(self, handle: int) -> int:
        return self._lookup(handle).mod.bit_length()

    def is_private(self, handle: int) -> bool:
        return isinstance(self._lookup(handle), RawPrivateKey)

    def sign(self, handle: int, digest: bytes, hash_alg: HashAlgorithm) -> bytes:
        """RSASSA-PKCS1-v1_5 signature over a precomputed digest.

        Raises:
            EngineFailure: If the key is too small for the DigestInfo of `hash_alg`.
        """
        key = self._private(handle)
        try:
            em = padding.emsa_pkcs1_v15_encode(digest, hash_alg, key.bsize)
            signature = key.c_rsa(padding.bytes_to_integer(em))
        except ValueError as exc:
            raise EngineFailure(str(exc)) from exc
        return padding.integer_to_bytes(signature, key.bsize)

    def verify(self, handle: int, digest: bytes, signature: bytes, hash_alg: HashAlgorithm) -> bool:
        """RSASSA-PKCS1-v1_5 verification. Any signature that does not check out yields False."""
        key = self._lookup(handle).pub
        if len(signature) != key.bsize:
            return False
        try:
            em = padding.integer_to_bytes(key.c_rsa(padding.bytes_to_integer(signature)), key.bsize)
            expected = padding.emsa_pkcs1_v15_encode(digest, hash_alg, key.bsize)
        except ValueError:
            return False
        return hmac.compare_digest(em, expected)

    def encrypt(self, handle: int, data: bytes, scheme: PaddingScheme, hash_alg: HashAlgorithm,
                label: bytes = b"") -> bytes:
        """RSAES-PKCS1-v1_5 or RSAES-OAEP encryption.

        Raises:
            EngineFailure: If the message (or label) is too long for the key.
        """
        key = self._lookup(handle).pub
        try:
            if scheme is PaddingScheme.OAEP:
                em = padding.eme_oaep_encode(data, key.bsize, hash_alg, label)
            else:
                em = padding.eme_pkcs1_v15_encode(data, key.bsize)
            ciphertext = key.c_rsa(padding.bytes_to_integer(em))
        except ValueError as exc:
            raise EngineFailure(str(exc)) from exc
        return padding.integer_to_bytes(ciphertext, key.bsize)

    def decrypt(self, handle: int, data: bytes, scheme: PaddingScheme, hash_alg: HashAlgorithm,
                label: bytes = b"") -> bytes:
        """RSAES-PKCS1-v1_5 or RSAES-OAEP decryption.

        Raises:
            DecryptionError: On every failure, whatever the cause.
        """
        key = self._private(handle)
        if len(data) != key.bsize:
            raise DecryptionError()
        try:
            em = padding.integer_to_bytes(key.c_rsa(padding.bytes_to_integer(data)), key.bsize)
        except ValueError as exc:
            raise DecryptionError() from exc
        if scheme is PaddingScheme.OAEP:
            return padding.eme_oaep_decode(em, hash_alg, label)
        return padding.eme_pkcs1_v15_decode(em)

    def export_private(self,
                       handle: int,
                       fmt: codec.PrivateFormat = codec.PrivateFormat.PKCS8,
                       password: bytes | None = None) -> bytes:
        label, der = codec.encode_private(self._private(handle).numbers(), fmt, password)
        return pem.encode(label, der)

    def export_public(self, handle: int, fmt: codec.PublicFormat = codec.PublicFormat.SPKI) -> bytes:
        label, der = codec.encode_public(self._lookup(handle).pub.numbers(), fmt)
        return pem.encode(label, der)


ENGINE = Engine()
