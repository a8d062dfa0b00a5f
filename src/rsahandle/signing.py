"""RSASSA-PKCS1-v1_5 signing and verification.

Every digest is length-checked against its declared hash algorithm before it reaches the engine. Verification
distinguishes bad input from a bad signature: the former raises, the latter returns False.

Typical usage example:

    sig = sign(b"Hello world", key)
    assert verify(b"Hello world", key, sig)
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
from rsahandle import digest as _digest
from rsahandle.digest import DEFAULT_HASH
from rsahandle.digest import HashLike
from rsahandle.keys import PrivateKey
from rsahandle.keys import require_key
from rsahandle.keys import require_private
from rsahandle.keys import resolve
from rsahandle.keys import RSAKey


def sign(message: bytes | str, key: PrivateKey, hash_id: HashLike = DEFAULT_HASH) -> bytes:
    """Hashes and signs `message`.

    Args:
        message: The message. Strings are signed as their UTF-8 encoding.
        key: A private key.
        hash_id: Hash algorithm, SHA-256 by default.

    Returns:
        The signature, as long as the modulus.
    """
    require_private(key, "sign")
    alg = _digest.coerce(hash_id)
    return sign_digest(_digest.compute(message, alg), key, alg)


def sign_digest(digest: bytes, key: PrivateKey, hash_id: HashLike) -> bytes:
    """Signs a precomputed digest.

    Args:
        digest: The digest; its length must match `hash_id` exactly.
        key: A private key.
        hash_id: The algorithm that produced `digest`. Selects the DigestInfo identifier in the signature.

    Returns:
        The signature.

    Raises:
        InvalidKeyType: If `key` is not a PrivateKey.
        InvalidParameter: On an unknown algorithm or a digest length mismatch.
        EngineFailure: If the key is too small for the encoded digest.
    """
    require_private(key, "sign")
    alg = _digest.coerce(hash_id)
    raw = _digest.as_bytes(digest, "digest")
    _digest.validate(raw, alg)
    eng, handle = resolve(key)
    return eng.sign(handle, raw, alg)


def verify(message: bytes | str, key: RSAKey, signature: bytes, hash_id: HashLike = DEFAULT_HASH) -> bool:
    """Checks `signature` over `message`. Returns False for any signature that does not verify."""
    require_key(key, "verify")
    alg = _digest.coerce(hash_id)
    return verify_digest(_digest.compute(message, alg), key, signature, alg)


def verify_digest(digest: bytes, key: RSAKey, signature: bytes, hash_id: HashLike) -> bool:
    """Checks `signature` over a precomputed digest.

    Args:
        digest: The digest; its length must match `hash_id` exactly.
        key: Public or private key.
        signature: The signature to check.
        hash_id: The algorithm that produced `digest`.

    Returns:
        True if the signature is valid, False otherwise.

    Raises:
        InvalidKeyType: If `key` is not a key handle.
        InvalidParameter: On an unknown algorithm, a digest length mismatch, or a signature that is not bytes-like.
    """
    require_key(key, "verify")
    alg = _digest.coerce(hash_id)
    raw = _digest.as_bytes(digest, "digest")
    _digest.validate(raw, alg)
    eng, handle = resolve(key)
    return eng.verify(handle, raw, _digest.as_bytes(signature, "signature"), alg)
