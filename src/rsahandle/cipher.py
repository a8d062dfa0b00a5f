"""RSA encryption and decryption under PKCS#1 v1.5 or OAEP padding.

Decryption reports every failure as the same `DecryptionError`, so callers cannot be turned into a padding oracle.

Typical usage example:

    ct = encrypt(token, key, PaddingScheme.OAEP)
    assert decrypt(ct, key, PaddingScheme.OAEP) == token
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
from rsahandle import digest as _digest
from rsahandle.digest import DEFAULT_HASH
from rsahandle.digest import HashLike
from rsahandle.errors import InvalidParameter
from rsahandle.keys import PrivateKey
from rsahandle.keys import require_key
from rsahandle.keys import require_private
from rsahandle.keys import resolve
from rsahandle.keys import RSAKey
from rsahandle.padding import coerce_padding
from rsahandle.padding import DEFAULT_PADDING
from rsahandle.padding import PaddingScheme


def _options(padding, hash_id, label) -> tuple[PaddingScheme, _digest.HashAlgorithm, bytes]:
    scheme = coerce_padding(padding)
    alg = _digest.coerce(hash_id)
    raw_label = _digest.as_bytes(label, "label")
    if raw_label and scheme is not PaddingScheme.OAEP:
        raise InvalidParameter("Label can only be used with OAEP padding.")
    return scheme, alg, raw_label


def encrypt(data: bytes | str,
            key: RSAKey,
            padding: PaddingScheme | str = DEFAULT_PADDING,
            hash_id: HashLike = DEFAULT_HASH,
            label: bytes = b"") -> bytes:
    """Encrypts `data` with the public half of `key`.

    Args:
        data: The plaintext. Strings are encrypted as their UTF-8 encoding.
        key: Public or private key.
        padding: PKCS#1 v1.5 (default) or OAEP.
        hash_id: OAEP hash and MGF1 hash. Validated but unused under PKCS#1 v1.5.
        label: Optional OAEP label.

    Returns:
        The ciphertext, as long as the modulus.

    Raises:
        InvalidKeyType: If `key` is not a key handle.
        InvalidParameter: On an unknown padding or hash, or a label without OAEP.
        EngineFailure: If `data` is too long for the key and padding.
    """
    require_key(key, "encrypt")
    scheme, alg, raw_label = _options(padding, hash_id, label)
    eng, handle = resolve(key)
    return eng.encrypt(handle, _digest.as_bytes(data, "data", text=True), scheme, alg, raw_label)


def decrypt(data: bytes,
            key: PrivateKey,
            padding: PaddingScheme | str = DEFAULT_PADDING,
            hash_id: HashLike = DEFAULT_HASH,
            label: bytes = b"") -> bytes:
    """Decrypts `data` with a private key.

    Args:
        data: The ciphertext.
        key: A private key.
        padding: The padding the ciphertext was produced with.
        hash_id: The OAEP hash, as used for encryption.
        label: The OAEP label, as used for encryption.

    Returns:
        The plaintext.

    Raises:
        InvalidKeyType: If `key` is not a PrivateKey.
        InvalidParameter: On an unknown padding or hash, or a label without OAEP.
        DecryptionError: If the ciphertext does not decrypt, for whatever reason.
    """
    require_private(key, "decrypt")
    scheme, alg, raw_label = _options(padding, hash_id, label)
    eng, handle = resolve(key)
    return eng.decrypt(handle, _digest.as_bytes(data, "data"), scheme, alg, raw_label)
