"""Serialization of key handles back to PEM.

Typical usage example:

    pem_priv = export_private(key, password="hunter2")
    pem_pub = export_public(key, PublicFormat.PKCS1)
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
from rsahandle.codec import PrivateFormat
from rsahandle.codec import PublicFormat
from rsahandle.errors import InvalidParameter
from rsahandle.keys import normalize_password
from rsahandle.keys import PrivateKey
from rsahandle.keys import require_key
from rsahandle.keys import require_private
from rsahandle.keys import resolve
from rsahandle.keys import RSAKey


def _coerce_format(fmt, enum_cls):
    if isinstance(fmt, enum_cls):
        return fmt
    try:
        return enum_cls(str(fmt).lower())
    except ValueError as exc:
        raise InvalidParameter(f"Unsupported key format: {fmt!r}") from exc


def export_private(key: PrivateKey,
                   fmt: PrivateFormat | str = PrivateFormat.PKCS8,
                   password: str | bytes | None = None) -> bytes:
    """Serializes a private key to PEM.

    Args:
        key: A private key.
        fmt: PKCS#8 (``PRIVATE KEY``, default) or PKCS#1 (``RSA PRIVATE KEY``).
        password: When given, the PKCS#8 output is encrypted (``ENCRYPTED PRIVATE KEY``, PBES2 with AES-256-CBC).

    Returns:
        The PEM bytes.

    Raises:
        InvalidKeyType: If `key` is not a PrivateKey.
        InvalidParameter: On an unknown format, or a password with PKCS#1.
    """
    require_private(key, "export a private key")
    fmt = _coerce_format(fmt, PrivateFormat)
    secret = normalize_password(password)
    if secret is not None and fmt is not PrivateFormat.PKCS8:
        raise InvalidParameter("Password protection is only available for PKCS#8 output.")
    eng, handle = resolve(key)
    return eng.export_private(handle, fmt, secret)


def export_public(key: RSAKey, fmt: PublicFormat | str = PublicFormat.SPKI) -> bytes:
    """Serializes the public half of a key to PEM, SubjectPublicKeyInfo (``PUBLIC KEY``) or PKCS#1."""
    require_key(key, "export a public key")
    eng, handle = resolve(key)
    return eng.export_public(handle, _coerce_format(fmt, PublicFormat))
