"""RSA keys behind opaque handles: parse, generate, sign, verify, encrypt, decrypt and export.

Callers never touch ASN.1, PEM or modular arithmetic. Keys are obtained only from `parse_private`, `parse_public`
or `generate`, and every operation validates its hash, padding and key variant before the engine runs.

Typical usage example:

    with rsahandle.generate(2048) as key:
        sig = rsahandle.sign(b"Hello world", key)
        assert rsahandle.verify(b"Hello world", key, sig)
        ct = rsahandle.encrypt(b"0123456789abcdef", key, "oaep")
        assert rsahandle.decrypt(ct, key, "oaep") == b"0123456789abcdef"
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import logging

from rsahandle.cipher import decrypt
from rsahandle.cipher import encrypt
from rsahandle.codec import PrivateFormat
from rsahandle.codec import PublicFormat
from rsahandle.digest import DEFAULT_HASH
from rsahandle.digest import HashAlgorithm
from rsahandle.errors import DecryptionError
from rsahandle.errors import EngineFailure
from rsahandle.errors import InvalidKeyType
from rsahandle.errors import InvalidParameter
from rsahandle.errors import ParseError
from rsahandle.errors import RSAHandleError
from rsahandle.export import export_private
from rsahandle.export import export_public
from rsahandle.keygen import DEFAULT_PUBLIC_EXPONENT
from rsahandle.keygen import SUPPORTED_KEY_SIZES
from rsahandle.keys import generate
from rsahandle.keys import parse_private
from rsahandle.keys import parse_public
from rsahandle.keys import PrivateKey
from rsahandle.keys import PublicKey
from rsahandle.keys import RSAKey
from rsahandle.padding import DEFAULT_PADDING
from rsahandle.padding import PaddingScheme
from rsahandle.pbe import PBKDF2_ITERATIONS
from rsahandle.signing import sign
from rsahandle.signing import sign_digest
from rsahandle.signing import verify
from rsahandle.signing import verify_digest

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
__all__ = [
    "RSAKey",
    "PrivateKey",
    "PublicKey",
    "parse_private",
    "parse_public",
    "generate",
    "sign",
    "sign_digest",
    "verify",
    "verify_digest",
    "encrypt",
    "decrypt",
    "export_private",
    "export_public",
    "HashAlgorithm",
    "PaddingScheme",
    "PrivateFormat",
    "PublicFormat",
    "RSAHandleError",
    "InvalidParameter",
    "InvalidKeyType",
    "ParseError",
    "EngineFailure",
    "DecryptionError",
    "DEFAULT_HASH",
    "DEFAULT_PADDING",
    "DEFAULT_PUBLIC_EXPONENT",
    "SUPPORTED_KEY_SIZES",
    "PBKDF2_ITERATIONS",
]
