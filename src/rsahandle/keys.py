"""Key handles, and the only two ways to obtain one: parsing and generation.

A handle owns exactly one slot in the engine's key table and releases it exactly once, on whichever comes first of
`close()`, leaving a ``with`` block, or garbage collection. `PrivateKey` and `PublicKey` are separate types; both
derive from `RSAKey`, the capability every public operation (verify, encrypt, public export) accepts.

Typical usage example:

    with parse_private(pem_bytes, password="hunter2") as key:
        sig = rsahandle.sign(b"Hello world", key)
        with key.public_key() as pub:
            assert rsahandle.verify(b"Hello world", pub, sig)
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import logging
import os
import weakref

from rsahandle import engine as _engine
from rsahandle import keygen
from rsahandle import pbe
from rsahandle import pem
from rsahandle.errors import InvalidKeyType
from rsahandle.errors import InvalidParameter
from rsahandle.errors import ParseError

logger = logging.getLogger(__name__)

_CREATE = object()


class RSAKey:
    """An opaque handle on RSA key material held by the engine.

    Not meant to be instantiated directly; use `parse_private`, `parse_public` or `generate`.
    """

    def __init__(self, token: object, handle: int, engine: _engine.Engine) -> None:
        if token is not _CREATE:
            raise TypeError("Keys can only be obtained from parse_private, parse_public or generate.")
        self._handle = handle
        self._engine = engine
        self._finalizer = weakref.finalize(self, engine.release, handle)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        if self.closed:
            return f"<{type(self).__name__} (released)>"
        return f"<{type(self).__name__} {self.key_size} bits>"

    @property
    def closed(self) -> bool:
        return not self._finalizer.alive

    @property
    def key_size(self) -> int:
        """Modulus size in bits."""
        return self._engine.key_size(self._handle)

    def close(self) -> None:
        """Releases the engine slot. Further calls are no-ops."""
        self._finalizer()


class PublicKey(RSAKey):
    """Handle on a public-only key. Usable for verify, encrypt and public export."""


class PrivateKey(RSAKey):
    """Handle on a private key. Usable for every operation, since it includes its public half."""

    def public_key(self) -> PublicKey:
        """Returns an independent handle on the public half of this key."""
        return PublicKey(_CREATE, self._engine.derive_public(self._handle), self._engine)


def _materialize(source) -> bytes:
    """Collects a key source into one contiguous byte string.

    Accepts bytes-like objects, `str` (PEM text), paths, binary or text file objects, and iterables of chunks.
    """
    if isinstance(source, bytes):
        return source
    if isinstance(source, (bytearray, memoryview)):
        return bytes(source)
    if isinstance(source, str):
        try:
            return source.encode("ascii")
        except UnicodeEncodeError as exc:
            raise ParseError("PEM text must be ASCII") from exc
    if isinstance(source, os.PathLike):
        try:
            with open(source, "rb") as f:
                return f.read()
        except OSError as exc:
            raise InvalidParameter(f"Cannot read key file {os.fspath(source)}: {exc.strerror}") from exc
    if hasattr(source, "read"):
        return _materialize(source.read())
    try:
        return b"".join(_materialize(chunk) for chunk in source)
    except TypeError as exc:
        raise InvalidParameter(f"Cannot read key material from {type(source).__name__}") from exc


def normalize_password(password: str | bytes | None) -> bytes | None:
    """Normalizes a password, treating an empty one as absent."""
    if password is None:
        return None
    if isinstance(password, str):
        password = password.encode("utf-8")
    elif isinstance(password, (bytearray, memoryview)):
        password = bytes(password)
    elif not isinstance(password, bytes):
        raise InvalidParameter(f"Password must be str or bytes, not {type(password).__name__}")
    return password or None


def parse_private(source, password: str | bytes | None = None) -> PrivateKey:
    """Parses an RSA private key.

    Args:
        source: PKCS#1 or PKCS#8 key, DER or PEM, optionally encrypted (PBES2 PKCS#8 or legacy OpenSSL PEM).
        password: Required for encrypted keys. An empty password counts as no password.

    Returns:
        A handle on the key.

    Raises:
        ParseError: If the encoding is invalid, not RSA, or encrypted without a correct password.
    """
    data = _materialize(source)
    secret = normalize_password(password)
    if pem.is_pem(data):
        block = pem.decode(data, pem.PRIVATE_LABELS)
        der = block.der
        if block.encrypted:
            logger.debug("Decrypting legacy encrypted PEM private key")
            if secret is None:
                raise ParseError("Private key is encrypted but no password was given.")
            der = pbe.decrypt_legacy(der, block.headers.get("DEK-Info", ""), secret)
    else:
        der = data
    return PrivateKey(_CREATE, _engine.ENGINE.parse_private(der, secret), _engine.ENGINE)


def parse_public(source) -> PublicKey:
    """Parses an RSA public key, PKCS#1 or SubjectPublicKeyInfo, DER or PEM.

    Raises:
        ParseError: If the encoding is invalid or not an RSA key.
    """
    data = _materialize(source)
    der = pem.decode(data, pem.PUBLIC_LABELS).der if pem.is_pem(data) else data
    return PublicKey(_CREATE, _engine.ENGINE.parse_public(der), _engine.ENGINE)


def generate(bits: int, public_exponent: int = keygen.DEFAULT_PUBLIC_EXPONENT) -> PrivateKey:
    """Generates a fresh key pair. May block for a noticeable time on large key sizes.

    Args:
        bits: One of `SUPPORTED_KEY_SIZES`.
        public_exponent: Odd, in ``(2**16, 2**256)``.

    Returns:
        A handle on the new private key, which also serves every public operation.

    Raises:
        InvalidParameter: If `bits` or `public_exponent` is unsupported.
    """
    if isinstance(bits, bool) or not isinstance(bits, int):
        raise InvalidParameter(f"Key size must be an int, not {type(bits).__name__}")
    return PrivateKey(_CREATE, _engine.ENGINE.generate(bits, public_exponent), _engine.ENGINE)


def require_private(key, action: str) -> PrivateKey:
    """Returns `key` if it is a PrivateKey, raising InvalidKeyType otherwise."""
    if not isinstance(key, PrivateKey):
        raise InvalidKeyType(f"Cannot {action} with {type(key).__name__}; a PrivateKey is required.")
    return key


def require_key(key, action: str) -> RSAKey:
    """Returns `key` if it is any key handle, raising InvalidKeyType otherwise."""
    if not isinstance(key, RSAKey):
        raise InvalidKeyType(f"Cannot {action} with {type(key).__name__}; an RSA key handle is required.")
    return key


def resolve(key: RSAKey) -> tuple[_engine.Engine, int]:
    """Returns the engine and handle behind `key`. For the operation modules only.

    Args:
        key: A key already checked with `require_key` or `require_private`.

    Returns:
        The owning engine and the opaque handle to pass back to it.
    """
    return key._engine, key._handle  # pylint: disable=protected-access
