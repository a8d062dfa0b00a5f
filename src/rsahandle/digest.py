"""Hash algorithm selection and digest validation.

Maps the supported hash algorithms to their hashlib constructor, PKCS#1 DigestInfo OID and canonical digest length.
Every digest handed to the signing engine passes through `validate` first.

Typical usage example:

    d = compute(b"Hello world", HashAlgorithm.SHA256)
    validate(d, "sha256")
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import enum
import hashlib
import typing

from pyasn1.type import univ
from pyasn1_modules import rfc8017

from rsahandle.errors import InvalidParameter

id_sha1 = univ.ObjectIdentifier("1.3.14.3.2.26")


class HashAlgorithm(enum.Enum):
    """The closed set of supported hash algorithms."""
    SHA1 = "sha1"
    SHA256 = "sha256"
    SHA384 = "sha384"
    SHA512 = "sha512"

    @property
    def digest_size(self) -> int:
        return HASH_TABLE[self][2]

    @property
    def oid(self) -> univ.ObjectIdentifier:
        return HASH_TABLE[self][1]

    def new(self, data: bytes = b""):
        return HASH_TABLE[self][0](data)


# (constructor, DigestInfo OID, digest length, maximum hash input length in bytes)
HASH_TABLE: dict[HashAlgorithm, tuple[typing.Callable, univ.ObjectIdentifier, int, int]] = {
    HashAlgorithm.SHA1: (hashlib.sha1, id_sha1, 20, 2**61 - 1),
    HashAlgorithm.SHA256: (hashlib.sha256, rfc8017.id_sha256, 32, 2**61 - 1),
    HashAlgorithm.SHA384: (hashlib.sha384, rfc8017.id_sha384, 48, 2**125 - 1),
    HashAlgorithm.SHA512: (hashlib.sha512, rfc8017.id_sha512, 64, 2**125 - 1),
}

DEFAULT_HASH = HashAlgorithm.SHA256

HashLike = HashAlgorithm | str


def coerce(hash_id: HashLike) -> HashAlgorithm:
    """Resolves a hash identifier into a `HashAlgorithm`.

    Accepts the enum member itself or its lowercase/uppercase name, with or without the dash (``"SHA-256"``).

    Args:
        hash_id: The identifier to resolve.

    Returns:
        The matching `HashAlgorithm`.

    Raises:
        InvalidParameter: If the identifier names no supported algorithm.
    """
    if isinstance(hash_id, HashAlgorithm):
        return hash_id
    if isinstance(hash_id, str):
        try:
            return HashAlgorithm(hash_id.lower().replace("-", ""))
        except ValueError:
            pass
    raise InvalidParameter(f"Unsupported hash algorithm: {hash_id!r}")


def expected_length(hash_id: HashLike) -> int:
    """Canonical digest length in bytes for the given algorithm."""
    return coerce(hash_id).digest_size


def validate(digest: bytes, hash_id: HashLike) -> None:
    """Checks that `digest` has exactly the length its algorithm produces.

    Args:
        digest: The precomputed digest.
        hash_id: The algorithm the digest claims to come from.

    Raises:
        InvalidParameter: On an unknown algorithm or any length mismatch.
    """
    expected = expected_length(hash_id)
    if len(digest) != expected:
        raise InvalidParameter(f"Digest length {len(digest)} does not match {coerce(hash_id).value} ({expected} bytes)")


def compute(message: bytes | str, hash_id: HashLike) -> bytes:
    """Hashes `message` with the selected algorithm. Strings are UTF-8 encoded first."""
    alg = coerce(hash_id)
    return alg.new(as_bytes(message, "message", text=True)).digest()


def as_bytes(data, name: str, text: bool = False) -> bytes:
    """Materializes a bytes-like argument into an immutable `bytes`.

    Args:
        data: The value to convert.
        name: Argument name, used in the error message.
        text: Whether `str` is acceptable (encoded as UTF-8).

    Returns:
        The argument as bytes.

    Raises:
        InvalidParameter: If `data` is not bytes-like (or text, where allowed).
    """
    if isinstance(data, bytes):
        return data
    if isinstance(data, (bytearray, memoryview)):
        return bytes(data)
    if text and isinstance(data, str):
        return data.encode("utf-8")
    raise InvalidParameter(f"{name} must be bytes-like, not {type(data).__name__}")
