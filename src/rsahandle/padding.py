"""PKCS#1 v2.2 encoding methods used by the engine around the raw RSA primitive.

Implements EMSA-PKCS1-v1_5 (signatures), EME-PKCS1-v1_5 and EME-OAEP (encryption), plus the marshalling helpers they
share. Decoding failures of either encryption scheme surface as a single `DecryptionError`, regardless of which check
tripped.
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import enum
import hmac
from math import ceil
from secrets import token_bytes

from pyasn1.codec.der import encoder
from pyasn1.type import univ
from pyasn1_modules import rfc8017

from rsahandle.digest import HASH_TABLE
from rsahandle.digest import HashAlgorithm
from rsahandle.errors import DecryptionError
from rsahandle.errors import InvalidParameter


class PaddingScheme(enum.Enum):
    """The closed set of supported encryption paddings."""
    PKCS1V15 = "pkcs1v15"
    OAEP = "oaep"


DEFAULT_PADDING = PaddingScheme.PKCS1V15

_PADDING_ALIASES = {
    "pkcs1v15": PaddingScheme.PKCS1V15,
    "pkcs1": PaddingScheme.PKCS1V15,
    "oaep": PaddingScheme.OAEP,
    "oaepv21": PaddingScheme.OAEP,
}


def coerce_padding(padding: PaddingScheme | str) -> PaddingScheme:
    """Resolves a padding identifier such as ``"PKCS1-v1.5"`` or ``"OAEP"``.

    Raises:
        InvalidParameter: For anything unsupported.
    """
    if isinstance(padding, PaddingScheme):
        return padding
    if isinstance(padding, str):
        normalized = padding.lower().replace("-", "").replace("_", "").replace(".", "")
        if normalized in _PADDING_ALIASES:
            return _PADDING_ALIASES[normalized]
    raise InvalidParameter(f"Unsupported padding scheme: {padding!r}")


def bytes_to_integer(msg: bytes) -> int:
    """Converts a byte string to an integer in accordance to preset procedures.

    Args:
        msg: The bytes (AKA Octet String) to convert.

    Returns:
        The representative integer.
    """
    return int.from_bytes(msg, byteorder="big", signed=False)


def integer_to_bytes(msg: int, fixedlen: int) -> bytes:
    """Converts an integer to a string, using a fixed-length byte representation.

    Args:
        msg: The integer to unmarshal.
        fixedlen: The target length of the byte string.

    Returns:
        The representative bytes. (AKA Octet String)
    """
    return msg.to_bytes(fixedlen, byteorder="big", signed=False)


def xorbytes(a: bytes, b: bytes) -> bytes:
    """XOR bitwise for bytes. Requires two byte strings of equal length."""
    return bytes(a ^ b for a, b in zip(a, b, strict=True))


def mgf1(mgfseed: bytes, masklen: int, hashf: HashAlgorithm = HashAlgorithm.SHA256) -> bytes:
    """The PKCS#1 v2.2 Mask Generation Function 1.

    Args:
        mgfseed: Seed for mask generation
        masklen: Intended length of mask
        hashf: Hash function

    Returns:
        The mask in form of bytes of length masklen.

    Raises:
        ValueError: If mask too long for the combination of values.
    """
    fun, _, hlen, _ = HASH_TABLE[hashf]
    if masklen > 2**32 * hlen:
        raise ValueError("Mask too long for the specified hash function")
    t = b""
    for cnt in range(ceil(masklen / hlen)):
        c = integer_to_bytes(cnt, 4)
        t += fun(mgfseed + c).digest()
    return t[:masklen]


def emsa_pkcs1_v15_encode(digest: bytes, hashf: HashAlgorithm, emlen: int) -> bytes:
    """Builds the EMSA-PKCS1-v1_5 encoded message for an already computed digest.

    Args:
        digest: The message digest, already validated against `hashf`.
        hashf: Hash function, selects the DigestInfo algorithm identifier.
        emlen: Intended encoded message length, i.e. the modulus length in bytes.

    Returns:
        ``0x00 || 0x01 || PS || 0x00 || DigestInfo``

    Raises:
        ValueError: If the key is too small for the DigestInfo structure.
    """
    algid = rfc8017.DigestAlgorithm()
    algid["algorithm"] = hashf.oid
    algid["parameters"] = univ.Null("")
    payload = rfc8017.DigestInfo()
    payload["digestAlgorithm"] = algid
    payload["digest"] = digest
    encoded = encoder.encode(payload)
    if emlen < len(encoded) + 11:
        raise ValueError("Hash function too large for current key.")
    ps = b"\xFF" * (emlen - len(encoded) - 3)
    return b"\x00\x01" + ps + b"\x00" + encoded


def eme_pkcs1_v15_encode(message: bytes, emlen: int) -> bytes:
    """Pads the message with EME-PKCS1-v1_5, ``0x00 || 0x02 || PS || 0x00 || M``.

    Raises:
        ValueError: If the message does not fit the key.
    """
    if len(message) > emlen - 11:
        raise ValueError("Message too long for the current key.")
    pslen = emlen - len(message) - 3
    ps = b""
    while len(ps) < pslen:
        ps += token_bytes(pslen - len(ps)).replace(b"\x00", b"")
    return b"\x00\x02" + ps + b"\x00" + message


def eme_pkcs1_v15_decode(em: bytes) -> bytes:
    """Strips EME-PKCS1-v1_5 padding.

    The whole block is always scanned so the work done does not depend on where the padding is broken.

    Raises:
        DecryptionError: On any malformed padding.
    """
    valid = em[0:1] == b"\x00"
    valid &= em[1:2] == b"\x02"
    mrkr = None
    for by in range(2, len(em)):
        if em[by] == 0 and mrkr is None:
            mrkr = by
    if mrkr is None or mrkr < 10 or not valid:
        raise DecryptionError()
    return em[mrkr + 1:]


def eme_oaep_encode(message: bytes, emlen: int, hashf: HashAlgorithm, label: bytes = b"") -> bytes:
    """Pads the message according to EME-OAEP, using `hashf` both for the label hash and MGF1.

    Args:
        message: Message to be encrypted
        emlen: The modulus length in bytes.
        hashf: Hash function
        label: Optional label for the message

    Returns:
        The encoded message, ready for the RSA primitive.

    Raises:
        ValueError: If label or message too long for the hash function.
    """
    fun, _, hlen, hcap = HASH_TABLE[hashf]
    if len(label) > hcap:
        raise ValueError("Label too long for the specified hash function")
    if len(message) > emlen - 2 * (hlen + 1):
        raise ValueError("Message too long for the specified hash function")
    lh = fun(label).digest()
    pad = b"\x00" * (emlen - len(message) - 2 * (hlen + 1))
    db: bytes = lh + pad + b"\x01" + message
    seed = token_bytes(hlen)
    db_msk = mgf1(seed, emlen - hlen - 1, hashf)
    mdb = xorbytes(db, db_msk)
    seed_msk = mgf1(mdb, hlen, hashf)
    mseed = xorbytes(seed, seed_msk)
    return b"\x00" + mseed + mdb


def eme_oaep_decode(em: bytes, hashf: HashAlgorithm, label: bytes = b"") -> bytes:
    """Reverses EME-OAEP.

    Args:
        em: The encoded message, exactly the modulus length.
        hashf: Hash function
        label: Optional label the message was encrypted with.

    Returns:
        Decoded message

    Raises:
        DecryptionError: If decoding fails for any reason.
    """
    fun, _, hlen, hcap = HASH_TABLE[hashf]
    if len(label) > hcap or len(em) < 2 * (hlen + 1):
        raise DecryptionError()
    lh = fun(label).digest()
    valid = em[0:1] == b"\x00"
    mseed = em[1:hlen + 1]
    mdb = em[hlen + 1:]
    seed_msk = mgf1(mdb, hlen, hashf)
    seed = xorbytes(mseed, seed_msk)
    db_msk = mgf1(seed, len(em) - hlen - 1, hashf)
    db = xorbytes(mdb, db_msk)
    valid &= hmac.compare_digest(db[0:hlen], lh)
    mrkr = None
    for by in range(hlen, len(db)):
        if db[by:by + 1] == b"\x01" and mrkr is None:
            mrkr = by
        if db[by:by + 1] != b"\x00" and mrkr is None:
            valid = False
    if mrkr is None or not valid:
        raise DecryptionError()
    return db[mrkr + 1:]
