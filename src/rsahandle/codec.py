"""DER codec for RSA key structures.

Private keys: PKCS#1 ``RSAPrivateKey``, PKCS#8 ``PrivateKeyInfo`` and ``EncryptedPrivateKeyInfo``.
Public keys: PKCS#1 ``RSAPublicKey`` and X.509 ``SubjectPublicKeyInfo``.

The encoding is recognized from the structure itself: the first component of each outer SEQUENCE has a distinct tag,
so at most one candidate decodes cleanly.
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import enum
import logging
import typing

from pyasn1 import error
from pyasn1.codec.der import decoder
from pyasn1.codec.der import encoder
from pyasn1.codec.native import encoder as localize
from pyasn1.type import namedtype
from pyasn1.type import univ
from pyasn1_modules import rfc5208
from pyasn1_modules import rfc5280
from pyasn1_modules import rfc8017

from rsahandle import pbe
from rsahandle import pem
from rsahandle.errors import ParseError

logger = logging.getLogger(__name__)


class PrivateFormat(enum.Enum):
    PKCS8 = "pkcs8"
    PKCS1 = "pkcs1"


class PublicFormat(enum.Enum):
    SPKI = "spki"
    PKCS1 = "pkcs1"


class EncryptedPrivateKeyInfo(univ.Sequence):
    """PKCS#8 EncryptedPrivateKeyInfo."""
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("encryptionAlgorithm", rfc8017.AlgorithmIdentifier()),
        namedtype.NamedType("encryptedData", univ.OctetString()),
    )


class PrivateNumbers(typing.NamedTuple):
    n: int
    e: int
    d: int
    p: int
    q: int
    dp: int
    dq: int
    qinv: int


class PublicNumbers(typing.NamedTuple):
    n: int
    e: int


def _try_decode(der: bytes, spec):
    """Decodes `der` against `spec`, returning None unless it matches exactly with no trailing data."""
    try:
        value, rest = decoder.decode(der, asn1Spec=spec)
    except error.PyAsn1Error:
        return None
    if rest:
        return None
    return value


def _rsa_private_numbers(der: bytes) -> PrivateNumbers:
    keydata = _try_decode(der, rfc8017.RSAPrivateKey())
    if keydata is None:
        raise ParseError("Malformed PKCS#1 RSA private key.")
    if keydata["version"] != 0:
        raise ParseError("Multi-prime keys are not supported.")
    pykeyd = localize.encode(keydata)
    nums = PrivateNumbers(pykeyd["modulus"], pykeyd["publicExponent"], pykeyd["privateExponent"], pykeyd["prime1"],
                          pykeyd["prime2"], pykeyd["exponent1"], pykeyd["exponent2"], pykeyd["coefficient"])
    if not _consistent(nums):
        raise ParseError("Inconsistent RSA private key components.")
    return nums


def _consistent(nums: PrivateNumbers) -> bool:
    """Checks that the CRT components agree with each other and with the modulus and exponents."""
    n, e, d, p, q, dp, dq, qinv = nums
    if min(p, q) < 3 or not 1 < e < n or not 1 < d < n:
        return False
    if p * q != n:
        return False
    if dp != d % (p - 1) or dq != d % (q - 1) or (qinv * q) % p != 1:
        return False
    return pow(pow(2, e, n), d, n) == 2


def _unwrap_pkcs8(info: rfc5208.PrivateKeyInfo) -> PrivateNumbers:
    if info["version"] != 0:
        raise ParseError("Unsupported version of private key information wrapper.")
    if info["privateKeyAlgorithm"]["algorithm"] != rfc8017.rsaEncryption:
        raise ParseError(f"Unsupported key type {info['privateKeyAlgorithm']['algorithm']}.")
    return _rsa_private_numbers(info["privateKey"].asOctets())


def decode_private(der: bytes, password: bytes | None = None) -> PrivateNumbers:
    """Decodes a DER private key in any supported encoding.

    Args:
        der: PKCS#1, PKCS#8 or encrypted PKCS#8 DER.
        password: Needed for encrypted PKCS#8. Ignored otherwise.

    Returns:
        The integer components of the key.

    Raises:
        ParseError: If the structure is unrecognized, not RSA, or encrypted without a (correct) password.
    """
    keydata = _try_decode(der, rfc8017.RSAPrivateKey())
    if keydata is not None:
        logger.debug("Decoding PKCS#1 private key")
        return _rsa_private_numbers(der)
    info = _try_decode(der, rfc5208.PrivateKeyInfo())
    if info is not None:
        logger.debug("Decoding PKCS#8 private key")
        return _unwrap_pkcs8(info)
    wrapped = _try_decode(der, EncryptedPrivateKeyInfo())
    if wrapped is not None:
        logger.debug("Decoding encrypted PKCS#8 private key")
        if password is None:
            raise ParseError("Private key is encrypted but no password was given.")
        plain = pbe.decrypt_pbes2(wrapped["encryptionAlgorithm"], wrapped["encryptedData"].asOctets(), password)
        info = _try_decode(plain, rfc5208.PrivateKeyInfo())
        if info is None:
            raise ParseError("Incorrect password or corrupted private key.")
        return _unwrap_pkcs8(info)
    raise ParseError("Unrecognized private key encoding.")


def decode_public(der: bytes) -> PublicNumbers:
    """Decodes a DER public key, PKCS#1 or SubjectPublicKeyInfo.

    Raises:
        ParseError: If the structure is unrecognized or not an RSA key.
    """
    keydata = _try_decode(der, rfc8017.RSAPublicKey())
    if keydata is None:
        spki = _try_decode(der, rfc5280.SubjectPublicKeyInfo())
        if spki is None:
            raise ParseError("Unrecognized public key encoding.")
        if spki["algorithm"]["algorithm"] != rfc8017.rsaEncryption:
            raise ParseError(f"Unsupported key type {spki['algorithm']['algorithm']}.")
        logger.debug("Decoding SubjectPublicKeyInfo public key")
        keydata = _try_decode(spki["subjectPublicKey"].asOctets(), rfc8017.RSAPublicKey())
        if keydata is None:
            raise ParseError("Malformed RSA public key.")
    else:
        logger.debug("Decoding PKCS#1 public key")
    pykeyd = localize.encode(keydata)
    return PublicNumbers(pykeyd["modulus"], pykeyd["publicExponent"])


def _rsa_algorithm(spec):
    pkalgo = spec()
    pkalgo["algorithm"] = rfc8017.rsaEncryption
    pkalgo["parameters"] = univ.Null("")
    return pkalgo


def encode_private(numbers: PrivateNumbers,
                   fmt: PrivateFormat = PrivateFormat.PKCS8,
                   password: bytes | None = None) -> tuple[str, bytes]:
    """Encodes a private key to DER.

    Args:
        numbers: The key components.
        fmt: PKCS#8 (default) or PKCS#1.
        password: Encrypts the PKCS#8 structure with PBES2 when given.

    Returns:
        The PEM label for the structure and its DER bytes.
    """
    interkey = rfc8017.RSAPrivateKey()
    interkey["version"] = 0
    interkey["modulus"] = numbers.n
    interkey["publicExponent"] = numbers.e
    interkey["privateExponent"] = numbers.d
    interkey["prime1"] = numbers.p
    interkey["prime2"] = numbers.q
    interkey["exponent1"] = numbers.dp
    interkey["exponent2"] = numbers.dq
    interkey["coefficient"] = numbers.qinv
    encoded = encoder.encode(interkey)
    if fmt is PrivateFormat.PKCS1:
        return pem.RSA_PRIVATE_KEY, encoded
    pkraw = rfc5208.PrivateKeyInfo()
    pkraw["version"] = 0
    pkraw["privateKeyAlgorithm"] = _rsa_algorithm(rfc5208.AlgorithmIdentifier)
    pkraw["privateKey"] = encoded
    final = encoder.encode(pkraw)
    if password is None:
        return pem.PRIVATE_KEY, final
    algorithm, ciphertext = pbe.encrypt_pbes2(final, password)
    wrapped = EncryptedPrivateKeyInfo()
    wrapped["encryptionAlgorithm"] = algorithm
    wrapped["encryptedData"] = ciphertext
    return pem.ENCRYPTED_PRIVATE_KEY, encoder.encode(wrapped)


def encode_public(numbers: PublicNumbers, fmt: PublicFormat = PublicFormat.SPKI) -> tuple[str, bytes]:
    """Encodes a public key to DER, returning the PEM label and the DER bytes."""
    keydata = rfc8017.RSAPublicKey()
    keydata["modulus"] = numbers.n
    keydata["publicExponent"] = numbers.e
    encdata = encoder.encode(keydata)
    if fmt is PublicFormat.PKCS1:
        return pem.RSA_PUBLIC_KEY, encdata
    spki = rfc5280.SubjectPublicKeyInfo()
    spki["algorithm"] = _rsa_algorithm(rfc5280.AlgorithmIdentifier)
    spki["subjectPublicKey"] = univ.BitString.fromOctetString(encdata)
    return pem.PUBLIC_KEY, encoder.encode(spki)
