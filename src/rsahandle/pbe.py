"""Password-based encryption of private keys.

Two schemes are understood:

* PKCS#5 v2.1 PBES2 (RFC 8018) inside a PKCS#8 ``EncryptedPrivateKeyInfo``, with PBKDF2 over HMAC-SHA1/SHA-2 and
  AES-CBC. This is also what `encrypt_pbes2` writes.
* The legacy OpenSSL PEM encryption (``Proc-Type: 4,ENCRYPTED`` / ``DEK-Info``), read only, AES-CBC only.

AES itself comes from `cryptography`; the ASN.1 parameter structures are defined here with pyasn1.
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import binascii
import hashlib
from secrets import token_bytes

from cryptography.hazmat.primitives import padding as sympadding
from cryptography.hazmat.primitives.ciphers import algorithms
from cryptography.hazmat.primitives.ciphers import Cipher
from cryptography.hazmat.primitives.ciphers import modes
from pyasn1 import error
from pyasn1.codec.der import decoder
from pyasn1.codec.der import encoder
from pyasn1.type import namedtype
from pyasn1.type import univ
from pyasn1_modules import rfc8017

from rsahandle.errors import ParseError

PBKDF2_ITERATIONS = 100_000
MAX_PBKDF2_ITERATIONS = 10_000_000

id_PBES2 = univ.ObjectIdentifier("1.2.840.113549.1.5.13")
id_PBKDF2 = univ.ObjectIdentifier("1.2.840.113549.1.5.12")
id_hmacWithSHA1 = univ.ObjectIdentifier("1.2.840.113549.2.7")
id_hmacWithSHA256 = univ.ObjectIdentifier("1.2.840.113549.2.9")
id_aes256_CBC = univ.ObjectIdentifier("2.16.840.1.101.3.4.1.42")

PRF_OID = {
    id_hmacWithSHA1: "sha1",
    id_hmacWithSHA256: "sha256",
    univ.ObjectIdentifier("1.2.840.113549.2.10"): "sha384",
    univ.ObjectIdentifier("1.2.840.113549.2.11"): "sha512",
}

AES_CBC_OID = {
    univ.ObjectIdentifier("2.16.840.1.101.3.4.1.2"): 16,
    univ.ObjectIdentifier("2.16.840.1.101.3.4.1.22"): 24,
    id_aes256_CBC: 32,
}

LEGACY_CIPHERS = {
    "AES-128-CBC": 16,
    "AES-192-CBC": 24,
    "AES-256-CBC": 32,
}


class PBKDF2Params(univ.Sequence):
    """PBKDF2-params, restricted to an explicitly specified salt."""
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("salt", univ.OctetString()),
        namedtype.NamedType("iterationCount", univ.Integer()),
        namedtype.OptionalNamedType("keyLength", univ.Integer()),
        namedtype.OptionalNamedType("prf", rfc8017.AlgorithmIdentifier()),
    )


class PBES2Params(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("keyDerivationFunc", rfc8017.AlgorithmIdentifier()),
        namedtype.NamedType("encryptionScheme", rfc8017.AlgorithmIdentifier()),
    )


def _aes_cbc_decrypt(key: bytes, iv: bytes, data: bytes) -> bytes:
    try:
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(data) + decryptor.finalize()
        unpadder = sympadding.PKCS7(128).unpadder()
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as exc:
        raise ParseError("Incorrect password or corrupted private key.") from exc


def _aes_cbc_encrypt(key: bytes, iv: bytes, data: bytes) -> bytes:
    padder = sympadding.PKCS7(128).padder()
    padded = padder.update(data) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def decrypt_pbes2(algorithm: rfc8017.AlgorithmIdentifier, data: bytes, password: bytes) -> bytes:
    """Decrypts the `encryptedData` of an EncryptedPrivateKeyInfo.

    Args:
        algorithm: The `encryptionAlgorithm` identifier of the structure.
        data: The encrypted payload.
        password: The password, already encoded.

    Returns:
        The DER encoded PrivateKeyInfo.

    Raises:
        ParseError: If the scheme is unsupported, its parameters are malformed, or the password is wrong.
    """
    if algorithm["algorithm"] != id_PBES2:
        raise ParseError(f"Unsupported private key encryption scheme {algorithm['algorithm']}.")
    try:
        params, _ = decoder.decode(algorithm["parameters"].asOctets(), asn1Spec=PBES2Params())
        kdf = params["keyDerivationFunc"]
        scheme = params["encryptionScheme"]
        if kdf["algorithm"] != id_PBKDF2:
            raise ParseError(f"Unsupported key derivation function {kdf['algorithm']}.")
        if scheme["algorithm"] not in AES_CBC_OID:
            raise ParseError(f"Unsupported private key cipher {scheme['algorithm']}.")
        kdf_params, _ = decoder.decode(kdf["parameters"].asOctets(), asn1Spec=PBKDF2Params())
        iv, _ = decoder.decode(scheme["parameters"].asOctets(), asn1Spec=univ.OctetString())
    except error.PyAsn1Error as exc:
        raise ParseError("Malformed PBES2 parameters.") from exc
    prf = "sha1"
    if kdf_params["prf"].isValue:
        prf_oid = kdf_params["prf"]["algorithm"]
        if prf_oid not in PRF_OID:
            raise ParseError(f"Unsupported PBKDF2 pseudorandom function {prf_oid}.")
        prf = PRF_OID[prf_oid]
    keylen = AES_CBC_OID[scheme["algorithm"]]
    if kdf_params["keyLength"].isValue and int(kdf_params["keyLength"]) != keylen:
        raise ParseError("PBKDF2 key length does not match the cipher.")
    iterations = int(kdf_params["iterationCount"])
    if not 1 <= iterations <= MAX_PBKDF2_ITERATIONS:
        raise ParseError(f"PBKDF2 iteration count {iterations} is out of range.")
    key = hashlib.pbkdf2_hmac(prf, password, kdf_params["salt"].asOctets(), iterations, keylen)
    return _aes_cbc_decrypt(key, iv.asOctets(), data)


def encrypt_pbes2(data: bytes,
                  password: bytes,
                  iterations: int = PBKDF2_ITERATIONS) -> tuple[rfc8017.AlgorithmIdentifier, bytes]:
    """Encrypts DER data with PBES2 (PBKDF2-HMAC-SHA256, AES-256-CBC).

    Args:
        data: The DER encoded PrivateKeyInfo.
        password: The password, already encoded.
        iterations: PBKDF2 iteration count.

    Returns:
        The `encryptionAlgorithm` identifier and the ciphertext for an EncryptedPrivateKeyInfo.
    """
    salt = token_bytes(16)
    iv = token_bytes(16)
    key = hashlib.pbkdf2_hmac("sha256", password, salt, iterations, 32)

    prf = rfc8017.AlgorithmIdentifier()
    prf["algorithm"] = id_hmacWithSHA256
    prf["parameters"] = univ.Null("")
    kdf_params = PBKDF2Params()
    kdf_params["salt"] = salt
    kdf_params["iterationCount"] = iterations
    kdf_params["prf"] = prf
    kdf = rfc8017.AlgorithmIdentifier()
    kdf["algorithm"] = id_PBKDF2
    kdf["parameters"] = univ.Any(encoder.encode(kdf_params))
    scheme = rfc8017.AlgorithmIdentifier()
    scheme["algorithm"] = id_aes256_CBC
    scheme["parameters"] = univ.Any(encoder.encode(univ.OctetString(iv)))
    params = PBES2Params()
    params["keyDerivationFunc"] = kdf
    params["encryptionScheme"] = scheme
    algorithm = rfc8017.AlgorithmIdentifier()
    algorithm["algorithm"] = id_PBES2
    algorithm["parameters"] = univ.Any(encoder.encode(params))
    return algorithm, _aes_cbc_encrypt(key, iv, data)


def _bytes_to_key(password: bytes, salt: bytes, keylen: int) -> bytes:
    """OpenSSL EVP_BytesToKey with MD5 and a single iteration."""
    derived = b""
    block = b""
    while len(derived) < keylen:
        block = hashlib.md5(block + password + salt).digest()
        derived += block
    return derived[:keylen]


def decrypt_legacy(data: bytes, dek_info: str, password: bytes) -> bytes:
    """Decrypts the payload of a legacy encrypted PEM block.

    Args:
        data: The Base64-decoded PEM payload.
        dek_info: The ``DEK-Info`` header value, e.g. ``AES-256-CBC,0123...``.
        password: The password, already encoded.

    Returns:
        The DER encoded PKCS#1 RSAPrivateKey.

    Raises:
        ParseError: If the cipher is unsupported, the header is malformed, or the password is wrong.
    """
    cipher_name, _, iv_hex = dek_info.partition(",")
    cipher_name = cipher_name.strip().upper()
    if cipher_name not in LEGACY_CIPHERS:
        raise ParseError(f"Unsupported PEM encryption {cipher_name}.")
    try:
        iv = binascii.unhexlify(iv_hex.strip())
    except binascii.Error as exc:
        raise ParseError("Malformed DEK-Info header.") from exc
    if len(iv) != 16:
        raise ParseError("Malformed DEK-Info header.")
    key = _bytes_to_key(password, iv[:8], LEGACY_CIPHERS[cipher_name])
    return _aes_cbc_decrypt(key, iv, data)
