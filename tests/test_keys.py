# pylint: disable=missing-module-docstring,redefined-outer-name
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import gc
import io

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from pyasn1.codec.der import decoder
from pyasn1.codec.der import encoder
from pyasn1_modules import rfc8017
import pytest

import rsahandle
from rsahandle import engine
from rsahandle import keys
from rsahandle.errors import EngineFailure
from rsahandle.errors import InvalidParameter
from rsahandle.errors import ParseError

PRIVATE_FORMATS = [serialization.PrivateFormat.PKCS8, serialization.PrivateFormat.TraditionalOpenSSL]
PUBLIC_FORMATS = [serialization.PublicFormat.SubjectPublicKeyInfo, serialization.PublicFormat.PKCS1]
ENCODINGS = [serialization.Encoding.PEM, serialization.Encoding.DER]


def private_bytes(ref, encoding=serialization.Encoding.PEM, fmt=serialization.PrivateFormat.PKCS8, password=None):
    crypt = serialization.BestAvailableEncryption(password) if password else serialization.NoEncryption()
    return ref.private_bytes(encoding, fmt, crypt)


def assert_same_public(key: rsahandle.RSAKey, ref) -> None:
    """Compares through export, the only way to look inside a handle."""
    exported = serialization.load_pem_public_key(rsahandle.export_public(key))
    assert exported.public_numbers() == ref.public_key().public_numbers()


@pytest.mark.parametrize("encoding", ENCODINGS)
@pytest.mark.parametrize("fmt", PRIVATE_FORMATS)
def test_parse_private(reference_key, encoding, fmt):
    with rsahandle.parse_private(private_bytes(reference_key, encoding, fmt)) as key:
        assert isinstance(key, rsahandle.PrivateKey)
        assert key.key_size == reference_key.key_size
        assert_same_public(key, reference_key)


@pytest.mark.parametrize("encoding", ENCODINGS)
@pytest.mark.parametrize("fmt", PUBLIC_FORMATS)
def test_parse_public(reference_key, encoding, fmt):
    with rsahandle.parse_public(reference_key.public_key().public_bytes(encoding, fmt)) as key:
        assert isinstance(key, rsahandle.PublicKey)
        assert not isinstance(key, rsahandle.PrivateKey)
        assert key.key_size == reference_key.key_size
        assert_same_public(key, reference_key)


@pytest.mark.parametrize("fmt", PRIVATE_FORMATS)
@pytest.mark.parametrize("password", [b"hunter2", "hunter2"])
def test_parse_encrypted_private(reference_keys, fmt, password):
    ref = reference_keys[1024]
    data = private_bytes(ref, fmt=fmt, password=b"hunter2")
    with rsahandle.parse_private(data, password=password) as key:
        assert_same_public(key, ref)


def test_parse_encrypted_private_der(reference_keys):
    ref = reference_keys[1024]
    data = private_bytes(ref, serialization.Encoding.DER, password=b"hunter2")
    with rsahandle.parse_private(data, b"hunter2") as key:
        assert_same_public(key, ref)


@pytest.mark.parametrize("fmt", PRIVATE_FORMATS)
@pytest.mark.parametrize("password", [None, "", b""])
def test_parse_encrypted_private_needs_password(reference_keys, fmt, password):
    data = private_bytes(reference_keys[1024], fmt=fmt, password=b"hunter2")
    with pytest.raises(ParseError, match="no password"):
        rsahandle.parse_private(data, password)


@pytest.mark.parametrize("fmt", PRIVATE_FORMATS)
def test_parse_encrypted_private_wrong_password(reference_keys, fmt):
    data = private_bytes(reference_keys[1024], fmt=fmt, password=b"hunter2")
    with pytest.raises(ParseError):
        rsahandle.parse_private(data, "hunter3")


@pytest.mark.parametrize("password", ["", b"", None, "ignored"])
def test_parse_unencrypted_private_ignores_password(reference_keys, password):
    with rsahandle.parse_private(private_bytes(reference_keys[1024]), password) as key:
        assert key.key_size == 1024


def test_parse_legacy_unsupported_cipher(reference_keys):
    block = private_bytes(reference_keys[1024], fmt=serialization.PrivateFormat.TraditionalOpenSSL,
                          password=b"hunter2").decode("ascii")
    lines = block.splitlines()
    lines = [("DEK-Info: DES-EDE3-CBC,0011223344556677" if line.startswith("DEK-Info") else line) for line in lines]
    with pytest.raises(ParseError, match="Unsupported PEM encryption"):
        rsahandle.parse_private("\n".join(lines), "hunter2")


@pytest.mark.parametrize("garbage", [b"", b"\x30\x03\x02\x01\x00", b"not a key at all", b"\x00" * 64])
def test_parse_garbage(garbage):
    with pytest.raises(ParseError):
        rsahandle.parse_private(garbage)
    with pytest.raises(ParseError):
        rsahandle.parse_public(garbage)


def test_parse_trailing_data(reference_keys):
    der = reference_keys[1024].public_key().public_bytes(serialization.Encoding.DER,
                                                         serialization.PublicFormat.PKCS1)
    with pytest.raises(ParseError):
        rsahandle.parse_public(der + b"\x00")


def test_parse_wrong_pem_type(reference_keys):
    ref = reference_keys[1024]
    with pytest.raises(ParseError, match="not supported"):
        rsahandle.parse_private(
            ref.public_key().public_bytes(serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo))
    with pytest.raises(ParseError, match="not supported"):
        rsahandle.parse_public(private_bytes(ref))


def test_parse_public_rejects_private_der(reference_keys):
    der = private_bytes(reference_keys[1024], serialization.Encoding.DER, serialization.PrivateFormat.TraditionalOpenSSL)
    with pytest.raises(ParseError):
        rsahandle.parse_public(der)


def test_parse_unsupported_key_type():
    ec_key = ec.generate_private_key(ec.SECP256R1())
    with pytest.raises(ParseError, match="Unsupported key type"):
        rsahandle.parse_private(private_bytes(ec_key))
    with pytest.raises(ParseError, match="Unsupported key type"):
        rsahandle.parse_public(ec_key.public_key().public_bytes(serialization.Encoding.PEM,
                                                                serialization.PublicFormat.SubjectPublicKeyInfo))


def test_parse_sources(reference_keys, tmp_path):
    ref = reference_keys[1024]
    data = private_bytes(ref)
    loc = tmp_path / "rsa_1024"
    loc.write_bytes(data)
    sources = [
        data,
        bytearray(data),
        memoryview(data),
        data.decode("ascii"),
        loc,
        io.BytesIO(data),
        io.StringIO(data.decode("ascii")),
        [data[:100], data[100:200], data[200:]],
        (chunk for chunk in data.splitlines(keepends=True)),
    ]
    for source in sources:
        with rsahandle.parse_private(source) as key:
            assert_same_public(key, ref)


@pytest.mark.parametrize("source", [12345, None, object()])
def test_parse_bad_source(source):
    with pytest.raises(InvalidParameter):
        rsahandle.parse_private(source)


def test_parse_missing_file(tmp_path):
    with pytest.raises(InvalidParameter, match="Cannot read key file"):
        rsahandle.parse_private(tmp_path / "missing.pem")
    with pytest.raises(InvalidParameter, match="Cannot read key file"):
        rsahandle.parse_public(tmp_path)


def tampered_private_der(ref, field: str, delta: int) -> bytes:
    der = private_bytes(ref, serialization.Encoding.DER, serialization.PrivateFormat.TraditionalOpenSSL)
    keydata, _ = decoder.decode(der, asn1Spec=rfc8017.RSAPrivateKey())
    keydata[field] = int(keydata[field]) + delta
    return encoder.encode(keydata)


@pytest.mark.parametrize("field,delta", [("exponent1", 2), ("exponent2", 2), ("coefficient", 1), ("modulus", 2),
                                         ("privateExponent", 2), ("publicExponent", 2), ("prime1", 2)])
def test_parse_inconsistent_private(reference_keys, field, delta):
    with pytest.raises(ParseError, match="Inconsistent"):
        rsahandle.parse_private(tampered_private_der(reference_keys[1024], field, delta))


def test_parse_inconsistent_private_signs_nothing(mocker, reference_keys):
    sign = mocker.spy(engine.ENGINE, "sign")
    with pytest.raises(ParseError):
        with rsahandle.parse_private(tampered_private_der(reference_keys[1024], "exponent1", 2)) as key:
            rsahandle.sign(b"payload", key)
    sign.assert_not_called()


@pytest.mark.parametrize("password", [123, ["hunter2"]])
def test_parse_bad_password_type(reference_keys, password):
    with pytest.raises(InvalidParameter):
        rsahandle.parse_private(private_bytes(reference_keys[1024]), password)


def test_generate():
    with rsahandle.generate(1024) as key:
        assert isinstance(key, rsahandle.PrivateKey)
        assert key.key_size == 1024
        exported = serialization.load_pem_private_key(rsahandle.export_private(key), None)
        assert exported.key_size == 1024
        assert exported.public_key().public_numbers().e == 65537


def test_generate_custom_exponent():
    with rsahandle.generate(1024, public_exponent=2**17 + 1) as key:
        exported = serialization.load_pem_public_key(rsahandle.export_public(key))
        assert exported.public_numbers().e == 2**17 + 1


@pytest.mark.parametrize("bits", [0, 512, 1023, 2047, 5000, 8192, -2048])
def test_generate_rejects_unsupported_size(bits):
    with pytest.raises(InvalidParameter):
        rsahandle.generate(bits)


@pytest.mark.parametrize("bits", ["2048", 2048.0, True, None])
def test_generate_rejects_non_int_size(bits):
    with pytest.raises(InvalidParameter):
        rsahandle.generate(bits)


@pytest.mark.parametrize("exponent", [3, 65536, 2**256 + 1])
def test_generate_rejects_exponent(exponent):
    with pytest.raises(InvalidParameter):
        rsahandle.generate(2048, public_exponent=exponent)


def test_generate_prime_search_failure(mocker):
    mocker.patch("rsahandle.keygen.generate_key_numbers", side_effect=RuntimeError("No prime found"))
    with pytest.raises(EngineFailure, match="No prime found"):
        rsahandle.generate(1024)


def test_handles_are_not_constructible():
    with pytest.raises(TypeError):
        rsahandle.PrivateKey(object(), 1, engine.ENGINE)
    with pytest.raises(TypeError):
        rsahandle.PublicKey(None, 1, engine.ENGINE)


def test_context_manager_releases(reference_keys):
    gc.collect()
    before = len(engine.ENGINE)
    with rsahandle.parse_private(private_bytes(reference_keys[1024])) as key:
        assert len(engine.ENGINE) == before + 1
        assert not key.closed
    assert key.closed
    assert len(engine.ENGINE) == before
    assert "released" in repr(key)


def test_release_on_error_path(reference_keys):
    gc.collect()
    before = len(engine.ENGINE)
    with pytest.raises(ZeroDivisionError):
        with rsahandle.parse_private(private_bytes(reference_keys[1024])):
            _ = 1 / 0
    assert len(engine.ENGINE) == before


def test_release_exactly_once(mocker, reference_keys):
    release = mocker.spy(engine.ENGINE, "release")
    key = rsahandle.parse_public(reference_keys[1024].public_key().public_bytes(
        serialization.Encoding.PEM, serialization.PublicFormat.PKCS1))
    key.close()
    key.close()
    with key:
        pass
    del key
    gc.collect()
    assert release.call_count == 1


def test_release_on_garbage_collection(reference_keys):
    gc.collect()
    before = len(engine.ENGINE)
    key = rsahandle.parse_private(private_bytes(reference_keys[1024]))
    assert len(engine.ENGINE) == before + 1
    del key
    gc.collect()
    assert len(engine.ENGINE) == before


def test_released_handle_unusable(reference_keys):
    key = rsahandle.parse_private(private_bytes(reference_keys[1024]))
    key.close()
    with pytest.raises(EngineFailure, match="released"):
        rsahandle.sign(b"payload", key)


def test_public_key_is_independent(reference_keys):
    ref = reference_keys[1024]
    key = rsahandle.parse_private(private_bytes(ref))
    pub = key.public_key()
    assert isinstance(pub, rsahandle.PublicKey)
    assert keys.resolve(pub)[1] != keys.resolve(key)[1]
    key.close()
    assert not pub.closed
    assert_same_public(pub, ref)
    pub.close()


def test_repr(reference_keys):
    with rsahandle.parse_private(private_bytes(reference_keys[2048])) as key:
        assert repr(key) == "<PrivateKey 2048 bits>"


def test_handle_internals_not_exposed(reference_keys):
    with rsahandle.parse_private(private_bytes(reference_keys[1024])) as key:
        assert not hasattr(key, "handle")
        assert not hasattr(key, "engine")
        eng, handle = keys.resolve(key)
        assert eng is engine.ENGINE
        assert eng.is_private(handle)


def test_require_helpers(reference_keys):
    with rsahandle.parse_private(private_bytes(reference_keys[1024])) as key:
        assert keys.require_private(key, "sign") is key
        assert keys.require_key(key, "verify") is key
        with key.public_key() as pub:
            assert keys.require_key(pub, "verify") is pub
            with pytest.raises(rsahandle.InvalidKeyType, match="PrivateKey is required"):
                keys.require_private(pub, "sign")
    with pytest.raises(rsahandle.InvalidKeyType):
        keys.require_key("not a key", "verify")
