"""Configures pytest further and provides reference keys shared by the test modules."""
from cryptography.hazmat.primitives.asymmetric import rsa
import pytest

REFERENCE_SIZES = [1024, 2048]


def pytest_addoption(parser):
    parser.addoption("--skip-slow", action="store_true", default=False, help="skip slower tests")
    parser.addoption("--run-extreme", action="store_true", default=False, help="run extreme value extremely slow tests")


def pytest_collection_modifyitems(config, items):
    skipdict = {}
    if config.getoption("--skip-slow"):
        skipdict["slow"] = pytest.mark.skip(reason="Slow test: needs no --skip-slow option")
    if not config.getoption("--run-extreme"):
        skipdict["extreme"] = pytest.mark.skip(reason="Extreme test: needs --run-extreme option")
    if not skipdict:
        return
    for item in items:
        for k, v in skipdict.items():
            if k in item.keywords:
                item.add_marker(v)


@pytest.fixture(scope="session")
def reference_keys() -> dict[int, rsa.RSAPrivateKey]:
    """Keys generated by `cryptography`, the independent implementation we check against."""
    return {size: rsa.generate_private_key(public_exponent=65537, key_size=size) for size in REFERENCE_SIZES}


@pytest.fixture(scope="session", params=REFERENCE_SIZES)
def reference_key(request, reference_keys) -> rsa.RSAPrivateKey:
    return reference_keys[request.param]
