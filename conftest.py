"""Configures pytest further."""
from cryptography.hazmat.primitives.asymmetric import rsa
import pytest

from pkienv.keys import KeyMaterial

REFERENCE_KEY_SIZES = (1024, 2048)


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
def rsa_dict() -> dict[int, tuple[int, int]]:
    """Known good prime pairs from OpenSSL, keyed by the bit length of each prime."""
    primes = {}
    for size in REFERENCE_KEY_SIZES:
        numbers = rsa.generate_private_key(public_exponent=65537, key_size=size).private_numbers()
        primes[size // 2] = (numbers.p, numbers.q)
    return primes


@pytest.fixture
def key_pair() -> tuple[KeyMaterial, KeyMaterial]:
    """Two parties that imported each other's credential, ordered so the first has the smaller modulus."""
    parties = []
    for _ in range(2):
        numbers = rsa.generate_private_key(public_exponent=65537, key_size=1024).private_numbers()
        parties.append(KeyMaterial(numbers.p, numbers.q, 65537))
    small, large = sorted(parties, key=lambda k: k.mod)
    small.import_peer(*large.credential())
    large.import_peer(*small.credential())
    return small, large
