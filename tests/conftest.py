import pytest
from lockbox.lib.backends import MemoryStore
from lockbox.lib.crypto import CryptoEngine
from lockbox.lib.migration import MigrationEngine
from lockbox.lib.secure_store import SecureStore


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def crypto():
    return CryptoEngine()

@pytest.fixture
def plain():
    return MemoryStore()

@pytest.fixture
def secure(crypto, clock):
    return SecureStore(MemoryStore(), crypto, clock=clock)

@pytest.fixture
def engine(plain, secure):
    return MigrationEngine(plain, secure)
