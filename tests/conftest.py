import pytest

from votechain import config
from votechain.storage.memory import InMemoryGateway

ENV_VARS = [
    "VOTECHAIN_DB",
    "VOTECHAIN_DIFFICULTY",
    "VOTECHAIN_GENESIS_MESSAGE",
    "VOTECHAIN_MAX_MINING_ATTEMPTS",
    "VOTECHAIN_STORE_TIMEOUT",
    "VOTECHAIN_CONFLICT_RETRIES",
    "VOTECHAIN_STORAGE",
    "FIRESTORE_PROJECT_ID",
    "FIRESTORE_API_KEY",
    "FIRESTORE_ID_TOKEN",
    "FIRESTORE_COLLECTION",
    "FIRESTORE_BASE_URL",
]


@pytest.fixture(autouse=True)
def reset_votechain_config(monkeypatch, tmp_path):
    """Reset environment-driven config between every test."""
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    # Never touch the real home directory
    monkeypatch.setenv("VOTECHAIN_DB", str(tmp_path / "votechain.db"))
    config.reload()

    yield

    monkeypatch.undo()
    config.reload()


class FakeClock:
    """Deterministic epoch-millisecond clock advancing one second per call."""

    def __init__(self, start: int = 1_700_000_000_000, step: int = 1000):
        self.now = start
        self.step = step

    def __call__(self) -> int:
        value = self.now
        self.now += self.step
        return value


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway():
    return InMemoryGateway()
