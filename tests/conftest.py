"""Shared test fixtures for Warden."""

import pytest

from warden_core.broadcast import InvalidationBroadcaster
from warden_core.cache import PermissionCache
from warden_core.config.models import WardenConfig
from warden_core.engine import CachedEvaluator
from warden_core.rbac import CapabilityMatrix, Principal, Role


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def admin():
    return Principal(id="admin-1", role=Role.admin)


@pytest.fixture
def editor():
    return Principal(id="editor-1", role=Role.editor)


@pytest.fixture
def viewer():
    return Principal(id="viewer-1", role=Role.viewer)


@pytest.fixture
def default_matrix():
    return CapabilityMatrix.default()


@pytest.fixture
def cache(clock):
    return PermissionCache(max_entries=100, default_ttl=300, shards=4, clock=clock)


@pytest.fixture
def broadcaster():
    b = InvalidationBroadcaster()
    yield b
    b.close()


@pytest.fixture
def engine(default_matrix, cache, broadcaster):
    e = CachedEvaluator(matrix=default_matrix, cache=cache, broadcaster=broadcaster)
    yield e
    e.close()


@pytest.fixture
def sample_config():
    return WardenConfig()
