"""Test fixtures for Taskflow."""

import itertools
from collections.abc import Callable

import pytest

from taskflow.auth import AuthEventBus
from taskflow.persistence.kv_store import MemoryKeyValueStore
from taskflow.persistence.local_store import LocalPersistence
from taskflow.store import TaskStore

from .fakes import FakeClock, FakeRemoteTaskService


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(start=1_625_097_600_000)


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def persistence(kv: MemoryKeyValueStore) -> LocalPersistence:
    return LocalPersistence(kv)


@pytest.fixture
def remote() -> FakeRemoteTaskService:
    return FakeRemoteTaskService(authenticated=False)


@pytest.fixture
def auth_events() -> AuthEventBus:
    return AuthEventBus()


@pytest.fixture
def id_factory() -> Callable[[], str]:
    """Deterministic, non-numeric local ids: t1, t2, ..."""
    counter = itertools.count(1)
    return lambda: f"t{next(counter)}"


@pytest.fixture
def store(
    persistence: LocalPersistence,
    remote: FakeRemoteTaskService,
    auth_events: AuthEventBus,
    clock: FakeClock,
    id_factory: Callable[[], str],
) -> TaskStore:
    """Store with an empty local cache and a signed-out remote."""
    return TaskStore(
        persistence=persistence,
        remote=remote,
        auth_events=auth_events,
        clock=clock,
        seed_default_tasks=False,
        id_factory=id_factory,
    )
