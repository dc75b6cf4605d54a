"""Fixtures wiring the in-memory fakes to a shared FakeDb."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from fakes import FakeDb, FakeLedger, FakeTxStore


@pytest.fixture
def fake_db() -> FakeDb:
    return FakeDb()


@pytest.fixture
def ledger(fake_db: FakeDb) -> FakeLedger:
    return FakeLedger(fake_db)


@pytest.fixture
def store(fake_db: FakeDb) -> FakeTxStore:
    return FakeTxStore(fake_db)


@pytest.fixture
def notifier() -> MagicMock:
    n = MagicMock()
    n.deposit_confirmed = AsyncMock(return_value=True)
    n.spot_available = AsyncMock(return_value=True)
    n.position_closed = AsyncMock(return_value=True)
    return n
