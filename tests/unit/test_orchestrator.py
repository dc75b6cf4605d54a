"""Tick stage ordering, fault isolation and the overlap guard."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.ws_scheduler.application.guard import TICK_LOCK_KEY, TickGuard
from src.ws_scheduler.application.orchestrator import TickOrchestrator

from fakes import NOW

pytestmark = pytest.mark.asyncio


class _FakeRedis:
    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def set(self, key, value, nx=False, ex=None):
        if nx and key in self.store:
            return None
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def get(self, key):
        return self.store.get(key)

    async def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0


def _factory(redis):
    async def factory():
        return redis

    return factory


@pytest.fixture
def calls() -> list[str]:
    return []


@pytest.fixture
def engine(calls):
    e = MagicMock()

    def stage(name, result):
        async def run(db, now):
            calls.append(name)
            return result

        return AsyncMock(side_effect=run)

    e.advance_pnl = stage("pnl", 4)
    e.liquidate = stage("liquidate", 1)
    e.clamp_trader_stats = stage("stats", 2)
    return e


@pytest.fixture
def waitlist(calls):
    w = MagicMock()

    async def notify(db, now):
        calls.append("notify")
        return 3

    async def expire(db, now):
        calls.append("expire")
        return 5

    w.notify_all = AsyncMock(side_effect=notify)
    w.expire_claims = AsyncMock(side_effect=expire)
    return w


@pytest.fixture
def guard():
    g = MagicMock()
    g.acquire = AsyncMock(return_value="holder")
    g.release = AsyncMock()
    return g


@pytest.fixture
def db():
    d = MagicMock()
    d.rollback = AsyncMock()
    return d


class TestTickOrchestrator:
    async def test_stages_run_in_order(self, db, engine, waitlist, guard, calls):
        report = await TickOrchestrator(engine, waitlist, guard).run(db, NOW)

        assert calls == ["pnl", "liquidate", "notify", "expire", "stats"]
        assert report.pnl_updates == 4
        assert report.liquidations == 1
        assert report.waitlist_notifications == 3
        assert report.expired_claims == 5
        assert report.trader_stats_updates == 2
        assert report.timestamp == NOW.isoformat()
        assert report.skipped is False

    async def test_every_stage_sees_the_same_now(self, db, engine, waitlist, guard):
        await TickOrchestrator(engine, waitlist, guard).run(db, NOW)
        for fn in (engine.advance_pnl, engine.liquidate, engine.clamp_trader_stats,
                   waitlist.notify_all, waitlist.expire_claims):
            assert fn.await_args.args[1] == NOW

    async def test_failed_stage_reports_zero_and_later_stages_run(
        self, db, engine, waitlist, guard, calls
    ):
        engine.liquidate.side_effect = RuntimeError("boom")
        report = await TickOrchestrator(engine, waitlist, guard).run(db, NOW)

        assert report.liquidations == 0
        assert report.waitlist_notifications == 3
        assert report.trader_stats_updates == 2
        assert calls == ["pnl", "notify", "expire", "stats"]
        db.rollback.assert_awaited_once()

    async def test_skipped_when_previous_tick_holds_guard(self, db, engine, waitlist, guard):
        guard.acquire.return_value = None
        report = await TickOrchestrator(engine, waitlist, guard).run(db, NOW)

        assert report.skipped is True
        assert report.pnl_updates == 0
        engine.advance_pnl.assert_not_awaited()
        guard.release.assert_not_awaited()

    async def test_guard_released_after_run(self, db, engine, waitlist, guard):
        await TickOrchestrator(engine, waitlist, guard).run(db, NOW)
        guard.release.assert_awaited_once_with("holder")

    async def test_unguarded_run_still_executes(self, db, engine, waitlist, guard, calls):
        guard.acquire.return_value = ""
        report = await TickOrchestrator(engine, waitlist, guard).run(db, NOW)
        assert report.skipped is False
        assert len(calls) == 5


class TestTickGuard:
    async def test_acquire_sets_key_with_ttl(self):
        redis = _FakeRedis()
        token = await TickGuard(_factory(redis), ttl_seconds=240).acquire()
        assert token
        assert redis.store[TICK_LOCK_KEY] == token
        assert redis.ttls[TICK_LOCK_KEY] == 240

    async def test_second_acquire_is_refused(self):
        redis = _FakeRedis()
        guard = TickGuard(_factory(redis), ttl_seconds=60)
        assert await guard.acquire()
        assert await guard.acquire() is None

    async def test_release_frees_key(self):
        redis = _FakeRedis()
        guard = TickGuard(_factory(redis), ttl_seconds=60)
        token = await guard.acquire()
        await guard.release(token)
        assert TICK_LOCK_KEY not in redis.store
        assert await guard.acquire()

    async def test_release_leaves_other_holders_key(self):
        redis = _FakeRedis()
        redis.store[TICK_LOCK_KEY] = "someone-else"
        await TickGuard(_factory(redis), ttl_seconds=60).release("stale-token")
        assert redis.store[TICK_LOCK_KEY] == "someone-else"

    async def test_redis_down_runs_unguarded(self):
        async def broken():
            raise RedisConnectionError("connection refused")

        guard = TickGuard(broken, ttl_seconds=60)
        assert await guard.acquire() == ""
        await guard.release("")
