"""Internal transfer saga: debit sender, credit recipient, compensate on failure."""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from src.ws_common.errors import (
    AssetNotFoundError,
    DownstreamFailureError,
    InsufficientBalanceError,
    InvalidAmountError,
    SelfTransferError,
)
from src.ws_transactions.application.transfer import TransferService

from fakes import ASSET, NOW

pytestmark = pytest.mark.asyncio


def _service(ledger, store) -> TransferService:
    return TransferService(ledger=ledger, store=store)


async def test_moves_funds_and_completes(fake_db, ledger, store):
    ledger.seed("alice", "100")

    tx = await _service(ledger, store).internal_transfer(
        fake_db, "alice", "bob", ASSET, Decimal("30"), "transfer_1", NOW
    )

    assert tx.status == "completed"
    assert ledger.balance("alice") == (Decimal("70"), Decimal("0"))
    assert ledger.balance("bob") == (Decimal("30"), Decimal("0"))


async def test_replay_does_not_move_funds_twice(fake_db, ledger, store):
    ledger.seed("alice", "100")
    svc = _service(ledger, store)

    first = await svc.internal_transfer(fake_db, "alice", "bob", ASSET, Decimal("30"), "k", NOW)
    second = await svc.internal_transfer(fake_db, "alice", "bob", ASSET, Decimal("30"), "k", NOW)

    assert second.id == first.id
    assert ledger.balance("alice")[0] == Decimal("70")
    assert len(ledger.ops("CREDIT")) == 1


async def test_insufficient_funds_fails_transaction(fake_db, ledger, store):
    ledger.seed("alice", "10")

    with pytest.raises(InsufficientBalanceError):
        await _service(ledger, store).internal_transfer(
            fake_db, "alice", "bob", ASSET, Decimal("30"), "k", NOW
        )

    assert store.by_key("k").status == "failed"
    assert ledger.balance("alice") == (Decimal("10"), Decimal("0"))
    assert ledger.balance("bob") == (Decimal("0"), Decimal("0"))


async def test_recipient_credit_failure_refunds_sender(fake_db, ledger, store):
    ledger.seed("alice", "100")
    ledger.fail_on["credit"] = RuntimeError("connection reset")

    with pytest.raises(DownstreamFailureError):
        await _service(ledger, store).internal_transfer(
            fake_db, "alice", "bob", ASSET, Decimal("30"), "k", NOW
        )

    assert ledger.balance("alice") == (Decimal("100"), Decimal("0"))
    assert ledger.balance("bob") == (Decimal("0"), Decimal("0"))
    tx = store.by_key("k")
    assert tx.status == "failed"
    assert "credit failed" in tx.notes


async def test_non_positive_amount_rejected(fake_db, ledger, store):
    with pytest.raises(InvalidAmountError):
        await _service(ledger, store).internal_transfer(
            fake_db, "alice", "bob", ASSET, Decimal("0"), "k", NOW
        )
    assert store.rows == {}


class TestUserTransfer:
    async def test_resolves_symbol_and_scopes_key_to_sender(self, fake_db, ledger, store):
        ledger.seed("alice", "100")

        resp = await _service(ledger, store).transfer(
            fake_db, "alice", "bob", "usdt", Decimal("30"), "client-1", NOW
        )

        assert resp.status == "completed"
        assert resp.kind == "transfer"
        assert resp.amount == "30"
        assert store.by_key("transfer_alice_client-1").id == resp.id
        assert ledger.balance("bob") == (Decimal("30"), Decimal("0"))

    async def test_same_client_key_from_two_senders_is_two_transfers(
        self, fake_db, ledger, store
    ):
        ledger.seed("alice", "100")
        ledger.seed("carol", "100")
        svc = _service(ledger, store)

        first = await svc.transfer(fake_db, "alice", "bob", "USDT", Decimal("10"), "k", NOW)
        second = await svc.transfer(fake_db, "carol", "bob", "USDT", Decimal("10"), "k", NOW)

        assert first.id != second.id
        assert ledger.balance("bob") == (Decimal("20"), Decimal("0"))

    async def test_self_transfer_rejected(self, fake_db, ledger, store):
        with pytest.raises(SelfTransferError):
            await _service(ledger, store).transfer(
                fake_db, "alice", "alice", "USDT", Decimal("10"), "k", NOW
            )
        assert store.rows == {}

    async def test_unknown_asset_rejected(self, fake_db, ledger, store):
        ledger.get_asset_id = AsyncMock(return_value=None)
        with pytest.raises(AssetNotFoundError):
            await _service(ledger, store).transfer(
                fake_db, "alice", "bob", "DOGE", Decimal("10"), "k", NOW
            )
        assert store.rows == {}
