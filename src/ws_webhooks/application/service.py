"""ReconciliationService — turns gateway callbacks into ledger mutations.

Pipeline per callback: record receipt → validate shape → verify signature →
classify → resolve deposit route → verify ownership → transition.

Transitions are sagas over the ledger and the transaction store. Progress is
recorded on the transaction itself (credited_amount / locked_amount) so a
redelivery after a partial run only applies what is still missing:

  LOCK    create pending ─commit─ mark_credited+credit ─commit─ mark_locked+lock ─commit
          credit fails  → delete pending (compensation), 500
          lock fails    → keep tx with locked_amount=0, degraded, outcome pending
          a marker that matches no pending row means another delivery moved
          the tx on first; that step is skipped
  SETTLE  pending: mark_completed + release lock + credit/spend delta ─commit
          none:    create pending ─commit─ mark_credited+credit ─commit─ mark_completed ─commit
  FAIL    pending: mark_failed + unlock(locked_amount) ─commit

The conditional status update and the ledger release it authorizes share a
commit: if the release fails the row stays pending for the gateway's retry.
"""

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.ws_common.amounts import ZERO
from src.ws_common.enums import (
    TransactionKind,
    TransactionStatus,
    WebhookOutcome,
    WebhookProvider,
)
from src.ws_common.errors import (
    DepositRouteNotFoundError,
    OwnershipMismatchError,
    SettlementFailedError,
)
from src.ws_ledger.domain.models import LedgerRef
from src.ws_ledger.domain.repository import LedgerProtocol
from src.ws_ledger.infrastructure.persistence import LedgerRepository
from src.ws_notify.application.service import NotificationService
from src.ws_transactions.domain.models import NewTransaction, Transaction
from src.ws_transactions.domain.repository import TransactionStoreProtocol
from src.ws_transactions.infrastructure.persistence import TransactionStore
from src.ws_webhooks.application.adapters import ADAPTERS
from src.ws_webhooks.application.schemas import WebhookResult
from src.ws_webhooks.domain.classification import moves_money
from src.ws_webhooks.domain.models import DepositEvent, DepositRoute, EventAction, RouteKind
from src.ws_webhooks.domain.repository import DepositRouteProtocol, WebhookLogProtocol
from src.ws_webhooks.infrastructure.persistence import (
    DepositRouteRepository,
    WebhookLogRepository,
)

logger = logging.getLogger(__name__)


def _receipt_key(provider: WebhookProvider, body: dict[str, Any]) -> str | None:
    external_id = body.get("payment_id") or body.get("txn_id")
    return f"{provider.value}_{external_id}" if external_id else None


class ReconciliationService:
    def __init__(
        self,
        ledger: LedgerProtocol | None = None,
        store: TransactionStoreProtocol | None = None,
        routes: DepositRouteProtocol | None = None,
        logs: WebhookLogProtocol | None = None,
        notifier: NotificationService | None = None,
    ) -> None:
        self._ledger: LedgerProtocol = ledger or LedgerRepository()
        self._store: TransactionStoreProtocol = store or TransactionStore()
        self._routes: DepositRouteProtocol = routes or DepositRouteRepository()
        self._logs: WebhookLogProtocol = logs or WebhookLogRepository()
        self._notifier = notifier or NotificationService()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def handle_callback(
        self,
        db: AsyncSession,
        provider: WebhookProvider,
        body: Any,
        headers: Mapping[str, str],
        now: datetime,
    ) -> WebhookResult:
        log_id = await self._record_receipt(db, provider, body)
        event = ADAPTERS[provider].normalize(body, headers)
        logger.info(
            "Webhook %s status=%s action=%s amount=%s",
            event.correlation_key, event.gateway_status, event.action.value, event.amount,
        )
        result = await self.reconcile(db, event, now)
        if log_id is not None:
            await self._logs.mark_processed(db, log_id, result.status)
            await db.commit()
        return result

    async def reconcile(
        self, db: AsyncSession, event: DepositEvent, now: datetime
    ) -> WebhookResult:
        """Apply one normalized event. Safe to call any number of times."""
        if not moves_money(event.action):
            return WebhookResult(
                status=WebhookOutcome.ACKNOWLEDGED.value,
                message=f"status {event.gateway_status} acknowledged",
            )

        route = await self._resolve_route(db, event)
        self._check_owner(event, route)
        if route.kind == RouteKind.INVOICE:
            await self._routes.record_invoice_status(
                db, route.route_id, event.gateway_status, event.tx_hash
            )
            await db.commit()

        if event.action == EventAction.LOCK:
            return await self._lock(db, event, route)
        if event.action == EventAction.SETTLE:
            result = await self._settle(db, event, route, now)
            if result.status == WebhookOutcome.SUCCESS.value and result.transaction_id:
                await self._notifier.deposit_confirmed(
                    db, route.user_id, event.amount, event.currency, result.transaction_id
                )
            return result
        return await self._fail(db, event)

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------

    async def _record_receipt(
        self, db: AsyncSession, provider: WebhookProvider, body: Any
    ) -> int | None:
        if not isinstance(body, dict):
            return None
        try:
            log_id = await self._logs.record(db, provider.value, _receipt_key(provider, body), body)
            await db.commit()
            return log_id
        except Exception:
            await db.rollback()
            logger.exception("Failed to record %s webhook receipt", provider.value)
            return None

    async def _resolve_route(self, db: AsyncSession, event: DepositEvent) -> DepositRoute:
        route = await self._routes.find_invoice(db, event.external_id)
        if route is None and event.address:
            route = await self._routes.find_address(db, event.address)
        if route is None:
            logger.warning(
                "No deposit route for %s (address=%s)", event.correlation_key, event.address
            )
            raise DepositRouteNotFoundError(event.correlation_key)
        return route

    def _check_owner(self, event: DepositEvent, route: DepositRoute) -> None:
        if event.claimed_user_id is not None and event.claimed_user_id != route.user_id:
            logger.error(
                "Ownership mismatch on %s: callback claims %s, route %s belongs to %s",
                event.correlation_key, event.claimed_user_id, route.route_id, route.user_id,
            )
            raise OwnershipMismatchError()

    def _new_transaction(self, event: DepositEvent, route: DepositRoute) -> NewTransaction:
        return NewTransaction(
            user_id=route.user_id,
            asset_id=route.asset_id,
            kind=TransactionKind.DEPOSIT.value,
            amount=event.amount,
            external_correlation_key=event.correlation_key,
            notes=f"{event.provider} deposit - {event.gateway_status} ({event.external_id})",
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def _claim_and_credit(
        self, db: AsyncSession, event: DepositEvent, route: DepositRoute
    ) -> Transaction | None:
        """Create the pending row and credit it. None when another delivery owns the key."""
        tx = await self._store.create_pending(db, self._new_transaction(event, route))
        if tx is None:
            await db.rollback()
            return None
        await db.commit()

        if event.amount > 0:
            try:
                # Marker first: it row-locks the pending tx, so a concurrent
                # settle either sees this credit or finds the tx terminal.
                if not await self._store.mark_credited(db, tx.id, event.amount):
                    await db.rollback()
                    logger.info(
                        "%s advanced by another delivery before credit", event.correlation_key
                    )
                    return None
                await self._ledger.credit(
                    db, route.user_id, route.asset_id, event.amount,
                    LedgerRef("deposit", tx.id, event.correlation_key),
                )
                await db.commit()
            except Exception as e:
                await db.rollback()
                logger.error(
                    "Credit failed for %s, removing pending tx %s: %s",
                    event.correlation_key, tx.id, e,
                )
                await self._store.delete_pending(db, tx.id)
                await db.commit()
                raise SettlementFailedError(f"credit failed for {event.correlation_key}") from e
            tx.credited_amount = event.amount
        return tx

    async def _lock(
        self, db: AsyncSession, event: DepositEvent, route: DepositRoute
    ) -> WebhookResult:
        existing = await self._store.find_by_correlation_key(db, event.correlation_key)
        if existing is not None:
            return WebhookResult(
                status=WebhookOutcome.ALREADY_PROCESSED.value, transaction_id=existing.id
            )

        tx = await self._claim_and_credit(db, event, route)
        if tx is None:
            logger.info("Lost race on %s", event.correlation_key)
            return WebhookResult(status=WebhookOutcome.ALREADY_PROCESSED.value)

        if event.amount > 0:
            try:
                if not await self._store.mark_locked(db, tx.id, event.amount):
                    # Settled or failed since the credit; it will never unlock a hold.
                    await db.rollback()
                    logger.info(
                        "%s left pending before lock, not locking (tx %s)",
                        event.correlation_key, tx.id,
                    )
                    return WebhookResult(
                        status=WebhookOutcome.ALREADY_PROCESSED.value, transaction_id=tx.id
                    )
                await self._ledger.lock(
                    db, route.user_id, route.asset_id, event.amount,
                    LedgerRef("deposit", tx.id, event.correlation_key),
                )
                await db.commit()
            except Exception as e:
                await db.rollback()
                # Funds stay credited and spendable; settlement will unlock nothing.
                logger.warning(
                    "DEGRADED: %s credited but not locked (tx %s): %s",
                    event.correlation_key, tx.id, e,
                )

        return WebhookResult(
            status=WebhookOutcome.PENDING.value,
            message="Deposit confirmed and locked",
            transaction_id=tx.id,
        )

    async def _settle(
        self, db: AsyncSession, event: DepositEvent, route: DepositRoute, now: datetime
    ) -> WebhookResult:
        existing = await self._store.find_by_correlation_key(db, event.correlation_key)
        if existing is None:
            tx = await self._claim_and_credit(db, event, route)
            if tx is None:
                logger.info("Lost race on %s", event.correlation_key)
                return WebhookResult(status=WebhookOutcome.ALREADY_PROCESSED.value)
            existing = tx

        if existing.is_terminal:
            if existing.status == TransactionStatus.FAILED:
                logger.warning(
                    "Settle for %s ignored: tx %s already failed", event.correlation_key, existing.id
                )
            return WebhookResult(
                status=WebhookOutcome.ALREADY_PROCESSED.value, transaction_id=existing.id
            )

        try:
            completed = await self._store.mark_completed(db, existing.id, event.amount, now)
            if completed is None:
                await db.rollback()
                return WebhookResult(
                    status=WebhookOutcome.ALREADY_PROCESSED.value, transaction_id=existing.id
                )
            # The returned row carries the progress committed by any concurrent LOCK.
            await self._release(db, event, route, completed)
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error("Settlement of %s failed, left pending: %s", event.correlation_key, e)
            raise SettlementFailedError(f"settle failed for {event.correlation_key}") from e

        logger.info(
            "Deposit %s completed: %s to %s (tx %s)",
            event.correlation_key, event.amount, route.user_id, existing.id,
        )
        return WebhookResult(
            status=WebhookOutcome.SUCCESS.value,
            message="Deposit completed",
            transaction_id=existing.id,
        )

    async def _release(
        self, db: AsyncSession, event: DepositEvent, route: DepositRoute, tx: Transaction
    ) -> None:
        """Unlock what this tx holds and reconcile the final amount against what it credited."""
        ref = LedgerRef("deposit", tx.id, event.correlation_key)
        locked = tx.locked_amount
        delta = event.amount - tx.credited_amount

        if delta >= 0:
            if locked > 0:
                await self._ledger.unlock(db, route.user_id, route.asset_id, locked, ref)
            if delta > 0:
                await self._ledger.credit(db, route.user_id, route.asset_id, delta, ref)
            return

        # Downward revision: the gateway settled less than it confirmed
        shortfall = -delta
        spent = min(shortfall, locked)
        if spent > 0:
            await self._ledger.unlock(db, route.user_id, route.asset_id, spent, ref, deduct=True)
        if locked - spent > 0:
            await self._ledger.unlock(db, route.user_id, route.asset_id, locked - spent, ref)
        if shortfall - spent > ZERO:
            logger.error(
                "MANUAL REVIEW: %s settled %s below credited %s; %s could not be taken back",
                event.correlation_key, event.amount, tx.credited_amount, shortfall - spent,
            )

    async def _fail(self, db: AsyncSession, event: DepositEvent) -> WebhookResult:
        existing = await self._store.find_by_correlation_key(db, event.correlation_key)
        if existing is None:
            return WebhookResult(
                status=WebhookOutcome.ACKNOWLEDGED.value,
                message=f"status {event.gateway_status} acknowledged",
            )
        if existing.is_terminal:
            return WebhookResult(
                status=WebhookOutcome.ALREADY_PROCESSED.value, transaction_id=existing.id
            )

        try:
            failed = await self._store.mark_failed(db, existing.id, f"gateway {event.gateway_status}")
            if failed is None:
                await db.rollback()
                return WebhookResult(
                    status=WebhookOutcome.ALREADY_PROCESSED.value, transaction_id=existing.id
                )
            if failed.locked_amount > 0:
                await self._ledger.unlock(
                    db, failed.user_id, failed.asset_id, failed.locked_amount,
                    LedgerRef("deposit", existing.id, event.correlation_key),
                )
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error("Failing %s did not complete: %s", event.correlation_key, e)
            raise SettlementFailedError(f"fail transition for {event.correlation_key}") from e

        logger.warning(
            "Deposit %s failed at gateway (%s); released %s",
            event.correlation_key, event.gateway_status, failed.locked_amount,
        )
        return WebhookResult(
            status=WebhookOutcome.ACKNOWLEDGED.value,
            message=f"deposit {event.gateway_status}",
            transaction_id=existing.id,
        )
