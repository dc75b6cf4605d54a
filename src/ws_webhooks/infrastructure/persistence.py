# src/ws_webhooks/infrastructure/persistence.py
"""Deposit route lookups and the webhook receipt log — raw SQL."""
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ws_common.jsonb import dump_jsonb
from src.ws_webhooks.domain.models import DepositRoute, RouteKind

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_FIND_INVOICE_SQL = text("""
    SELECT id, user_id, asset_id, pay_address
    FROM deposit_payments
    WHERE external_payment_id = :external_id
""")

_FIND_ADDRESS_SQL = text("""
    SELECT id, user_id, asset_id, address
    FROM deposit_addresses
    WHERE address = :address
""")

_UPDATE_INVOICE_STATUS_SQL = text("""
    UPDATE deposit_payments
    SET status = :status,
        tx_hash = COALESCE(:tx_hash, tx_hash),
        updated_at = NOW()
    WHERE id = :id
""")

_INSERT_LOG_SQL = text("""
    INSERT INTO webhook_logs (provider, correlation_key, payload, processed)
    VALUES (:provider, :correlation_key, CAST(:payload AS JSONB), FALSE)
    RETURNING id
""")

_MARK_PROCESSED_SQL = text("""
    UPDATE webhook_logs
    SET processed = TRUE, outcome = :outcome
    WHERE id = :id
""")


class DepositRouteRepository:
    async def find_invoice(self, db: AsyncSession, external_id: str) -> DepositRoute | None:
        result = await db.execute(_FIND_INVOICE_SQL, {"external_id": external_id})
        row = result.fetchone()
        if row is None:
            return None
        return DepositRoute(
            kind=RouteKind.INVOICE,
            route_id=str(row.id),
            user_id=str(row.user_id),
            asset_id=str(row.asset_id),
            address=row.pay_address,
        )

    async def find_address(self, db: AsyncSession, address: str) -> DepositRoute | None:
        result = await db.execute(_FIND_ADDRESS_SQL, {"address": address})
        row = result.fetchone()
        if row is None:
            return None
        return DepositRoute(
            kind=RouteKind.ADDRESS,
            route_id=str(row.id),
            user_id=str(row.user_id),
            asset_id=str(row.asset_id),
            address=row.address,
        )

    async def record_invoice_status(
        self, db: AsyncSession, route_id: str, gateway_status: str, tx_hash: str | None
    ) -> None:
        await db.execute(
            _UPDATE_INVOICE_STATUS_SQL,
            {"id": route_id, "status": gateway_status, "tx_hash": tx_hash},
        )


class WebhookLogRepository:
    async def record(
        self, db: AsyncSession, provider: str, correlation_key: str | None, payload: dict[str, Any]
    ) -> int:
        result = await db.execute(
            _INSERT_LOG_SQL,
            {
                "provider": provider,
                "correlation_key": correlation_key,
                "payload": dump_jsonb(payload),
            },
        )
        return int(result.scalar_one())

    async def mark_processed(self, db: AsyncSession, log_id: int, outcome: str) -> None:
        await db.execute(_MARK_PROCESSED_SQL, {"id": log_id, "outcome": outcome})
