"""Repository Protocols for ws_webhooks."""

from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ws_webhooks.domain.models import DepositRoute


class DepositRouteProtocol(Protocol):
    async def find_invoice(self, db: AsyncSession, external_id: str) -> DepositRoute | None: ...

    async def find_address(self, db: AsyncSession, address: str) -> DepositRoute | None: ...

    async def record_invoice_status(
        self, db: AsyncSession, route_id: str, gateway_status: str, tx_hash: str | None
    ) -> None: ...


class WebhookLogProtocol(Protocol):
    async def record(
        self, db: AsyncSession, provider: str, correlation_key: str | None, payload: dict[str, Any]
    ) -> int: ...

    async def mark_processed(self, db: AsyncSession, log_id: int, outcome: str) -> None: ...
