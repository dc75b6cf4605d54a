"""NotificationService — best-effort user emails.

Every public method swallows and logs its own failures: a notice that cannot
be delivered must never undo the balance or position change it reports.
"""

import html
import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ws_notify.domain.models import (
    ContactLookupProtocol,
    EmailMessage,
    EmailSenderProtocol,
)
from src.ws_notify.infrastructure.email import get_email_sender
from src.ws_notify.infrastructure.profiles import ProfileRepository

logger = logging.getLogger(__name__)


def claim_url(token: str) -> str:
    return f"{settings.APP_URL.rstrip('/')}/copy-trade/claim/{token}"


class NotificationService:
    def __init__(
        self,
        sender: EmailSenderProtocol | None = None,
        contacts: ContactLookupProtocol | None = None,
    ) -> None:
        self._sender: EmailSenderProtocol = sender or get_email_sender()
        self._contacts: ContactLookupProtocol = contacts or ProfileRepository()

    async def deposit_confirmed(
        self,
        db: AsyncSession,
        user_id: str,
        amount: Decimal,
        currency: str,
        transaction_id: str,
    ) -> bool:
        try:
            contact = await self._contacts.get_contact(db, user_id)
            if contact is None:
                logger.info("No email on file for %s, skipping deposit notice", user_id)
                return False
            if not contact.wants("email_deposits"):
                return False
            await self._sender.send(
                EmailMessage(
                    to=contact.email,
                    subject=f"Deposit confirmed: {amount} {currency.upper()}",
                    html=(
                        f"<p>Hi {html.escape(contact.full_name or 'there')},</p>"
                        f"<p>Your deposit of <b>{amount} {html.escape(currency.upper())}</b> "
                        f"has been credited to your wallet.</p>"
                        f"<p>Reference: {html.escape(transaction_id)}</p>"
                    ),
                )
            )
            return True
        except Exception:
            logger.exception("Deposit notice for tx %s failed", transaction_id)
            return False

    async def spot_available(
        self,
        db: AsyncSession,
        user_id: str,
        trader_name: str,
        token: str,
        expires_at: datetime,
    ) -> bool:
        try:
            contact = await self._contacts.get_contact(db, user_id)
            if contact is None:
                logger.info("No email on file for %s, skipping spot notice", user_id)
                return False
            url = claim_url(token)
            await self._sender.send(
                EmailMessage(
                    to=contact.email,
                    subject=f"A copy-trading spot with {trader_name} is open",
                    html=(
                        f"<p>A spot copying <b>{html.escape(trader_name)}</b> is reserved for you.</p>"
                        f'<p><a href="{html.escape(url)}">Claim it</a> before '
                        f"{expires_at.strftime('%Y-%m-%d %H:%M UTC')}.</p>"
                    ),
                )
            )
            return True
        except Exception:
            logger.exception("Spot notice for %s / %s failed", user_id, trader_name)
            return False

    async def position_closed(
        self,
        db: AsyncSession,
        user_id: str,
        trader_name: str,
        returned: Decimal,
        liquidated: bool,
    ) -> bool:
        try:
            contact = await self._contacts.get_contact(db, user_id)
            if contact is None:
                return False
            what = "was liquidated" if liquidated else "has been stopped"
            await self._sender.send(
                EmailMessage(
                    to=contact.email,
                    subject=f"Your copy of {trader_name} {what}",
                    html=(
                        f"<p>Your position copying <b>{html.escape(trader_name)}</b> {what}.</p>"
                        f"<p>{returned} {settings.SETTLEMENT_ASSET_SYMBOL} was returned to your wallet.</p>"
                    ),
                )
            )
            return True
        except Exception:
            logger.exception("Position notice for %s / %s failed", user_id, trader_name)
            return False
