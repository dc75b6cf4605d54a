"""Read-only profile lookup; profiles are owned by the auth service."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ws_common.jsonb import load_jsonb
from src.ws_notify.domain.models import Contact

_GET_CONTACT_SQL = text("""
    SELECT id, email, full_name, notification_preferences
    FROM profiles
    WHERE id = :user_id
""")


class ProfileRepository:
    async def get_contact(self, db: AsyncSession, user_id: str) -> Contact | None:
        result = await db.execute(_GET_CONTACT_SQL, {"user_id": user_id})
        row = result.fetchone()
        if row is None or not row.email:
            return None
        return Contact(
            user_id=str(row.id),
            email=row.email,
            full_name=row.full_name,
            preferences=load_jsonb(row.notification_preferences),
        )
