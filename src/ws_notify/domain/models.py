"""Domain models and sender Protocol for ws_notify."""

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class Contact:
    user_id: str
    email: str
    full_name: str | None = None
    preferences: dict[str, Any] = field(default_factory=dict)

    def wants(self, preference: str) -> bool:
        # Missing preference means opted in
        return bool(self.preferences.get(preference, True))


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str


class EmailSenderProtocol(Protocol):
    async def send(self, message: EmailMessage) -> None: ...


class ContactLookupProtocol(Protocol):
    async def get_contact(self, db: Any, user_id: str) -> Contact | None: ...
