"""Per-gateway adapters: shape validation, authenticity, normalization.

Everything gateway-specific stops here; the reconciliation saga only ever
receives a DepositEvent.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ValidationError

from config.settings import settings
from src.ws_common.enums import WebhookProvider
from src.ws_common.errors import InvalidPayloadError, InvalidSignatureError
from src.ws_webhooks.application.schemas import NowPaymentsCallback, PlisioCallback
from src.ws_webhooks.domain.models import DepositEvent
from src.ws_webhooks.domain.signatures import verify_nowpayments, verify_plisio

logger = logging.getLogger(__name__)


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ())) or "body"
    return f"{loc}: {err.get('msg', 'invalid')}"


class GatewayAdapter(ABC):
    provider: WebhookProvider
    schema: type[BaseModel]
    # Whether the callback must carry the account id it is paying into
    owner_required: bool = False

    def parse(self, body: Any) -> BaseModel:
        if not isinstance(body, dict):
            raise InvalidPayloadError("body is not a JSON object")
        try:
            return self.schema.model_validate(body)
        except ValidationError as e:
            raise InvalidPayloadError(_first_error(e)) from e

    def verify(self, body: dict[str, Any], headers: Mapping[str, str]) -> None:
        if settings.SKIP_WEBHOOK_SIGNATURE_VERIFICATION:
            logger.warning(
                "%s signature verification BYPASSED (SKIP_WEBHOOK_SIGNATURE_VERIFICATION)",
                self.provider.value,
            )
            return
        if not self._signature_ok(body, headers):
            logger.error("%s callback rejected: invalid signature", self.provider.value)
            raise InvalidSignatureError()

    @abstractmethod
    def _signature_ok(self, body: dict[str, Any], headers: Mapping[str, str]) -> bool: ...

    def normalize(self, body: Any, headers: Mapping[str, str]) -> DepositEvent:
        """Validate, authenticate and convert one callback body."""
        parsed = self.parse(body)
        self.verify(body, headers)
        event: DepositEvent = parsed.to_event(body)  # type: ignore[attr-defined]
        if self.owner_required and not event.claimed_user_id:
            raise InvalidPayloadError("missing account id")
        return event


class NowPaymentsAdapter(GatewayAdapter):
    provider = WebhookProvider.NOWPAYMENTS
    schema = NowPaymentsCallback
    owner_required = True

    def _signature_ok(self, body: dict[str, Any], headers: Mapping[str, str]) -> bool:
        return verify_nowpayments(
            body, headers.get("x-nowpayments-sig", ""), settings.NOWPAYMENTS_IPN_SECRET
        )


class PlisioAdapter(GatewayAdapter):
    provider = WebhookProvider.PLISIO
    schema = PlisioCallback

    def _signature_ok(self, body: dict[str, Any], headers: Mapping[str, str]) -> bool:
        return verify_plisio(body, settings.PLISIO_SECRET_KEY)


ADAPTERS: dict[WebhookProvider, GatewayAdapter] = {
    WebhookProvider.NOWPAYMENTS: NowPaymentsAdapter(),
    WebhookProvider.PLISIO: PlisioAdapter(),
}
