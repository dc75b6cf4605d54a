"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth
  2xxx: Ledger
  3xxx: Transactions
  4xxx: Webhooks
  5xxx: Copy trading
  6xxx: Waitlist / claims
  9xxx: System
"""

from decimal import Decimal


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Invalid or expired token", 401)


class InvalidCronSecretError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Unauthorized", 401)


# --- 2xxx: Ledger ---

class InsufficientBalanceError(AppError):
    def __init__(self, required: Decimal, available: Decimal) -> None:
        super().__init__(
            2001,
            f"Insufficient balance: required {required}, available {available}",
            500,
        )


class InvalidLedgerStateError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(2002, f"Invalid ledger state: {detail}", 500)


class InvalidAmountError(AppError):
    def __init__(self, amount: Decimal) -> None:
        super().__init__(2003, f"Amount must be non-negative, got {amount}", 400)


class AssetNotFoundError(AppError):
    def __init__(self, symbol: str) -> None:
        super().__init__(2004, f"Unknown asset: {symbol}", 404)


# --- 3xxx: Transactions ---

class DownstreamFailureError(AppError):
    """A paired mutation failed after a prior one succeeded."""

    def __init__(self, detail: str) -> None:
        super().__init__(3001, f"Downstream failure: {detail}", 500)


class SelfTransferError(AppError):
    def __init__(self) -> None:
        super().__init__(3002, "Cannot transfer to yourself", 422)


# --- 4xxx: Webhooks ---

class WebhookError(AppError):
    """Webhook failure; ``outcome`` is echoed verbatim to the gateway."""

    outcome: str = "error"


class InvalidPayloadError(WebhookError):
    outcome = "invalid_payload"

    def __init__(self, detail: str) -> None:
        super().__init__(4001, f"Invalid callback data: {detail}", 400)


class InvalidSignatureError(WebhookError):
    outcome = "invalid_signature"

    def __init__(self) -> None:
        super().__init__(4002, "Invalid signature", 401)


class DepositRouteNotFoundError(WebhookError):
    outcome = "not_found"

    def __init__(self, key: str) -> None:
        super().__init__(4003, f"Deposit route not found: {key}", 404)


class OwnershipMismatchError(WebhookError):
    outcome = "ownership_mismatch"

    def __init__(self) -> None:
        super().__init__(4004, "User ID mismatch", 400)


class SettlementFailedError(WebhookError):
    outcome = "internal_error"

    def __init__(self, detail: str) -> None:
        super().__init__(4005, f"Settlement failed: {detail}", 500)


# --- 5xxx: Copy trading ---

class FeatureDisabledError(AppError):
    def __init__(self) -> None:
        super().__init__(5001, "Feature not available", 404)


class TraderNotFoundError(AppError):
    def __init__(self, trader_id: str) -> None:
        super().__init__(5002, f"Trader not found: {trader_id}", 404)


class PositionNotFoundError(AppError):
    def __init__(self, position_id: str) -> None:
        super().__init__(5003, f"Position not found: {position_id}", 404)


class PositionNotActiveError(AppError):
    def __init__(self, position_id: str) -> None:
        super().__init__(5004, f"Position is not active: {position_id}", 422)


class TraderAtCapacityError(AppError):
    def __init__(self, trader_id: str) -> None:
        super().__init__(5005, f"Trader capacity is full: {trader_id}", 409)


class AlreadyCopyingError(AppError):
    def __init__(self, trader_id: str) -> None:
        super().__init__(5006, f"Already copying trader {trader_id}", 409)


# --- 6xxx: Waitlist / claims ---

class TraderHasCapacityError(AppError):
    def __init__(self, trader_id: str) -> None:
        super().__init__(
            6001, f"Trader {trader_id} has available capacity; start copying directly", 422
        )


class AlreadyInWaitlistError(AppError):
    def __init__(self, position_in_queue: int) -> None:
        super().__init__(6002, f"Already in waitlist at position {position_in_queue}", 409)


class ClaimNotFoundError(AppError):
    def __init__(self) -> None:
        super().__init__(6003, "Invalid or expired claim token", 404)


class ClaimExpiredError(AppError):
    def __init__(self) -> None:
        super().__init__(6004, "Claim window has expired", 410)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
