"""Callback signature verification.

Both gateways sign the compact JSON serialization their own (JavaScript)
SDKs produce, so the body is re-serialized the same way before hashing:
no whitespace, non-ASCII kept literal, and integral floats written as
integers (JSON.stringify(1.0) == "1").
"""

import hashlib
import hmac
import json
import logging
from typing import Any

logger = logging.getLogger(__name__)


def _js_compatible(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {k: _js_compatible(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_js_compatible(v) for v in value]
    return value


def canonical_json(body: dict[str, Any], sort_keys: bool = False) -> str:
    return json.dumps(
        _js_compatible(body),
        sort_keys=sort_keys,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def _hmac_hex(secret: str, message: str, digestmod: Any) -> str:
    return hmac.new(secret.encode(), message.encode(), digestmod).hexdigest()


def verify_nowpayments(body: dict[str, Any], signature: str, secret: str) -> bool:
    """HMAC-SHA512 over the recursively key-sorted body, hex, from ``x-nowpayments-sig``."""
    if not secret:
        logger.error("NOWPayments IPN secret is not configured")
        return False
    if not signature:
        return False
    expected = _hmac_hex(secret, canonical_json(body, sort_keys=True), hashlib.sha512)
    return hmac.compare_digest(expected, signature.strip().lower())


def verify_plisio(body: dict[str, Any], secret: str) -> bool:
    """HMAC-SHA1 over the body minus ``verify_hash``, in received key order."""
    if not secret:
        logger.error("Plisio secret key is not configured")
        return False
    received = body.get("verify_hash")
    if not isinstance(received, str) or not received:
        return False
    unsigned = {k: v for k, v in body.items() if k != "verify_hash"}
    expected = _hmac_hex(secret, canonical_json(unsigned), hashlib.sha1)
    return hmac.compare_digest(expected, received.strip().lower())
