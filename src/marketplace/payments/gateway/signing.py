"""Checkout callback signatures: HMAC-SHA256 of ``"<order_id>|<payment_id>"``."""

from __future__ import annotations

import hashlib
import hmac


def compute_signature(secret: str, intent_id: str, payment_id: str) -> str:
    payload = f"{intent_id}|{payment_id}"
    return hmac.new(secret.encode(), payload.encode(), hashlib.sha256).hexdigest()


def signature_matches(secret: str, intent_id: str, payment_id: str, signature: str) -> bool:
    expected = compute_signature(secret, intent_id, payment_id)
    return hmac.compare_digest(expected, signature or "")
