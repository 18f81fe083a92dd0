# app/core/security.py
import json
import secrets
from typing import Dict, Optional

import stripe

from app.core.config import CRON_SECRET, STRIPE_WEBHOOK_SECRET


def is_cron_authorized(x_cron_secret: Optional[str], authorization: Optional[str]) -> bool:
    if not CRON_SECRET:
        return False
    if x_cron_secret and secrets.compare_digest(x_cron_secret, CRON_SECRET):
        return True
    if authorization and secrets.compare_digest(authorization, f"Bearer {CRON_SECRET}"):
        return True
    return False


def verify_stripe_event(payload: bytes, signature: str) -> Dict:
    """
    Check the Stripe-Signature header against the raw body and return the decoded event.
    Raises ValueError when the signature or the payload is not acceptable.
    """
    if not STRIPE_WEBHOOK_SECRET:
        raise RuntimeError("STRIPE_WEBHOOK_SECRET is not configured")
    try:
        stripe.WebhookSignature.verify_header(payload.decode("utf-8"), signature, STRIPE_WEBHOOK_SECRET)
    except stripe.SignatureVerificationError as e:
        raise ValueError(f"Invalid signature: {e}")
    except UnicodeDecodeError:
        raise ValueError("Invalid payload encoding")

    try:
        event = json.loads(payload)
    except json.JSONDecodeError:
        raise ValueError("Invalid payload")
    if not isinstance(event, dict):
        raise ValueError("Invalid payload")
    return event


def generate_delivery_token() -> str:
    return secrets.token_urlsafe(24)


def delivery_token_matches(expected: Optional[str], provided: Optional[str]) -> bool:
    if not expected or not provided:
        return False
    return secrets.compare_digest(expected, provided)
