"""
Zalo webhook signature verification.

Header X-ZEvent-Signature carries sha256(app_id + raw_body + timestamp + secret)
as hex. Verification is permissive in development: a request without the
header, or a server without a secret, is accepted.
"""

import hashlib
import hmac
import json
import logging
from typing import Optional

from ..config import is_configured

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-ZEvent-Signature"


def compute_signature(app_id: str, raw_body: str, timestamp: str, secret: str) -> str:
    payload = f"{app_id}{raw_body}{timestamp}{secret}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def verify_webhook_signature(raw_body: bytes, signature: Optional[str], secret: Optional[str]) -> bool:
    """
    Check a webhook delivery against its signature header.

    Args:
        raw_body: Request body exactly as received
        signature: Value of X-ZEvent-Signature, None if absent
        secret: OA secret key from settings

    Returns:
        True if valid or verification is skipped.
    """
    if not signature:
        logger.warning(f"No {SIGNATURE_HEADER} header found - skipping verification")
        return True

    if not is_configured(secret):
        logger.warning("WEBHOOK_SECRET not configured - skipping verification")
        return True

    body_text = raw_body.decode("utf-8", errors="replace")
    try:
        event = json.loads(body_text)
    except ValueError:
        logger.warning("Webhook body is not JSON, signature cannot match")
        return False

    if not isinstance(event, dict):
        return False

    expected = compute_signature(
        str(event.get("app_id") or ""),
        body_text,
        str(event.get("timestamp") or ""),
        secret,
    )

    if not hmac.compare_digest(expected, signature.strip()):
        logger.warning("Invalid webhook signature")
        return False

    logger.debug("Webhook signature verified")
    return True
