"""
Payment webhook authentication (Standard Webhooks scheme, as sent by Dodo Payments)

The signature is base64(HMAC-SHA256(key, "{webhook-id}.{webhook-timestamp}.{raw body}")).
Deliveries older or newer than the tolerance window are rejected so a captured
request cannot be replayed later.
"""

import base64
import binascii
import hashlib
import hmac
import logging
import time
from typing import Optional

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

TIMESTAMP_TOLERANCE_SECONDS = 300


def signing_key_bytes(secret: str) -> bytes:
    """Key from a "whsec_<base64>" secret; bare base64 or raw text also accepted"""
    encoded = secret[len("whsec_"):] if secret.startswith("whsec_") else secret
    try:
        return base64.b64decode(encoded, validate=True)
    except binascii.Error:
        return secret.encode("utf-8")


def timestamp_is_fresh(timestamp: Optional[str], tolerance: int = TIMESTAMP_TOLERANCE_SECONDS) -> bool:
    try:
        sent_at = int(timestamp or "")
    except ValueError:
        logger.warning(f"🚫 Unparseable webhook timestamp: {timestamp!r}")
        return False

    skew = abs(time.time() - sent_at)
    if skew > tolerance:
        logger.warning(f"🚫 Webhook timestamp outside tolerance: {skew:.0f}s")
        return False
    return True


def compute_standard_signature(secret: str, webhook_id: str, timestamp: str, body: bytes) -> str:
    message = f"{webhook_id}.{timestamp}.".encode("utf-8") + body
    digest = hmac.new(signing_key_bytes(secret), message, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


async def verify_dodo_webhook(request: Request, secret: str) -> bytes:
    """
    Authenticate a webhook delivery and return its raw body.

    `webhook-signature` may list several space-separated "v1,<sig>" entries
    while the secret is being rotated; any one matching is enough.
    Raises HTTPException(401) otherwise.
    """
    body = await request.body()
    webhook_id = request.headers.get("webhook-id", "")
    timestamp = request.headers.get("webhook-timestamp", "")
    signatures = request.headers.get("webhook-signature", "")

    if not webhook_id or not signatures:
        logger.error("❌ Webhook without webhook-id / webhook-signature headers")
        raise HTTPException(status_code=401, detail="Missing webhook signature")

    if not timestamp_is_fresh(timestamp):
        raise HTTPException(status_code=401, detail="Webhook timestamp expired")

    expected = compute_standard_signature(secret, webhook_id, timestamp, body)
    for entry in signatures.split():
        version, _, received = entry.partition(",")
        if version == "v1" and received and hmac.compare_digest(expected, received):
            logger.info(f"✅ Webhook {webhook_id} verified")
            return body

    logger.error(f"❌ Webhook {webhook_id} failed signature check")
    raise HTTPException(status_code=401, detail="Invalid webhook signature")


def create_webhook_signature(secret: str, webhook_id: str, timestamp: str, payload: bytes) -> str:
    """webhook-signature header value for a payload; used to sign test deliveries"""
    return f"v1,{compute_standard_signature(secret, webhook_id, timestamp, payload)}"
