"""Payment routers - invoice checkout and the Dodo Payments webhook"""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...config import DODO_PAYMENTS_WEBHOOK_SECRET
from ...database import get_db
from ...models import User
from ...webhook_security import verify_dodo_webhook
from .schemas import CheckoutResponse, PaymentResponse
from .service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invoices", tags=["Payments"])
webhooks_router = APIRouter(tags=["Webhooks"])


def get_payment_service(db: Session = Depends(get_db)) -> PaymentService:
    """Dependency injection for PaymentService"""
    return PaymentService(db)


@router.post("/{invoice_id}/checkout", response_model=CheckoutResponse)
async def create_checkout(
    invoice_id: int,
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Start a hosted checkout for the invoice balance"""
    return CheckoutResponse(**await service.create_checkout(invoice_id, current_user))


@router.get("/{invoice_id}/payments", response_model=list[PaymentResponse])
async def list_payments(
    invoice_id: int,
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    return [PaymentResponse.from_model(p) for p in service.list_payments(invoice_id, current_user)]


@webhooks_router.post("/webhooks/dodopayments")
async def handle_dodopayments_webhook(
    request: Request,
    service: PaymentService = Depends(get_payment_service),
):
    """
    Verify signature and reconcile payment events.

    Headers:
      - 'webhook-signature': 'v1,{base64(hmac_sha256(webhook-id.webhook-timestamp.payload))}'
      - 'webhook-id': Unique webhook ID
      - 'webhook-timestamp': Unix timestamp (seconds)
    """
    if not DODO_PAYMENTS_WEBHOOK_SECRET:
        logger.error("❌ DODO_PAYMENTS_WEBHOOK_SECRET not configured")
        raise HTTPException(status_code=500, detail="Webhook not configured")

    raw_body = await verify_dodo_webhook(request, DODO_PAYMENTS_WEBHOOK_SECRET)

    try:
        event = json.loads(raw_body.decode("utf-8"))
    except Exception as e:
        logger.error(f"Failed to parse webhook JSON: {e}")
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from e

    if not isinstance(event, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    event_type = event.get("type")
    data = event.get("data") or {}
    webhook_id = request.headers.get("webhook-id", "unknown")
    logger.info(f"🔔 Webhook received id={webhook_id} type={event_type}")

    if event_type in ("payment.succeeded", "payment.processing", "payment.failed", "payment.cancelled"):
        outcome = await service.reconcile(event_type, data)
        return {"status": "received", "outcome": outcome}

    logger.info(f"Event {event_type} received and ignored (no handler)")
    return {"status": "received", "outcome": "ignored"}
