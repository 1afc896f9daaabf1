"""Request builders shared by the API tests"""

import json
import time
import uuid

from portal.config import DODO_PAYMENTS_WEBHOOK_SECRET
from portal.webhook_security import create_webhook_signature

# 1x1 transparent PNG
SIGNATURE = (
    "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk"
    "+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="
)


def signed_webhook(client, event: dict, webhook_id: str = None):
    """POST a correctly signed Dodo Payments delivery"""
    body = json.dumps(event).encode()
    webhook_id = webhook_id or f"msg_{uuid.uuid4().hex[:12]}"
    timestamp = str(int(time.time()))
    return client.post(
        "/webhooks/dodopayments",
        content=body,
        headers={
            "webhook-id": webhook_id,
            "webhook-timestamp": timestamp,
            "webhook-signature": create_webhook_signature(
                DODO_PAYMENTS_WEBHOOK_SECRET, webhook_id, timestamp, body
            ),
            "content-type": "application/json",
        },
    )


def payment_event(
    invoice_id, org_id, amount_cents, payment_id="pay_001", event_type="payment.succeeded"
) -> dict:
    return {
        "type": event_type,
        "data": {
            "payment_id": payment_id,
            "total_amount": amount_cents,
            "payment_method": "card",
            "metadata": {"invoice_id": str(invoice_id), "organization_id": str(org_id)},
        },
    }


def create_work_order(client, **overrides) -> dict:
    payload = {
        "eventName": "Funeral Mass - R. Keane",
        "eventDate": "2026-02-06",
        "startTime": "10:00",
        "endTime": "12:00",
        "venue": "church",
        "eventType": "funeral",
        "estimateType": "fixed",
        "estimatedHoursFixed": 4,
    }
    payload.update(overrides)
    response = client.post("/work-orders", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def submit(client, work_order_id: int) -> str:
    response = client.post(f"/work-orders/{work_order_id}/submit")
    assert response.status_code == 200, response.text
    return response.json()["token"]


def approve_work_order(client, work_order_id: int, **signer) -> dict:
    token = submit(client, work_order_id)
    body = {"workOrderId": work_order_id, "signature": SIGNATURE}
    body.update(signer or {"approverName": "Fr. Michael Walsh"})
    response = client.post(f"/approve/{token}", json=body)
    assert response.status_code == 200, response.text
    return response.json()


def log_hours(client, work_order_id: int, hours, date="2026-02-06", category="on_site"):
    response = client.post(
        "/time-logs",
        json={"workOrderId": work_order_id, "date": date, "hours": hours, "category": category},
    )
    assert response.status_code == 201, response.text
    return response.json()


def completed_work_order(client, hours=3.5, **overrides) -> dict:
    """A work order taken through sign-off, logged and completed"""
    work_order = create_work_order(client, **overrides)
    approve_work_order(client, work_order["id"])
    assert client.post(f"/work-orders/{work_order['id']}/start").status_code == 200
    log_hours(client, work_order["id"], hours, date=overrides.get("eventDate", "2026-02-06"))
    completed = client.post(f"/work-orders/{work_order['id']}/complete")
    assert completed.status_code == 200, completed.text
    return completed.json()
