"""
Outbound email for the portal

Bodies are MJML (see email_templates) compiled to HTML and delivered through
Resend. Senders raise EmailDeliveryError; callers commit their state change
first and only log a failed notification.
"""

import asyncio
import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .email_templates import (
    change_order_approval_template,
    invoice_comment_template,
    invoice_reminder_template,
    invoice_sent_template,
    payment_received_notification_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailDeliveryError(Exception):
    """A notification could not be rendered or handed to Resend"""


def compile_mjml_to_html(mjml_content: str) -> str:
    try:
        result = mjml_to_html(mjml_content)
    except Exception as e:
        logger.error(f"❌ MJML compilation failed: {e}")
        raise EmailDeliveryError(f"Template did not compile: {e}") from e

    # Newer mjml releases return an object, older ones a dict
    if isinstance(result, dict):
        html, errors = result.get("html", ""), result.get("errors")
    else:
        html, errors = getattr(result, "html", str(result)), getattr(result, "errors", None)
    if errors:
        logger.warning(f"⚠️ MJML warnings: {errors}")
    return html


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
    cc: Optional[list[str]] = None,
    attachments: Optional[list[dict]] = None,
) -> dict:
    """
    Render and send one message.

    `attachments` are {"filename", "content"} dicts with base64 content.
    Returns Resend's response ({"id": ...}).
    """
    if not RESEND_API_KEY:
        logger.error("❌ RESEND_API_KEY is not set, email is disabled")
        raise EmailDeliveryError("Email service not configured")

    params: dict = {
        "from": from_address or EMAIL_FROM_ADDRESS,
        "to": [to] if isinstance(to, str) else list(to),
        "subject": subject,
        "html": compile_mjml_to_html(mjml_content),
    }
    if cc:
        params["cc"] = cc
    if attachments:
        params["attachments"] = [
            {"filename": item["filename"], "content": item["content"]} for item in attachments
        ]

    try:
        # The Resend SDK is synchronous
        response = await asyncio.to_thread(resend.Emails.send, params)
    except Exception as e:
        logger.error(f"❌ Resend rejected '{subject}' to {params['to']}: {e}")
        raise EmailDeliveryError(str(e)) from e

    logger.info(f"📧 Sent '{subject}' to {params['to']}: {response}")
    return response


# ============================================
# Portal notifications
# ============================================


async def send_change_order_approval_request(
    to: str,
    approver_name: str,
    event_name: str,
    additional_hours: float,
    additional_cost: float,
    reason: str,
    approval_url: str,
) -> dict:
    mjml_content = change_order_approval_template(
        approver_name=approver_name,
        event_name=event_name,
        additional_hours=additional_hours,
        additional_cost=additional_cost,
        reason=reason,
        approval_url=approval_url,
    )
    return await send_email(
        to=to,
        subject=f"Change order approval needed: {event_name}",
        mjml_content=mjml_content,
    )


async def send_invoice_email(
    to: str,
    organization_name: str,
    invoice_number: str,
    amount_due: float,
    view_url: str,
    due_date: Optional[str] = None,
    cc: Optional[list[str]] = None,
    subject: Optional[str] = None,
    message: Optional[str] = None,
    attachments: Optional[list[dict]] = None,
) -> dict:
    """Send invoice with its public view link"""
    mjml_content = invoice_sent_template(
        organization_name=organization_name,
        invoice_number=invoice_number,
        amount_due=amount_due,
        due_date=due_date or "",
        view_url=view_url,
        message=message,
    )
    return await send_email(
        to=to,
        subject=subject or f"Invoice {invoice_number}",
        mjml_content=mjml_content,
        cc=cc,
        attachments=attachments,
    )


async def send_invoice_reminder_email(
    to: str,
    invoice_number: str,
    amount_due: float,
    days_since_sent: int,
    view_url: str,
    cc: Optional[list[str]] = None,
) -> dict:
    mjml_content = invoice_reminder_template(
        invoice_number=invoice_number,
        amount_due=amount_due,
        days_since_sent=days_since_sent,
        view_url=view_url,
    )
    return await send_email(
        to=to,
        subject=f"Reminder: Invoice {invoice_number}",
        mjml_content=mjml_content,
        cc=cc,
    )


async def send_invoice_comment_notification(
    to: str,
    recipient_name: str,
    author_name: str,
    invoice_number: str,
    content: str,
    view_url: str,
    is_reply: bool = False,
) -> dict:
    """Notify staff of a client comment, or a client of a staff reply"""
    mjml_content = invoice_comment_template(
        recipient_name=recipient_name,
        author_name=author_name,
        invoice_number=invoice_number,
        content_text=content,
        view_url=view_url,
        is_reply=is_reply,
    )
    return await send_email(
        to=to,
        subject=f"New comment on invoice {invoice_number}",
        mjml_content=mjml_content,
    )


async def send_payment_received_notification(
    to: str,
    recipient_name: str,
    organization_name: str,
    invoice_number: str,
    amount: float,
    amount_due: float,
    payment_date: Optional[str] = None,
) -> dict:
    """Notify the invoice creator when a payment lands"""
    mjml_content = payment_received_notification_template(
        recipient_name=recipient_name,
        organization_name=organization_name,
        invoice_number=invoice_number,
        amount=amount,
        amount_due=amount_due,
        payment_date=payment_date,
    )
    return await send_email(
        to=to,
        subject=f"Payment Received: ${amount:,.2f} for {invoice_number}",
        mjml_content=mjml_content,
    )
