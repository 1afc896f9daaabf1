"""
MJML Email Templates
All portal notifications share one base layout for cross-client rendering
"""

from typing import Optional

from .utils.sanitization import sanitize_string

# Slate/indigo scheme
THEME = {
    "primary": "#4f46e5",
    "primary_dark": "#4338ca",
    "primary_light": "#e0e7ff",
    "background": "#f8fafc",
    "card_bg": "#ffffff",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "success": "#16a34a",
    "warning": "#f59e0b",
    "danger": "#ef4444",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
    is_user_email: bool = False,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    footer_notice = ""
    if is_user_email:
        footer_notice = """
        <mj-text align="center" font-size="12px" color="#94a3b8" padding="12px 0 0 0">
          You're receiving this because you have a portal account.
        </mj-text>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="40px 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              Sent by the A/V services billing portal.
            </mj-text>
            {footer_notice}
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def change_order_approval_template(
    approver_name: str,
    event_name: str,
    additional_hours: float,
    additional_cost: float,
    reason: str,
    approval_url: str,
) -> str:
    """Ask the authorized approver to sign a change order"""
    content = f"""
    <mj-text color="{THEME['text_muted']}" padding="0 0 24px 0">
      Additional time has been requested for {sanitize_string(event_name)}.
    </mj-text>

    <mj-text>
      Hi {sanitize_string(approver_name)},
    </mj-text>

    <mj-text>
      A change order needs your signature before the extra hours can be billed.
    </mj-text>

    <mj-text font-size="14px" color="{THEME['text_muted']}">
      Additional hours: {additional_hours:g}<br/>
      Additional cost: ${additional_cost:,.2f}<br/>
      Reason: {sanitize_string(reason)}
    </mj-text>
    """

    return get_base_template(
        title="Change Order Approval Requested",
        preview_text=f"Change order for {event_name}",
        content_sections=content,
        cta_url=approval_url,
        cta_label="Review and Sign",
    )


def invoice_sent_template(
    organization_name: str,
    invoice_number: str,
    amount_due: float,
    due_date: str = "",
    view_url: str = "",
    message: Optional[str] = None,
) -> str:
    """Invoice delivered to the client with its view link"""
    due_date_section = ""
    if due_date:
        due_date_section = f"<br/>Due Date: {due_date}"

    message_section = ""
    if message:
        message_section = f"""
    <mj-text>
      {sanitize_string(message)}
    </mj-text>
        """

    content = f"""
    <mj-text>
      Hello {sanitize_string(organization_name)},
    </mj-text>

    <mj-text>
      Invoice <strong>{invoice_number}</strong> is ready for review.
    </mj-text>

    {message_section}

    <mj-text align="center" font-size="32px" font-weight="700" color="{THEME['text_primary']}" padding="20px 0">
      ${amount_due:,.2f}
    </mj-text>

    <mj-text font-size="14px" color="{THEME['text_muted']}">
      Invoice: {invoice_number}{due_date_section}
    </mj-text>
    """

    return get_base_template(
        title="Invoice Ready",
        preview_text=f"Invoice Ready - {invoice_number}",
        content_sections=content,
        cta_url=view_url or None,
        cta_label="View Invoice" if view_url else None,
    )


def invoice_reminder_template(
    invoice_number: str,
    amount_due: float,
    days_since_sent: int,
    view_url: str,
) -> str:
    content = f"""
    <mj-text>
      This is a friendly reminder that invoice <strong>{invoice_number}</strong> was sent
      {days_since_sent} days ago and still has a balance.
    </mj-text>

    <mj-text align="center" font-size="28px" font-weight="700" color="{THEME['warning']}" padding="20px 0">
      ${amount_due:,.2f} due
    </mj-text>
    """

    return get_base_template(
        title="Payment Reminder",
        preview_text=f"Reminder: {invoice_number}",
        content_sections=content,
        cta_url=view_url,
        cta_label="View Invoice",
    )


def invoice_comment_template(
    recipient_name: str,
    author_name: str,
    invoice_number: str,
    content_text: str,
    view_url: str,
    is_reply: bool = False,
) -> str:
    """New comment on an invoice, either direction"""
    headline = "replied to your comment on" if is_reply else "commented on"
    content = f"""
    <mj-text>
      Hi {sanitize_string(recipient_name)},
    </mj-text>

    <mj-text>
      <strong>{sanitize_string(author_name)}</strong> {headline} invoice {invoice_number}:
    </mj-text>

    <mj-text padding="12px 20px" color="{THEME['text_primary']}" container-background-color="{THEME['primary_light']}">
      {sanitize_string(content_text)}
    </mj-text>
    """

    return get_base_template(
        title="New Invoice Comment",
        preview_text=f"{author_name} {headline} {invoice_number}",
        content_sections=content,
        cta_url=view_url,
        cta_label="Open Invoice",
        is_user_email=not is_reply,
    )


def payment_received_notification_template(
    recipient_name: str,
    organization_name: str,
    invoice_number: str,
    amount: float,
    amount_due: float,
    payment_date: Optional[str] = None,
) -> str:
    """Payment received notification MJML template"""

    payment_date_section = ""
    if payment_date:
        payment_date_section = f"<br/>Payment Date: {payment_date}"

    balance_line = "Paid in full" if amount_due <= 0 else f"Remaining balance: ${amount_due:,.2f}"

    content = f"""
    <mj-text>
      Hi {sanitize_string(recipient_name)},
    </mj-text>

    <mj-text>
      <strong>{sanitize_string(organization_name)}</strong> has paid toward invoice {invoice_number}.
    </mj-text>

    <mj-text align="center" font-size="32px" color="{THEME['success']}" font-weight="800" padding="20px 0">
      ${amount:,.2f}
    </mj-text>

    <mj-text>
      Invoice: {invoice_number}<br/>
      {balance_line}{payment_date_section}
    </mj-text>
    """

    return get_base_template(
        title="Payment Received",
        preview_text=f"Payment Received: ${amount:,.2f} for {invoice_number}",
        content_sections=content,
        is_user_email=True,
    )
