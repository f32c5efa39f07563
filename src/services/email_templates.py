"""HTML email bodies for order notifications.

Every interpolated value is escaped; customer input reaches these templates.
"""

import html
import json
from typing import Any, NamedTuple

from src.schemas.catalog import StoreConfig
from src.schemas.order import Order
from src.services.invoice_service import describe_item

BODY_STYLE = (
    "font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif; "
    "line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;"
)
DEFAULT_PRIMARY_COLOR = "#2563eb"


class EmailContent(NamedTuple):
    """A rendered email."""

    subject: str
    html: str
    text: str


def _e(value: Any) -> str:
    return html.escape(str(value), quote=True)


def _money(value: float) -> str:
    return f"${value:,.2f}"


def _items_table(order: Order) -> str:
    rows = []
    for item in order.items:
        options = "".join(
            f'<div style="font-size: 12px; color: #6b7280;">{_e(line)}</div>'
            for line in describe_item(item)
        )
        rows.append(
            f"""
        <tr>
            <td style="padding: 8px; border-bottom: 1px solid #e5e7eb;">
                <strong>{_e(item.product_name)}</strong> ({_e(item.size)}){options}
            </td>
            <td style="padding: 8px; border-bottom: 1px solid #e5e7eb; text-align: center;">{item.quantity}</td>
            <td style="padding: 8px; border-bottom: 1px solid #e5e7eb; text-align: right;">{_money(item.line_total)}</td>
        </tr>"""
        )
    return f"""
    <table style="width: 100%; border-collapse: collapse; margin: 20px 0;">
        <tr style="background: #f3f4f6;">
            <th style="padding: 8px; text-align: left;">Item</th>
            <th style="padding: 8px; text-align: center;">Qty</th>
            <th style="padding: 8px; text-align: right;">Total</th>
        </tr>{"".join(rows)}
        <tr>
            <td colspan="2" style="padding: 8px; text-align: right;"><strong>Order Total</strong></td>
            <td style="padding: 8px; text-align: right;"><strong>{_money(order.total_amount)}</strong></td>
        </tr>
    </table>"""


def _items_text(order: Order) -> str:
    lines = []
    for item in order.items:
        lines.append(f"- {item.product_name} ({item.size}) x{item.quantity}: {_money(item.line_total)}")
        lines.extend(f"    {line}" for line in describe_item(item))
    lines.append(f"Order Total: {_money(order.total_amount)}")
    return "\n".join(lines)


def customer_confirmation_email(order: Order, config: StoreConfig, invoice_attached: bool) -> EmailContent:
    """Order confirmation sent to the customer.

    Args:
        order: The accepted order.
        config: Store configuration (branding, payment handles).
        invoice_attached: Whether the invoice PDF accompanies the email.

    Returns:
        EmailContent: Subject, HTML and plain-text bodies.
    """
    color = config.primary_color or DEFAULT_PRIMARY_COLOR
    business = config.business_name
    payment = config.payment_instructions

    payment_html = ""
    payment_text = ""
    if payment:
        methods = "".join(f"<li><strong>{_e(label)}:</strong> {_e(handle)}</li>" for label, handle in payment.items())
        payment_html = f"""
        <h3 style="color: {_e(color)}; margin-bottom: 8px;">Payment Instructions</h3>
        <ul style="padding-left: 20px;">{methods}</ul>
        <p style="font-size: 14px; color: #6b7280;">Please include order #{_e(order.short_order_number)} in the payment note.</p>"""
        payment_text = "\nPayment Instructions:\n" + "\n".join(
            f"{label}: {handle}" for label, handle in payment.items()
        ) + f"\nPlease include order #{order.short_order_number} in the payment note.\n"

    invoice_note = (
        '<p style="font-size: 14px; color: #6b7280;">Your invoice is attached to this email.</p>'
        if invoice_attached
        else ""
    )

    html_content = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Order Confirmation</title>
</head>
<body style="{BODY_STYLE}">
    <div style="background: {_e(color)}; padding: 30px; border-radius: 10px 10px 0 0; text-align: center;">
        <h1 style="color: white; margin: 0; font-size: 24px;">Thank you for your order!</h1>
    </div>

    <div style="background: #f9fafb; padding: 30px; border: 1px solid #e5e7eb; border-top: none; border-radius: 0 0 10px 10px;">
        <p style="font-size: 16px;">Hi {_e(order.contact_info.first_name)},</p>
        <p style="font-size: 16px;">
            We received your order <strong>#{_e(order.short_order_number)}</strong> from {_e(business)}
            for the {_e(order.store_label)} store.
        </p>
        {_items_table(order)}
        {payment_html}
        {invoice_note}
        <hr style="border: none; border-top: 1px solid #e5e7eb; margin: 25px 0;">
        <p style="font-size: 12px; color: #9ca3af; text-align: center; margin: 0;">
            Reference: {_e(order.order_number)}
        </p>
    </div>
</body>
</html>
"""

    text_content = f"""
Thank you for your order, {order.contact_info.first_name}!

Order #{order.short_order_number} ({business}, {order.store_label} store)

{_items_text(order)}
{payment_text}
Reference: {order.order_number}
"""

    return EmailContent(
        subject=f"Order Confirmation #{order.short_order_number} - {business}",
        html=html_content,
        text=text_content,
    )


def admin_notification_email(order: Order, config: StoreConfig) -> EmailContent:
    """New-order notification sent to the store operator."""
    contact = order.contact_info
    html_content = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>New Order</title>
</head>
<body style="{BODY_STYLE}">
    <h1 style="color: {_e(config.primary_color or DEFAULT_PRIMARY_COLOR)}; margin-bottom: 10px;">
        New order #{_e(order.short_order_number)}
    </h1>
    <div style="background: #f9fafb; padding: 20px; border-radius: 10px;">
        <p style="margin: 0;"><strong>Customer:</strong> {_e(order.customer_name)}</p>
        <p style="margin: 0;"><strong>Email:</strong> {_e(contact.email)}</p>
        <p style="margin: 0;"><strong>Phone:</strong> {_e(contact.phone)}</p>
        <p style="margin: 0;"><strong>Store:</strong> {_e(order.store_label)}</p>
        <p style="margin: 0;"><strong>Environment:</strong> {_e(order.environment.value)}</p>
        <p style="margin: 0;"><strong>Order number:</strong> {_e(order.order_number)}</p>
    </div>
    {_items_table(order)}
</body>
</html>
"""

    text_content = f"""
New order #{order.short_order_number}

Customer: {order.customer_name}
Email: {contact.email}
Phone: {contact.phone}
Store: {order.store_label}
Environment: {order.environment.value}
Order number: {order.order_number}

{_items_text(order)}
"""

    return EmailContent(
        subject=f"New Order #{order.short_order_number} - {order.customer_name} ({_money(order.total_amount)})",
        html=html_content,
        text=text_content,
    )


def tech_support_alert_email(
    error_message: str,
    error_type: str,
    traceback_text: str,
    order_payload: Any,
    environment: str,
    occurred_at: str,
) -> EmailContent:
    """High-priority failure alert with the full order payload.

    Args:
        error_message: Raw error message.
        error_type: Exception class name.
        traceback_text: Formatted traceback.
        order_payload: Order data as submitted or accepted (JSON-serializable).
        environment: Environment tag.
        occurred_at: ISO timestamp of the failure.

    Returns:
        EmailContent: Subject, HTML and plain-text bodies.
    """
    payload_json = json.dumps(order_payload, indent=2, default=str)
    html_content = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>Order Failure</title>
</head>
<body style="{BODY_STYLE}">
    <div style="background: #dc2626; padding: 20px; border-radius: 10px 10px 0 0;">
        <h1 style="color: white; margin: 0; font-size: 20px;">URGENT: Order processing failure</h1>
    </div>
    <div style="background: #fef2f2; padding: 20px; border: 1px solid #fecaca; border-top: none; border-radius: 0 0 10px 10px;">
        <p><strong>Environment:</strong> {_e(environment)}</p>
        <p><strong>Time:</strong> {_e(occurred_at)}</p>
        <p><strong>Error:</strong> {_e(error_type)}: {_e(error_message)}</p>
        <h3>Traceback</h3>
        <pre style="background: #fff; padding: 12px; font-size: 12px; overflow-x: auto;">{_e(traceback_text)}</pre>
        <h3>Order payload</h3>
        <pre style="background: #fff; padding: 12px; font-size: 12px; overflow-x: auto;">{_e(payload_json)}</pre>
        <p style="font-size: 14px;">The customer may have been told the order succeeded. Follow up manually.</p>
    </div>
</body>
</html>
"""

    text_content = f"""
URGENT: Order processing failure

Environment: {environment}
Time: {occurred_at}
Error: {error_type}: {error_message}

Traceback:
{traceback_text}

Order payload:
{payload_json}
"""

    return EmailContent(
        subject=f"URGENT: Order failure [{environment}] {error_type}",
        html=html_content,
        text=text_content,
    )
