"""Invoice PDF rendering with PyMuPDF."""

import logging
import re
from datetime import datetime

import fitz  # PyMuPDF

from src.schemas.catalog import StoreConfig
from src.schemas.order import Order, OrderItem

logger = logging.getLogger(__name__)

# US Letter, in points
PAGE_WIDTH = 612
PAGE_HEIGHT = 792
MARGIN = 50
LINE_HEIGHT = 15

FONT = "helv"
FONT_BOLD = "hebo"
TEXT_COLOR = (0.12, 0.16, 0.22)
MUTED_COLOR = (0.42, 0.45, 0.50)
DEFAULT_ACCENT = (0.15, 0.39, 0.92)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9]")


def build_invoice_filename(order: Order, generated_at: datetime) -> str:
    """Build the deterministic invoice filename for an order.

    Args:
        order: The accepted order.
        generated_at: Timestamp embedded in the name.

    Returns:
        str: e.g. 'Invoice_CVL-PROD-PHENOMS-20250126-000042_Smith_2025-01-26_14-03-22-123_PROD.pdf'.
    """
    surname = _UNSAFE_FILENAME_CHARS.sub("", order.contact_info.last_name) or "Customer"
    timestamp = generated_at.strftime("%Y-%m-%d_%H-%M-%S-") + f"{generated_at.microsecond // 1000:03d}"
    return f"Invoice_{order.order_number}_{surname}_{timestamp}_{order.environment.value}.pdf"


def _hex_to_rgb(value: str | None) -> tuple[float, float, float]:
    if not value:
        return DEFAULT_ACCENT
    hex_value = value.strip().lstrip("#")
    if len(hex_value) != 6:
        return DEFAULT_ACCENT
    try:
        return tuple(int(hex_value[i:i + 2], 16) / 255 for i in (0, 2, 4))  # type: ignore[return-value]
    except ValueError:
        return DEFAULT_ACCENT


def describe_item(item: OrderItem) -> list[str]:
    """Human-readable option lines for an item."""
    lines: list[str] = []
    for option in item.design_options:
        suffix = f" (+${option.price:.2f})" if option.price > 0 else ""
        lines.append(f"Design: {option.title}{suffix}")
    for option in item.customization_options:
        text = f"Customization: {option.title}"
        if option.custom_name:
            text += f" - {option.custom_name}"
        if option.custom_number:
            text += f" #{option.custom_number}"
        if option.price > 0:
            text += f" (+${option.price:.2f})"
        lines.append(text)
    return lines


class _InvoiceCanvas:
    """Top-down text layout that adds pages as needed."""

    def __init__(self, doc: fitz.Document) -> None:
        self.doc = doc
        self.page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
        self.y = MARGIN

    def ensure_space(self, height: float) -> None:
        if self.y + height > PAGE_HEIGHT - MARGIN:
            self.page = self.doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
            self.y = MARGIN

    def text(
        self,
        value: str,
        x: float = MARGIN,
        size: float = 10,
        bold: bool = False,
        color: tuple[float, float, float] = TEXT_COLOR,
        advance: bool = True,
    ) -> None:
        self.ensure_space(LINE_HEIGHT)
        self.page.insert_text(
            (x, self.y + size),
            value,
            fontsize=size,
            fontname=FONT_BOLD if bold else FONT,
            color=color,
        )
        if advance:
            self.y += max(LINE_HEIGHT, size + 5)

    def right_text(self, value: str, size: float = 10, bold: bool = False, advance: bool = True) -> None:
        width = fitz.get_text_length(value, fontname=FONT_BOLD if bold else FONT, fontsize=size)
        self.text(value, x=PAGE_WIDTH - MARGIN - width, size=size, bold=bold, advance=advance)

    def rule(self, color: tuple[float, float, float] = MUTED_COLOR, width: float = 0.5) -> None:
        self.ensure_space(10)
        self.y += 4
        self.page.draw_line((MARGIN, self.y), (PAGE_WIDTH - MARGIN, self.y), color=color, width=width)
        self.y += 8

    def gap(self, lines: float = 1) -> None:
        self.y += LINE_HEIGHT * lines


def render_invoice_pdf(order: Order, config: StoreConfig) -> bytes:
    """Render an invoice for an order into an in-memory PDF.

    Args:
        order: The accepted order.
        config: Store configuration (branding, payment instructions).

    Returns:
        bytes: PDF document.
    """
    accent = _hex_to_rgb(config.primary_color)
    doc = fitz.open()
    try:
        canvas = _InvoiceCanvas(doc)

        canvas.text(config.business_name, size=20, bold=True, color=accent)
        if config.store_display_name:
            canvas.text(config.store_display_name, size=11, color=MUTED_COLOR)
        canvas.right_text("INVOICE", size=16, bold=True, advance=False)
        canvas.gap(0.5)
        canvas.text(f"Order #{order.short_order_number}", bold=True)
        canvas.text(f"Reference: {order.order_number}", size=8, color=MUTED_COLOR)
        canvas.text(f"Date: {order.order_date.strftime('%B %d, %Y')}")
        canvas.text(f"Store: {order.store_label}")
        canvas.rule(color=accent, width=1.5)

        canvas.text("Bill To", bold=True, size=11)
        canvas.text(order.customer_name)
        canvas.text(order.contact_info.email)
        canvas.text(order.contact_info.phone)
        canvas.gap(0.5)

        canvas.text("Item", bold=True, advance=False)
        canvas.text("Qty", x=380, bold=True, advance=False)
        canvas.text("Unit", x=430, bold=True, advance=False)
        canvas.right_text("Total", bold=True)
        canvas.rule()

        for item in order.items:
            canvas.ensure_space(LINE_HEIGHT * (2 + len(item.design_options) + len(item.customization_options)))
            canvas.text(f"{item.product_name} ({item.size})", bold=True, advance=False)
            canvas.text(str(item.quantity), x=380, advance=False)
            canvas.text(f"${item.total_price:.2f}", x=430, advance=False)
            canvas.right_text(f"${item.line_total:.2f}")
            for line in describe_item(item):
                canvas.text(line, x=MARGIN + 12, size=9, color=MUTED_COLOR)
            canvas.gap(0.3)

        canvas.rule()
        canvas.text("Total Due", bold=True, size=12, advance=False)
        canvas.right_text(f"${order.total_amount:.2f}", bold=True, size=12)
        canvas.gap()

        payment = config.payment_instructions
        if payment:
            canvas.text("Payment Instructions", bold=True, size=11, color=accent)
            for label, handle in payment.items():
                canvas.text(f"{label}: {handle}")
            canvas.text(f"Please include order #{order.short_order_number} with your payment.", size=9, color=MUTED_COLOR)
            canvas.gap()

        if config.invoice_footer:
            canvas.text(config.invoice_footer, size=9, color=MUTED_COLOR)

        data = doc.tobytes()
    finally:
        doc.close()

    logger.debug("Rendered invoice for %s (%d bytes)", order.order_number, len(data))
    return data
