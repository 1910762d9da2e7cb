"""
Render an order to invoice PDF bytes.

The markup lives in templates/invoice.html and is rendered with Jinja2, then
converted with xhtml2pdf (pure Python, no system libraries). Amounts are
minor currency units and formatted with two decimals.
"""
from datetime import datetime
from io import BytesIO

from jinja2 import Environment, PackageLoader
from xhtml2pdf import pisa

from checkout_api.core.config import settings
from checkout_api.core.exceptions import InvoiceRenderError
from checkout_api.schemas.order import Order

# Characters the reportlab base fonts cannot draw
REPLACEMENTS = {
    "–": "-",  # en dash
    "—": "-",  # em dash
    "−": "-",  # minus sign
    " ": " ",  # nbsp
    "‘": "'",
    "’": "'",
    "“": '"',
    "”": '"',
    "•": "*",  # bullet
}


def _sanitize(html: str) -> str:
    for k, v in REPLACEMENTS.items():
        if k in html:
            html = html.replace(k, v)
    return html


def format_amount(minor_units: int, currency: str) -> str:
    return f"{currency.upper()} {minor_units / 100:,.2f}"


templates = Environment(
    loader=PackageLoader("checkout_api", "templates"),
    autoescape=True,
)
templates.filters["amount"] = format_amount


def build_invoice_html(order: Order, issued_at: datetime) -> str:
    """Invoice markup: seller, bill-to, line items, authoritative total."""
    return templates.get_template("invoice.html").render(
        order=order,
        issued_at=issued_at,
        seller_name=settings.invoice_seller_name,
        seller_contact=settings.invoice_seller_contact,
    )


class InvoiceRenderer:
    """Turns an order into PDF bytes."""

    def render(self, order: Order, issued_at: datetime) -> bytes:
        """
        Returns the PDF document as bytes.
        Raises InvoiceRenderError when xhtml2pdf reports a failure.
        """
        html = _sanitize(build_invoice_html(order, issued_at))
        out = BytesIO()
        result = pisa.CreatePDF(src=html, dest=out, encoding="utf-8")
        if result.err:
            raise InvoiceRenderError("xhtml2pdf failed to render invoice", order_id=order.order_id)
        return out.getvalue()
