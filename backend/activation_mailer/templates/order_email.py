"""
Order confirmation email template.

Pure function from order data to {subject, html}. The copy is German,
matching the storefront.
"""

import html
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Sequence, Union

from activation_mailer.services.order_items import LineItem

SUBJECT = "Ihre Aktivierungslinks von myon.clinic"
SHOP_NAME = "myon.clinic"
SHOP_LOGO_URL = "https://cdn.shopify.com/s/files/1/0863/0622/6507/files/myon.clinic_1.svg?v=1746697557"
SERVICE_EMAIL = "service@myoncare.com"

_MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

_CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€", "GBP": "£", "CHF": "CHF "}


@dataclass
class OrderEmailData:
    """Inputs of the order confirmation email."""
    order_number: str
    order_date: str
    customer_name: str
    items: List[LineItem] = field(default_factory=list)


@dataclass
class EmailTemplate:
    subject: str
    html: str


def format_date(value: Union[str, datetime, None]) -> str:
    """Format a timestamp like 'May 8, 2025, 3:04 PM'. Unparseable strings pass through."""
    if value is None or value == "":
        return ""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value

    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return (
        f"{_MONTHS[value.month - 1]} {value.day}, {value.year}, "
        f"{hour}:{value.minute:02d} {meridiem}"
    )


def format_currency(amount: Union[str, int, float, Decimal, None], currency_code: str = "USD") -> str:
    """Format an amount with two decimals and thousands separators."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        return str(amount or "")
    symbol = _CURRENCY_SYMBOLS.get(currency_code.upper(), f"{currency_code.upper()} ")
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"


def _render_item(item: LineItem) -> str:
    label = html.escape(item.name or item.id)
    short_url = html.escape(item.short_url, quote=True)
    image = html.escape(item.image, quote=True)

    if item.short_url:
        link = (
            f'<a href="{short_url}" style="color: #4b33ff; font-size: 16px; '
            f'text-decoration: none;">hier klicken</a>'
        )
    else:
        link = (
            '<span style="font-size: small; color: #999;">'
            f'wird Ihnen separat zugesendet, bei Fragen: {SERVICE_EMAIL}</span>'
        )

    image_cell = ""
    if item.image:
        image_cell = (
            f'<img src="{image}" alt="{label}" align="left" width="60" '
            f'style="margin-right: 15px; border: 1px solid #e5e5e5;">'
        )

    return f"""
      <tr class="order-list__item" style="width: 100%;">
        <td style="font-family: -apple-system,Helvetica,sans-serif; width: 100%; padding: 15px;">
          <strong style="font-size: 16px; color: #555;">{label}</strong><br><br>
          <span style="font-size: 16px;"><span style="font-size: small;">Anzahl der Lizenzen:</span> {item.quantity}</span><br>
          <span style="font-size: 16px;"><span style="font-size: small;">Aktivierungslink:</span> {link}</span><br>
        </td>
        <td style="font-family: -apple-system,Helvetica,sans-serif; padding: 15px 0;" valign="middle">{image_cell}</td>
      </tr>"""


def _render_items(items: Sequence[LineItem]) -> str:
    rows = "".join(_render_item(item) for item in items)
    return f"""
    <table class="row" style="width: 100%; border-spacing: 0; border-collapse: collapse;" bgcolor="#f3f3f3">
      <tbody>{rows}
      </tbody>
    </table>"""


def generate_order_email_template(data: OrderEmailData, subject: Optional[str] = None) -> EmailTemplate:
    """Render the order confirmation email."""
    subject = subject or SUBJECT
    customer_name = html.escape(data.customer_name or "Kunde")
    order_number = html.escape(data.order_number or "")
    order_date = html.escape(data.order_date or "")

    body = f"""<html>
  <head>
    <meta http-equiv="Content-Type" content="text/html; charset=UTF-8">
    <title>{html.escape(subject)}</title>
    <meta name="viewport" content="width=device-width">
    <style>
      body {{ margin: 0; }}
      @media (max-width: 600px) {{ .container {{ width: 94% !important; }} }}
    </style>
  </head>
  <body style="margin: 0;">
    <table class="body" style="height: 100% !important; width: 100% !important; border-spacing: 0; border-collapse: collapse;">
      <tbody><tr><td style="font-family: -apple-system,Helvetica,sans-serif;">
        <center>
          <table class="container" style="width: 560px; max-width: 90%; border-spacing: 0; border-collapse: collapse; margin: 30px auto 0;" bgcolor="#4b33ff">
            <tbody><tr><td style="padding: 20px 0;">
              <center><img src="{SHOP_LOGO_URL}" alt="{SHOP_NAME}" width="180"></center>
            </td></tr></tbody>
          </table>
          <table class="container" style="width: 560px; text-align: left; border-spacing: 0; border-collapse: collapse; margin: 40px auto 0;">
            <tbody><tr><td style="font-family: -apple-system,Helvetica,sans-serif;">
              <p style="color: #777; line-height: 150%; font-size: 16px; margin: 0;" align="right">
                <strong style="color: #555;">Auftragsdatum:</strong> {order_date}<br>
                <strong style="color: #555;">Auftragsnummer:</strong> {order_number}
              </p>
              <p style="color: #777; line-height: 150%; font-size: 16px; margin: 15px 0 0;">Hallo {customer_name},</p>
              <p style="color: #777; line-height: 150%; font-size: 16px; margin: 15px 0 0;">vielen Dank f&uuml;r Ihre Bestellung bei {SHOP_NAME}!</p>
              <h3 style="font-weight: normal; font-size: 16px; margin: 25px 0 12px;"><strong style="color: #555;">Hier finden Sie Ihre Aktivierungslinks:</strong></h3>
              <p style="font-size: smaller; color: #777; line-height: 150%; margin: 0;">
                <strong style="color: #5b40f4;">Wichtiger Hinweis:</strong>
                Der Link kann nur so oft aufgerufen werden, wie Sie das Produkt erworben haben.
                Haben Sie beispielsweise zwei Einheiten eines Behandlungspfads gekauft, ist der Link
                maximal zweimal nutzbar. Danach verliert er seine G&uuml;ltigkeit. Bitte schlie&szlig;en
                Sie die Registrierung nach dem Klick auf den Link unbedingt vollst&auml;ndig ab. Bei Fragen
                oder Problemen wenden Sie sich gerne an
                <a href="mailto:{SERVICE_EMAIL}" style="color: #5b40f4;">{SERVICE_EMAIL}</a>.
              </p>
              {_render_items(data.items)}
              <p style="color: #777; line-height: 150%; font-size: 16px; margin: 15px 0 25px;">
                Viel Spa&szlig; mit Ihren digitalen Pfaden,<br>
                <strong style="color: #555;">Ihr {SHOP_NAME}-Team</strong>
              </p>
            </td></tr></tbody>
          </table>
          <table class="container" style="width: 560px; text-align: left; border-spacing: 0; border-collapse: collapse; margin: 0 auto; border-top: 1px solid #e5e5e5;">
            <tbody><tr><td style="font-family: -apple-system,Helvetica,sans-serif; padding: 35px 0; color: #999; font-size: 14px; line-height: 150%;">
              <strong style="color: #555;">Impressum</strong><br>
              myon.clinic GmbH, Balanstra&szlig;e 71a, D-81541 Munich<br>
              www.myon.clinic
            </td></tr></tbody>
          </table>
        </center>
      </td></tr></tbody>
    </table>
  </body>
</html>
"""
    return EmailTemplate(subject=subject, html=body)
