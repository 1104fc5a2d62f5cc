import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Literal, Optional
from urllib.parse import quote

from pydantic import BaseModel, Field, field_validator

from .cart import CartStore
from .config import Settings
from .core import OrderCreateInput
from .database import OrderRepository
from .models import CartLine, RecentOrder

logger = logging.getLogger(__name__)

PROVINCES = [
    "Aceh",
    "Sumatera Utara",
    "Sumatera Barat",
    "Riau",
    "Jambi",
    "Sumatera Selatan",
    "Bengkulu",
    "Lampung",
    "Kepulauan Bangka Belitung",
    "Kepulauan Riau",
    "DKI Jakarta",
    "Jawa Barat",
    "Jawa Tengah",
    "DI Yogyakarta",
    "Jawa Timur",
    "Banten",
    "Bali",
    "Nusa Tenggara Barat",
    "Nusa Tenggara Timur",
    "Kalimantan Barat",
    "Kalimantan Tengah",
    "Kalimantan Selatan",
    "Kalimantan Timur",
    "Kalimantan Utara",
    "Sulawesi Utara",
    "Sulawesi Tengah",
    "Sulawesi Barat",
    "Sulawesi Selatan",
    "Sulawesi Tenggara",
    "Gorontalo",
    "Maluku",
    "Maluku Utara",
    "Papua",
    "Papua Barat",
]

PAYMENT_LABELS = {
    "tf": "Transfer Bank",
    "cod": "COD (Cash On Delivery)",
}

_URI_SAFE = "!*'()"


class CheckoutError(Exception):
    pass


class CheckoutForm(BaseModel):
    customer_name: str = Field(..., min_length=3)
    phone: str = Field(..., min_length=10)
    province: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=5)
    address: str = Field(..., min_length=10)
    payment_method: Literal["tf", "cod"] = "tf"
    notes: Optional[str] = None

    @field_validator("province")
    @classmethod
    def _known_province(cls, v: str) -> str:
        if v not in PROVINCES:
            raise ValueError(f"unknown province: {v}")
        return v


@dataclass
class CheckoutResult:
    order: RecentOrder
    message: str
    whatsapp_url: str
    total: Decimal


def to_rupiah(amount: Decimal, rate: Decimal) -> int:
    return int((Decimal(amount) * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_rupiah(amount: Decimal, rate: Decimal) -> str:
    # id-ID groups thousands with dots
    return "Rp" + f"{to_rupiah(amount, rate):,}".replace(",", ".")


def build_order_message(lines: Iterable[CartLine], form: CheckoutForm, rate: Decimal) -> str:
    lines = list(lines)
    total = sum((line.line_total for line in lines), Decimal("0"))

    text = "*PESANAN BARU*\n\n"
    text += "*Detail Pelanggan:*\n"
    text += f"Nama: {form.customer_name}\n"
    text += f"No HP: {form.phone}\n"
    text += f"Alamat: {form.address}, {form.city}, {form.province} {form.postal_code}\n\n"

    text += "*Detail Pesanan:*\n"
    for n, line in enumerate(lines, start=1):
        unit = format_rupiah(line.product.price, rate)
        subtotal = format_rupiah(line.line_total, rate)
        text += f"{n}. {line.product.name} ({line.quantity} x {unit}) = {subtotal}\n"

    text += f"\n*Total: {format_rupiah(total, rate)}*\n\n"
    text += f"*Metode Pembayaran:* {PAYMENT_LABELS[form.payment_method]}\n"

    if form.notes:
        text += f"\n*Catatan:* {form.notes}\n"
    return text


def build_whatsapp_url(number: str, message: str) -> str:
    # same unreserved set as JavaScript's encodeURIComponent
    return f"https://wa.me/{number}?text={quote(message, safe=_URI_SAFE)}"


def checkout(cart: CartStore, form: CheckoutForm, orders: OrderRepository, settings: Settings) -> CheckoutResult:
    lines = cart.lines
    if not lines:
        raise CheckoutError("cart empty")

    total = cart.calculate_total()
    message = build_order_message(lines, form, settings.idr_rate)
    url = build_whatsapp_url(settings.whatsapp_number, message)

    order = orders.add(OrderCreateInput(
        customer_name=form.customer_name,
        product_names=[line.product.name for line in lines],
        location=form.city,
        payment_method=PAYMENT_LABELS[form.payment_method],
    ))
    cart.clear_cart()
    logger.info("checkout for %s: %d lines, total %s", form.customer_name, len(lines), total)
    return CheckoutResult(order=order, message=message, whatsapp_url=url, total=total)
