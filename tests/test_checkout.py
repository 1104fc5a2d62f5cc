# tests/test_checkout.py
from decimal import Decimal
from urllib.parse import unquote

import pytest
from pydantic import ValidationError

from storefront.cart import CartStore
from storefront.checkout import (
    CheckoutError, CheckoutForm, build_order_message, build_whatsapp_url,
    checkout, format_rupiah, to_rupiah,
)
from storefront.config import Settings
from storefront.database import InMemoryKeyValueStore, OrderRepository, seed_orders, seed_products

RATE = Decimal("15000")


def _form(**overrides):
    data = {
        "customer_name": "Siti Aisyah",
        "phone": "081234567890",
        "province": "Jawa Timur",
        "city": "Surabaya",
        "postal_code": "60111",
        "address": "Jl. Pemuda No. 12",
        "payment_method": "tf",
    }
    data.update(overrides)
    return CheckoutForm(**data)


def _cart_with_rug(qty=2):
    cart = CartStore(InMemoryKeyValueStore())
    rug = seed_products()[0]
    cart.add_to_cart(rug, qty)
    return cart


def test_rupiah_conversion_and_grouping():
    assert to_rupiah(Decimal("129.99"), RATE) == 1949850
    assert format_rupiah(Decimal("129.99"), RATE) == "Rp1.949.850"
    assert format_rupiah(Decimal("0.01"), RATE) == "Rp150"


def test_rupiah_rounds_half_up():
    assert to_rupiah(Decimal("0.0001"), RATE) == 2
    assert to_rupiah(Decimal("0.00003"), RATE) == 0


def test_order_message_layout():
    cart = _cart_with_rug(2)
    message = build_order_message(cart.lines, _form(), RATE)

    assert message.startswith("*PESANAN BARU*\n\n*Detail Pelanggan:*\nNama: Siti Aisyah\n")
    assert "No HP: 081234567890\n" in message
    assert "Alamat: Jl. Pemuda No. 12, Surabaya, Jawa Timur 60111\n\n" in message
    assert "1. Hand-crafted Prayer Rug (2 x Rp1.949.850) = Rp3.899.700\n" in message
    assert "\n*Total: Rp3.899.700*\n\n" in message
    assert message.endswith("*Metode Pembayaran:* Transfer Bank\n")


def test_order_message_cod_and_notes():
    cart = _cart_with_rug(1)
    message = build_order_message(cart.lines, _form(payment_method="cod", notes="Kirim sore"), RATE)
    assert "*Metode Pembayaran:* COD (Cash On Delivery)\n" in message
    assert message.endswith("\n*Catatan:* Kirim sore\n")


def test_whatsapp_url_encodes_like_encode_uri_component():
    message = "*Total: Rp1.000*\nA & B (ok)!"
    url = build_whatsapp_url("628115554155", message)
    prefix = "https://wa.me/628115554155?text="
    assert url.startswith(prefix)
    encoded = url[len(prefix):]
    assert encoded == "*Total%3A%20Rp1.000*%0AA%20%26%20B%20(ok)!"
    assert unquote(encoded) == message


def test_checkout_records_order_and_clears_cart():
    cart = _cart_with_rug(2)
    orders = OrderRepository(seed_orders())
    settings = Settings()

    result = checkout(cart, _form(payment_method="cod"), orders, settings)

    assert result.total == Decimal("259.98")
    assert result.whatsapp_url.startswith("https://wa.me/628115554155?text=")
    assert unquote(result.whatsapp_url.split("text=", 1)[1]) == result.message
    assert result.order.id == "4"
    assert result.order.product_names == ["Hand-crafted Prayer Rug"]
    assert result.order.location == "Surabaya"
    assert result.order.payment_method == "COD (Cash On Delivery)"
    assert orders.recent()[0].id == "4"
    assert cart.get_cart_item_count() == 0


def test_checkout_uses_configured_number_and_rate():
    cart = _cart_with_rug(1)
    settings = Settings(whatsapp_number="6281111", idr_rate=Decimal("1"))
    result = checkout(cart, _form(), OrderRepository(), settings)
    assert result.whatsapp_url.startswith("https://wa.me/6281111?text=")
    assert "(1 x Rp130) = Rp130" in result.message


def test_checkout_empty_cart_fails():
    cart = CartStore(InMemoryKeyValueStore())
    orders = OrderRepository()
    with pytest.raises(CheckoutError):
        checkout(cart, _form(), orders, Settings())
    assert orders.recent() == []


def test_form_rejects_unknown_province():
    with pytest.raises(ValidationError):
        _form(province="Atlantis")


def test_form_rejects_short_fields():
    with pytest.raises(ValidationError):
        _form(customer_name="Al")
    with pytest.raises(ValidationError):
        _form(phone="0812")
    with pytest.raises(ValidationError):
        _form(address="short")
    with pytest.raises(ValidationError):
        _form(payment_method="card")
