# tests/test_api.py
import asyncio
from decimal import Decimal
from io import BytesIO
from urllib.parse import unquote
from zipfile import ZipFile

import httpx
from fastapi.testclient import TestClient
from openpyxl import Workbook

from sdk.pystore import StoreClient
from storefront import sdk
from storefront.database import STORAGE
from storefront.excel import EXCEL_HEADERS
from storefront.main import app

client = TestClient(app)

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

CHECKOUT_FORM = {
    "customer_name": "Muhammad Faisal",
    "phone": "081298765432",
    "province": "Jawa Barat",
    "city": "Bandung",
    "postal_code": "40111",
    "address": "Jl. Asia Afrika No. 8",
    "payment_method": "tf",
}


def reset():
    client.post("/reset")


def admin_headers():
    r = client.post("/admin/login", json={"username": "admin", "password": "admin"})
    assert r.status_code == 200
    return {"X-Admin-Token": r.json()["token"]}


def _xlsx(rows):
    wb = Workbook()
    ws = wb.active
    ws.append(EXCEL_HEADERS)
    for row in rows:
        ws.append(row)
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


# ---------------------------
# Catalog
# ---------------------------
def test_list_products_sorted_by_price():
    reset()
    r = client.get("/products", params={"sort_by": "price", "sort_order": "asc"})
    assert r.status_code == 200
    body = r.json()
    assert [p["id"] for p in body] == ["4", "3", "1", "5", "2"]
    assert Decimal(body[0]["price"]) == Decimal("34.99")


def test_list_products_filters():
    reset()
    r = client.get("/products", params={"search": "literature"})
    assert [p["id"] for p in r.json()] == ["2"]
    r = client.get("/products", params={"min_price": "300", "max_price": "100"})
    assert r.json() == []
    r = client.get("/products", params={"featured": "true", "category": "Home Decor"})
    assert [p["id"] for p in r.json()] == ["5"]


def test_invalid_sort_field_is_rejected():
    reset()
    r = client.get("/products", params={"sort_by": "stock"})
    assert r.status_code == 422


def test_categories_and_price_range():
    reset()
    assert client.get("/products/categories").json() == [
        "Prayer Essentials", "Islamic Literature", "Personal Care", "Clothing", "Home Decor",
    ]
    assert Decimal(client.get("/products/price-range").json()["max_price"]) == Decimal("300")


def test_async_client_browses_categories_concurrently():
    reset()
    store = StoreClient(base_url="http://testserver", async_transport=httpx.ASGITransport(app=app))
    pages = asyncio.run(store.products_by_category_async(["Clothing", "Home Decor", "Nothing Here"]))
    assert {cat: [p["id"] for p in items] for cat, items in pages.items()} == {
        "Clothing": ["4"], "Home Decor": ["5"], "Nothing Here": [],
    }

    featured = asyncio.run(store.list_products_async(featured="true", sort_by="price"))
    assert [p["id"] for p in featured] == ["1", "5", "2"]


def test_get_product_not_found():
    reset()
    assert client.get("/products/nope").status_code == 404
    assert client.get("/products/1").json()["name"] == "Hand-crafted Prayer Rug"


# ---------------------------
# Admin
# ---------------------------
def test_admin_routes_need_login():
    reset()
    payload = {"name": "Siwak", "price": "2.50", "category": "Personal Care", "stock": 50}
    assert client.post("/admin/products", json=payload).status_code == 401
    assert client.post("/admin/login", json={"username": "admin", "password": "nope"}).status_code == 401


def test_admin_crud():
    reset()
    headers = admin_headers()
    r = client.post("/admin/products", json={
        "name": "Siwak", "price": "2.50", "category": "Personal Care", "stock": 50,
    }, headers=headers)
    assert r.status_code == 201
    pid = r.json()["id"]
    assert r.json()["featured"] is False

    r = client.put(f"/admin/products/{pid}", json={"stock": 40, "featured": True}, headers=headers)
    assert r.status_code == 200
    assert r.json()["stock"] == 40
    assert r.json()["featured"] is True

    assert client.delete(f"/admin/products/{pid}", headers=headers).status_code == 200
    assert client.delete(f"/admin/products/{pid}", headers=headers).status_code == 404
    assert client.put(f"/admin/products/{pid}", json={"stock": 1}, headers=headers).status_code == 404


def test_admin_create_rejects_bad_price():
    reset()
    r = client.post("/admin/products", json={"name": "Free", "price": "0", "stock": 1}, headers=admin_headers())
    assert r.status_code == 422


def test_admin_logout_revokes_token():
    reset()
    headers = admin_headers()
    assert client.post("/admin/logout", headers=headers).status_code == 200
    assert client.get("/admin/products/export", headers=headers).status_code == 401


def test_import_products_from_excel():
    reset()
    headers = admin_headers()
    data = _xlsx([
        ["Kurma Ajwa", 24.5, "Dates", "Food", 40, "false", ""],
        ["Air Zam-zam 1L", 9.99, "", "Food", 100, "true", "https://img.example/zamzam.jpg"],
    ])
    r = client.post("/admin/products/import", files={"file": ("products.xlsx", data, XLSX)}, headers=headers)
    assert r.status_code == 201
    assert r.json()["imported"] == 2
    foods = client.get("/products", params={"category": "Food"}).json()
    assert [p["name"] for p in foods] == ["Kurma Ajwa", "Air Zam-zam 1L"]


def test_import_reports_row_errors():
    reset()
    data = _xlsx([["No Category", 5, "", "", 1, "false", "not-a-url"]])
    r = client.post("/admin/products/import", files={"file": ("products.xlsx", data, XLSX)}, headers=admin_headers())
    assert r.status_code == 422
    assert r.json()["detail"] == [
        {"row": 1, "message": "Category is required"},
        {"row": 1, "message": "Invalid image URL at position 1"},
    ]
    assert len(client.get("/products").json()) == 5


def test_import_rejects_garbage_upload():
    reset()
    r = client.post("/admin/products/import", files={"file": ("x.xlsx", b"garbage", XLSX)}, headers=admin_headers())
    assert r.status_code == 400


def test_import_rejects_workbook_with_broken_xml():
    reset()
    buf = BytesIO()
    with ZipFile(buf, "w") as zf:
        zf.writestr("[Content_Types].xml", "<not xml")
    r = client.post("/admin/products/import", files={"file": ("x.xlsx", buf.getvalue(), XLSX)}, headers=admin_headers())
    assert r.status_code == 400
    assert len(client.get("/products").json()) == 5


def test_export_downloads_workbook():
    reset()
    r = client.get("/admin/products/export", headers=admin_headers())
    assert r.status_code == 200
    assert r.headers["content-type"] == XLSX
    assert "products_export.xlsx" in r.headers["content-disposition"]
    assert r.content[:2] == b"PK"


# ---------------------------
# Cart
# ---------------------------
def test_cart_add_merges_and_totals():
    reset()
    client.post("/cart/s1/add", json={"product_id": "4", "quantity": 2})
    r = client.post("/cart/s1/add", json={"product_id": "4", "quantity": 3})
    body = r.json()
    assert len(body["items"]) == 1
    assert body["items"][0]["quantity"] == 5
    assert body["item_count"] == 5
    assert Decimal(body["total"]) == Decimal("174.95")


def test_cart_add_is_clamped_to_stock():
    reset()
    # product 5 has 5 in stock
    client.post("/cart/s1/add", json={"product_id": "5", "quantity": 4})
    r = client.post("/cart/s1/add", json={"product_id": "5", "quantity": 3})
    assert r.json()["items"][0]["quantity"] == 5
    r = client.post("/cart/s1/add", json={"product_id": "5", "quantity": 1})
    assert r.status_code == 409


def test_cart_add_errors():
    reset()
    assert client.post("/cart/s1/add", json={"product_id": "nope"}).status_code == 404
    assert client.post("/cart/s1/add", json={"product_id": "1", "quantity": 0}).status_code == 400


def test_cart_update_remove_and_clear():
    reset()
    client.post("/cart/s1/add", json={"product_id": "1", "quantity": 1})
    client.post("/cart/s1/add", json={"product_id": "3", "quantity": 2})

    r = client.post("/cart/s1/update", json={"product_id": "1", "quantity": 0})
    assert [i["product"]["id"] for i in r.json()["items"]] == ["3"]

    r = client.post("/cart/s1/update", json={"product_id": "3", "quantity": 999})
    assert r.json()["items"][0]["quantity"] == 20

    r = client.post("/cart/s1/remove", json={"product_id": "nope"})
    assert r.status_code == 200
    assert r.json()["item_count"] == 20

    r = client.post("/cart/s1/clear")
    assert r.json()["item_count"] == 0
    assert Decimal(r.json()["total"]) == Decimal("0")


def test_carts_are_per_session():
    reset()
    client.post("/cart/alice/add", json={"product_id": "1"})
    assert client.get("/cart/bob").json()["items"] == []
    assert client.get("/cart/alice").json()["item_count"] == 1


def test_viewing_unknown_cart_does_not_register_session():
    reset()
    r = client.get("/cart/just-looking")
    assert r.json()["items"] == []
    assert "just-looking" not in sdk.CARTS
    assert client.post("/cart/just-looking/checkout", json=CHECKOUT_FORM).status_code == 400
    assert "just-looking" not in sdk.CARTS


def test_reset_drops_persisted_carts_and_login():
    reset()
    client.post("/cart/s1/add", json={"product_id": "1"})
    admin_headers()
    # a cart persisted by an earlier process, never loaded into this one
    STORAGE.set("session:old:cart", "[]")
    assert STORAGE.get("admin:user") is not None

    reset()
    assert STORAGE.keys() == []
    assert client.get("/cart/s1").json()["items"] == []


def test_cart_keeps_snapshot_after_catalog_edit():
    reset()
    client.post("/cart/s1/add", json={"product_id": "3", "quantity": 1})
    client.put("/admin/products/3", json={"price": "99.00"}, headers=admin_headers())
    item = client.get("/cart/s1").json()["items"][0]
    assert Decimal(item["product"]["price"]) == Decimal("79.99")


# ---------------------------
# Checkout and orders
# ---------------------------
def test_checkout_empty_cart():
    reset()
    r = client.post("/cart/s1/checkout", json=CHECKOUT_FORM)
    assert r.status_code == 400


def test_checkout_validates_form():
    reset()
    client.post("/cart/s1/add", json={"product_id": "1"})
    r = client.post("/cart/s1/checkout", json={**CHECKOUT_FORM, "postal_code": "401"})
    assert r.status_code == 422


def test_checkout_builds_whatsapp_link_and_records_order():
    reset()
    client.post("/cart/s1/add", json={"product_id": "2", "quantity": 1})
    client.post("/cart/s1/add", json={"product_id": "4", "quantity": 2})

    r = client.post("/cart/s1/checkout", json=CHECKOUT_FORM)
    assert r.status_code == 200
    body = r.json()
    assert Decimal(body["total"]) == Decimal("319.97")
    assert body["whatsapp_url"].startswith("https://wa.me/628115554155?text=")
    assert unquote(body["whatsapp_url"].split("text=", 1)[1]) == body["message"]
    assert "2. Elegant Hijab - Emerald (2 x Rp524.850) = Rp1.049.700" in body["message"]
    assert "*Total: Rp4.799.550*" in body["message"]
    assert body["order"]["id"] == "4"

    assert client.get("/cart/s1").json()["items"] == []
    recent = client.get("/orders/recent").json()
    assert recent[0]["customer_name"] == "Muhammad Faisal"
    assert recent[0]["product_names"] == ["Premium Digital Quran", "Elegant Hijab - Emerald"]
    assert [o["id"] for o in recent[1:]] == ["3", "2", "1"]
