# storefront/main.py
import logging
from decimal import Decimal
from typing import Optional

from fastapi import FastAPI, File, Header, Query, Response, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from . import sdk
from .checkout import CheckoutForm
from .config import settings
from .core import (
    AddToCartIn, LoginIn, ProductCreateInput, ProductFilterOptions,
    ProductUpdateInput, RemoveFromCartIn, SortField, SortOrder, UpdateQuantityIn,
)
from .database import ORDERS, PRODUCTS, STORAGE, seed_orders, seed_products

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="storefront (in-memory catalog, cart and WhatsApp checkout)")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _xlsx(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------
# Product endpoints
# ---------------------------
@app.get("/products")
async def list_products(
    category: Optional[str] = None,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
    featured: Optional[bool] = None,
    search: Optional[str] = None,
    sort_by: Optional[SortField] = Query(None),
    sort_order: Optional[SortOrder] = Query(None),
):
    options = ProductFilterOptions(
        category=category, min_price=min_price, max_price=max_price,
        featured=featured, search=search, sort_by=sort_by, sort_order=sort_order,
    )
    return await sdk.list_products_logic(PRODUCTS, options)


@app.get("/products/categories")
async def list_categories():
    return await sdk.list_categories_logic(PRODUCTS)


@app.get("/products/price-range")
async def price_range():
    return await sdk.price_range_logic(PRODUCTS)


@app.get("/products/{product_id}")
async def get_product(product_id: str):
    return await sdk.get_product_logic(PRODUCTS, product_id)


# ---------------------------
# Admin endpoints
# ---------------------------
@app.post("/admin/login")
async def admin_login(payload: LoginIn):
    return await sdk.admin_login_logic(STORAGE, settings, payload)


@app.post("/admin/logout")
async def admin_logout(x_admin_token: Optional[str] = Header(None)):
    return await sdk.admin_logout_logic(STORAGE, settings, x_admin_token)


@app.post("/admin/products", status_code=201)
async def create_product(payload: ProductCreateInput, x_admin_token: Optional[str] = Header(None)):
    sdk.require_admin(x_admin_token)
    return await sdk.create_product_logic(PRODUCTS, payload)


@app.put("/admin/products/{product_id}")
async def update_product(product_id: str, payload: ProductUpdateInput, x_admin_token: Optional[str] = Header(None)):
    sdk.require_admin(x_admin_token)
    return await sdk.update_product_logic(PRODUCTS, product_id, payload)


@app.delete("/admin/products/{product_id}")
async def delete_product(product_id: str, x_admin_token: Optional[str] = Header(None)):
    sdk.require_admin(x_admin_token)
    return await sdk.delete_product_logic(PRODUCTS, product_id)


@app.post("/admin/products/import", status_code=201)
async def import_products(file: UploadFile = File(...), x_admin_token: Optional[str] = Header(None)):
    sdk.require_admin(x_admin_token)
    data = await file.read()
    return await sdk.import_products_logic(PRODUCTS, data)


@app.get("/admin/products/export")
async def export_products(x_admin_token: Optional[str] = Header(None)):
    sdk.require_admin(x_admin_token)
    return _xlsx(await sdk.export_products_logic(PRODUCTS), "products_export.xlsx")


@app.get("/admin/products/template")
async def export_template(x_admin_token: Optional[str] = Header(None)):
    sdk.require_admin(x_admin_token)
    return _xlsx(await sdk.export_template_logic(), "product_import_template.xlsx")


# ---------------------------
# Cart endpoints
# ---------------------------
@app.post("/cart/{session_id}/add")
async def cart_add(session_id: str, payload: AddToCartIn):
    return await sdk.cart_add_logic(PRODUCTS, STORAGE, session_id, payload)


@app.post("/cart/{session_id}/update")
async def cart_update(session_id: str, payload: UpdateQuantityIn):
    return await sdk.cart_update_logic(STORAGE, session_id, payload)


@app.post("/cart/{session_id}/remove")
async def cart_remove(session_id: str, payload: RemoveFromCartIn):
    return await sdk.cart_remove_logic(STORAGE, session_id, payload)


@app.post("/cart/{session_id}/clear")
async def cart_clear(session_id: str):
    return await sdk.cart_clear_logic(STORAGE, session_id)


@app.get("/cart/{session_id}")
async def view_cart(session_id: str):
    return await sdk.view_cart_logic(STORAGE, session_id)


# ---------------------------
# Checkout (WhatsApp order link)
# ---------------------------
@app.post("/cart/{session_id}/checkout")
async def cart_checkout(session_id: str, form: CheckoutForm):
    return await sdk.cart_checkout_logic(STORAGE, ORDERS, settings, session_id, form)


# ---------------------------
# Orders
# ---------------------------
@app.get("/orders/recent")
async def recent_orders():
    return await sdk.recent_orders_logic(ORDERS)


# ---------------------------
# Utility: reset (for tests/demo)
# ---------------------------
@app.post("/reset")
async def reset_all():
    PRODUCTS.reset(seed_products())
    ORDERS.reset(seed_orders())
    sdk.CARTS.clear()
    # drops persisted carts of every session and the stored admin login
    STORAGE.clear()
    sdk.TOKENS.clear()
    logger.info("store reset to demo data")
    return {"status": "reset"}
