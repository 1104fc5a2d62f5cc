import logging
from typing import Any, Dict, List, Optional

from fastapi import HTTPException

from .auth import AdminTokens, AuthSession
from .cart import CartStore
from .catalog import filter_products, list_categories, price_ceiling
from .checkout import CheckoutError, CheckoutForm, checkout
from .config import Settings
from .core import (
    AddToCartIn, CartItemView, CartView, CheckoutOut, LoginIn,
    ProductCreateInput, ProductFilterOptions, ProductUpdateInput, RemoveFromCartIn, UpdateQuantityIn,
)
from .database import (
    KeyValueStore, OrderRepository, ProductRepository, ScopedKeyValueStore,
)
from .excel import (
    ExcelImportError, export_empty_template, export_products_to_excel,
    parse_excel_to_products, validate_products_data,
)
from .models import Product, User

logger = logging.getLogger(__name__)

# This file contains the core logic for all API endpoints.

CARTS: Dict[str, CartStore] = {}
TOKENS = AdminTokens()


def _get_cart(storage: KeyValueStore, session_id: str) -> CartStore:
    if session_id not in CARTS:
        CARTS[session_id] = CartStore(ScopedKeyValueStore(storage, f"session:{session_id}"))
    return CARTS[session_id]


def _peek_cart(storage: KeyValueStore, session_id: str) -> CartStore:
    # reads load whatever is persisted without registering the session
    cart = CARTS.get(session_id)
    if cart is None:
        cart = CartStore(ScopedKeyValueStore(storage, f"session:{session_id}"))
    return cart


def _cart_view(session_id: str, cart: CartStore) -> CartView:
    return CartView(
        session_id=session_id,
        items=[
            CartItemView(product=line.product, quantity=line.quantity, line_total=line.line_total)
            for line in cart.lines
        ],
        total=cart.calculate_total(),
        item_count=cart.get_cart_item_count(),
        persisted=not cart.last_save_failed,
    )


# Product endpoints
async def list_products_logic(repo: ProductRepository, options: ProductFilterOptions) -> List[Product]:
    return filter_products(repo.list(), options)


async def list_categories_logic(repo: ProductRepository) -> List[str]:
    return list_categories(repo.list())


async def price_range_logic(repo: ProductRepository) -> Dict[str, Any]:
    return {"min_price": "0", "max_price": str(price_ceiling(repo.list()))}


async def get_product_logic(repo: ProductRepository, product_id: str) -> Product:
    p = repo.get_by_id(product_id)
    if not p:
        raise HTTPException(status_code=404, detail="product not found")
    return p


# Admin endpoints
def require_admin(token: Optional[str]) -> User:
    user = TOKENS.get(token)
    if user is None or not user.is_admin:
        raise HTTPException(status_code=401, detail="admin login required")
    return user


async def admin_login_logic(storage: KeyValueStore, settings: Settings, payload: LoginIn) -> Dict[str, Any]:
    auth = AuthSession(ScopedKeyValueStore(storage, "admin"), settings)
    if not auth.login(payload.username, payload.password):
        raise HTTPException(status_code=401, detail="invalid credentials")
    token = TOKENS.issue(auth.user)
    return {"token": token, "user": auth.user}


async def admin_logout_logic(storage: KeyValueStore, settings: Settings, token: Optional[str]) -> Dict[str, Any]:
    require_admin(token)
    TOKENS.revoke(token)
    AuthSession(ScopedKeyValueStore(storage, "admin"), settings).logout()
    return {"status": "logged out"}


async def create_product_logic(repo: ProductRepository, payload: ProductCreateInput) -> Product:
    return repo.create(payload)


async def update_product_logic(repo: ProductRepository, product_id: str, payload: ProductUpdateInput) -> Product:
    p = repo.update(product_id, payload)
    if p is None:
        raise HTTPException(status_code=404, detail="product not found")
    return p


async def delete_product_logic(repo: ProductRepository, product_id: str) -> Dict[str, Any]:
    if not repo.delete(product_id):
        raise HTTPException(status_code=404, detail="product not found")
    return {"deleted": product_id}


async def import_products_logic(repo: ProductRepository, data: bytes) -> Dict[str, Any]:
    try:
        rows = parse_excel_to_products(data)
    except ExcelImportError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not rows:
        raise HTTPException(status_code=400, detail="no product rows found")

    report = validate_products_data(rows)
    if not report.valid:
        logger.warning("rejected import with %d row errors", len(report.errors))
        raise HTTPException(status_code=422, detail=[e.model_dump() for e in report.errors])

    created = repo.bulk_create(row.to_create_input() for row in rows)
    return {"imported": len(created), "products": created}


async def export_products_logic(repo: ProductRepository) -> bytes:
    return export_products_to_excel(repo.list())


async def export_template_logic() -> bytes:
    return export_empty_template()


# Cart endpoints
async def cart_add_logic(repo: ProductRepository, storage: KeyValueStore, session_id: str, payload: AddToCartIn):
    if payload.quantity <= 0:
        raise HTTPException(status_code=400, detail="quantity must be > 0")
    prod = repo.get_by_id(payload.product_id)
    if not prod:
        raise HTTPException(status_code=404, detail="product not found")

    cart = _get_cart(storage, session_id)
    line = cart.get_line(prod.id)
    in_cart = line.quantity if line else 0
    # never let a line exceed what is currently in stock
    qty = min(payload.quantity, prod.stock - in_cart)
    if qty <= 0:
        raise HTTPException(status_code=409, detail="insufficient_stock")

    cart.add_to_cart(prod, qty)
    return _cart_view(session_id, cart)


async def cart_update_logic(storage: KeyValueStore, session_id: str, payload: UpdateQuantityIn):
    cart = _get_cart(storage, session_id)
    line = cart.get_line(payload.product_id)
    quantity = payload.quantity
    if line is not None and quantity > line.product.stock:
        quantity = line.product.stock
    cart.update_quantity(payload.product_id, quantity)
    return _cart_view(session_id, cart)


async def cart_remove_logic(storage: KeyValueStore, session_id: str, payload: RemoveFromCartIn):
    cart = _get_cart(storage, session_id)
    cart.remove_from_cart(payload.product_id)
    return _cart_view(session_id, cart)


async def cart_clear_logic(storage: KeyValueStore, session_id: str):
    cart = _get_cart(storage, session_id)
    cart.clear_cart()
    return _cart_view(session_id, cart)


async def view_cart_logic(storage: KeyValueStore, session_id: str):
    return _cart_view(session_id, _peek_cart(storage, session_id))


# Checkout
async def cart_checkout_logic(
    storage: KeyValueStore, orders: OrderRepository, settings: Settings,
    session_id: str, form: CheckoutForm,
) -> CheckoutOut:
    cart = _peek_cart(storage, session_id)
    try:
        result = checkout(cart, form, orders, settings)
    except CheckoutError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return CheckoutOut(
        order=result.order,
        message=result.message,
        whatsapp_url=result.whatsapp_url,
        total=result.total,
    )


# Orders
async def recent_orders_logic(orders: OrderRepository):
    return orders.recent()
