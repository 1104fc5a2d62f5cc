from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional
import uuid

from pydantic import BaseModel, Field

from .models import Product, RecentOrder

SortField = Literal["price", "name", "createdAt"]
SortOrder = Literal["asc", "desc"]


class ProductCreateInput(BaseModel):
    name: str = Field(..., min_length=1)
    price: Decimal = Field(..., gt=0)
    description: str = ""
    images: List[str] = Field(default_factory=list)
    category: str = ""
    stock: int = Field(0, ge=0)
    featured: Optional[bool] = False


class ProductUpdateInput(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    price: Optional[Decimal] = Field(None, gt=0)
    description: Optional[str] = None
    images: Optional[List[str]] = None
    category: Optional[str] = None
    stock: Optional[int] = Field(None, ge=0)
    featured: Optional[bool] = None


class ProductFilterOptions(BaseModel):
    category: Optional[str] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    featured: Optional[bool] = None
    search: Optional[str] = None
    sort_by: Optional[SortField] = None
    sort_order: Optional[SortOrder] = None


class OrderCreateInput(BaseModel):
    customer_name: str
    product_names: List[str]
    location: str
    payment_method: str


class AddToCartIn(BaseModel):
    product_id: str
    quantity: int = 1


class UpdateQuantityIn(BaseModel):
    product_id: str
    quantity: int


class RemoveFromCartIn(BaseModel):
    product_id: str


class LoginIn(BaseModel):
    username: str
    password: str


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _make_product(data: ProductCreateInput, now: Optional[datetime] = None) -> Product:
    now = now or _now()
    return Product(
        id=uuid.uuid4().hex,
        name=data.name,
        price=data.price,
        description=data.description,
        images=list(data.images),
        category=data.category,
        stock=data.stock,
        featured=bool(data.featured),
        created_at=now,
        updated_at=now,
    )


def _apply_update(product: Product, data: ProductUpdateInput) -> Product:
    changes: Dict[str, Any] = data.model_dump(exclude_unset=True, exclude_none=True)
    changes["updated_at"] = _now()
    return product.model_copy(update=changes, deep=True)


class CartItemView(BaseModel):
    product: Product
    quantity: int
    line_total: Decimal


class CartView(BaseModel):
    session_id: str
    items: List[CartItemView]
    total: Decimal
    item_count: int
    persisted: bool = True


class CheckoutOut(BaseModel):
    order: RecentOrder
    message: str
    whatsapp_url: str
    total: Decimal
