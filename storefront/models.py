# storefront/models.py
from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field


class Product(BaseModel):
    id: str
    name: str
    price: Decimal
    description: str = ""
    category: str = ""
    stock: int = Field(0, ge=0)
    featured: bool = False
    images: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class CartLine(BaseModel):
    product: Product
    quantity: int = Field(..., ge=1)

    @property
    def line_total(self) -> Decimal:
        return self.product.price * self.quantity


class RecentOrder(BaseModel):
    id: str
    customer_name: str
    product_names: List[str]
    location: str
    payment_method: str
    order_date: datetime


class User(BaseModel):
    id: str
    username: str
    is_admin: bool = False
