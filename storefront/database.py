"""
Repositories and key-value persistence for the storefront.

The product and order repositories are plain in-memory collections that
implement the small interfaces the rest of the package depends on, so a
real datastore can be dropped in without touching catalog or cart logic.
The key-value stores play the role browser ``localStorage`` plays for a
client-side shop.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Protocol

from .config import settings
from .core import (
    OrderCreateInput, ProductCreateInput, ProductUpdateInput,
    _apply_update, _make_product, _now,
)
from .models import Product, RecentOrder

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when a key-value store cannot be read or written."""


# ---------------------------
# Key-value persistence
# ---------------------------
class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def keys(self) -> List[str]: ...

    def clear(self) -> None: ...


class InMemoryKeyValueStore:
    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)

    def clear(self) -> None:
        self._data.clear()


class JsonFileKeyValueStore:
    """All keys live in one JSON object on disk, rewritten on every change."""

    def __init__(self, path: str) -> None:
        self.path = path

    def _read(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as e:
            raise StorageError(f"cannot read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"{self.path} does not hold a JSON object")
        return data

    def _write(self, data: Dict[str, str]) -> None:
        tmp = f"{self.path}.tmp"
        try:
            with open(tmp, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.replace(tmp, self.path)
        except OSError as e:
            raise StorageError(f"cannot write {self.path}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)

    def keys(self) -> List[str]:
        return list(self._read())

    def clear(self) -> None:
        if os.path.exists(self.path):
            self._write({})


class ScopedKeyValueStore:
    def __init__(self, inner: KeyValueStore, namespace: str) -> None:
        self.inner = inner
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get(self, key: str) -> Optional[str]:
        return self.inner.get(self._key(key))

    def set(self, key: str, value: str) -> None:
        self.inner.set(self._key(key), value)

    def remove(self, key: str) -> None:
        self.inner.remove(self._key(key))

    def keys(self) -> List[str]:
        prefix = self._key("")
        return [k[len(prefix):] for k in self.inner.keys() if k.startswith(prefix)]

    def clear(self) -> None:
        for key in self.keys():
            self.remove(key)


def make_storage(path: Optional[str]) -> KeyValueStore:
    if path:
        return JsonFileKeyValueStore(path)
    return InMemoryKeyValueStore()


# ---------------------------
# Product repository
# ---------------------------
class ProductRepository(Protocol):
    def list(self) -> List[Product]: ...

    def get_by_id(self, product_id: str) -> Optional[Product]: ...

    def create(self, data: ProductCreateInput) -> Product: ...

    def update(self, product_id: str, data: ProductUpdateInput) -> Optional[Product]: ...

    def delete(self, product_id: str) -> bool: ...

    def bulk_create(self, items: Iterable[ProductCreateInput]) -> List[Product]: ...


class InMemoryProductRepository:
    def __init__(self, products: Optional[Iterable[Product]] = None) -> None:
        self._products: List[Product] = [p.model_copy(deep=True) for p in (products or [])]

    def list(self) -> List[Product]:
        return [p.model_copy(deep=True) for p in self._products]

    def get_by_id(self, product_id: str) -> Optional[Product]:
        for p in self._products:
            if p.id == product_id:
                return p.model_copy(deep=True)
        return None

    def create(self, data: ProductCreateInput) -> Product:
        product = _make_product(data)
        self._products.append(product)
        logger.info("created product %s (%s)", product.id, product.name)
        return product.model_copy(deep=True)

    def update(self, product_id: str, data: ProductUpdateInput) -> Optional[Product]:
        for idx, p in enumerate(self._products):
            if p.id == product_id:
                self._products[idx] = _apply_update(p, data)
                logger.info("updated product %s", product_id)
                return self._products[idx].model_copy(deep=True)
        return None

    def delete(self, product_id: str) -> bool:
        before = len(self._products)
        self._products = [p for p in self._products if p.id != product_id]
        deleted = len(self._products) < before
        if deleted:
            logger.info("deleted product %s", product_id)
        return deleted

    def bulk_create(self, items: Iterable[ProductCreateInput]) -> List[Product]:
        now = _now()
        created = [_make_product(item, now) for item in items]
        self._products.extend(created)
        logger.info("bulk imported %d products", len(created))
        return [p.model_copy(deep=True) for p in created]

    def reset(self, products: Iterable[Product]) -> None:
        self._products = [p.model_copy(deep=True) for p in products]


# ---------------------------
# Recent orders
# ---------------------------
class OrderRepository:
    def __init__(self, orders: Optional[Iterable[RecentOrder]] = None) -> None:
        self._orders: List[RecentOrder] = list(orders or [])

    def recent(self) -> List[RecentOrder]:
        return sorted(self._orders, key=lambda o: o.order_date, reverse=True)

    def add(self, data: OrderCreateInput) -> RecentOrder:
        order = RecentOrder(
            id=str(len(self._orders) + 1),
            order_date=_now(),
            **data.model_dump(),
        )
        self._orders.append(order)
        logger.info("recorded order %s for %s", order.id, order.customer_name)
        return order

    def reset(self, orders: Iterable[RecentOrder]) -> None:
        self._orders = list(orders)


# ---------------------------
# Demo data
# ---------------------------
def _utc(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


def seed_products() -> List[Product]:
    rows = [
        ("1", "Hand-crafted Prayer Rug", "129.99",
         "A beautifully hand-crafted prayer rug made from the finest materials. Features traditional Islamic geometric patterns with gold accents.",
         ["https://images.unsplash.com/photo-1584286595398-2483189ce673?auto=format&fit=crop&q=80",
          "https://images.unsplash.com/photo-1575369428451-eda9ae50a2e6?auto=format&fit=crop&q=80"],
         "Prayer Essentials", 15, True, _utc(2023, 1, 15)),
        ("2", "Premium Digital Quran", "249.99",
         "Digital Quran with beautiful recitation, translations, and tafsir. High-quality audio and elegant design.",
         ["https://images.unsplash.com/photo-1609599006353-e629aaabeb38?auto=format&fit=crop&q=80",
          "https://images.unsplash.com/photo-1619373512888-6d8aa4bf60fa?auto=format&fit=crop&q=80"],
         "Islamic Literature", 8, True, _utc(2023, 2, 10)),
        ("3", "Traditional Attar Set", "79.99",
         "Set of 5 premium alcohol-free attars in elegant glass bottles. Includes musk, oud, amber, rose, and jasmine scents.",
         ["https://images.unsplash.com/photo-1623491355342-a521abb3e86f?auto=format&fit=crop&q=80"],
         "Personal Care", 20, False, _utc(2023, 3, 5)),
        ("4", "Elegant Hijab - Emerald", "34.99",
         "Premium quality hijab made from breathable fabric. Elegant emerald color with subtle pattern.",
         ["https://images.unsplash.com/photo-1607868894064-2b6e7ed1b324?auto=format&fit=crop&q=80"],
         "Clothing", 30, False, _utc(2023, 3, 20)),
        ("5", "Islamic Calligraphy Art", "199.99",
         "Beautiful hand-made Islamic calligraphy art piece. Perfect for decorating your home or as a gift.",
         ["https://images.unsplash.com/photo-1618076516180-c15281f0c885?auto=format&fit=crop&q=80"],
         "Home Decor", 5, True, _utc(2023, 4, 12)),
    ]
    return [
        Product(id=pid, name=name, price=price, description=desc, images=images,
                category=category, stock=stock, featured=featured,
                created_at=created, updated_at=created)
        for pid, name, price, desc, images, category, stock, featured, created in rows
    ]


def seed_orders() -> List[RecentOrder]:
    return [
        RecentOrder(id="1", customer_name="Ahmad Rizki",
                    product_names=["Sajadah Premium Handmade", "Kurma Ajwa Premium 1kg"],
                    location="Jakarta", payment_method="Transfer", order_date=_utc(2023, 6, 10)),
        RecentOrder(id="2", customer_name="Siti Aisyah",
                    product_names=["Air Zam-zam Asli 1L"],
                    location="Surabaya", payment_method="COD", order_date=_utc(2023, 6, 12)),
        RecentOrder(id="3", customer_name="Muhammad Faisal",
                    product_names=["Paket Parfum Attar Arabian", "Jilbab Elegant - Hijau Zamrud"],
                    location="Bandung", payment_method="Transfer", order_date=_utc(2023, 6, 15)),
    ]


# ---------------------------
# Default instances used by the API
# ---------------------------
PRODUCTS = InMemoryProductRepository(seed_products())
ORDERS = OrderRepository(seed_orders())
STORAGE: KeyValueStore = make_storage(settings.storage_path)
