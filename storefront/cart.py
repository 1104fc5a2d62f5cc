"""
Client-side cart state.

A ``CartStore`` owns an ordered list of ``CartLine`` objects, one per product
id, and writes itself to a key-value store after every change. Lines hold a
snapshot of the product taken when it was first added; later catalog edits
do not reach into the cart.

Storage problems never break the cart: a failed save is logged and the
in-memory state stays authoritative.
"""

import json
import logging
from decimal import Decimal
from typing import Iterator, List, Optional

from pydantic import TypeAdapter, ValidationError

from .database import KeyValueStore, StorageError
from .models import CartLine, Product

logger = logging.getLogger(__name__)

_LINES = TypeAdapter(List[CartLine])


class CartStore:
    def __init__(self, storage: KeyValueStore, key: str = "cart") -> None:
        self.storage = storage
        self.key = key
        self.last_save_failed = False
        self._lines: List[CartLine] = self._load()

    # ---------------------------
    # Persistence
    # ---------------------------
    def _load(self) -> List[CartLine]:
        try:
            raw = self.storage.get(self.key)
        except StorageError as e:
            logger.error("Failed to read cart from storage: %s", e)
            return []
        if not raw:
            return []
        try:
            lines = _LINES.validate_json(raw)
        except ValidationError as e:
            logger.error("Failed to parse cart from storage: %s", e)
            return []
        # merge duplicates a hand-edited payload may carry
        merged: List[CartLine] = []
        for line in lines:
            existing = self._find(line.product.id, merged)
            if existing is not None:
                existing.quantity += line.quantity
            else:
                merged.append(line)
        return merged

    def _save(self) -> None:
        payload = json.dumps([line.model_dump(mode="json") for line in self._lines])
        try:
            self.storage.set(self.key, payload)
        except (StorageError, OSError) as e:
            self.last_save_failed = True
            logger.warning("Cart kept in memory only, save failed: %s", e)
        else:
            self.last_save_failed = False

    # ---------------------------
    # Read access
    # ---------------------------
    @staticmethod
    def _find(product_id: str, lines: List[CartLine]) -> Optional[CartLine]:
        for line in lines:
            if line.product.id == product_id:
                return line
        return None

    @property
    def lines(self) -> List[CartLine]:
        return [line.model_copy(deep=True) for line in self._lines]

    def get_line(self, product_id: str) -> Optional[CartLine]:
        line = self._find(product_id, self._lines)
        return line.model_copy(deep=True) if line else None

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self) -> Iterator[CartLine]:
        return iter(self.lines)

    # ---------------------------
    # Operations
    # ---------------------------
    def add_to_cart(self, product: Product, quantity: int = 1) -> None:
        if quantity < 1:
            logger.debug("add_to_cart quantity %s clamped to 1", quantity)
            quantity = 1
        line = self._find(product.id, self._lines)
        if line is not None:
            line.quantity += quantity
        else:
            self._lines.append(CartLine(product=product.model_copy(deep=True), quantity=quantity))
        self._save()

    def remove_from_cart(self, product_id: str) -> None:
        before = len(self._lines)
        self._lines = [line for line in self._lines if line.product.id != product_id]
        if len(self._lines) != before:
            self._save()

    def update_quantity(self, product_id: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove_from_cart(product_id)
            return
        line = self._find(product_id, self._lines)
        if line is None:
            return
        line.quantity = quantity
        self._save()

    def clear_cart(self) -> None:
        self._lines = []
        self._save()

    def calculate_total(self) -> Decimal:
        return sum((line.line_total for line in self._lines), Decimal("0"))

    def get_cart_item_count(self) -> int:
        return sum(line.quantity for line in self._lines)
