"""
Catalog query engine: filter -> search -> sort over an in-memory product list.

Every predicate is optional and all of them are ANDed. The input list is
never mutated; callers always get a new list back.
"""

import unicodedata
from decimal import ROUND_CEILING, Decimal
from typing import Callable, Iterable, List, Optional, Tuple

from .core import ProductFilterOptions
from .models import Product


def _name_key(product: Product) -> Tuple[str, str]:
    # accent- and case-insensitive first, lowercase before uppercase on ties
    decomposed = unicodedata.normalize("NFKD", product.name)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base.casefold(), product.name.swapcase()


_SORT_KEYS: dict = {
    "price": lambda p: p.price,
    "name": _name_key,
    "createdAt": lambda p: p.created_at,
}


def _matches_search(product: Product, term: str) -> bool:
    return (
        term in product.name.lower()
        or term in product.description.lower()
        or term in product.category.lower()
    )


def filter_products(
    products: Iterable[Product],
    options: Optional[ProductFilterOptions] = None,
) -> List[Product]:
    options = options or ProductFilterOptions()
    out = list(products)

    if options.category:
        out = [p for p in out if p.category == options.category]

    if options.min_price is not None:
        out = [p for p in out if p.price >= options.min_price]

    if options.max_price is not None:
        out = [p for p in out if p.price <= options.max_price]

    if options.featured is not None:
        out = [p for p in out if p.featured == options.featured]

    if options.search:
        term = options.search.lower()
        out = [p for p in out if _matches_search(p, term)]

    if options.sort_by:
        key: Callable = _SORT_KEYS[options.sort_by]
        # sorted() stays stable with reverse=True
        out = sorted(out, key=key, reverse=options.sort_order == "desc")

    return out


def list_categories(products: Iterable[Product]) -> List[str]:
    """Distinct categories in the order they first appear."""
    seen: List[str] = []
    for p in products:
        if p.category not in seen:
            seen.append(p.category)
    return seen


def price_ceiling(products: Iterable[Product], step: int = 100) -> Decimal:
    """Highest price rounded up to a multiple of ``step``; used as the default upper price bound."""
    prices = [p.price for p in products]
    if not prices:
        return Decimal(0)
    steps = (max(prices) / step).to_integral_value(rounding=ROUND_CEILING)
    return steps * step
