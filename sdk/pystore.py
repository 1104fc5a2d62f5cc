# sdk/pystore.py
import asyncio
import uuid
from typing import Any, Dict, Iterable, List, Optional

import httpx
import requests
from rich import print


class StoreClient:
    def __init__(self, base_url: str = "http://localhost:8085", session_id: Optional[str] = None, timeout: int = 10,
                 async_transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.session = requests.Session()
        self.timeout = timeout
        self.session_id = session_id or uuid.uuid4().hex
        self.admin_token: Optional[str] = None
        self.async_transport = async_transport

    def reset(self):
        return self.session.post(f"{self.base_url}/reset", timeout=self.timeout).json()

    def _admin_headers(self) -> Dict[str, str]:
        return {"X-Admin-Token": self.admin_token} if self.admin_token else {}

    # -----------------------
    # Catalog
    # -----------------------
    def list_products(
        self,
        category: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        featured: Optional[bool] = None,
        search: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
    ):
        params: Dict[str, Any] = {}
        if category:
            params["category"] = category
        if min_price is not None:
            params["min_price"] = min_price
        if max_price is not None:
            params["max_price"] = max_price
        if featured is not None:
            params["featured"] = "true" if featured else "false"
        if search:
            params["search"] = search
        if sort_by:
            params["sort_by"] = sort_by
        if sort_order:
            params["sort_order"] = sort_order
        r = self.session.get(f"{self.base_url}/products", params=params, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def search_products(self, term: str):
        return self.list_products(search=term)

    def get_product(self, product_id: str):
        r = self.session.get(f"{self.base_url}/products/{product_id}", timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def list_categories(self):
        r = self.session.get(f"{self.base_url}/products/categories", timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def price_range(self):
        r = self.session.get(f"{self.base_url}/products/price-range", timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def _async_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.async_transport)

    async def list_products_async(self, client: Optional[httpx.AsyncClient] = None, **params):
        if client is None:
            async with self._async_client() as client:
                return await self.list_products_async(client, **params)
        r = await client.get(f"{self.base_url}/products", params=params)
        r.raise_for_status()
        return r.json()

    async def products_by_category_async(self, categories: Iterable[str]) -> Dict[str, List[dict]]:
        categories = list(categories)
        async with self._async_client() as client:
            pages = await asyncio.gather(*(self.list_products_async(client, category=cat) for cat in categories))
        return dict(zip(categories, pages))

    # -----------------------
    # Admin
    # -----------------------
    def login(self, username: str, password: str) -> bool:
        r = self.session.post(f"{self.base_url}/admin/login", json={"username": username, "password": password}, timeout=self.timeout)
        if r.status_code == 401:
            return False
        r.raise_for_status()
        self.admin_token = r.json()["token"]
        return True

    def logout(self):
        r = self.session.post(f"{self.base_url}/admin/logout", headers=self._admin_headers(), timeout=self.timeout)
        self.admin_token = None
        return r.json()

    def create_product(self, name: str, price: float, stock: int, category: str,
                       description: str = "", images: Optional[list] = None, featured: bool = False):
        payload = {
            "name": name, "price": str(price), "stock": stock, "category": category,
            "description": description, "images": images or [], "featured": featured,
        }
        r = self.session.post(f"{self.base_url}/admin/products", json=payload, headers=self._admin_headers(), timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def update_product(self, product_id: str, **changes):
        if "price" in changes and changes["price"] is not None:
            changes["price"] = str(changes["price"])
        r = self.session.put(f"{self.base_url}/admin/products/{product_id}", json=changes, headers=self._admin_headers(), timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def delete_product(self, product_id: str):
        r = self.session.delete(f"{self.base_url}/admin/products/{product_id}", headers=self._admin_headers(), timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def import_products(self, path: str):
        with open(path, "rb") as fh:
            files = {"file": (path, fh, "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")}
            r = self.session.post(f"{self.base_url}/admin/products/import", files=files, headers=self._admin_headers(), timeout=self.timeout)
        # 422 carries row-level errors the caller wants to show
        if r.status_code == 422:
            return r.json()
        r.raise_for_status()
        return r.json()

    def _download(self, path: str, dest: str) -> str:
        r = self.session.get(f"{self.base_url}{path}", headers=self._admin_headers(), timeout=self.timeout)
        r.raise_for_status()
        with open(dest, "wb") as fh:
            fh.write(r.content)
        return dest

    def export_products(self, dest: str = "products_export.xlsx") -> str:
        return self._download("/admin/products/export", dest)

    def export_template(self, dest: str = "product_import_template.xlsx") -> str:
        return self._download("/admin/products/template", dest)

    # -----------------------
    # Cart
    # -----------------------
    def add_to_cart(self, product_id: str, quantity: int = 1):
        r = self.session.post(f"{self.base_url}/cart/{self.session_id}/add", json={
            "product_id": product_id, "quantity": quantity
        }, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def update_quantity(self, product_id: str, quantity: int):
        r = self.session.post(f"{self.base_url}/cart/{self.session_id}/update", json={
            "product_id": product_id, "quantity": int(quantity)
        }, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def remove_from_cart(self, product_id: str):
        r = self.session.post(f"{self.base_url}/cart/{self.session_id}/remove", json={"product_id": product_id}, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def clear_cart(self):
        r = self.session.post(f"{self.base_url}/cart/{self.session_id}/clear", timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def view_cart(self):
        r = self.session.get(f"{self.base_url}/cart/{self.session_id}", timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    # -----------------------
    # Checkout / orders
    # -----------------------
    def checkout(self, form: Dict[str, Any]):
        r = self.session.post(f"{self.base_url}/cart/{self.session_id}/checkout", json=form, timeout=self.timeout)
        # 400/422 bodies carry the detail callers show to the user
        if r.status_code in (400, 422):
            return r.json()
        r.raise_for_status()
        return r.json()

    def recent_orders(self):
        r = self.session.get(f"{self.base_url}/orders/recent", timeout=self.timeout)
        r.raise_for_status()
        return r.json()


if __name__ == "__main__":
    import argparse
    import os

    parser = argparse.ArgumentParser(description="Storefront CLI")
    parser.add_argument("--url", default=os.getenv("STOREFRONT_API_URL", "http://127.0.0.1:8085"))
    parser.add_argument("--session", help="Cart session id (a new one is generated if omitted)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # ---------------------------
    # Product commands
    # ---------------------------
    lp = subparsers.add_parser("list-products", help="List products")
    lp.add_argument("--category", help="Exact category")
    lp.add_argument("--min-price", type=float)
    lp.add_argument("--max-price", type=float)
    lp.add_argument("--featured", action="store_true", help="Only featured products")
    lp.add_argument("--search", help="Search name, description and category")
    lp.add_argument("--sort-by", choices=["price", "name", "createdAt"])
    lp.add_argument("--sort-order", choices=["asc", "desc"])

    gp = subparsers.add_parser("get-product", help="Get a product by its ID")
    gp.add_argument("--product-id", required=True)

    subparsers.add_parser("categories", help="List categories")
    subparsers.add_parser("price-range", help="Show the price filter bounds")

    # ---------------------------
    # Cart commands
    # ---------------------------
    add = subparsers.add_parser("add-to-cart", help="Add product to cart")
    add.add_argument("--product-id", required=True)
    add.add_argument("--qty", type=int, default=1)

    up = subparsers.add_parser("update-quantity", help="Set a cart line quantity (0 removes it)")
    up.add_argument("--product-id", required=True)
    up.add_argument("--qty", type=int, required=True)

    rm = subparsers.add_parser("remove-from-cart", help="Remove product from cart")
    rm.add_argument("--product-id", required=True)

    subparsers.add_parser("view-cart", help="View cart contents")
    subparsers.add_parser("recent-orders", help="List recent orders")

    args = parser.parse_args()
    c = StoreClient(base_url=args.url, session_id=args.session)

    if args.command == "list-products":
        print(c.list_products(
            category=args.category, min_price=args.min_price, max_price=args.max_price,
            featured=True if args.featured else None, search=args.search,
            sort_by=args.sort_by, sort_order=args.sort_order,
        ))
    elif args.command == "get-product":
        print(c.get_product(args.product_id))
    elif args.command == "categories":
        print(c.list_categories())
    elif args.command == "price-range":
        print(c.price_range())
    elif args.command == "add-to-cart":
        print(c.add_to_cart(args.product_id, args.qty))
    elif args.command == "update-quantity":
        print(c.update_quantity(args.product_id, args.qty))
    elif args.command == "remove-from-cart":
        print(c.remove_from_cart(args.product_id))
    elif args.command == "view-cart":
        print(c.view_cart())
    elif args.command == "recent-orders":
        print(c.recent_orders())
