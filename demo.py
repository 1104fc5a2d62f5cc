#!/usr/bin/env python
import asyncio

from sdk.pystore import StoreClient
from storefront.config import settings


def main():
    c = StoreClient(base_url=settings.api_url)

    # -----------------------------
    # Reset everything for demo
    # -----------------------------
    print("Resetting store...")
    c.reset()

    # -----------------------------
    # Browse the catalog
    # -----------------------------
    print("\nFeatured products, cheapest first...")
    featured = c.list_products(featured=True, sort_by="price", sort_order="asc")
    for p in featured:
        print(f"  {p['id']}  {p['name']}  {p['price']}")

    print("\nCategories...")
    categories = c.list_categories()
    print(categories)

    print("\nBrowsing every category at once...")
    by_category = asyncio.run(c.products_by_category_async(categories))
    for category, products in by_category.items():
        print(f"  {category}: {len(products)} product(s)")

    print("\nPrice filter bounds...")
    print(c.price_range())

    print("\nSearching for 'attar'...")
    print([p["name"] for p in c.search_products("attar")])

    # -----------------------------
    # Admin adds a product
    # -----------------------------
    print("\nLogging in as admin and adding a product...")
    c.login(settings.admin_username, settings.admin_password)
    dates = c.create_product("Kurma Ajwa Premium 1kg", 24.5, 40, "Food", "Premium Ajwa dates from Madinah.")
    print(dates)

    # -----------------------------
    # Fill the cart
    # -----------------------------
    print("\nAdding products to cart...")
    c.add_to_cart(featured[0]["id"], 2)
    c.add_to_cart(dates["id"], 1)
    c.add_to_cart(dates["id"], 2)
    print(c.view_cart())

    print("\nDropping the first item to quantity 1...")
    print(c.update_quantity(featured[0]["id"], 1))

    # -----------------------------
    # Checkout via WhatsApp
    # -----------------------------
    print("\nChecking out...")
    result = c.checkout({
        "customer_name": "Ahmad Rizki",
        "phone": "081234567890",
        "province": "DKI Jakarta",
        "city": "Jakarta Selatan",
        "postal_code": "12345",
        "address": "Jl. Kemang Raya No. 10",
        "payment_method": "tf",
    })
    print(result["message"])
    print(result["whatsapp_url"])

    # -----------------------------
    # Recent orders
    # -----------------------------
    print("\nRecent orders...")
    for order in c.recent_orders():
        print(f"  #{order['id']} {order['customer_name']} ({order['location']}): {', '.join(order['product_names'])}")


if __name__ == "__main__":
    main()
