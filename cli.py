# cli.py
import sys
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.prompt import IntPrompt, Confirm, Prompt
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.text import Text
from rich import box

from prompt_toolkit import prompt
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.styles import Style as PromptStyle

from sdk.pystore import StoreClient
from storefront.checkout import PROVINCES, format_rupiah
from storefront.config import settings

console = Console()
c = StoreClient(base_url=settings.api_url)


# Global state for status messages and caching
status_message = "Ready"
product_cache: List[Dict[str, Any]] = []
category_cache: List[str] = []

# Custom prompt style for prompt_toolkit
custom_style = PromptStyle.from_dict({
    'completion-menu.completion': 'bg:#008888 #ffffff',
    'completion-menu.completion.current': 'bg:#00aaaa #000000',
    'scrollbar.background': 'bg:#88aaaa',
    'scrollbar.button': 'bg:#222222',
})


def rp(amount: Any) -> str:
    return format_rupiah(Decimal(str(amount)), settings.idr_rate)


# ---------------------------
# Display helpers
# ---------------------------
def show_products(products: List[Dict[str, Any]]):
    if not products:
        console.print("[italic yellow]No products found[/italic yellow]")
        return

    table = Table(
        title="📦 Products Catalog",
        box=box.ROUNDED,
        header_style="bold cyan",
        title_style="bold magenta",
        show_lines=True
    )
    table.add_column("ID", style="dim", width=12)
    table.add_column("Name", style="bold", width=26)
    table.add_column("Price", justify="right", width=14)
    table.add_column("Stock", justify="right", width=6)
    table.add_column("Category", width=18)
    table.add_column("★", justify="center", width=3)

    for p in products:
        table.add_row(
            p.get("id", "N/A")[:12],
            p.get("name", "N/A"),
            rp(p.get("price", 0)),
            str(p.get("stock", 0)),
            p.get("category", "N/A"),
            "★" if p.get("featured") else "",
        )
    console.print(table)


def show_cart(cart: Dict[str, Any]):
    if not cart:
        console.print("[italic yellow]No cart data[/italic yellow]")
        return

    title = Text()
    title.append("🛒 Shopping Cart - ", style="bold")
    title.append(f"{cart.get('item_count', 0)} item(s)", style="bold cyan")
    title.append(f" - Total: {rp(cart.get('total', 0))}", style="bold green")

    items = cart.get("items", [])
    if not items:
        console.print(Panel("Your cart is empty 🛍️", title=title, style="blue"))
        return

    table = Table(box=box.ROUNDED, header_style="bold blue", show_lines=True)
    table.add_column("Product", style="bold", width=30)
    table.add_column("Qty", justify="right", width=8)
    table.add_column("Price", justify="right", width=14)
    table.add_column("Subtotal", justify="right", width=14)

    for it in items:
        product = it.get("product") or {}
        table.add_row(
            product.get("name", "Unknown"),
            str(it.get("quantity", 0)),
            rp(product.get("price", 0)),
            rp(it.get("line_total", 0)),
        )

    console.print(Panel(table, title=title, border_style="blue"))
    if not cart.get("persisted", True):
        console.print("[yellow]Cart could not be saved; it is kept in memory only.[/yellow]")


def show_orders(orders: List[Dict[str, Any]]):
    if not orders:
        console.print("[italic yellow]No orders found[/italic yellow]")
        return

    table = Table(
        title="📋 Recent Orders",
        box=box.ROUNDED,
        header_style="bold yellow",
        title_style="bold yellow",
        show_lines=True
    )
    table.add_column("Order", style="dim", width=6)
    table.add_column("Customer", width=20)
    table.add_column("Products", width=40)
    table.add_column("Location", width=14)
    table.add_column("Payment", width=14)
    table.add_column("Date", width=12)

    for order in orders:
        names = order.get("product_names", [])
        summary = ", ".join(names[:3])
        if len(names) > 3:
            summary += f" +{len(names) - 3} more"
        table.add_row(
            order.get("id", "N/A"),
            order.get("customer_name", "N/A"),
            summary or "No items",
            order.get("location", ""),
            order.get("payment_method", ""),
            str(order.get("order_date", ""))[:10],
        )

    console.print(table)


def show_status(message: str, is_success: bool = True):
    style = "green" if is_success else "red"
    return Panel.fit(f"[{style}]{message}[/{style}]", title="Status")


# ---------------------------
# API wrapper with exception handling
# ---------------------------
def try_api(fn, *args, success_msg: Optional[str] = None, **kwargs):
    """
    Calls fn(*args, **kwargs) behind a spinner.
    Errors are shown in a status panel and turned into a None result.
    """
    global status_message
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
        ) as progress:
            progress.add_task(description="Processing...", total=None)
            result = fn(*args, **kwargs)

        if success_msg:
            status_message = success_msg
            console.print(show_status(success_msg, True))
        return result
    except Exception as e:
        status_message = f"Error: {e}"
        console.print(show_status(f"Error: {e}", False))
        return None


# ---------------------------
# Autocompletion helpers
# ---------------------------
def get_product_completer():
    global product_cache
    if not product_cache:
        product_cache = try_api(c.list_products) or []
    ids = [p.get("id", "") for p in product_cache]
    return WordCompleter([i for i in ids if i], ignore_case=True)


def get_category_completer():
    global category_cache
    if not category_cache:
        category_cache = try_api(c.list_categories) or []
    return WordCompleter(category_cache, ignore_case=True, sentence=True)


# ---------------------------
# Layout and Header
# ---------------------------
def create_header():
    header = Table(show_header=False, box=box.ROUNDED)
    header.add_column("left", width=30)
    header.add_column("center", width=40)
    header.add_column("right", width=30)

    now = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    header.add_row(
        "🛍️ Storefront",
        "[bold blue]Catalog, Cart & WhatsApp Checkout[/bold blue]",
        f"[dim]{now}[/dim]"
    )
    return Panel(header, style="bold blue")


# ---------------------------
# Input helpers with autocomplete
# ---------------------------
def prompt_with_autocomplete(message: str, completer=None, default: str = ""):
    return prompt(f"{message} ", completer=completer, style=custom_style, default=default)


def ask_decimal(message: str, default: Optional[str] = None) -> Optional[Decimal]:
    while True:
        raw = Prompt.ask(message, default=default or "")
        if not raw:
            return None
        try:
            return Decimal(raw)
        except ArithmeticError:
            console.print("[red]Please enter a valid number.[/red]")


def ask_filters() -> Dict[str, Any]:
    filters: Dict[str, Any] = {}
    category = prompt_with_autocomplete("🏷️ Category (blank for all)", completer=get_category_completer()).strip()
    if category:
        filters["category"] = category
    min_price = ask_decimal("Min price (blank for none)")
    if min_price is not None:
        filters["min_price"] = min_price
    bounds = try_api(c.price_range) or {}
    max_price = ask_decimal(f"Max price (blank for none, catalog tops out at {bounds.get('max_price', '?')})")
    if max_price is not None:
        filters["max_price"] = max_price
    if Confirm.ask("Only featured products?", default=False):
        filters["featured"] = True
    sort = Prompt.ask("Sort", choices=["none", "price-asc", "price-desc", "name-asc", "name-desc", "createdAt-asc", "createdAt-desc"], default="createdAt-desc")
    if sort != "none":
        filters["sort_by"], filters["sort_order"] = sort.split("-")
    return filters


def ask_checkout_form() -> Dict[str, Any]:
    form = {
        "customer_name": Prompt.ask("Nama"),
        "phone": Prompt.ask("No HP"),
        "province": prompt_with_autocomplete("Provinsi", completer=WordCompleter(PROVINCES, ignore_case=True, sentence=True)),
        "city": Prompt.ask("Kota"),
        "postal_code": Prompt.ask("Kode pos"),
        "address": Prompt.ask("Alamat lengkap"),
        "payment_method": Prompt.ask("Metode pembayaran", choices=["tf", "cod"], default="tf"),
    }
    notes = Prompt.ask("Catatan (optional)", default="")
    if notes:
        form["notes"] = notes
    return form


def ensure_admin() -> bool:
    if c.admin_token:
        return True
    username = Prompt.ask("Admin username")
    password = Prompt.ask("Admin password", password=True)
    ok = try_api(c.login, username, password)
    if not ok:
        console.print(show_status("Invalid admin credentials", False))
        return False
    console.print(show_status("Logged in as admin", True))
    return True


# ---------------------------
# Main menu
# ---------------------------
def menu():
    global status_message, product_cache, category_cache

    console.clear()
    console.print(create_header())

    # Preload products for autocomplete
    product_cache = try_api(c.list_products) or []

    while True:
        if status_message:
            console.print(show_status(status_message, "Error" not in status_message))

        menu_table = Table.grid(padding=(0, 2))
        menu_table.add_column("Key", style="bold cyan", width=4)
        menu_table.add_column("Option", width=30)
        menu_table.add_column("Key", style="bold cyan", width=4)
        menu_table.add_column("Option", width=30)

        options = [
            ("1", "📦 Browse products", "9", "✅ Checkout via WhatsApp"),
            ("2", "🔍 Search products", "10", "📋 Recent orders"),
            ("3", "ℹ️ Product details", "11", "➕ Admin: new product"),
            ("4", "🏷️ Categories", "12", "✏️ Admin: edit product"),
            ("5", "🛒 Add to cart", "13", "🗑️ Admin: delete product"),
            ("6", "🔢 Change quantity", "14", "📥 Admin: import Excel"),
            ("7", "➖ Remove from cart", "15", "📤 Admin: export Excel"),
            ("8", "🛒 View cart", "16", "🔄 Reset store"),
            ("", "", "q", "👋 Quit")
        ]

        for row in options:
            menu_table.add_row(*row)

        console.print(Panel(menu_table, title="📋 Menu", border_style="yellow"))

        choice = prompt_with_autocomplete(
            "\nChoose an option",
            completer=WordCompleter([str(i) for i in range(1, 17)] + ["q", "quit", "exit"])
        ).strip()

        if choice == "1":
            filters = ask_filters()
            products = try_api(c.list_products, success_msg="Products loaded successfully", **filters)
            if products is not None:
                show_products(products)

        elif choice == "2":
            term = prompt_with_autocomplete("Enter search term")
            res = try_api(c.search_products, term, success_msg=f"Search for '{term}' completed")
            if res is not None:
                show_products(res)

        elif choice == "3":
            pid = prompt_with_autocomplete("Enter product ID", completer=get_product_completer())
            resp = try_api(c.get_product, pid, success_msg=f"Product {pid} details loaded")
            if resp:
                show_products([resp])
                console.print(Panel(resp.get("description", ""), title=resp.get("name", "")))

        elif choice == "4":
            category_cache = try_api(c.list_categories, success_msg="Categories loaded") or []
            for name in category_cache:
                console.print(f"  • {name}")

        elif choice == "5":
            pid = prompt_with_autocomplete("Enter product ID", completer=get_product_completer())
            qty = IntPrompt.ask("Enter quantity", default=1)
            resp = try_api(c.add_to_cart, pid, qty, success_msg=f"Added {qty} of product {pid} to cart")
            if resp is not None:
                show_cart(resp)

        elif choice == "6":
            pid = prompt_with_autocomplete("Enter product ID", completer=get_product_completer())
            qty = IntPrompt.ask("New quantity (0 removes the item)", default=1)
            resp = try_api(c.update_quantity, pid, qty, success_msg=f"Quantity of {pid} set to {qty}")
            if resp is not None:
                show_cart(resp)

        elif choice == "7":
            pid = prompt_with_autocomplete("Enter product ID", completer=get_product_completer())
            resp = try_api(c.remove_from_cart, pid, success_msg=f"Product {pid} removed from cart")
            if resp is not None:
                show_cart(resp)

        elif choice == "8":
            resp = try_api(c.view_cart, success_msg="Cart loaded")
            if resp:
                show_cart(resp)

        elif choice == "9":
            cart_view = try_api(c.view_cart)
            if not cart_view or not cart_view.get("items"):
                console.print("[italic yellow]Your cart is empty 🛍️[/italic yellow]")
                continue
            show_cart(cart_view)
            resp = try_api(c.checkout, ask_checkout_form())
            if isinstance(resp, dict) and "whatsapp_url" in resp:
                console.print(Panel.fit(
                    f"[green]Order recorded![/green]\n"
                    f"Total: [bold]{rp(resp.get('total', 0))}[/bold]\n\n"
                    f"Open this link to confirm via WhatsApp:\n[link]{resp['whatsapp_url']}[/link]",
                    title="✅ Order Confirmation"
                ))
            elif resp is not None:
                console.print(Panel.fit(f"[red]Checkout failed:[/red] {resp.get('detail', resp)}", title="❌ Checkout Failed"))

        elif choice == "10":
            orders = try_api(c.recent_orders, success_msg="Recent orders loaded")
            if orders is not None:
                show_orders(orders)

        elif choice == "11":
            if not ensure_admin():
                continue
            name = prompt_with_autocomplete("Enter product name")
            price = ask_decimal("💰 Price", default="10")
            stock = IntPrompt.ask("📦 Stock", default=1)
            category = prompt_with_autocomplete("🏷️ Category", completer=get_category_completer())
            description = Prompt.ask("Description", default="")
            images = [u.strip() for u in Prompt.ask("Image URLs (comma separated)", default="").split(",") if u.strip()]
            featured = Confirm.ask("Featured?", default=False)
            resp = try_api(
                c.create_product, name, price, stock, category, description, images, featured,
                success_msg=f"Product '{name}' created successfully"
            )
            if resp:
                console.print(Panel(f"Created product: [green]{resp['id']}[/green]"))
                product_cache = try_api(c.list_products) or []
                category_cache = []

        elif choice == "12":
            if not ensure_admin():
                continue
            pid = prompt_with_autocomplete("Enter product ID", completer=get_product_completer())
            current = try_api(c.get_product, pid)
            if not current:
                continue
            changes: Dict[str, Any] = {}
            name = Prompt.ask("Name", default=current["name"])
            if name != current["name"]:
                changes["name"] = name
            price = ask_decimal("Price", default=str(current["price"]))
            if price is not None and price != Decimal(str(current["price"])):
                changes["price"] = price
            stock = IntPrompt.ask("Stock", default=current["stock"])
            if stock != current["stock"]:
                changes["stock"] = stock
            featured = Confirm.ask("Featured?", default=current["featured"])
            if featured != current["featured"]:
                changes["featured"] = featured
            resp = try_api(c.update_product, pid, success_msg=f"Product {pid} updated", **changes)
            if resp:
                show_products([resp])
                product_cache = []

        elif choice == "13":
            if not ensure_admin():
                continue
            pid = prompt_with_autocomplete("Enter product ID", completer=get_product_completer())
            if Confirm.ask(f"[red]Delete product {pid}?[/red]"):
                try_api(c.delete_product, pid, success_msg=f"Product {pid} deleted")
                product_cache = []
                category_cache = []

        elif choice == "14":
            if not ensure_admin():
                continue
            path = prompt_with_autocomplete("Path to .xlsx file")
            resp = try_api(c.import_products, path)
            if isinstance(resp, dict) and "imported" in resp:
                console.print(show_status(f"Imported {resp['imported']} products", True))
                product_cache = []
                category_cache = []
            elif isinstance(resp, dict):
                table = Table(title="Import errors", box=box.ROUNDED, header_style="bold red")
                table.add_column("Row", justify="right")
                table.add_column("Message")
                detail = resp.get("detail", [])
                if isinstance(detail, list):
                    for err in detail:
                        table.add_row(str(err.get("row", "?")), err.get("message", str(err)))
                    console.print(table)
                else:
                    console.print(show_status(str(detail), False))

        elif choice == "15":
            if not ensure_admin():
                continue
            if Confirm.ask("Export an empty import template instead of the catalog?", default=False):
                dest = try_api(c.export_template, success_msg="Template exported")
            else:
                dest = try_api(c.export_products, success_msg="Catalog exported")
            if dest:
                console.print(f"Saved to [bold]{dest}[/bold]")

        elif choice == "16":
            if Confirm.ask("[red]This will restore the demo catalog and clear carts. Continue?[/red]"):
                resp = try_api(c.reset, success_msg="Store reset successfully")
                console.print(resp)
                product_cache = []
                category_cache = []
                c.admin_token = None

        elif choice.lower() in ("q", "quit", "exit"):
            if Confirm.ask("Are you sure you want to quit?"):
                console.print(Panel.fit("[bold green]Terima kasih! 👋[/bold green]", title="Goodbye"))
                sys.exit(0)

        console.print()
        console.rule(style="dim")


if __name__ == "__main__":
    try:
        menu()
    except KeyboardInterrupt:
        console.print("\n\n[bold red]Interrupted by user[/bold red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n\n[bold red]Unexpected error: {e}[/bold red]")
        sys.exit(1)
