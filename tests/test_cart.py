# tests/test_cart.py
from datetime import datetime, timezone
from decimal import Decimal

from storefront.cart import CartStore
from storefront.database import InMemoryKeyValueStore, StorageError
from storefront.models import Product

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _product(pid, price, stock=10):
    return Product(id=pid, name=f"Product {pid}", price=Decimal(price), stock=stock,
                   created_at=NOW, updated_at=NOW)


class FailingStore(InMemoryKeyValueStore):
    def set(self, key, value):
        raise StorageError("quota exceeded")


def new_cart():
    return CartStore(InMemoryKeyValueStore())


def test_repeated_add_merges_into_one_line():
    cart = new_cart()
    p = _product("p", "10")
    cart.add_to_cart(p, 2)
    cart.add_to_cart(p, 3)
    assert len(cart) == 1
    assert cart.get_line("p").quantity == 5


def test_default_quantity_is_one_and_order_is_first_add():
    cart = new_cart()
    a, b = _product("a", "1"), _product("b", "2")
    cart.add_to_cart(a)
    cart.add_to_cart(b)
    cart.add_to_cart(a)
    assert [line.product.id for line in cart.lines] == ["a", "b"]
    assert [line.quantity for line in cart.lines] == [2, 1]


def test_non_positive_add_is_clamped_to_one():
    cart = new_cart()
    cart.add_to_cart(_product("p", "10"), 0)
    assert cart.get_line("p").quantity == 1


def test_add_does_not_clamp_to_stock():
    cart = new_cart()
    cart.add_to_cart(_product("p", "10", stock=2), 5)
    assert cart.get_cart_item_count() == 5


def test_update_quantity_replaces_value():
    cart = new_cart()
    cart.add_to_cart(_product("p", "10"), 4)
    cart.update_quantity("p", 2)
    assert cart.get_line("p").quantity == 2


def test_update_quantity_zero_removes_line():
    cart = new_cart()
    cart.add_to_cart(_product("p", "10"), 4)
    cart.add_to_cart(_product("q", "1"), 1)
    cart.update_quantity("p", 0)
    assert cart.get_line("p") is None
    assert cart.get_cart_item_count() == 1


def test_update_quantity_negative_removes_line():
    cart = new_cart()
    cart.add_to_cart(_product("p", "10"))
    cart.update_quantity("p", -3)
    assert len(cart) == 0


def test_missing_ids_are_no_ops():
    cart = new_cart()
    cart.add_to_cart(_product("p", "10"), 2)
    cart.update_quantity("missing", 7)
    cart.remove_from_cart("missing")
    assert [(line.product.id, line.quantity) for line in cart] == [("p", 2)]


def test_remove_from_cart():
    cart = new_cart()
    cart.add_to_cart(_product("p", "10"))
    cart.remove_from_cart("p")
    assert cart.lines == []


def test_calculate_total():
    cart = new_cart()
    cart.add_to_cart(_product("p1", "10"), 2)
    cart.add_to_cart(_product("p2", "5"), 1)
    assert cart.calculate_total() == Decimal("25")


def test_total_uses_exact_decimal_arithmetic():
    cart = new_cart()
    cart.add_to_cart(_product("a", "0.10"), 3)
    cart.add_to_cart(_product("b", "0.20"), 1)
    assert cart.calculate_total() == Decimal("0.50")


def test_empty_cart_totals():
    cart = new_cart()
    assert cart.calculate_total() == Decimal("0")
    assert cart.get_cart_item_count() == 0


def test_clear_cart_always_ends_at_zero():
    cart = new_cart()
    cart.add_to_cart(_product("a", "1"), 3)
    cart.add_to_cart(_product("b", "2"), 4)
    cart.clear_cart()
    assert cart.get_cart_item_count() == 0
    assert cart.calculate_total() == Decimal("0")


def test_lines_hold_a_snapshot_of_the_product():
    cart = new_cart()
    p = _product("p", "10")
    cart.add_to_cart(p, 1)
    p.price = Decimal("99")
    p.name = "Renamed"
    line = cart.get_line("p")
    assert line.product.price == Decimal("10")
    assert line.product.name == "Product p"


def test_returned_lines_are_copies():
    cart = new_cart()
    cart.add_to_cart(_product("p", "10"), 1)
    cart.lines[0].quantity = 50
    assert cart.get_line("p").quantity == 1


def test_cart_survives_reload_from_storage():
    storage = InMemoryKeyValueStore()
    cart = CartStore(storage)
    cart.add_to_cart(_product("a", "12.50"), 2)
    cart.add_to_cart(_product("b", "3"), 1)

    reloaded = CartStore(storage)
    assert [(line.product.id, line.quantity) for line in reloaded] == [("a", 2), ("b", 1)]
    assert reloaded.calculate_total() == Decimal("28")


def test_corrupt_payload_starts_empty():
    storage = InMemoryKeyValueStore()
    storage.set("cart", "{not json")
    cart = CartStore(storage)
    assert len(cart) == 0


def test_duplicate_lines_in_payload_are_merged():
    storage = InMemoryKeyValueStore()
    first = CartStore(storage)
    first.add_to_cart(_product("a", "1"), 2)
    raw = storage.get("cart")
    storage.set("cart", raw[:-1] + "," + raw[1:])

    cart = CartStore(storage)
    assert len(cart) == 1
    assert cart.get_line("a").quantity == 4


def test_save_failure_keeps_memory_state():
    cart = CartStore(FailingStore())
    cart.add_to_cart(_product("p", "10"), 2)
    assert cart.last_save_failed is True
    assert cart.get_cart_item_count() == 2
    assert cart.calculate_total() == Decimal("20")


def test_carts_in_different_keys_are_independent():
    storage = InMemoryKeyValueStore()
    one = CartStore(storage, key="cart-one")
    two = CartStore(storage, key="cart-two")
    one.add_to_cart(_product("p", "10"), 1)
    assert len(two) == 0
    assert len(CartStore(storage, key="cart-one")) == 1
