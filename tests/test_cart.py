from __future__ import annotations

from circulation._types import Error, ItemId, Ok
from circulation.cart import ROOT_NAME, Cart, Group, Leaf
from circulation.domain import CatalogItem, DuplicateItem, ValidationError


def book(n: int, title: str | None = None) -> CatalogItem:
    return CatalogItem(ItemId(n), f"isbn-{n}", title or f"Book {n}", "Author", 2, 2)


def test_new_cart_is_empty():
    cart = Cart()
    assert cart.is_empty
    assert cart.item_count == 0
    assert cart.flatten() == []
    assert cart.root.name == ROOT_NAME


def test_add_item_appends_leaf():
    cart = Cart()
    match cart.add_item(book(1)):
        case Ok(leaf):
            assert isinstance(leaf, Leaf)
        case Error(e):
            raise AssertionError(e)
    assert cart.item_count == 1
    assert cart.children[0].name == "Book 1"


def test_duplicate_direct_child_is_rejected_and_cart_unchanged():
    cart = Cart()
    cart.add_item(book(1))
    before = cart.flatten()

    match cart.add_item(book(1)):
        case Error(DuplicateItem(item_id=item_id)):
            assert item_id == ItemId(1)
        case other:
            raise AssertionError(other)

    assert cart.flatten() == before
    assert len(cart.children) == 1


def test_duplicate_inside_group_is_rejected():
    cart = Cart()
    cart.add_group("Holiday", [book(1), book(2)])
    result = cart.add_item(book(2))
    assert isinstance(result.unwrap_err(), DuplicateItem)
    assert cart.item_count == 2


def test_add_group_builds_one_leaf_per_item():
    cart = Cart()
    group = cart.add_group("  Course  ", [book(1), book(2), book(3)]).unwrap()
    assert isinstance(group, Group)
    assert group.name == "Course"
    assert group.item_count == 3
    assert [i.id.value for i in cart.flatten()] == [1, 2, 3]


def test_add_group_rejects_items_already_in_cart():
    cart = Cart()
    cart.add_item(book(2))
    result = cart.add_group("Batch", [book(1), book(2)])
    assert isinstance(result.unwrap_err(), DuplicateItem)
    assert cart.item_count == 1
    assert len(cart.children) == 1


def test_add_group_rejects_repeated_items():
    cart = Cart()
    result = cart.add_group("Batch", [book(1), book(1)])
    assert isinstance(result.unwrap_err(), DuplicateItem)
    assert cart.is_empty


def test_add_group_requires_a_name():
    cart = Cart()
    error = cart.add_group("   ", [book(1)]).unwrap_err()
    assert isinstance(error, ValidationError)
    assert error.field == "name"
    assert cart.is_empty


def test_remove_node_only_touches_direct_children():
    cart = Cart()
    group = cart.add_group("G", [book(1), book(2)]).unwrap()
    leaf = cart.add_item(book(3)).unwrap()
    nested = group.children[0]

    assert not cart.remove_node(nested)
    assert cart.remove_node(group)
    assert cart.children == (leaf,)
    assert not cart.remove_node(group)


def test_removed_item_can_be_added_again():
    cart = Cart()
    leaf = cart.add_item(book(1)).unwrap()
    cart.remove_node(leaf)
    assert cart.add_item(book(1))


def test_clear_replaces_root():
    cart = Cart()
    old_root = cart.root
    cart.add_item(book(1))
    cart.add_group("G", [book(2)])
    cart.clear()

    assert cart.is_empty
    assert cart.root is not old_root
    assert cart.root.name == ROOT_NAME
