"""
Cart — composite of items and named groups.

    from circulation.cart import Cart, Leaf, Group, render

    cart = Cart()
    cart.add_item(item)
    print(render(cart.root))
"""

from circulation.cart._node import (
    CartNode,
    Group,
    Leaf,
    find_by_item_id,
    find_by_name,
    flatten,
    item_count,
    render,
)
from circulation.cart._cart import ROOT_NAME, Cart

__all__ = (
    "Cart",
    "ROOT_NAME",
    "CartNode",
    "Leaf",
    "Group",
    "item_count",
    "flatten",
    "find_by_name",
    "find_by_item_id",
    "render",
)
