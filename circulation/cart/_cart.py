"""
Cart — aggregate root over a Group named "Root".

    cart = Cart()
    cart.add_item(item)                       # Result[Leaf, DuplicateItem]
    cart.add_group("Reading list", [a, b])    # Result[Group, DuplicateItem | ValidationError]
    cart.flatten()                            # every item, depth-first

Duplicates are detected across the whole tree, not only among root's
direct children.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from circulation._types import Error, Ok, Result
from circulation.cart._node import CartNode, Group, Leaf, find_by_item_id, flatten, item_count
from circulation.domain import CatalogItem, DuplicateItem, ValidationError

logger = logging.getLogger(__name__)

ROOT_NAME = "Root"


class Cart:
    def __init__(self) -> None:
        self._root = Group(ROOT_NAME)

    def __repr__(self) -> str:
        return f"Cart(items={self.item_count})"

    @property
    def root(self) -> Group:
        return self._root

    @property
    def children(self) -> tuple[CartNode, ...]:
        return tuple(self._root.children)

    @property
    def item_count(self) -> int:
        return item_count(self._root)

    @property
    def is_empty(self) -> bool:
        return self.item_count == 0

    def contains(self, item: CatalogItem) -> bool:
        return find_by_item_id(self._root, item.id) is not None

    # ═══════════════════════════════════════════════════════════════════════════
    # Mutation
    # ═══════════════════════════════════════════════════════════════════════════

    def add_item(self, item: CatalogItem) -> Result[Leaf, DuplicateItem]:
        if self.contains(item):
            logger.warning("Rejected duplicate cart item %s (%s)", item.id, item.title)
            return Error(DuplicateItem(item.id, item.title))

        leaf = Leaf(item)
        self._root.add(leaf)
        logger.info("Added %s to cart", item.title)
        return Ok(leaf)

    def add_group(
        self, name: str, items: Sequence[CatalogItem]
    ) -> Result[Group, DuplicateItem | ValidationError]:
        """Append a named batch. The cart is unchanged when this fails."""
        if not name.strip():
            return Error(ValidationError("name", "Group name cannot be empty"))

        seen: set[int] = set()
        for item in items:
            if item.id.value in seen or self.contains(item):
                logger.warning("Rejected duplicate cart item %s (%s)", item.id, item.title)
                return Error(DuplicateItem(item.id, item.title))
            seen.add(item.id.value)

        group = Group(name.strip())
        for item in items:
            group.add(Leaf(item))
        self._root.add(group)
        logger.info("Added group %s with %d item(s) to cart", group.name, len(items))
        return Ok(group)

    def remove_node(self, node: CartNode) -> bool:
        """Remove a direct child of root."""
        removed = self._root.remove(node)
        if removed:
            logger.info("Removed %s from cart", node.name)
        return removed

    def clear(self) -> None:
        self._root.clear()
        self._root = Group(ROOT_NAME)

    def flatten(self) -> list[CatalogItem]:
        return flatten(self._root)


__all__ = ("Cart", "ROOT_NAME")
