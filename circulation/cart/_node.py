"""
Cart tree — Leaf | Group.

A node is either a Leaf holding one catalog item or a named Group of child
nodes. Behaviour over the tree (count, flatten, render, lookups) is written
as functions matching on the two shapes.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from circulation._types import ItemId
from circulation.domain import CatalogItem

# ═══════════════════════════════════════════════════════════════════════════════
# Nodes
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(eq=False, slots=True)
class Leaf:
    """Exactly one catalog item."""

    item: CatalogItem
    parent: Group | None = field(default=None, repr=False)

    @property
    def name(self) -> str:
        return self.item.title


@dataclass(eq=False, slots=True)
class Group:
    """
    Named, ordered batch of child nodes.

    A node belongs to at most one group; add() refuses nodes that are
    already attached somewhere and anything that would create a cycle.
    """

    name: str
    children: list[CartNode] = field(default_factory=list)
    parent: Group | None = field(default=None, repr=False)

    def add(self, child: CartNode) -> None:
        if child.parent is not None:
            raise ValueError(f"{child.name!r} already belongs to group {child.parent.name!r}")
        if isinstance(child, Group) and _is_ancestor(child, self):
            raise ValueError(f"adding {child.name!r} to {self.name!r} would create a cycle")
        child.parent = self
        self.children.append(child)

    def remove(self, child: CartNode) -> bool:
        """Remove a direct child by identity. Returns whether it was present."""
        for index, candidate in enumerate(self.children):
            if candidate is child:
                del self.children[index]
                child.parent = None
                return True
        return False

    def clear(self) -> None:
        for child in self.children:
            child.parent = None
        self.children.clear()

    @property
    def item_count(self) -> int:
        return item_count(self)

    def flatten(self) -> list[CatalogItem]:
        return flatten(self)

    def find_by_name(self, name: str) -> CartNode | None:
        return find_by_name(self, name)

    def find_by_item_id(self, item_id: ItemId) -> Leaf | None:
        return find_by_item_id(self, item_id)


type CartNode = Leaf | Group


def _is_ancestor(candidate: Group, node: Group) -> bool:
    current: Group | None = node
    while current is not None:
        if current is candidate:
            return True
        current = current.parent
    return False


# ═══════════════════════════════════════════════════════════════════════════════
# Traversal
# ═══════════════════════════════════════════════════════════════════════════════


def item_count(node: CartNode) -> int:
    """Number of leaves under node (a leaf counts as one)."""
    match node:
        case Leaf():
            return 1
        case Group(children=children):
            return sum(item_count(child) for child in children)


def flatten(node: CartNode, into: list[CatalogItem] | None = None) -> list[CatalogItem]:
    """
    Depth-first list of leaf items, children in insertion order.

    When `into` is given the items are appended to it and it is returned.
    """
    out = into if into is not None else []
    match node:
        case Leaf(item=item):
            out.append(item)
        case Group(children=children):
            for child in children:
                flatten(child, out)
    return out


def find_by_name(node: CartNode, name: str) -> CartNode | None:
    """First node named `name`, depth-first, checking the node itself first."""
    if node.name == name:
        return node
    match node:
        case Leaf():
            return None
        case Group(children=children):
            for child in children:
                found = find_by_name(child, name)
                if found is not None:
                    return found
            return None


def find_by_item_id(node: CartNode, item_id: ItemId) -> Leaf | None:
    match node:
        case Leaf(item=item):
            return node if item.id == item_id else None
        case Group(children=children):
            for child in children:
                found = find_by_item_id(child, item_id)
                if found is not None:
                    return found
            return None


def render(node: CartNode, indent: int = 0) -> str:
    """Indented outline, two spaces per level."""
    pad = "  " * indent
    match node:
        case Leaf(item=item):
            return f"{pad}- {item.title} ({item.author})"
        case Group(name=name, children=children):
            lines = [f"{pad}+ {name} ({item_count(node)} items)"]
            lines.extend(render(child, indent + 1) for child in children)
            return "\n".join(lines)


__all__ = (
    "Leaf",
    "Group",
    "CartNode",
    "item_count",
    "flatten",
    "find_by_name",
    "find_by_item_id",
    "render",
)
