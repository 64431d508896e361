"""
Catalog — add, edit, remove and look up items.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from circulation._types import ItemId, Result
from circulation.domain import (
    ActiveLoans,
    CatalogItem,
    CirculationError,
    DuplicateCode,
    ItemDraft,
    ValidationError,
)
from circulation.services._common import in_transaction, require
from circulation.store import Store, Transaction

logger = logging.getLogger(__name__)


def _validate(code: str, title: str, author: str, total_copies: int) -> None:
    if not title.strip():
        raise ValidationError("title", "Book title cannot be empty")
    if not author.strip():
        raise ValidationError("author", "Book author cannot be empty")
    if not code.strip():
        raise ValidationError("code", "Book code cannot be empty")
    if total_copies < 1:
        raise ValidationError("total_copies", "Total copies must be at least 1")


def _clamp(available: int, total: int) -> int:
    return max(0, min(available, total))


async def _ensure_code_free(tx: Transaction, code: str, owner: ItemId | None = None) -> None:
    existing = require(await tx.find_item_by_code(code))
    if existing is not None and existing.id != owner:
        raise DuplicateCode(code)


class CatalogService:
    def __init__(self, store: Store) -> None:
        self._store = store

    async def add_item(self, draft: ItemDraft) -> Result[CatalogItem, CirculationError]:
        async def work(tx: Transaction) -> CatalogItem:
            _validate(draft.code, draft.title, draft.author, draft.total_copies)
            available = draft.total_copies if draft.available_copies is None else draft.available_copies
            clean = replace(
                draft,
                code=draft.code.strip(),
                title=draft.title.strip(),
                author=draft.author.strip(),
                available_copies=_clamp(available, draft.total_copies),
            )
            await _ensure_code_free(tx, clean.code)
            item = require(await tx.create_item(clean))
            logger.info("Catalogued %s (%s) as item %s", item.title, item.code, item.id)
            return item

        return await in_transaction(self._store, work)

    async def update_item(self, item: CatalogItem) -> Result[CatalogItem, CirculationError]:
        async def work(tx: Transaction) -> CatalogItem:
            _validate(item.code, item.title, item.author, item.total_copies)
            stored = require(await tx.get_item(item.id, lock=True))
            on_loan = stored.copies_on_loan
            if item.total_copies < on_loan:
                raise ValidationError(
                    "total_copies", f"{on_loan} copies are on loan, total cannot go below that"
                )
            await _ensure_code_free(tx, item.code.strip(), owner=item.id)
            # Copies on loan stay fixed, the shelf count follows the new total.
            clean = replace(
                item,
                code=item.code.strip(),
                title=item.title.strip(),
                author=item.author.strip(),
                available_copies=item.total_copies - on_loan,
            )
            return require(await tx.update_item(clean))

        return await in_transaction(self._store, work)

    async def delete_item(self, item_id: ItemId) -> Result[None, CirculationError]:
        async def work(tx: Transaction) -> None:
            item = require(await tx.get_item(item_id, lock=True))
            if item.has_active_loans:
                raise ActiveLoans("item", item_id.value, item.copies_on_loan)
            require(await tx.delete_item(item_id))
            logger.info("Deleted item %s (%s)", item_id, item.title)

        return await in_transaction(self._store, work)

    async def get_item(self, item_id: ItemId) -> Result[CatalogItem, CirculationError]:
        async def work(tx: Transaction) -> CatalogItem:
            return require(await tx.get_item(item_id))

        return await in_transaction(self._store, work)

    async def list_items(self) -> Result[list[CatalogItem], CirculationError]:
        async def work(tx: Transaction) -> list[CatalogItem]:
            return require(await tx.list_items())

        return await in_transaction(self._store, work)

    async def search_items(
        self, text: str, *, available_only: bool = False
    ) -> Result[list[CatalogItem], CirculationError]:
        """Substring search over title, author, code, genre and publisher."""

        async def work(tx: Transaction) -> list[CatalogItem]:
            items = require(await (tx.search_items(text) if text.strip() else tx.list_items()))
            if available_only:
                items = [item for item in items if item.is_available]
            return items

        return await in_transaction(self._store, work)


__all__ = ("CatalogService",)
