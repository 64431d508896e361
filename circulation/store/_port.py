"""
Persistence port — typed, Result-based.

Store.transaction() is the only entry point. Leaving the block normally
commits; leaving it by exception rolls back every write made inside it.

    async with store.transaction() as tx:
        member = (await tx.get_member(member_id, lock=True)).unwrap()
        ...

Lookups fail with NotFound; anything the backend raises surfaces as
PersistenceError. Finders return Ok(None) when nothing matches.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Protocol

from circulation._types import ItemId, LoanId, MemberId, Result
from circulation.domain import (
    CatalogItem,
    ItemDraft,
    LoanDraft,
    LoanRecord,
    Member,
    MemberDraft,
    NotFound,
    PersistenceError,
    StoreError,
)

# ═══════════════════════════════════════════════════════════════════════════════
# Transaction
# ═══════════════════════════════════════════════════════════════════════════════


class Transaction(Protocol):
    """
    Unit of work handed out by Store.transaction().

    `lock=True` holds a row lock on the fetched record until the
    transaction ends.
    """

    # Catalog

    async def get_item(self, item_id: ItemId, *, lock: bool = False) -> Result[CatalogItem, StoreError]: ...

    async def create_item(self, draft: ItemDraft) -> Result[CatalogItem, PersistenceError]: ...

    async def update_item(self, item: CatalogItem) -> Result[CatalogItem, StoreError]: ...

    async def delete_item(self, item_id: ItemId) -> Result[None, StoreError]: ...

    async def list_items(self) -> Result[list[CatalogItem], PersistenceError]: ...

    async def search_items(self, text: str) -> Result[list[CatalogItem], PersistenceError]: ...

    async def find_item_by_code(self, code: str) -> Result[CatalogItem | None, PersistenceError]: ...

    # Members

    async def get_member(self, member_id: MemberId, *, lock: bool = False) -> Result[Member, StoreError]: ...

    async def create_member(self, draft: MemberDraft) -> Result[Member, PersistenceError]: ...

    async def update_member(self, member: Member) -> Result[Member, StoreError]: ...

    async def delete_member(self, member_id: MemberId) -> Result[None, StoreError]: ...

    async def list_members(self) -> Result[list[Member], PersistenceError]: ...

    async def search_members(self, text: str) -> Result[list[Member], PersistenceError]: ...

    async def find_member_by_email(self, email: str) -> Result[Member | None, PersistenceError]: ...

    # Loans

    async def create_loan(self, draft: LoanDraft) -> Result[LoanId, PersistenceError]: ...

    async def get_loan(self, loan_id: LoanId, *, lock: bool = False) -> Result[LoanRecord, StoreError]: ...

    async def update_loan(self, loan: LoanRecord) -> Result[LoanRecord, StoreError]: ...

    async def list_open_loans_for_member(self, member_id: MemberId) -> Result[list[LoanRecord], PersistenceError]: ...

    async def list_loans_for_member(self, member_id: MemberId) -> Result[list[LoanRecord], PersistenceError]: ...

    async def list_open_loans(self) -> Result[list[LoanRecord], PersistenceError]: ...


# ═══════════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════════


class Store(Protocol):
    def transaction(self) -> AbstractAsyncContextManager[Transaction]: ...


def matches(text: str, *fields: str | None) -> bool:
    """Case-insensitive substring match over any of the given fields."""
    needle = text.strip().lower()
    return any(needle in value.lower() for value in fields if value)


__all__ = (
    "Transaction",
    "Store",
    "NotFound",
    "PersistenceError",
    "StoreError",
    "matches",
)
