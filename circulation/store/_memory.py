"""
In-memory Store — dicts, one transaction at a time.

    store = InMemoryStore()
    async with store.transaction() as tx:
        await tx.create_item(ItemDraft("978-0", "Dune", "Herbert", total_copies=2))

Every write records a compensating action in an UndoJournal. An exception
leaving the transaction block replays the journal in reverse, so the dicts
end up exactly as they were when the block was entered. Identifiers are
never reused, the same as database sequences.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime

from circulation._types import Error, ItemId, LoanId, MemberId, Ok, Result
from circulation.domain import (
    CatalogItem,
    ItemDraft,
    LoanDraft,
    LoanRecord,
    LoanStatus,
    Member,
    MemberDraft,
    NotFound,
    PersistenceError,
    StoreError,
)
from circulation.store._journal import UndoJournal
from circulation.store._port import matches

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Tables
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class _Tables:
    items: dict[int, CatalogItem] = field(default_factory=dict[int, CatalogItem])
    members: dict[int, Member] = field(default_factory=dict[int, Member])
    loans: dict[int, LoanRecord] = field(default_factory=dict[int, LoanRecord])
    _sequences: dict[str, int] = field(default_factory=dict[str, int])

    def next_id(self, table: str) -> int:
        value = self._sequences.get(table, 0) + 1
        self._sequences[table] = value
        return value


# ═══════════════════════════════════════════════════════════════════════════════
# Transaction
# ═══════════════════════════════════════════════════════════════════════════════


class InMemoryTransaction:
    """Writes straight into the tables, journaling how to undo each one."""

    def __init__(self, tables: _Tables, journal: UndoJournal) -> None:
        self._t = tables
        self._journal = journal

    # ─── generic row helpers ───────────────────────────────────────────────

    def _put[V](self, table: dict[int, V], key: int, value: V) -> None:
        previous = table.get(key)

        async def undo(_: V) -> None:
            if previous is None:
                table.pop(key, None)
            else:
                table[key] = previous

        table[key] = value
        self._journal.record(value, undo)

    def _drop[V](self, table: dict[int, V], key: int) -> None:
        previous = table.pop(key)

        async def undo(value: V) -> None:
            table[key] = value

        self._journal.record(previous, undo)

    # ─── catalog ───────────────────────────────────────────────────────────

    async def get_item(self, item_id: ItemId, *, lock: bool = False) -> Result[CatalogItem, StoreError]:
        item = self._t.items.get(item_id.value)
        if item is None:
            return Error(NotFound("item", item_id.value))
        return Ok(item)

    async def create_item(self, draft: ItemDraft) -> Result[CatalogItem, PersistenceError]:
        available = draft.total_copies if draft.available_copies is None else draft.available_copies
        item = CatalogItem(
            id=ItemId(self._t.next_id("items")),
            code=draft.code,
            title=draft.title,
            author=draft.author,
            total_copies=draft.total_copies,
            available_copies=available,
            publisher=draft.publisher,
            publication_year=draft.publication_year,
            genre=draft.genre,
            location=draft.location,
        )
        self._put(self._t.items, item.id.value, item)
        return Ok(item)

    async def update_item(self, item: CatalogItem) -> Result[CatalogItem, StoreError]:
        if item.id.value not in self._t.items:
            return Error(NotFound("item", item.id.value))
        self._put(self._t.items, item.id.value, item)
        return Ok(item)

    async def delete_item(self, item_id: ItemId) -> Result[None, StoreError]:
        if item_id.value not in self._t.items:
            return Error(NotFound("item", item_id.value))
        self._drop(self._t.items, item_id.value)
        return Ok(None)

    async def list_items(self) -> Result[list[CatalogItem], PersistenceError]:
        return Ok(sorted(self._t.items.values(), key=lambda i: i.title))

    async def search_items(self, text: str) -> Result[list[CatalogItem], PersistenceError]:
        found = [
            i
            for i in self._t.items.values()
            if matches(text, i.title, i.author, i.code, i.genre, i.publisher)
        ]
        return Ok(sorted(found, key=lambda i: i.title))

    async def find_item_by_code(self, code: str) -> Result[CatalogItem | None, PersistenceError]:
        return Ok(next((i for i in self._t.items.values() if i.code == code), None))

    # ─── members ───────────────────────────────────────────────────────────

    async def get_member(self, member_id: MemberId, *, lock: bool = False) -> Result[Member, StoreError]:
        member = self._t.members.get(member_id.value)
        if member is None:
            return Error(NotFound("member", member_id.value))
        return Ok(member)

    async def create_member(self, draft: MemberDraft) -> Result[Member, PersistenceError]:
        member = Member(
            id=MemberId(self._t.next_id("members")),
            name=draft.name,
            email=draft.email,
            phone=draft.phone,
            joined_at=draft.joined_at or datetime.now(),
            address=draft.address,
            role=draft.role,
            status=draft.status,
            expiry_date=draft.expiry_date,
        )
        self._put(self._t.members, member.id.value, member)
        return Ok(member)

    async def update_member(self, member: Member) -> Result[Member, StoreError]:
        if member.id.value not in self._t.members:
            return Error(NotFound("member", member.id.value))
        self._put(self._t.members, member.id.value, member)
        return Ok(member)

    async def delete_member(self, member_id: MemberId) -> Result[None, StoreError]:
        if member_id.value not in self._t.members:
            return Error(NotFound("member", member_id.value))
        self._drop(self._t.members, member_id.value)
        return Ok(None)

    async def list_members(self) -> Result[list[Member], PersistenceError]:
        return Ok(sorted(self._t.members.values(), key=lambda m: m.name))

    async def search_members(self, text: str) -> Result[list[Member], PersistenceError]:
        found = [m for m in self._t.members.values() if matches(text, m.name, m.email, m.phone)]
        return Ok(sorted(found, key=lambda m: m.name))

    async def find_member_by_email(self, email: str) -> Result[Member | None, PersistenceError]:
        wanted = email.strip().lower()
        return Ok(next((m for m in self._t.members.values() if m.email.lower() == wanted), None))

    # ─── loans ─────────────────────────────────────────────────────────────

    async def create_loan(self, draft: LoanDraft) -> Result[LoanId, PersistenceError]:
        loan = LoanRecord(
            id=LoanId(self._t.next_id("loans")),
            item_id=draft.item_id,
            member_id=draft.member_id,
            borrowed_at=draft.borrowed_at,
            due_at=draft.due_at,
        )
        self._put(self._t.loans, loan.id.value, loan)
        return Ok(loan.id)

    async def get_loan(self, loan_id: LoanId, *, lock: bool = False) -> Result[LoanRecord, StoreError]:
        loan = self._t.loans.get(loan_id.value)
        if loan is None:
            return Error(NotFound("loan", loan_id.value))
        return Ok(loan)

    async def update_loan(self, loan: LoanRecord) -> Result[LoanRecord, StoreError]:
        if loan.id.value not in self._t.loans:
            return Error(NotFound("loan", loan.id.value))
        self._put(self._t.loans, loan.id.value, loan)
        return Ok(loan)

    async def list_open_loans_for_member(self, member_id: MemberId) -> Result[list[LoanRecord], PersistenceError]:
        return Ok([loan for loan in self._open() if loan.member_id == member_id])

    async def list_loans_for_member(self, member_id: MemberId) -> Result[list[LoanRecord], PersistenceError]:
        loans = [loan for loan in self._t.loans.values() if loan.member_id == member_id]
        return Ok(sorted(loans, key=lambda loan: loan.borrowed_at, reverse=True))

    async def list_open_loans(self) -> Result[list[LoanRecord], PersistenceError]:
        return Ok(self._open())

    def _open(self) -> list[LoanRecord]:
        loans = [
            loan
            for loan in self._t.loans.values()
            if loan.returned_at is None and loan.status is LoanStatus.BORROWED
        ]
        return sorted(loans, key=lambda loan: (loan.due_at, loan.id.value))


# ═══════════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════════


class InMemoryStore:
    """Dict-backed Store. Transactions are serialized by a single lock."""

    def __init__(self) -> None:
        self._tables = _Tables()
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InMemoryTransaction]:
        async with self._lock:
            journal = UndoJournal()
            try:
                yield InMemoryTransaction(self._tables, journal)
            except BaseException:
                run, failed = await journal.rollback()
                logger.debug("Rolled back in-memory transaction (%d undone, %d failed)", run, failed)
                raise
            else:
                journal.discard()


__all__ = ("InMemoryStore", "InMemoryTransaction")
