from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any

from circulation._types import Error, ItemId, MemberId
from circulation.domain import (
    CatalogItem,
    ItemDraft,
    LoanRecord,
    Member,
    MemberDraft,
    MemberStatus,
    PersistenceError,
    Role,
)
from circulation.store import Store

NOW = datetime(2026, 3, 2, 10, 0)


class Clock:
    """Settable clock handed to services in place of datetime.now."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int) -> None:
        self.now += timedelta(days=days)


class FailingStore:
    """Wraps a store so that one transaction method fails after `after` successful calls."""

    def __init__(self, inner: Store, method: str, after: int = 0) -> None:
        self.inner = inner
        self.method = method
        self.after = after
        self.calls = 0

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Any]:
        async with self.inner.transaction() as tx:
            yield _FailingTransaction(tx, self)


class _FailingTransaction:
    def __init__(self, tx: Any, owner: FailingStore) -> None:
        self._tx = tx
        self._owner = owner

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._tx, name)
        if name != self._owner.method:
            return attr

        async def failing(*args: Any, **kwargs: Any) -> Any:
            self._owner.calls += 1
            if self._owner.calls > self._owner.after:
                return Error(PersistenceError("disk on fire"))
            return await attr(*args, **kwargs)

        return failing


class LockRecorder:
    """Wraps a store and records the row kind of every locking read, in order."""

    def __init__(self, inner: Store) -> None:
        self.inner = inner
        self.locks: list[str] = []

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Any]:
        async with self.inner.transaction() as tx:
            yield _RecordingTransaction(tx, self.locks)


class _RecordingTransaction:
    def __init__(self, tx: Any, locks: list[str]) -> None:
        self._tx = tx
        self._locks = locks

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._tx, name)
        if not name.startswith("get_"):
            return attr

        async def recording(*args: Any, lock: bool = False, **kwargs: Any) -> Any:
            if lock:
                self._locks.append(name.removeprefix("get_"))
            return await attr(*args, lock=lock, **kwargs)

        return recording


# ═══════════════════════════════════════════════════════════════════════════════
# Seeding
# ═══════════════════════════════════════════════════════════════════════════════


async def add_item(
    store: Store,
    title: str,
    *,
    total: int = 1,
    available: int | None = None,
    code: str | None = None,
    author: str = "Anon",
) -> CatalogItem:
    draft = ItemDraft(
        code or f"code-{title}",
        title,
        author,
        total_copies=total,
        available_copies=available,
    )
    async with store.transaction() as tx:
        return (await tx.create_item(draft)).unwrap()


async def add_member(
    store: Store,
    name: str = "Ada",
    *,
    role: Role = Role.REGULAR,
    status: MemberStatus = MemberStatus.ACTIVE,
    borrowed: int = 0,
    expiry: datetime | None = None,
    email: str | None = None,
) -> Member:
    draft = MemberDraft(
        name,
        email or f"{name.lower()}@example.org",
        "555-0100",
        role=role,
        status=status,
        expiry_date=expiry,
        joined_at=NOW - timedelta(days=365),
    )
    async with store.transaction() as tx:
        member = (await tx.create_member(draft)).unwrap()
        return (await tx.update_member(replace(member, borrowed_count=borrowed))).unwrap()


async def fetch_item(store: Store, item_id: ItemId) -> CatalogItem:
    async with store.transaction() as tx:
        return (await tx.get_item(item_id)).unwrap()


async def fetch_member(store: Store, member_id: MemberId) -> Member:
    async with store.transaction() as tx:
        return (await tx.get_member(member_id)).unwrap()


async def open_loans(store: Store) -> list[LoanRecord]:
    async with store.transaction() as tx:
        return (await tx.list_open_loans()).unwrap()
