"""
Domain — catalog items, members, loan records.

Entities are immutable; changes go through `dataclasses.replace` and are
written back through the store.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum

from circulation._types import ItemId, LoanId, MemberId

LOAN_PERIOD = timedelta(days=14)
"""Fixed loan period applied at checkout."""


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════


class ItemStatus(Enum):
    FULLY_AVAILABLE = "fully_available"
    PARTIALLY_AVAILABLE = "partially_available"
    UNAVAILABLE = "unavailable"


def item_status(available: int, total: int) -> ItemStatus:
    """Availability status as a pure function of the two copy counters."""
    if available <= 0:
        return ItemStatus.UNAVAILABLE
    if available < total:
        return ItemStatus.PARTIALLY_AVAILABLE
    return ItemStatus.FULLY_AVAILABLE


@dataclass(frozen=True, slots=True)
class ItemDraft:
    """A catalog item that has not been stored yet."""

    code: str
    title: str
    author: str
    total_copies: int = 1
    available_copies: int | None = None
    publisher: str | None = None
    publication_year: int | None = None
    genre: str | None = None
    location: str | None = None


@dataclass(frozen=True, slots=True)
class CatalogItem:
    id: ItemId
    code: str
    title: str
    author: str
    total_copies: int
    available_copies: int
    publisher: str | None = None
    publication_year: int | None = None
    genre: str | None = None
    location: str | None = None

    @property
    def status(self) -> ItemStatus:
        return item_status(self.available_copies, self.total_copies)

    @property
    def is_available(self) -> bool:
        return self.available_copies > 0

    @property
    def has_active_loans(self) -> bool:
        return self.available_copies < self.total_copies

    @property
    def copies_on_loan(self) -> int:
        return self.total_copies - self.available_copies

    def lend(self, copies: int = 1) -> CatalogItem:
        if copies > self.available_copies:
            raise ValueError(
                f"item {self.id}: cannot lend {copies}, {self.available_copies} available"
            )
        return replace(self, available_copies=self.available_copies - copies)

    def receive(self) -> CatalogItem:
        """Take one copy back, never exceeding the total."""
        return replace(
            self,
            available_copies=min(self.total_copies, self.available_copies + 1),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Members
# ═══════════════════════════════════════════════════════════════════════════════


class Role(Enum):
    REGULAR = "REGULAR"
    PREMIUM = "PREMIUM"
    ADMIN = "ADMIN"


class MemberStatus(Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


QUOTAS: dict[Role, int] = {
    Role.REGULAR: 5,
    Role.PREMIUM: 10,
    Role.ADMIN: 15,
}


def quota_for(role: Role) -> int:
    """Maximum number of concurrently open loans for a role."""
    return QUOTAS[role]


@dataclass(frozen=True, slots=True)
class MemberDraft:
    name: str
    email: str
    phone: str
    address: str | None = None
    role: Role = Role.REGULAR
    status: MemberStatus = MemberStatus.ACTIVE
    expiry_date: datetime | None = None
    joined_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class Member:
    id: MemberId
    name: str
    email: str
    phone: str
    joined_at: datetime
    address: str | None = None
    role: Role = Role.REGULAR
    status: MemberStatus = MemberStatus.ACTIVE
    expiry_date: datetime | None = None
    borrowed_count: int = 0

    @property
    def quota(self) -> int:
        return quota_for(self.role)

    def is_expired(self, now: datetime) -> bool:
        return self.expiry_date is not None and self.expiry_date < now

    def is_active(self, now: datetime) -> bool:
        return self.status is MemberStatus.ACTIVE and not self.is_expired(now)

    def can_borrow(self, now: datetime, count: int = 1) -> bool:
        return self.is_active(now) and self.borrowed_count + count <= self.quota

    def ineligibility(self, now: datetime) -> str | None:
        """Why this member may not borrow at all, or None."""
        if self.status is not MemberStatus.ACTIVE:
            return f"membership is {self.status.value}"
        if self.is_expired(now):
            return "membership has expired"
        return None


# ═══════════════════════════════════════════════════════════════════════════════
# Loans
# ═══════════════════════════════════════════════════════════════════════════════


class LoanStatus(Enum):
    BORROWED = "BORROWED"
    RETURNED = "RETURNED"
    OVERDUE = "OVERDUE"  # display only, never stored


@dataclass(frozen=True, slots=True)
class LoanDraft:
    item_id: ItemId
    member_id: MemberId
    borrowed_at: datetime
    due_at: datetime


@dataclass(frozen=True, slots=True)
class LoanRecord:
    id: LoanId
    item_id: ItemId
    member_id: MemberId
    borrowed_at: datetime
    due_at: datetime
    returned_at: datetime | None = None
    status: LoanStatus = LoanStatus.BORROWED
    remarks: str | None = None

    @property
    def is_open(self) -> bool:
        return self.returned_at is None

    def is_overdue(self, now: datetime) -> bool:
        return self.status is LoanStatus.BORROWED and self.due_at < now

    def display_status(self, now: datetime) -> LoanStatus:
        return LoanStatus.OVERDUE if self.is_overdue(now) else self.status

    def days_overdue(self, at: datetime) -> int:
        if at <= self.due_at:
            return 0
        # A started day counts as a whole one.
        return -((self.due_at - at) // timedelta(days=1))

    def close(self, at: datetime) -> LoanRecord:
        return replace(self, returned_at=at, status=LoanStatus.RETURNED)

    def extend(self, period: timedelta, note: str) -> LoanRecord:
        remarks = f"{self.remarks}; {note}" if self.remarks else note
        return replace(self, due_at=self.due_at + period, remarks=remarks)


__all__ = (
    "LOAN_PERIOD",
    "ItemStatus",
    "item_status",
    "ItemDraft",
    "CatalogItem",
    "Role",
    "MemberStatus",
    "QUOTAS",
    "quota_for",
    "MemberDraft",
    "Member",
    "LoanStatus",
    "LoanDraft",
    "LoanRecord",
)
