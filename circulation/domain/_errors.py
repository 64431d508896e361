"""
Failure taxonomy.

Every error is an exception type so it can be raised inside a transaction
(forcing rollback) and handed back as `Error(e)` at the service boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from circulation._types import ItemId, LoanId, MemberId


class CirculationError(Exception):
    """Base for every failure surfaced by circulation."""

    code: ClassVar[str] = "ERROR"


# ═══════════════════════════════════════════════════════════════════════════════
# Validation / Lookup
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(eq=False)
class ValidationError(CirculationError):
    code: ClassVar[str] = "INVALID"

    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


@dataclass(eq=False)
class NotFound(CirculationError):
    code: ClassVar[str] = "NOT_FOUND"

    entity: str
    id: int | str

    def __str__(self) -> str:
        return f"{self.entity}:{self.id} not found"


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(eq=False)
class DuplicateItem(CirculationError):
    code: ClassVar[str] = "DUPLICATE_ITEM"

    item_id: ItemId
    title: str

    def __str__(self) -> str:
        return f'"{self.title}" is already in the cart'


@dataclass(eq=False)
class EmptyCart(CirculationError):
    code: ClassVar[str] = "EMPTY_CART"

    def __str__(self) -> str:
        return "Cart is empty. Add items before checkout."


@dataclass(eq=False)
class NoMember(CirculationError):
    code: ClassVar[str] = "NO_MEMBER"

    def __str__(self) -> str:
        return "A member must be selected for checkout"


@dataclass(eq=False)
class NotConfirmed(CirculationError):
    code: ClassVar[str] = "NOT_CONFIRMED"

    def __str__(self) -> str:
        return "Checkout was not confirmed"


# ═══════════════════════════════════════════════════════════════════════════════
# Business Rules
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(eq=False)
class MemberIneligible(CirculationError):
    code: ClassVar[str] = "MEMBER_INELIGIBLE"

    member_id: MemberId
    reason: str

    def __str__(self) -> str:
        return f"Member {self.member_id} cannot borrow: {self.reason}"


@dataclass(eq=False)
class QuotaExceeded(CirculationError):
    code: ClassVar[str] = "QUOTA_EXCEEDED"

    member_id: MemberId
    current: int
    attempted: int
    maximum: int

    def __str__(self) -> str:
        return (
            "Member has reached their borrowing limit. "
            f"Current: {self.current}, Attempting to borrow: {self.attempted}, "
            f"Maximum allowed: {self.maximum}"
        )


@dataclass(eq=False)
class BookUnavailable(CirculationError):
    code: ClassVar[str] = "BOOK_UNAVAILABLE"

    item_id: ItemId
    title: str

    def __str__(self) -> str:
        return (
            f'Book "{self.title}" is no longer available. '
            "Remove it from the cart and try again."
        )


@dataclass(eq=False)
class ActiveLoans(CirculationError):
    code: ClassVar[str] = "ACTIVE_LOANS"

    entity: str
    id: int
    count: int

    def __str__(self) -> str:
        return f"Cannot delete {self.entity}:{self.id} with {self.count} active loan(s)"


@dataclass(eq=False)
class AlreadyReturned(CirculationError):
    code: ClassVar[str] = "ALREADY_RETURNED"

    loan_id: LoanId

    def __str__(self) -> str:
        return f"Loan {self.loan_id} has already been returned"


@dataclass(eq=False)
class RenewalRefused(CirculationError):
    code: ClassVar[str] = "RENEWAL_REFUSED"

    loan_id: LoanId
    reason: str

    def __str__(self) -> str:
        return f"Loan {self.loan_id} cannot be renewed: {self.reason}"


@dataclass(eq=False)
class DuplicateCode(CirculationError):
    code: ClassVar[str] = "DUPLICATE_CODE"

    value: str

    def __str__(self) -> str:
        return f"An item with code {self.value!r} already exists"


@dataclass(eq=False)
class DuplicateEmail(CirculationError):
    code: ClassVar[str] = "DUPLICATE_EMAIL"

    email: str

    def __str__(self) -> str:
        return f"Email {self.email!r} already exists in the system"


# ═══════════════════════════════════════════════════════════════════════════════
# Storage
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(eq=False)
class PersistenceError(CirculationError):
    """Storage failure. The cause is logged, the message stays generic."""

    code: ClassVar[str] = "PERSISTENCE"

    message: str
    cause: Exception | None = None

    def __str__(self) -> str:
        return self.message


type StoreError = NotFound | PersistenceError
"""What a persistence call may fail with."""


__all__ = (
    "CirculationError",
    "ValidationError",
    "NotFound",
    "DuplicateItem",
    "EmptyCart",
    "NoMember",
    "NotConfirmed",
    "MemberIneligible",
    "QuotaExceeded",
    "BookUnavailable",
    "ActiveLoans",
    "AlreadyReturned",
    "RenewalRefused",
    "DuplicateCode",
    "DuplicateEmail",
    "PersistenceError",
    "StoreError",
)
