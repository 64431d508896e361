"""
Domain — catalog items, members, loans and the failure taxonomy.

    from circulation import domain as D

    item.status            # D.ItemStatus, derived from the copy counters
    D.quota_for(D.Role.PREMIUM)  # 10
"""

from __future__ import annotations

from circulation.domain._models import (
    LOAN_PERIOD,
    ItemStatus,
    item_status,
    ItemDraft,
    CatalogItem,
    Role,
    MemberStatus,
    QUOTAS,
    quota_for,
    MemberDraft,
    Member,
    LoanStatus,
    LoanDraft,
    LoanRecord,
)
from circulation.domain._errors import (
    CirculationError,
    ValidationError,
    NotFound,
    DuplicateItem,
    EmptyCart,
    NoMember,
    NotConfirmed,
    MemberIneligible,
    QuotaExceeded,
    BookUnavailable,
    ActiveLoans,
    AlreadyReturned,
    RenewalRefused,
    DuplicateCode,
    DuplicateEmail,
    PersistenceError,
    StoreError,
)
from circulation.domain._dates import DATE_FORMAT, format_date

__all__ = (
    # Models
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
    # Errors
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
    # Dates
    "DATE_FORMAT",
    "format_date",
)
