"""
Services — the operations a circulation desk performs.

    from circulation.services import CheckoutService, ReturnService

    checkout = CheckoutService(store)
    match await checkout.checkout(cart, member_id):
        case Ok(receipt): ...
        case Error(e): ...

Every operation runs in one store transaction and returns a Result.

Modules:
- _checkout.py — CheckoutService (cart -> loans)
- _returns.py  — ReturnService
- _catalog.py  — CatalogService
- _members.py  — MemberService
- _loans.py    — LoanDesk (renewals, listings)
"""

from circulation.services._common import in_transaction, require
from circulation.services._checkout import (
    CheckoutPlan,
    CheckoutReceipt,
    CheckoutService,
    Confirm,
    check_member,
)
from circulation.services._returns import ReturnReceipt, ReturnService
from circulation.services._catalog import CatalogService
from circulation.services._members import EMAIL, MemberService
from circulation.services._loans import RENEWAL_DAYS, LoanDesk

__all__ = (
    # Plumbing
    "in_transaction",
    "require",
    # Checkout
    "CheckoutService",
    "CheckoutPlan",
    "CheckoutReceipt",
    "Confirm",
    "check_member",
    # Returns
    "ReturnService",
    "ReturnReceipt",
    # Catalog / members / loans
    "CatalogService",
    "MemberService",
    "EMAIL",
    "LoanDesk",
    "RENEWAL_DAYS",
)
