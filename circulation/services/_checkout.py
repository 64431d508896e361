"""
Checkout — turn a cart into loans for one member, all or nothing.

    service = CheckoutService(store)

    async def ask(plan: CheckoutPlan) -> bool:
        return input(f"Lend {plan.count} item(s)? [y/N] ") == "y"

    match await service.checkout(cart, member_id, confirm=ask):
        case Ok(receipt):
            print(f"{len(receipt.loans)} loan(s), due {receipt.due_at:%Y-%m-%d}")
        case Error(e):
            print(e)

Rules are checked before anything is written, then checked again against
locked rows inside the single write transaction. A failure at any point
leaves the store and the cart untouched.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from circulation._types import Error, ItemId, MemberId, Ok, Result
from circulation.cart import Cart
from circulation.domain import (
    LOAN_PERIOD,
    BookUnavailable,
    CatalogItem,
    CirculationError,
    EmptyCart,
    LoanDraft,
    LoanRecord,
    Member,
    MemberIneligible,
    NoMember,
    NotConfirmed,
    QuotaExceeded,
)
from circulation.services._common import in_transaction, require
from circulation.store import Store, Transaction

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Types
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CheckoutPlan:
    """What a checkout would do, shown to the operator before anything is written."""

    member: Member
    items: tuple[CatalogItem, ...]
    borrowed_at: datetime
    due_at: datetime

    @property
    def count(self) -> int:
        return len(self.items)


@dataclass(frozen=True, slots=True)
class CheckoutReceipt:
    member: Member
    loans: tuple[LoanRecord, ...]
    borrowed_at: datetime
    due_at: datetime


type Confirm = Callable[[CheckoutPlan], Awaitable[bool]]


# ═══════════════════════════════════════════════════════════════════════════════
# Rules
# ═══════════════════════════════════════════════════════════════════════════════


def check_member(member: Member, count: int, now: datetime) -> None:
    """Raise unless member may take `count` more items right now."""
    reason = member.ineligibility(now)
    if reason is not None:
        raise MemberIneligible(member.id, reason)
    if member.borrowed_count + count > member.quota:
        raise QuotaExceeded(
            member_id=member.id,
            current=member.borrowed_count,
            attempted=count,
            maximum=member.quota,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Service
# ═══════════════════════════════════════════════════════════════════════════════


class CheckoutService:
    def __init__(
        self,
        store: Store,
        *,
        loan_period: timedelta = LOAN_PERIOD,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._loan_period = loan_period
        self._clock = clock

    async def preview(
        self, cart: Cart, member_id: MemberId | None
    ) -> Result[CheckoutPlan, CirculationError]:
        """Validate without writing. Fails the same way checkout would up to confirmation."""
        items = tuple(cart.flatten())
        if not items:
            logger.warning("Checkout refused: cart is empty")
            return Error(EmptyCart())
        if member_id is None:
            logger.warning("Checkout refused: no member selected")
            return Error(NoMember())

        async def plan(tx: Transaction) -> CheckoutPlan:
            now = self._clock()
            member = require(await tx.get_member(member_id))
            check_member(member, len(items), now)
            return CheckoutPlan(member, items, now, now + self._loan_period)

        return await in_transaction(self._store, plan)

    async def checkout(
        self,
        cart: Cart,
        member_id: MemberId | None,
        *,
        confirm: Confirm | None = None,
    ) -> Result[CheckoutReceipt, CirculationError]:
        match await self.preview(cart, member_id):
            case Error(e):
                return Error(e)
            case Ok(plan):
                pass

        if confirm is not None and not await confirm(plan):
            logger.info("Checkout for member %s cancelled by operator", plan.member.id)
            return Error(NotConfirmed())

        match await in_transaction(self._store, lambda tx: self._lend(tx, plan)):
            case Ok(receipt):
                cart.clear()
                logger.info(
                    "Checkout completed: %d item(s) for member %s, due %s",
                    len(receipt.loans),
                    receipt.member.id,
                    receipt.due_at.date(),
                )
                return Ok(receipt)
            case Error(e):
                return Error(e)

    async def _lend(self, tx: Transaction, plan: CheckoutPlan) -> CheckoutReceipt:
        now = self._clock()
        due = now + self._loan_period

        member = require(await tx.get_member(plan.member.id, lock=True))
        check_member(member, plan.count, now)

        # Rows are locked in id order.
        requested = Counter(item.id for item in plan.items)
        live: dict[ItemId, CatalogItem] = {}
        for item_id in sorted(requested, key=lambda i: i.value):
            current = require(await tx.get_item(item_id, lock=True))
            if current.available_copies < requested[item_id]:
                raise BookUnavailable(item_id, current.title)
            live[item_id] = current

        loans: list[LoanRecord] = []
        for item in plan.items:
            draft = LoanDraft(item.id, member.id, now, due)
            loan_id = require(await tx.create_loan(draft))
            live[item.id] = require(await tx.update_item(live[item.id].lend()))
            loans.append(LoanRecord(loan_id, item.id, member.id, now, due))

        member = require(
            await tx.update_member(
                replace(member, borrowed_count=member.borrowed_count + len(loans))
            )
        )
        return CheckoutReceipt(member, tuple(loans), now, due)


__all__ = (
    "CheckoutPlan",
    "CheckoutReceipt",
    "Confirm",
    "CheckoutService",
    "check_member",
)
