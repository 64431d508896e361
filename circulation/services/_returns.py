"""
Returns — close loans and give copies back.

    service = ReturnService(store)
    await service.return_item(LoanId(7))        # Result[ReturnReceipt, ...]
    await service.return_all(MemberId(3))       # Result[int, ...]

Each call is one transaction: the loan, the item and the member change
together or not at all.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime

from circulation._types import LoanId, MemberId, Result
from circulation.domain import (
    AlreadyReturned,
    CatalogItem,
    CirculationError,
    LoanRecord,
    Member,
)
from circulation.services._common import in_transaction, require
from circulation.store import Transaction, Store

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ReturnReceipt:
    loan: LoanRecord
    item: CatalogItem
    member: Member
    days_overdue: int

    @property
    def was_overdue(self) -> bool:
        return self.days_overdue > 0


async def _close(tx: Transaction, loan: LoanRecord, now: datetime) -> tuple[LoanRecord, CatalogItem]:
    """Mark loan returned and put its copy back on the shelf."""
    if not loan.is_open:
        raise AlreadyReturned(loan.id)
    loan = require(await tx.update_loan(loan.close(now)))
    item = require(await tx.get_item(loan.item_id, lock=True))
    item = require(await tx.update_item(item.receive()))
    return loan, item


class ReturnService:
    def __init__(
        self,
        store: Store,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._clock = clock

    async def return_item(self, loan_id: LoanId) -> Result[ReturnReceipt, CirculationError]:
        async def work(tx: Transaction) -> ReturnReceipt:
            now = self._clock()
            # Member, then loan, then item: the order checkout and return_all lock in.
            member_id = require(await tx.get_loan(loan_id)).member_id
            member = require(await tx.get_member(member_id, lock=True))
            loan = require(await tx.get_loan(loan_id, lock=True))
            days_overdue = loan.days_overdue(now)
            loan, item = await _close(tx, loan, now)

            member = require(
                await tx.update_member(
                    replace(member, borrowed_count=max(0, member.borrowed_count - 1))
                )
            )
            logger.info(
                "Returned %s (loan %s) from member %s%s",
                item.title,
                loan.id,
                member.id,
                f", {days_overdue} day(s) overdue" if days_overdue else "",
            )
            return ReturnReceipt(loan, item, member, days_overdue)

        return await in_transaction(self._store, work)

    async def return_all(self, member_id: MemberId) -> Result[int, CirculationError]:
        """Return every open loan of a member. Ok(0) when nothing was out."""

        async def work(tx: Transaction) -> int:
            now = self._clock()
            member = require(await tx.get_member(member_id, lock=True))
            loans = require(await tx.list_open_loans_for_member(member_id))

            for loan in loans:
                locked = require(await tx.get_loan(loan.id, lock=True))
                await _close(tx, locked, now)

            require(await tx.update_member(replace(member, borrowed_count=0)))
            if loans:
                logger.info("Returned %d item(s) for member %s", len(loans), member_id)
            return len(loans)

        return await in_transaction(self._store, work)


__all__ = ("ReturnReceipt", "ReturnService")
