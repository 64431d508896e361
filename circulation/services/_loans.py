"""
Loan desk — renewals and loan listings.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from circulation._types import LoanId, MemberId, Result
from circulation.domain import (
    CirculationError,
    LoanRecord,
    LoanStatus,
    RenewalRefused,
    format_date,
)
from circulation.services._common import in_transaction, require
from circulation.store import Store, Transaction

logger = logging.getLogger(__name__)

RENEWAL_DAYS = 14


class LoanDesk:
    def __init__(
        self,
        store: Store,
        *,
        renewal_days: int = RENEWAL_DAYS,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._renewal_days = renewal_days
        self._clock = clock

    async def renew(self, loan_id: LoanId, *, days: int | None = None) -> Result[LoanRecord, CirculationError]:
        """
        Push the due date back by `days` (default: the desk's renewal period).

        Only open, not yet overdue loans can be renewed. Each renewal is
        appended to the loan's remarks.
        """
        days = self._renewal_days if days is None else days

        async def work(tx: Transaction) -> LoanRecord:
            now = self._clock()
            loan = require(await tx.get_loan(loan_id, lock=True))
            if loan.status is not LoanStatus.BORROWED:
                raise RenewalRefused(loan_id, "only borrowed items can be renewed")
            if loan.is_overdue(now):
                raise RenewalRefused(loan_id, "overdue items cannot be renewed")
            if days < 1:
                raise RenewalRefused(loan_id, "renewal period must be at least one day")

            note = f"Renewed for {days} days on {format_date(now)}"
            renewed = require(await tx.update_loan(loan.extend(timedelta(days=days), note)))
            logger.info("Renewed loan %s until %s", loan_id, format_date(renewed.due_at))
            return renewed

        return await in_transaction(self._store, work)

    async def get(self, loan_id: LoanId) -> Result[LoanRecord, CirculationError]:
        async def work(tx: Transaction) -> LoanRecord:
            return require(await tx.get_loan(loan_id))

        return await in_transaction(self._store, work)

    async def open_loans(self, member_id: MemberId) -> Result[list[LoanRecord], CirculationError]:
        async def work(tx: Transaction) -> list[LoanRecord]:
            require(await tx.get_member(member_id))
            return require(await tx.list_open_loans_for_member(member_id))

        return await in_transaction(self._store, work)

    async def history(self, member_id: MemberId) -> Result[list[LoanRecord], CirculationError]:
        """Every loan of a member, newest first."""

        async def work(tx: Transaction) -> list[LoanRecord]:
            require(await tx.get_member(member_id))
            return require(await tx.list_loans_for_member(member_id))

        return await in_transaction(self._store, work)

    async def overdue(self) -> Result[list[LoanRecord], CirculationError]:
        async def work(tx: Transaction) -> list[LoanRecord]:
            now = self._clock()
            return [loan for loan in require(await tx.list_open_loans()) if loan.is_overdue(now)]

        return await in_transaction(self._store, work)


__all__ = ("LoanDesk", "RENEWAL_DAYS")
