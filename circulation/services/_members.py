"""
Members — registration and upkeep.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from circulation._types import MemberId, Result
from circulation.domain import (
    ActiveLoans,
    CirculationError,
    DuplicateEmail,
    Member,
    MemberDraft,
    ValidationError,
)
from circulation.services._common import in_transaction, require
from circulation.store import Store, Transaction

logger = logging.getLogger(__name__)

EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _validate(name: str, email: str, phone: str) -> None:
    if not name.strip():
        raise ValidationError("name", "Member name cannot be empty")
    if not email.strip():
        raise ValidationError("email", "Member email cannot be empty")
    if not EMAIL.match(email.strip()):
        raise ValidationError("email", f"{email.strip()!r} is not a valid email address")
    if not phone.strip():
        raise ValidationError("phone", "Member phone cannot be empty")


async def _ensure_email_free(tx: Transaction, email: str, owner: MemberId | None = None) -> None:
    existing = require(await tx.find_member_by_email(email))
    if existing is not None and existing.id != owner:
        raise DuplicateEmail(email)


class MemberService:
    def __init__(
        self,
        store: Store,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._clock = clock

    async def register(self, draft: MemberDraft) -> Result[Member, CirculationError]:
        async def work(tx: Transaction) -> Member:
            _validate(draft.name, draft.email, draft.phone)
            clean = replace(
                draft,
                name=draft.name.strip(),
                email=draft.email.strip(),
                phone=draft.phone.strip(),
                joined_at=draft.joined_at or self._clock(),
            )
            await _ensure_email_free(tx, clean.email)
            member = require(await tx.create_member(clean))
            logger.info("Registered member %s (%s)", member.id, member.name)
            return member

        return await in_transaction(self._store, work)

    async def update(self, member: Member) -> Result[Member, CirculationError]:
        """Save contact details, role, status and expiry. The borrowed count is kept as stored."""

        async def work(tx: Transaction) -> Member:
            _validate(member.name, member.email, member.phone)
            stored = require(await tx.get_member(member.id, lock=True))
            await _ensure_email_free(tx, member.email.strip(), owner=member.id)
            clean = replace(
                member,
                name=member.name.strip(),
                email=member.email.strip(),
                phone=member.phone.strip(),
                borrowed_count=stored.borrowed_count,
            )
            return require(await tx.update_member(clean))

        return await in_transaction(self._store, work)

    async def delete(self, member_id: MemberId) -> Result[None, CirculationError]:
        async def work(tx: Transaction) -> None:
            member = require(await tx.get_member(member_id, lock=True))
            if member.borrowed_count > 0:
                raise ActiveLoans("member", member_id.value, member.borrowed_count)
            require(await tx.delete_member(member_id))
            logger.info("Deleted member %s (%s)", member_id, member.name)

        return await in_transaction(self._store, work)

    async def get(self, member_id: MemberId) -> Result[Member, CirculationError]:
        async def work(tx: Transaction) -> Member:
            return require(await tx.get_member(member_id))

        return await in_transaction(self._store, work)

    async def list(self) -> Result[list[Member], CirculationError]:
        async def work(tx: Transaction) -> list[Member]:
            return require(await tx.list_members())

        return await in_transaction(self._store, work)

    async def search(self, text: str) -> Result[list[Member], CirculationError]:
        async def work(tx: Transaction) -> list[Member]:
            if not text.strip():
                return require(await tx.list_members())
            return require(await tx.search_members(text))

        return await in_transaction(self._store, work)

    async def with_overdue_loans(self) -> Result[list[Member], CirculationError]:
        """Members holding at least one overdue loan, by name."""

        async def work(tx: Transaction) -> list[Member]:
            now = self._clock()
            loans = require(await tx.list_open_loans())
            ids = {loan.member_id for loan in loans if loan.is_overdue(now)}
            members = [require(await tx.get_member(member_id)) for member_id in ids]
            return sorted(members, key=lambda m: m.name)

        return await in_transaction(self._store, work)


__all__ = ("MemberService", "EMAIL")
