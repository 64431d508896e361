from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import timedelta

import pytest

from circulation._types import Error, ItemId, LoanId, MemberId
from circulation.domain import (
    ItemDraft,
    LoanDraft,
    LoanStatus,
    NotFound,
    PersistenceError,
)
from circulation.store import UndoJournal
from tests.helpers import NOW, add_item, add_member, fetch_item, fetch_member, open_loans


class Boom(Exception):
    pass


async def test_commit_keeps_writes(store):
    item = await add_item(store, "Dune", total=2)
    assert (await fetch_item(store, item.id)) == item


async def test_exception_rolls_back_every_write(store):
    item = await add_item(store, "Dune", total=2)
    member = await add_member(store)

    with pytest.raises(Boom):
        async with store.transaction() as tx:
            (await tx.update_item(replace(item, available_copies=1))).unwrap()
            (await tx.update_member(replace(member, borrowed_count=1))).unwrap()
            (await tx.create_loan(LoanDraft(item.id, member.id, NOW, NOW + timedelta(days=14)))).unwrap()
            (await tx.create_item(ItemDraft("x-1", "Ghost", "Nobody"))).unwrap()
            raise Boom

    assert (await fetch_item(store, item.id)).available_copies == 2
    assert (await fetch_member(store, member.id)).borrowed_count == 0
    assert await open_loans(store) == []
    async with store.transaction() as tx:
        assert (await tx.find_item_by_code("x-1")).unwrap() is None


async def test_rollback_restores_deleted_rows(store):
    item = await add_item(store, "Dune")

    with pytest.raises(Boom):
        async with store.transaction() as tx:
            (await tx.delete_item(item.id)).unwrap()
            raise Boom

    assert await fetch_item(store, item.id) == item


async def test_missing_rows_are_not_found(store):
    async with store.transaction() as tx:
        for result, entity in (
            (await tx.get_item(ItemId(9)), "item"),
            (await tx.get_item(ItemId(9), lock=True), "item"),
            (await tx.get_member(MemberId(9)), "member"),
            (await tx.get_loan(LoanId(9), lock=True), "loan"),
            (await tx.delete_member(MemberId(9)), "member"),
        ):
            match result:
                case Error(NotFound() as e):
                    assert e.entity == entity
                    assert e.id == 9
                case other:
                    raise AssertionError(other)


async def test_loan_round_trip(store):
    item = await add_item(store, "Dune")
    member = await add_member(store)
    due = NOW + timedelta(days=14)

    async with store.transaction() as tx:
        loan_id = (await tx.create_loan(LoanDraft(item.id, member.id, NOW, due))).unwrap()
        loan = (await tx.get_loan(loan_id)).unwrap()
        assert (loan.item_id, loan.member_id, loan.borrowed_at, loan.due_at) == (item.id, member.id, NOW, due)
        assert loan.status is LoanStatus.BORROWED
        assert loan.is_open

        closed = (await tx.update_loan(loan.close(NOW + timedelta(days=2)))).unwrap()
        assert closed.status is LoanStatus.RETURNED

    async with store.transaction() as tx:
        assert (await tx.list_open_loans_for_member(member.id)).unwrap() == []
        history = (await tx.list_loans_for_member(member.id)).unwrap()
    assert [loan.returned_at for loan in history] == [NOW + timedelta(days=2)]


async def test_find_member_by_email_ignores_case(store):
    member = await add_member(store, "Ada", email="Ada@Example.org")
    async with store.transaction() as tx:
        assert (await tx.find_member_by_email("ada@example.ORG")).unwrap().id == member.id
        assert (await tx.find_member_by_email("nobody@example.org")).unwrap() is None


async def test_sqlalchemy_errors_become_persistence_errors(sql_store):
    await add_item(sql_store, "Dune", code="dup")

    with pytest.raises(PersistenceError):
        async with sql_store.transaction() as tx:
            result = await tx.create_item(ItemDraft("dup", "Dune again", "Someone"))
            match result:
                case Error(PersistenceError() as e):
                    assert e.cause is not None
                    raise e
                case other:
                    raise AssertionError(other)

    async with sql_store.transaction() as tx:
        assert len((await tx.list_items()).unwrap()) == 1


async def test_memory_transactions_are_serialized(memory_store):
    order: list[str] = []

    async def worker(name: str) -> None:
        async with memory_store.transaction():
            order.append(f"{name}:start")
            await asyncio.sleep(0.01)
            order.append(f"{name}:end")

    await asyncio.gather(worker("a"), worker("b"))

    assert order == ["a:start", "a:end", "b:start", "b:end"]


async def test_memory_ids_are_not_reused_after_rollback(memory_store):
    with pytest.raises(Boom):
        async with memory_store.transaction() as tx:
            (await tx.create_item(ItemDraft("x-1", "Ghost", "Nobody"))).unwrap()
            raise Boom

    item = await add_item(memory_store, "Dune")
    assert item.id == ItemId(2)


async def test_journal_runs_undo_in_reverse_and_counts_failures():
    journal = UndoJournal()
    seen: list[int] = []

    async def undo(value: int) -> None:
        seen.append(value)

    async def broken(value: int) -> None:
        raise RuntimeError("cannot undo")

    journal.record(1, undo)
    journal.record(2, broken)
    journal.record(3, undo)

    assert await journal.rollback() == (2, 1)
    assert seen == [3, 1]
    assert len(journal) == 0
