from __future__ import annotations

from datetime import timedelta

from circulation._types import LoanId, MemberId
from circulation.cart import Cart
from circulation.domain import LoanStatus, NotFound, RenewalRefused
from circulation.services import CheckoutService, LoanDesk, ReturnService
from tests.helpers import NOW, add_item, add_member


async def lend(store, clock, member, *items):
    cart = Cart()
    for item in items:
        cart.add_item(item)
    return (await CheckoutService(store, clock=clock).checkout(cart, member.id)).unwrap()


async def test_renew_extends_due_date_and_logs_remark(store, clock):
    member = await add_member(store)
    loan = (await lend(store, clock, member, await add_item(store, "Dune"))).loans[0]
    desk = LoanDesk(store, clock=clock)

    clock.advance(10)
    renewed = (await desk.renew(loan.id)).unwrap()

    assert renewed.due_at == loan.due_at + timedelta(days=14)
    assert renewed.remarks == "Renewed for 14 days on 2026-03-12"
    assert (await desk.get(loan.id)).unwrap().due_at == renewed.due_at


async def test_renewals_accumulate_remarks(store, clock):
    member = await add_member(store)
    loan = (await lend(store, clock, member, await add_item(store, "Dune"))).loans[0]
    desk = LoanDesk(store, renewal_days=7, clock=clock)

    (await desk.renew(loan.id)).unwrap()
    clock.advance(1)
    renewed = (await desk.renew(loan.id, days=3)).unwrap()

    assert renewed.due_at == loan.due_at + timedelta(days=10)
    assert renewed.remarks == "Renewed for 7 days on 2026-03-02; Renewed for 3 days on 2026-03-03"


async def test_overdue_loan_cannot_be_renewed(store, clock):
    member = await add_member(store)
    loan = (await lend(store, clock, member, await add_item(store, "Dune"))).loans[0]
    clock.advance(15)

    error = (await LoanDesk(store, clock=clock).renew(loan.id)).unwrap_err()

    assert isinstance(error, RenewalRefused)
    assert "overdue" in str(error)


async def test_returned_loan_cannot_be_renewed(store, clock):
    member = await add_member(store)
    loan = (await lend(store, clock, member, await add_item(store, "Dune"))).loans[0]
    (await ReturnService(store, clock=clock).return_item(loan.id)).unwrap()

    error = (await LoanDesk(store, clock=clock).renew(loan.id)).unwrap_err()

    assert isinstance(error, RenewalRefused)


async def test_renew_unknown_loan(store, clock):
    assert isinstance((await LoanDesk(store, clock=clock).renew(LoanId(404))).unwrap_err(), NotFound)


async def test_open_loans_and_history(store, clock):
    member = await add_member(store)
    a = await add_item(store, "A")
    b = await add_item(store, "B")
    first = (await lend(store, clock, member, a)).loans[0]
    clock.advance(1)
    second = (await lend(store, clock, member, b)).loans[0]
    (await ReturnService(store, clock=clock).return_item(first.id)).unwrap()
    desk = LoanDesk(store, clock=clock)

    open_ = (await desk.open_loans(member.id)).unwrap()
    history = (await desk.history(member.id)).unwrap()

    assert [loan.id for loan in open_] == [second.id]
    assert [loan.id for loan in history] == [second.id, first.id]
    assert history[1].status is LoanStatus.RETURNED


async def test_listing_unknown_member(store, clock):
    desk = LoanDesk(store, clock=clock)
    assert isinstance((await desk.open_loans(MemberId(404))).unwrap_err(), NotFound)
    assert isinstance((await desk.history(MemberId(404))).unwrap_err(), NotFound)


async def test_overdue(store, clock):
    member = await add_member(store)
    early = (await lend(store, clock, member, await add_item(store, "A"))).loans[0]
    clock.advance(7)
    await lend(store, clock, member, await add_item(store, "B"))
    desk = LoanDesk(store, clock=clock)

    assert (await desk.overdue()).unwrap() == []
    clock.advance(8)
    overdue = (await desk.overdue()).unwrap()
    assert [loan.id for loan in overdue] == [early.id]
    assert overdue[0].display_status(clock.now) is LoanStatus.OVERDUE
    assert overdue[0].due_at == NOW + timedelta(days=14)
