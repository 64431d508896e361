from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

from circulation._types import Error, MemberId, Ok
from circulation.cart import Cart
from circulation.domain import (
    BookUnavailable,
    EmptyCart,
    LoanStatus,
    MemberIneligible,
    MemberStatus,
    NoMember,
    NotConfirmed,
    NotFound,
    PersistenceError,
    QuotaExceeded,
    Role,
)
from circulation.services import CheckoutPlan, CheckoutService
from tests.helpers import (
    NOW,
    FailingStore,
    add_item,
    add_member,
    fetch_item,
    fetch_member,
    open_loans,
)


async def test_single_item_checkout(store, clock):
    item = await add_item(store, "Dune", total=1)
    member = await add_member(store)
    cart = Cart()
    cart.add_item(item)

    receipt = (await CheckoutService(store, clock=clock).checkout(cart, member.id)).unwrap()

    assert len(receipt.loans) == 1
    loan = receipt.loans[0]
    assert loan.borrowed_at == NOW
    assert loan.due_at == NOW + timedelta(days=14)
    assert loan.status is LoanStatus.BORROWED
    assert receipt.member.borrowed_count == 1

    assert (await fetch_item(store, item.id)).available_copies == 0
    assert (await fetch_member(store, member.id)).borrowed_count == 1
    stored = await open_loans(store)
    assert [(l.item_id, l.member_id) for l in stored] == [(item.id, member.id)]
    assert cart.is_empty


async def test_checkout_lends_groups_and_loose_items(store, clock):
    a = await add_item(store, "A", total=2)
    b = await add_item(store, "B", total=1)
    c = await add_item(store, "C", total=3)
    member = await add_member(store, role=Role.PREMIUM)
    cart = Cart()
    cart.add_item(a)
    cart.add_group("Course", [b, c])

    receipt = (await CheckoutService(store, clock=clock).checkout(cart, member.id)).unwrap()

    assert [loan.item_id for loan in receipt.loans] == [a.id, b.id, c.id]
    assert (await fetch_item(store, a.id)).available_copies == 1
    assert (await fetch_item(store, b.id)).available_copies == 0
    assert (await fetch_item(store, c.id)).available_copies == 2
    assert (await fetch_member(store, member.id)).borrowed_count == 3


async def test_quota_exceeded_changes_nothing(store, clock):
    first = await add_item(store, "First")
    second = await add_item(store, "Second")
    member = await add_member(store, borrowed=4)
    cart = Cart()
    cart.add_item(first)
    cart.add_item(second)

    result = await CheckoutService(store, clock=clock).checkout(cart, member.id)

    match result:
        case Error(QuotaExceeded() as e):
            assert (e.current, e.attempted, e.maximum) == (4, 2, 5)
            assert "Current: 4, Attempting to borrow: 2, Maximum allowed: 5" in str(e)
        case other:
            raise AssertionError(other)
    assert await open_loans(store) == []
    assert (await fetch_member(store, member.id)).borrowed_count == 4
    assert (await fetch_item(store, first.id)).available_copies == 1
    assert cart.item_count == 2


async def test_quota_depends_on_role(store, clock):
    items = [await add_item(store, f"Book {n}") for n in range(6)]
    regular = await add_member(store, "Reg", borrowed=0)
    premium = await add_member(store, "Prem", role=Role.PREMIUM)
    service = CheckoutService(store, clock=clock)

    cart = Cart()
    cart.add_group("Pile", items)
    assert isinstance((await service.preview(cart, regular.id)).unwrap_err(), QuotaExceeded)
    assert (await service.preview(cart, premium.id)).unwrap().count == 6


async def test_empty_cart(store, clock):
    member = await add_member(store)
    result = await CheckoutService(store, clock=clock).checkout(Cart(), member.id)
    assert isinstance(result.unwrap_err(), EmptyCart)


async def test_no_member(store, clock):
    cart = Cart()
    cart.add_item(await add_item(store, "Dune"))
    result = await CheckoutService(store, clock=clock).checkout(cart, None)
    assert isinstance(result.unwrap_err(), NoMember)


async def test_unknown_member(store, clock):
    cart = Cart()
    cart.add_item(await add_item(store, "Dune"))
    result = await CheckoutService(store, clock=clock).checkout(cart, MemberId(999))
    error = result.unwrap_err()
    assert isinstance(error, NotFound)
    assert error.entity == "member"


async def test_suspended_member_is_ineligible(store, clock):
    cart = Cart()
    cart.add_item(await add_item(store, "Dune"))
    member = await add_member(store, status=MemberStatus.SUSPENDED)
    result = await CheckoutService(store, clock=clock).checkout(cart, member.id)
    assert isinstance(result.unwrap_err(), MemberIneligible)
    assert await open_loans(store) == []


async def test_expired_member_is_ineligible(store, clock):
    cart = Cart()
    cart.add_item(await add_item(store, "Dune"))
    member = await add_member(store, expiry=NOW - timedelta(days=1))
    error = (await CheckoutService(store, clock=clock).checkout(cart, member.id)).unwrap_err()
    assert isinstance(error, MemberIneligible)
    assert "expired" in str(error)


async def test_live_availability_wins_over_cart_copy(store, clock):
    item = await add_item(store, "Dune", total=1)
    member = await add_member(store)
    cart = Cart()
    cart.add_item(item)

    # Someone else took the last copy after it went into the cart.
    async with store.transaction() as tx:
        (await tx.update_item(replace(item, available_copies=0))).unwrap()

    result = await CheckoutService(store, clock=clock).checkout(cart, member.id)

    match result:
        case Error(BookUnavailable(item_id=item_id, title=title)):
            assert item_id == item.id
            assert title == "Dune"
        case other:
            raise AssertionError(other)
    assert (await fetch_member(store, member.id)).borrowed_count == 0
    assert await open_loans(store) == []
    assert cart.item_count == 1


async def test_persistence_failure_midway_rolls_everything_back(store, clock):
    a = await add_item(store, "A")
    b = await add_item(store, "B")
    member = await add_member(store)
    cart = Cart()
    cart.add_item(a)
    cart.add_item(b)

    flaky = FailingStore(store, "create_loan", after=1)
    result = await CheckoutService(flaky, clock=clock).checkout(cart, member.id)

    assert isinstance(result.unwrap_err(), PersistenceError)
    assert flaky.calls == 2
    assert await open_loans(store) == []
    assert (await fetch_item(store, a.id)).available_copies == 1
    assert (await fetch_item(store, b.id)).available_copies == 1
    assert (await fetch_member(store, member.id)).borrowed_count == 0
    assert cart.item_count == 2


async def test_declined_confirmation_writes_nothing(store, clock):
    item = await add_item(store, "Dune")
    member = await add_member(store)
    cart = Cart()
    cart.add_item(item)
    seen: list[CheckoutPlan] = []

    async def decline(plan: CheckoutPlan) -> bool:
        seen.append(plan)
        return False

    result = await CheckoutService(store, clock=clock).checkout(cart, member.id, confirm=decline)

    assert isinstance(result.unwrap_err(), NotConfirmed)
    assert seen[0].member.id == member.id
    assert seen[0].items == (item,)
    assert seen[0].due_at == NOW + timedelta(days=14)
    assert await open_loans(store) == []
    assert cart.item_count == 1


async def test_accepted_confirmation_proceeds(store, clock):
    item = await add_item(store, "Dune")
    member = await add_member(store)
    cart = Cart()
    cart.add_item(item)

    async def accept(plan: CheckoutPlan) -> bool:
        return True

    result = await CheckoutService(store, clock=clock).checkout(cart, member.id, confirm=accept)
    assert isinstance(result, Ok)


async def test_rules_are_rechecked_after_confirmation(store, clock):
    item = await add_item(store, "Dune")
    member = await add_member(store, borrowed=4)
    cart = Cart()
    cart.add_item(item)

    async def meanwhile(plan: CheckoutPlan) -> bool:
        # Another desk lends this member a book while we wait.
        async with store.transaction() as tx:
            current = (await tx.get_member(member.id)).unwrap()
            (await tx.update_member(replace(current, borrowed_count=5))).unwrap()
        return True

    result = await CheckoutService(store, clock=clock).checkout(cart, member.id, confirm=meanwhile)

    assert isinstance(result.unwrap_err(), QuotaExceeded)
    assert (await fetch_item(store, item.id)).available_copies == 1


async def test_custom_loan_period(store, clock):
    item = await add_item(store, "Dune")
    member = await add_member(store)
    cart = Cart()
    cart.add_item(item)

    service = CheckoutService(store, loan_period=timedelta(days=7), clock=clock)
    receipt = (await service.checkout(cart, member.id)).unwrap()
    assert receipt.due_at == NOW + timedelta(days=7)
