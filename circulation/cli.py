"""
Circulation desk — interactive shell over the services.

    python -m circulation            # configured database
    python -m circulation --demo     # seeded in-memory store

One cart per session. Items go into the cart one by one or as named groups,
checkout lends everything in it to one member after a y/N confirmation.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import datetime

from circulation._logging import configure_logging
from circulation._types import Error, ItemId, LoanId, MemberId, Ok
from circulation.cart import Cart, Group, item_count, render
from circulation.config import Settings
from circulation.domain import (
    CatalogItem,
    CirculationError,
    ItemDraft,
    LoanRecord,
    Member,
    MemberDraft,
    Role,
    format_date,
)
from circulation.services import (
    CatalogService,
    CheckoutPlan,
    CheckoutService,
    LoanDesk,
    MemberService,
    ReturnService,
)
from circulation.store import InMemoryStore, SQLAlchemyStore, Store, create_database

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Help
# ═══════════════════════════════════════════════════════════════════════════════

HELP_TEXT = """
  CATALOG
    items                      List all items
    search <text>              Search title, author, code, genre, publisher
    members                    List members

  CART
    add <item_id>              Put one item in the cart
    group <name> <id,id,...>   Put a named batch of items in the cart
    remove <n>                 Remove the n-th entry of the cart
    cart                       Show the cart
    clear                      Empty the cart
    checkout <member_id>       Lend everything in the cart to a member

  LOANS
    loans <member_id>          Open loans of a member
    history <member_id>        Every loan of a member, newest first
    return <loan_id>           Return one loan
    return-all <member_id>     Return every open loan of a member
    renew <loan_id>            Extend a loan
    overdue                    All overdue loans

    help                       Show this help
    quit                       Exit
"""


def _fail(e: CirculationError) -> str:
    return f"  ✗ [{e.code}] {e}"


def _item_line(item: CatalogItem) -> str:
    return (
        f"  [{item.id.value:>4}] {item.title[:32]:32} {item.author[:20]:20} "
        f"{item.available_copies}/{item.total_copies}  {item.status.value}"
    )


def _member_line(member: Member) -> str:
    return (
        f"  [{member.id.value:>4}] {member.name[:24]:24} {member.role.value:8} "
        f"{member.status.value:9} {member.borrowed_count}/{member.quota}"
    )


def _loan_line(loan: LoanRecord, now: datetime) -> str:
    return (
        f"  [{loan.id.value:>4}] item {loan.item_id.value:<5} member {loan.member_id.value:<5} "
        f"borrowed {format_date(loan.borrowed_at)}  due {format_date(loan.due_at)}  "
        f"{loan.display_status(now).value}"
    )


def _number(text: str, what: str) -> int:
    try:
        return int(text)
    except ValueError:
        raise ValueError(f"{what} must be a number") from None


# ═══════════════════════════════════════════════════════════════════════════════
# Desk
# ═══════════════════════════════════════════════════════════════════════════════


class Desk:
    """
    Command dispatcher. handle() runs one command line and reports whether
    the session should continue.
    """

    def __init__(
        self,
        store: Store,
        settings: Settings | None = None,
        *,
        clock: Callable[[], datetime] = datetime.now,
        ask: Callable[[str], str] = input,
        out: Callable[[str], None] = print,
    ) -> None:
        settings = settings or Settings()
        self.cart = Cart()
        self.catalog = CatalogService(store)
        self.members = MemberService(store, clock=clock)
        self.checkout = CheckoutService(store, loan_period=settings.loan_period, clock=clock)
        self.returns = ReturnService(store, clock=clock)
        self.loans = LoanDesk(store, renewal_days=settings.renewal_days, clock=clock)
        self._clock = clock
        self._ask = ask
        self._out = out

    async def handle(self, line: str) -> bool:
        parts = line.strip().split(maxsplit=1)
        if not parts:
            return True
        cmd = parts[0].lower()
        arg = parts[1] if len(parts) > 1 else ""

        try:
            match cmd:
                case "quit" | "exit" | "q":
                    self._out("Bye!")
                    return False
                case "help" | "h" | "?":
                    self._out(HELP_TEXT)
                case "items":
                    await self.cmd_items()
                case "search":
                    await self.cmd_search(arg)
                case "members":
                    await self.cmd_members()
                case "add" if arg:
                    await self.cmd_add(_number(arg, "item_id"))
                case "group" if len(arg.rsplit(maxsplit=1)) == 2:
                    name, ids = arg.rsplit(maxsplit=1)
                    await self.cmd_group(name, [_number(i, "item_id") for i in ids.split(",") if i])
                case "remove" if arg:
                    self.cmd_remove(_number(arg, "n"))
                case "cart":
                    self.cmd_cart()
                case "clear":
                    self.cmd_clear()
                case "checkout" if arg:
                    await self.cmd_checkout(_number(arg, "member_id"))
                case "loans" if arg:
                    await self.cmd_loans(_number(arg, "member_id"))
                case "history" if arg:
                    await self.cmd_history(_number(arg, "member_id"))
                case "return" if arg:
                    await self.cmd_return(_number(arg, "loan_id"))
                case "return-all" if arg:
                    await self.cmd_return_all(_number(arg, "member_id"))
                case "renew" if arg:
                    await self.cmd_renew(_number(arg, "loan_id"))
                case "overdue":
                    await self.cmd_overdue()
                case (
                    "add" | "group" | "remove" | "checkout"
                    | "loans" | "history" | "return" | "return-all" | "renew"
                ):
                    self._out(f"  Usage: see 'help' for {cmd}")
                case _:
                    self._out(f"  ✗ Unknown command: {cmd}")
                    self._out("  Type 'help' for available commands.")
        except ValueError as e:
            self._out(f"  ✗ {e}")
        return True

    async def run(self) -> None:
        """Read commands until quit or end of input."""
        self._out(HELP_TEXT)
        while True:
            try:
                line = self._ask("\n> ")
            except (EOFError, KeyboardInterrupt):
                self._out("\nBye!")
                break
            if not await self.handle(line):
                break

    # ─── catalog ───────────────────────────────────────────────────────────

    async def cmd_items(self) -> None:
        match await self.catalog.list_items():
            case Ok(items):
                for item in items:
                    self._out(_item_line(item))
                if not items:
                    self._out("  (catalog is empty)")
            case Error(e):
                self._out(_fail(e))

    async def cmd_search(self, text: str) -> None:
        match await self.catalog.search_items(text):
            case Ok(items):
                for item in items:
                    self._out(_item_line(item))
                self._out(f"  {len(items)} match(es)")
            case Error(e):
                self._out(_fail(e))

    async def cmd_members(self) -> None:
        match await self.members.list():
            case Ok(members):
                for member in members:
                    self._out(_member_line(member))
                if not members:
                    self._out("  (no members)")
            case Error(e):
                self._out(_fail(e))

    # ─── cart ──────────────────────────────────────────────────────────────

    async def cmd_add(self, item_id: int) -> None:
        match await self.catalog.get_item(ItemId(item_id)):
            case Error(e):
                self._out(_fail(e))
                return
            case Ok(item):
                pass

        if not item.is_available:
            self._out(f'  ✗ "{item.title}" is not available')
            return

        match self.cart.add_item(item):
            case Ok(_):
                self._out(f'  ✓ Added "{item.title}" ({self.cart.item_count} in cart)')
            case Error(e):
                self._out(_fail(e))

    async def cmd_group(self, name: str, item_ids: list[int]) -> None:
        items: list[CatalogItem] = []
        for item_id in item_ids:
            match await self.catalog.get_item(ItemId(item_id)):
                case Ok(item):
                    items.append(item)
                case Error(e):
                    self._out(_fail(e))
                    return

        unavailable = [item.title for item in items if not item.is_available]
        if unavailable:
            self._out("  ✗ Not available: " + ", ".join(f'"{title}"' for title in unavailable))
            return

        match self.cart.add_group(name, items):
            case Ok(group):
                self._out(f"  ✓ Added group {group.name} with {group.item_count} item(s)")
            case Error(e):
                self._out(_fail(e))

    def cmd_remove(self, index: int) -> None:
        children = self.cart.children
        if not 1 <= index <= len(children):
            self._out(f"  ✗ No cart entry {index}")
            return
        node = children[index - 1]
        # Groups always ask, whatever their size.
        if isinstance(node, Group) and not self._confirm(
            f"  Remove group {node.name} with {item_count(node)} items? [y/N] "
        ):
            return
        self.cart.remove_node(node)
        self._out(f"  ✓ Removed {node.name}")

    def cmd_clear(self) -> None:
        if self.cart.is_empty:
            self._out("  Cart is empty")
            return
        if not self._confirm(f"  Clear {self.cart.item_count} item(s) from the cart? [y/N] "):
            return
        self.cart.clear()
        self._out("  ✓ Cart cleared")

    def _confirm(self, prompt: str) -> bool:
        return self._ask(prompt).strip().lower().startswith("y")

    def cmd_cart(self) -> None:
        if self.cart.is_empty:
            self._out("  Cart is empty")
            return
        for index, node in enumerate(self.cart.children, start=1):
            first, *rest = render(node).splitlines()
            self._out(f"  {index}. {first}")
            for line in rest:
                self._out(f"     {line}")
        self._out(f"  {self.cart.item_count} item(s)")

    async def cmd_checkout(self, member_id: int) -> None:
        async def confirm(plan: CheckoutPlan) -> bool:
            self._out(f"  Lend {plan.count} item(s) to {plan.member.name}, due {format_date(plan.due_at)}:")
            for item in plan.items:
                self._out(f"    - {item.title}")
            return self._confirm("  Confirm checkout? [y/N] ")

        match await self.checkout.checkout(self.cart, MemberId(member_id), confirm=confirm):
            case Ok(receipt):
                self._out(
                    f"  ✓ {len(receipt.loans)} item(s) lent to {receipt.member.name}, "
                    f"due {format_date(receipt.due_at)}"
                )
            case Error(e):
                self._out(_fail(e))

    # ─── loans ─────────────────────────────────────────────────────────────

    async def cmd_loans(self, member_id: int) -> None:
        now = self._clock()
        match await self.loans.open_loans(MemberId(member_id)):
            case Ok(loans):
                for loan in loans:
                    self._out(_loan_line(loan, now))
                self._out(f"  {len(loans)} open loan(s)")
            case Error(e):
                self._out(_fail(e))

    async def cmd_history(self, member_id: int) -> None:
        now = self._clock()
        match await self.loans.history(MemberId(member_id)):
            case Ok(loans):
                for loan in loans:
                    returned = f"  returned {format_date(loan.returned_at)}" if loan.returned_at else ""
                    self._out(_loan_line(loan, now) + returned)
                    if loan.remarks:
                        self._out(f"         {loan.remarks}")
                self._out(f"  {len(loans)} loan(s)")
            case Error(e):
                self._out(_fail(e))

    async def cmd_return(self, loan_id: int) -> None:
        match await self.returns.return_item(LoanId(loan_id)):
            case Ok(receipt):
                late = f", {receipt.days_overdue} day(s) overdue" if receipt.was_overdue else ""
                self._out(f'  ✓ "{receipt.item.title}" returned by {receipt.member.name}{late}')
            case Error(e):
                self._out(_fail(e))

    async def cmd_return_all(self, member_id: int) -> None:
        match await self.returns.return_all(MemberId(member_id)):
            case Ok(count):
                self._out(f"  ✓ {count} item(s) returned")
            case Error(e):
                self._out(_fail(e))

    async def cmd_renew(self, loan_id: int) -> None:
        match await self.loans.renew(LoanId(loan_id)):
            case Ok(loan):
                self._out(f"  ✓ Loan {loan.id} now due {format_date(loan.due_at)}")
            case Error(e):
                self._out(_fail(e))

    async def cmd_overdue(self) -> None:
        now = self._clock()
        match await self.loans.overdue():
            case Ok(loans):
                for loan in loans:
                    self._out(_loan_line(loan, now))
                self._out(f"  {len(loans)} overdue loan(s)")
            case Error(e):
                self._out(_fail(e))


# ═══════════════════════════════════════════════════════════════════════════════
# Demo Data
# ═══════════════════════════════════════════════════════════════════════════════

DEMO_ITEMS = (
    ItemDraft("978-0441013593", "Dune", "Frank Herbert", 3, genre="Science Fiction", location="A1"),
    ItemDraft("978-0547928227", "The Hobbit", "J.R.R. Tolkien", 2, genre="Fantasy", location="A2"),
    ItemDraft("978-0451524935", "1984", "George Orwell", 1, genre="Dystopia", location="B1"),
    ItemDraft("978-0060935467", "To Kill a Mockingbird", "Harper Lee", 2, genre="Classic", location="B2"),
    ItemDraft("978-0141439518", "Pride and Prejudice", "Jane Austen", 1, genre="Classic", location="B3"),
    ItemDraft("978-0262033848", "Introduction to Algorithms", "Cormen et al.", 1, genre="Computing", location="C1"),
)

DEMO_MEMBERS = (
    MemberDraft("Ada Lovelace", "ada@example.org", "555-0101"),
    MemberDraft("Alan Turing", "alan@example.org", "555-0102", role=Role.PREMIUM),
    MemberDraft("Grace Hopper", "grace@example.org", "555-0103", role=Role.ADMIN),
)


async def seed_demo(store: Store) -> None:
    catalog = CatalogService(store)
    members = MemberService(store)
    for item in DEMO_ITEMS:
        (await catalog.add_item(item)).unwrap()
    for member in DEMO_MEMBERS:
        (await members.register(member)).unwrap()


# ═══════════════════════════════════════════════════════════════════════════════
# Main Loop
# ═══════════════════════════════════════════════════════════════════════════════


async def _serve(settings: Settings, demo: bool) -> None:
    if demo:
        store: Store = InMemoryStore()
        await seed_demo(store)
        await Desk(store, settings).run()
        return

    session_factory, engine = create_database(settings.database_url, echo=settings.echo_sql)
    try:
        await Desk(SQLAlchemyStore(session_factory), settings).run()
    finally:
        await engine.dispose()


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="circulation", description="Library circulation desk")
    parser.add_argument("--demo", action="store_true", help="run against a seeded in-memory store")
    args = parser.parse_args(argv)

    try:
        settings = Settings.from_env()
    except ValueError as e:
        parser.error(str(e))

    configure_logging(settings.log_level_number)
    logger.debug("Starting desk (demo=%s)", args.demo)
    asyncio.run(_serve(settings, args.demo))
    return 0


__all__ = ("Desk", "HELP_TEXT", "DEMO_ITEMS", "DEMO_MEMBERS", "seed_demo", "main")
