"""
SQLAlchemy Store — async sessions over `items`, `members`, `loans`.

    session_factory, engine = create_database("postgresql+asyncpg://postgres@localhost/library")
    store = SQLAlchemyStore(session_factory)

    async with store.transaction() as tx:
        item = await tx.get_item(ItemId(1), lock=True)

One AsyncSession per transaction, inside `session.begin()`. Row locks are
`SELECT ... FOR UPDATE` (ignored by SQLite). Driver errors come back as
PersistenceError and are logged with their cause; nothing is retried.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import datetime

from combinators import lift as L
from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Select,
    String,
    Text,
    func,
    or_,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from circulation._types import ItemId, LoanId, MemberId, Result
from circulation.domain import (
    CatalogItem,
    ItemDraft,
    LoanDraft,
    LoanRecord,
    LoanStatus,
    Member,
    MemberDraft,
    MemberStatus,
    NotFound,
    PersistenceError,
    Role,
    StoreError,
)

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Tables
# ═══════════════════════════════════════════════════════════════════════════════


class Base(DeclarativeBase):
    pass


class ItemRow(Base):
    __tablename__ = "items"
    __table_args__ = (
        CheckConstraint("total_copies >= 1", name="ck_items_total"),
        CheckConstraint(
            "available_copies >= 0 AND available_copies <= total_copies",
            name="ck_items_available",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    author: Mapped[str] = mapped_column(String(255), nullable=False)
    total_copies: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    available_copies: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    publisher: Mapped[str | None] = mapped_column(String(255), nullable=True)
    publication_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    genre: Mapped[str | None] = mapped_column(String(100), nullable=True)
    location: Mapped[str | None] = mapped_column(String(100), nullable=True)


class MemberRow(Base):
    __tablename__ = "members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=Role.REGULAR.value)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=MemberStatus.ACTIVE.value)
    joined_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expiry_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    borrowed_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class LoanRow(Base):
    __tablename__ = "loans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[int] = mapped_column(ForeignKey("items.id"), nullable=False, index=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("members.id"), nullable=False, index=True)
    borrowed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    due_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    returned_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=LoanStatus.BORROWED.value)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Row <-> Domain
# ═══════════════════════════════════════════════════════════════════════════════


def _item(row: ItemRow) -> CatalogItem:
    return CatalogItem(
        id=ItemId(row.id),
        code=row.code,
        title=row.title,
        author=row.author,
        total_copies=row.total_copies,
        available_copies=row.available_copies,
        publisher=row.publisher,
        publication_year=row.publication_year,
        genre=row.genre,
        location=row.location,
    )


def _member(row: MemberRow) -> Member:
    return Member(
        id=MemberId(row.id),
        name=row.name,
        email=row.email,
        phone=row.phone,
        joined_at=row.joined_at,
        address=row.address,
        role=Role(row.role),
        status=MemberStatus(row.status),
        expiry_date=row.expiry_date,
        borrowed_count=row.borrowed_count,
    )


def _loan(row: LoanRow) -> LoanRecord:
    return LoanRecord(
        id=LoanId(row.id),
        item_id=ItemId(row.item_id),
        member_id=MemberId(row.member_id),
        borrowed_at=row.borrowed_at,
        due_at=row.due_at,
        returned_at=row.returned_at,
        status=LoanStatus(row.status),
        remarks=row.remarks,
    )


def _failed(operation: str) -> Callable[[Exception], StoreError]:
    """Map an exception raised inside an operation onto the port's error type."""

    def convert(exc: Exception) -> StoreError:
        if isinstance(exc, NotFound):
            return exc
        logger.error("Database error during %s", operation, exc_info=exc)
        return PersistenceError(f"Database error during {operation}", exc)

    return convert


# ═══════════════════════════════════════════════════════════════════════════════
# Transaction
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyTransaction:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _run[T](self, operation: str, fn: Callable[[], Awaitable[T]]) -> Result[T, StoreError]:
        return await L.catching_async(fn, on_error=_failed(operation))

    async def _row[R: Base](self, model: type[R], entity: str, key: int, lock: bool) -> R:
        if lock:
            stmt = select(model).where(model.id == key).with_for_update()  # type: ignore[attr-defined]
            row = (await self._session.execute(stmt)).scalar_one_or_none()
        else:
            row = await self._session.get(model, key)
        if row is None:
            raise NotFound(entity, key)
        return row

    # ─── catalog ───────────────────────────────────────────────────────────

    async def get_item(self, item_id: ItemId, *, lock: bool = False) -> Result[CatalogItem, StoreError]:
        async def fetch() -> CatalogItem:
            return _item(await self._row(ItemRow, "item", item_id.value, lock))

        return await self._run("get_item", fetch)

    async def create_item(self, draft: ItemDraft) -> Result[CatalogItem, PersistenceError]:
        async def insert() -> CatalogItem:
            row = ItemRow(
                code=draft.code,
                title=draft.title,
                author=draft.author,
                total_copies=draft.total_copies,
                available_copies=(
                    draft.total_copies if draft.available_copies is None else draft.available_copies
                ),
                publisher=draft.publisher,
                publication_year=draft.publication_year,
                genre=draft.genre,
                location=draft.location,
            )
            self._session.add(row)
            await self._session.flush()
            return _item(row)

        return await self._run("create_item", insert)  # type: ignore[return-value]

    async def update_item(self, item: CatalogItem) -> Result[CatalogItem, StoreError]:
        async def write() -> CatalogItem:
            row = await self._row(ItemRow, "item", item.id.value, lock=False)
            row.code = item.code
            row.title = item.title
            row.author = item.author
            row.total_copies = item.total_copies
            row.available_copies = item.available_copies
            row.publisher = item.publisher
            row.publication_year = item.publication_year
            row.genre = item.genre
            row.location = item.location
            await self._session.flush()
            return _item(row)

        return await self._run("update_item", write)

    async def delete_item(self, item_id: ItemId) -> Result[None, StoreError]:
        async def remove() -> None:
            row = await self._row(ItemRow, "item", item_id.value, lock=False)
            await self._session.delete(row)
            await self._session.flush()

        return await self._run("delete_item", remove)

    async def list_items(self) -> Result[list[CatalogItem], PersistenceError]:
        async def fetch() -> list[CatalogItem]:
            rows = await self._session.scalars(select(ItemRow).order_by(ItemRow.title, ItemRow.id))
            return [_item(row) for row in rows]

        return await self._run("list_items", fetch)  # type: ignore[return-value]

    async def search_items(self, text: str) -> Result[list[CatalogItem], PersistenceError]:
        needle = text.strip()

        async def fetch() -> list[CatalogItem]:
            stmt = (
                select(ItemRow)
                .where(
                    or_(
                        ItemRow.title.icontains(needle, autoescape=True),
                        ItemRow.author.icontains(needle, autoescape=True),
                        ItemRow.code.icontains(needle, autoescape=True),
                        ItemRow.genre.icontains(needle, autoescape=True),
                        ItemRow.publisher.icontains(needle, autoescape=True),
                    )
                )
                .order_by(ItemRow.title, ItemRow.id)
            )
            return [_item(row) for row in await self._session.scalars(stmt)]

        return await self._run("search_items", fetch)  # type: ignore[return-value]

    async def find_item_by_code(self, code: str) -> Result[CatalogItem | None, PersistenceError]:
        async def fetch() -> CatalogItem | None:
            row = await self._session.scalar(select(ItemRow).where(ItemRow.code == code))
            return _item(row) if row is not None else None

        return await self._run("find_item_by_code", fetch)  # type: ignore[return-value]

    # ─── members ───────────────────────────────────────────────────────────

    async def get_member(self, member_id: MemberId, *, lock: bool = False) -> Result[Member, StoreError]:
        async def fetch() -> Member:
            return _member(await self._row(MemberRow, "member", member_id.value, lock))

        return await self._run("get_member", fetch)

    async def create_member(self, draft: MemberDraft) -> Result[Member, PersistenceError]:
        async def insert() -> Member:
            row = MemberRow(
                name=draft.name,
                email=draft.email,
                phone=draft.phone,
                address=draft.address,
                role=draft.role.value,
                status=draft.status.value,
                joined_at=draft.joined_at or datetime.now(),
                expiry_date=draft.expiry_date,
                borrowed_count=0,
            )
            self._session.add(row)
            await self._session.flush()
            return _member(row)

        return await self._run("create_member", insert)  # type: ignore[return-value]

    async def update_member(self, member: Member) -> Result[Member, StoreError]:
        async def write() -> Member:
            row = await self._row(MemberRow, "member", member.id.value, lock=False)
            row.name = member.name
            row.email = member.email
            row.phone = member.phone
            row.address = member.address
            row.role = member.role.value
            row.status = member.status.value
            row.expiry_date = member.expiry_date
            row.borrowed_count = member.borrowed_count
            await self._session.flush()
            return _member(row)

        return await self._run("update_member", write)

    async def delete_member(self, member_id: MemberId) -> Result[None, StoreError]:
        async def remove() -> None:
            row = await self._row(MemberRow, "member", member_id.value, lock=False)
            await self._session.delete(row)
            await self._session.flush()

        return await self._run("delete_member", remove)

    async def list_members(self) -> Result[list[Member], PersistenceError]:
        async def fetch() -> list[Member]:
            rows = await self._session.scalars(select(MemberRow).order_by(MemberRow.name, MemberRow.id))
            return [_member(row) for row in rows]

        return await self._run("list_members", fetch)  # type: ignore[return-value]

    async def search_members(self, text: str) -> Result[list[Member], PersistenceError]:
        needle = text.strip()

        async def fetch() -> list[Member]:
            stmt = (
                select(MemberRow)
                .where(
                    or_(
                        MemberRow.name.icontains(needle, autoescape=True),
                        MemberRow.email.icontains(needle, autoescape=True),
                        MemberRow.phone.icontains(needle, autoescape=True),
                    )
                )
                .order_by(MemberRow.name, MemberRow.id)
            )
            return [_member(row) for row in await self._session.scalars(stmt)]

        return await self._run("search_members", fetch)  # type: ignore[return-value]

    async def find_member_by_email(self, email: str) -> Result[Member | None, PersistenceError]:
        async def fetch() -> Member | None:
            stmt = select(MemberRow).where(func.lower(MemberRow.email) == email.strip().lower())
            row = await self._session.scalar(stmt)
            return _member(row) if row is not None else None

        return await self._run("find_member_by_email", fetch)  # type: ignore[return-value]

    # ─── loans ─────────────────────────────────────────────────────────────

    async def create_loan(self, draft: LoanDraft) -> Result[LoanId, PersistenceError]:
        async def insert() -> LoanId:
            row = LoanRow(
                item_id=draft.item_id.value,
                member_id=draft.member_id.value,
                borrowed_at=draft.borrowed_at,
                due_at=draft.due_at,
                status=LoanStatus.BORROWED.value,
            )
            self._session.add(row)
            await self._session.flush()
            return LoanId(row.id)

        return await self._run("create_loan", insert)  # type: ignore[return-value]

    async def get_loan(self, loan_id: LoanId, *, lock: bool = False) -> Result[LoanRecord, StoreError]:
        async def fetch() -> LoanRecord:
            return _loan(await self._row(LoanRow, "loan", loan_id.value, lock))

        return await self._run("get_loan", fetch)

    async def update_loan(self, loan: LoanRecord) -> Result[LoanRecord, StoreError]:
        async def write() -> LoanRecord:
            row = await self._row(LoanRow, "loan", loan.id.value, lock=False)
            row.due_at = loan.due_at
            row.returned_at = loan.returned_at
            row.status = loan.status.value
            row.remarks = loan.remarks
            await self._session.flush()
            return _loan(row)

        return await self._run("update_loan", write)

    async def list_open_loans_for_member(self, member_id: MemberId) -> Result[list[LoanRecord], PersistenceError]:
        async def fetch() -> list[LoanRecord]:
            stmt = _open_loans().where(LoanRow.member_id == member_id.value)
            return [_loan(row) for row in await self._session.scalars(stmt)]

        return await self._run("list_open_loans_for_member", fetch)  # type: ignore[return-value]

    async def list_loans_for_member(self, member_id: MemberId) -> Result[list[LoanRecord], PersistenceError]:
        async def fetch() -> list[LoanRecord]:
            stmt = (
                select(LoanRow)
                .where(LoanRow.member_id == member_id.value)
                .order_by(LoanRow.borrowed_at.desc(), LoanRow.id.desc())
            )
            return [_loan(row) for row in await self._session.scalars(stmt)]

        return await self._run("list_loans_for_member", fetch)  # type: ignore[return-value]

    async def list_open_loans(self) -> Result[list[LoanRecord], PersistenceError]:
        async def fetch() -> list[LoanRecord]:
            return [_loan(row) for row in await self._session.scalars(_open_loans())]

        return await self._run("list_open_loans", fetch)  # type: ignore[return-value]


def _open_loans() -> Select[tuple[LoanRow]]:
    return (
        select(LoanRow)
        .where(LoanRow.returned_at.is_(None), LoanRow.status == LoanStatus.BORROWED.value)
        .order_by(LoanRow.due_at, LoanRow.id)
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Store
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SQLAlchemyTransaction]:
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    yield SQLAlchemyTransaction(session)
            except SQLAlchemyError as e:
                logger.error("Transaction failed", exc_info=e)
                raise PersistenceError("Database error while committing", e) from e


# ═══════════════════════════════════════════════════════════════════════════════
# Database Setup
# ═══════════════════════════════════════════════════════════════════════════════


def create_database(
    url: str = "sqlite+aiosqlite:///:memory:",
    *,
    echo: bool = False,
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Create engine and return (session_factory, engine)."""
    engine = create_async_engine(url, echo=echo)
    return async_sessionmaker(engine, expire_on_commit=False), engine


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables. Development and tests only; production schemas are managed outside."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


__all__ = (
    "Base",
    "ItemRow",
    "MemberRow",
    "LoanRow",
    "SQLAlchemyStore",
    "SQLAlchemyTransaction",
    "create_database",
    "create_schema",
)
