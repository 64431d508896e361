"""
Store — persistence port and its adapters.

    from circulation.store import InMemoryStore, SQLAlchemyStore, create_database

    store = InMemoryStore()
    async with store.transaction() as tx:
        ...

Modules:
- _port.py       — Store / Transaction protocols
- _journal.py    — UndoJournal (rollback by compensation)
- _memory.py     — InMemoryStore
- _sqlalchemy.py — SQLAlchemyStore, tables, create_database
"""

from circulation.store._port import Store, Transaction, matches
from circulation.store._journal import UndoJournal
from circulation.store._memory import InMemoryStore, InMemoryTransaction
from circulation.store._sqlalchemy import (
    Base,
    ItemRow,
    LoanRow,
    MemberRow,
    SQLAlchemyStore,
    SQLAlchemyTransaction,
    create_database,
    create_schema,
)

__all__ = (
    # Port
    "Store",
    "Transaction",
    "matches",
    "UndoJournal",
    # In-memory
    "InMemoryStore",
    "InMemoryTransaction",
    # SQLAlchemy
    "Base",
    "ItemRow",
    "MemberRow",
    "LoanRow",
    "SQLAlchemyStore",
    "SQLAlchemyTransaction",
    "create_database",
    "create_schema",
)
