"""
Service plumbing — unwrap port results inside a transaction, turn raised
domain errors back into values at the boundary.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from circulation._types import Error, Ok, Result
from circulation.domain import CirculationError, PersistenceError
from circulation.store import Store, Transaction

logger = logging.getLogger(__name__)


def require[T](result: Result[T, CirculationError]) -> T:
    """Value of an Ok, or raise the error so the enclosing transaction rolls back."""
    match result:
        case Ok(value):
            return value
        case Error(e):
            raise e


async def in_transaction[T](
    store: Store,
    work: Callable[[Transaction], Awaitable[T]],
) -> Result[T, CirculationError]:
    """Run work in one transaction. Domain errors roll back and come back as Error."""
    try:
        async with store.transaction() as tx:
            return Ok(await work(tx))
    except PersistenceError as e:
        return Error(e)
    except CirculationError as e:
        logger.warning("%s: %s", e.code, e)
        return Error(e)


__all__ = ("require", "in_transaction")
