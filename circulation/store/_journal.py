"""
Undo journal — compensating actions replayed in reverse on rollback.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

type Undo[T] = Callable[[T], Awaitable[None]]
type RecordedUndo[T] = tuple[T, Undo[T]]


@dataclass(slots=True)
class UndoJournal:
    """Record (value, undo) pairs as writes happen; roll back or discard at the end."""

    entries: list[RecordedUndo[Any]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.entries)

    def record[T](self, value: T, undo: Undo[T]) -> None:
        self.entries.append((value, undo))

    async def rollback(self) -> tuple[int, int]:
        """Run compensators in reverse. Returns (run, failed)."""
        run = 0
        failed = 0

        for value, undo in reversed(self.entries):
            try:
                await undo(value)
                run += 1
            except Exception:
                failed += 1
                logger.error("Compensation failed for %r", value, exc_info=True)

        self.entries.clear()
        return run, failed

    def discard(self) -> None:
        self.entries.clear()


__all__ = ("Undo", "RecordedUndo", "UndoJournal")
