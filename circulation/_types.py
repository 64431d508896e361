"""
Core types for circulation.

Re-exports from kungfu + identity wrappers shared by every layer.
"""

from __future__ import annotations

from dataclasses import dataclass

# Re-export from kungfu
from kungfu import Result, Ok, Error

# ═══════════════════════════════════════════════════════════════════════════════
# Identities
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ItemId:
    """Catalog item identity, assigned by persistence."""

    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True, slots=True)
class MemberId:
    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True, slots=True)
class LoanId:
    value: int

    def __str__(self) -> str:
        return str(self.value)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    # Identity
    "ItemId",
    "MemberId",
    "LoanId",
)
