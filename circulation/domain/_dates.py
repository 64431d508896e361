"""Date formatting shared by receipts, remarks and the desk shell."""

from __future__ import annotations

from datetime import datetime

DATE_FORMAT = "%Y-%m-%d"


def format_date(value: datetime | None) -> str:
    return value.strftime(DATE_FORMAT) if value is not None else ""


__all__ = ("DATE_FORMAT", "format_date")
