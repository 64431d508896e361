"""
circulation — library circulation desk: catalog, members, cart checkout, returns.

    from circulation import cart as C        # Cart composite (items + named groups)
    from circulation import store as S       # Persistence port + adapters
    from circulation import services as SV   # Checkout, returns, catalog, members, loans
"""

from circulation import domain
from circulation import cart
from circulation import store
from circulation import services
from circulation._types import ItemId, LoanId, MemberId
from circulation.config import Settings
from circulation._logging import configure_logging

__version__ = "0.1.0"

__all__ = (
    "domain",
    "cart",
    "store",
    "services",
    "ItemId",
    "MemberId",
    "LoanId",
    "Settings",
    "configure_logging",
)
