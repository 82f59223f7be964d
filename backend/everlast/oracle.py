"""
Spot price collaborators.

The pricing core only needs `get_spot_price()`; freshness is the feed's
concern and is exposed separately as `is_oracle_fresh`.
"""
import time
from typing import Callable, Optional, Protocol

from .errors import InvalidPrice, StalePrice

DEFAULT_MAX_STALENESS = 3600  # seconds


class SpotPriceSource(Protocol):
    def get_spot_price(self) -> int:
        ...


class StaticPriceFeed:
    """In-memory price feed with an update timestamp (WAD prices)."""

    def __init__(self, price: int, updated_at: Optional[float] = None, clock: Callable[[], float] = time.time):
        self._clock = clock
        self.price = price
        self.updated_at = clock() if updated_at is None else updated_at

    def set_price(self, price: int, updated_at: Optional[float] = None) -> None:
        self.price = price
        self.updated_at = self._clock() if updated_at is None else updated_at

    def get_spot_price(self) -> int:
        if self.price <= 0:
            raise InvalidPrice(f"price feed reported {self.price}")
        return self.price

    def is_oracle_fresh(self, max_staleness: int = DEFAULT_MAX_STALENESS) -> bool:
        if self.price <= 0:
            return False
        return self._clock() - self.updated_at <= max_staleness


def get_fresh_spot_price(source, max_staleness: int = DEFAULT_MAX_STALENESS) -> int:
    """Spot price from `source`, refusing stale reads."""
    price = source.get_spot_price()
    if not source.is_oracle_fresh(max_staleness):
        raise StalePrice(f"price not updated within {max_staleness}s")
    return price
