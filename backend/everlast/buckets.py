import logging
from dataclasses import dataclass, replace
from typing import List, Dict, Sequence

from .errors import InvalidGeometry
from .fixed_point import WAD
from .oracle import SpotPriceSource
from .types import GridRecentered

logger = logging.getLogger(__name__)

# Upper bound of the representable price axis; the upper tail ends here.
MAX_PRICE_WAD = 10**36

DEFAULT_REBALANCE_THRESHOLD_FRACTION = WAD // 10  # 10% drift from center


@dataclass(frozen=True)
class BucketGrid:
    """
    Linear price grid: `num_regular` buckets of `width` centred on `center`,
    plus a lower tail [0, lower_edge) at index 0 and an upper tail
    [upper_edge, MAX_PRICE_WAD] at index num_regular + 1.
    """

    center: int
    width: int
    num_regular: int

    def __post_init__(self):
        if self.num_regular < 1:
            raise InvalidGeometry(f"need at least one regular bucket, got {self.num_regular}")
        if self.width <= 0:
            raise InvalidGeometry(f"bucket width must be positive, got {self.width}")
        if self.center <= 0:
            raise InvalidGeometry(f"center price must be positive, got {self.center}")
        if self.lower_edge <= 0:
            raise InvalidGeometry(
                f"grid at center {self.center} reaches below zero (lower edge {self.lower_edge})"
            )
        if self.upper_edge + self.span // 2 > MAX_PRICE_WAD:
            raise InvalidGeometry(f"grid at center {self.center} exceeds the price range")

    @property
    def span(self) -> int:
        return self.width * self.num_regular

    @property
    def lower_edge(self) -> int:
        return self.center - self.span // 2

    @property
    def upper_edge(self) -> int:
        return self.lower_edge + self.span

    @property
    def num_buckets(self) -> int:
        return self.num_regular + 2

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.num_buckets:
            raise IndexError(f"bucket index {index} out of range [0, {self.num_buckets})")

    def bounds(self, index: int):
        self._check_index(index)
        if index == 0:
            return 0, self.lower_edge
        if index == self.num_buckets - 1:
            return self.upper_edge, MAX_PRICE_WAD
        low = self.lower_edge + (index - 1) * self.width
        return low, low + self.width

    def midpoint(self, index: int) -> int:
        self._check_index(index)
        if index == 0:
            return self.lower_edge // 2
        if index == self.num_buckets - 1:
            # tail representative sits half a grid span past the edge
            return self.upper_edge + self.span // 2
        low, high = self.bounds(index)
        return low + (high - low) // 2

    def midpoints(self) -> List[int]:
        return [self.midpoint(i) for i in range(self.num_buckets)]

    def index_of(self, price: int) -> int:
        if price < 0:
            raise ValueError(f"price must be non-negative, got {price}")
        if price < self.lower_edge:
            return 0
        if price >= self.upper_edge:
            return self.num_buckets - 1
        return 1 + (price - self.lower_edge) // self.width

    def recentered(self, new_center: int) -> "BucketGrid":
        return replace(self, center=new_center)

    def buckets(self) -> List[Dict[str, int]]:
        result = []
        for i in range(self.num_buckets):
            low, high = self.bounds(i)
            result.append({"low": low, "high": high, "center": self.midpoint(i), "idx": i})
        return result


def remap_quantities(old_grid: BucketGrid, old_q: Sequence[int], new_grid: BucketGrid) -> List[int]:
    """
    Move each old bucket's exposure to the new bucket containing the old
    midpoint. Tails absorb anything outside the new regular range, so the
    signed total is conserved exactly.
    """
    if len(old_q) != old_grid.num_buckets:
        raise ValueError(f"expected {old_grid.num_buckets} quantities, got {len(old_q)}")
    new_q = [0] * new_grid.num_buckets
    for i, qi in enumerate(old_q):
        new_q[new_grid.index_of(old_grid.midpoint(i))] += qi
    return new_q


class BucketRegistry:
    """Owns the grid geometry and answers bucket queries against a spot price source."""

    def __init__(
        self,
        price_source: SpotPriceSource,
        center_price: int,
        bucket_width: int,
        num_regular: int,
        rebalance_threshold_fraction: int = DEFAULT_REBALANCE_THRESHOLD_FRACTION,
    ):
        if rebalance_threshold_fraction <= 0:
            raise ValueError("rebalance threshold must be positive")
        self.price_source = price_source
        self.grid = BucketGrid(center=center_price, width=bucket_width, num_regular=num_regular)
        self.rebalance_threshold_fraction = rebalance_threshold_fraction

    @property
    def num_buckets(self) -> int:
        return self.grid.num_buckets

    def get_num_buckets(self) -> int:
        return self.grid.num_buckets

    def get_bucket_midpoint(self, index: int) -> int:
        return self.grid.midpoint(index)

    def get_bucket_bounds(self, index: int):
        return self.grid.bounds(index)

    def get_bucket_index(self, price: int) -> int:
        return self.grid.index_of(price)

    def get_center_price(self) -> int:
        return self.grid.center

    def get_bucket_width(self) -> int:
        return self.grid.width

    def get_spot_price(self) -> int:
        return self.price_source.get_spot_price()

    def needs_rebalance(self) -> bool:
        spot = self.get_spot_price()
        center = self.grid.center
        drift = abs(spot - center) * WAD // center
        return drift > self.rebalance_threshold_fraction

    def recenter(self, new_center: int):
        """
        Re-anchor the grid on `new_center`, width unchanged. The registry does
        not own quantities: callers holding exposure remap it first (see
        CLUMEngine.recenter).
        """
        new_grid = self.grid.recentered(new_center)
        old_center = self.grid.center
        self.grid = new_grid
        event = GridRecentered(old_center=old_center, new_center=new_center)
        logger.info("Grid recentered: %s -> %s", old_center, new_center)
        return event
