"""
Committed pricing state of the CLUM engine.

EngineState is immutable: every commit point (trade, verified cost update,
recenter) builds a complete new value and swaps it in with one assignment,
so a rejected operation can never leave a half-written quantity vector. The
grid the quantities are priced on travels with them, so a reader holding one
state never pairs midpoints from one grid with quantities from another.
"""
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Sequence, Tuple

from .buckets import BucketGrid


@dataclass(frozen=True)
class EngineState:
    quantities: Tuple[int, ...]
    cached_cost: int
    utility_level: int
    liquidity: int
    grid: BucketGrid

    def __post_init__(self):
        object.__setattr__(self, "quantities", tuple(int(q) for q in self.quantities))
        if self.liquidity <= 0:
            raise ValueError(f"liquidity must be positive, got {self.liquidity}")
        if len(self.quantities) != self.grid.num_buckets:
            raise ValueError(
                f"{len(self.quantities)} quantities for a grid of {self.grid.num_buckets} buckets"
            )

    @property
    def num_buckets(self) -> int:
        return len(self.quantities)

    def with_update(
        self, quantities: Sequence[int], cached_cost: int, grid: Optional[BucketGrid] = None
    ) -> "EngineState":
        return replace(
            self, quantities=tuple(quantities), cached_cost=cached_cost, grid=grid or self.grid
        )


def state_to_dict(state: EngineState) -> Dict[str, Any]:
    return {
        "quantities": list(state.quantities),
        "cached_cost": state.cached_cost,
        "utility_level": state.utility_level,
        "liquidity": state.liquidity,
        "center_price": state.grid.center,
    }
