from dataclasses import dataclass
from enum import Enum
from typing import Union


class OptionType(str, Enum):
    CALL = "call"
    PUT = "put"

    @classmethod
    def parse(cls, value) -> "OptionType":
        """Accept an OptionType, its name/value, or the 0 (call) / 1 (put) wire code."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            if value == 0:
                return cls.CALL
            if value == 1:
                return cls.PUT
            raise ValueError(f"unknown option type code: {value}")
        if isinstance(value, str):
            try:
                return cls(value.lower())
            except ValueError:
                pass
        raise ValueError(f"unknown option type: {value!r}")


class Side(str, Enum):
    BUY = "buy"
    SELL = "sell"

    @property
    def sign(self) -> int:
        return 1 if self is Side.BUY else -1


@dataclass(frozen=True)
class TradeIntent:
    """A declared option trade; the quantity delta is derived from it, never supplied."""

    option_type: OptionType
    strike: int
    size: int
    side: Side = Side.BUY

    def __post_init__(self):
        object.__setattr__(self, "option_type", OptionType.parse(self.option_type))
        object.__setattr__(self, "side", Side(self.side))
        validate_trade_input(self.strike, self.size)


def validate_trade_input(strike: int, size: int) -> None:
    if not isinstance(strike, int) or isinstance(strike, bool) or strike <= 0:
        raise ValueError(f"strike must be a positive WAD int, got {strike!r}")
    if not isinstance(size, int) or isinstance(size, bool) or size <= 0:
        raise ValueError(f"size must be a positive WAD int, got {size!r}")


# --- Events ---

@dataclass(frozen=True)
class GridRecentered:
    old_center: int
    new_center: int


@dataclass(frozen=True)
class TradeExecuted:
    option_type: OptionType
    strike: int
    size: int
    side: Side
    cost: int


@dataclass(frozen=True)
class CostUpdated:
    old_cost: int
    new_cost: int


Event = Union[GridRecentered, TradeExecuted, CostUpdated]
