"""
Mark price, intrinsic value and funding derived from the pool's implied
distribution. Holds no mutable state: every call reads the engine's current
probabilities and the registry's geometry.

Funding per second for `size` options:

    clamp((mark - intrinsic) * premium_factor / funding_period, 0, max_rate) * size

so a long whose mark sits above intrinsic pays the time value down over one
funding period (scaled by the premium factor), capped at max_rate per unit.
"""
from .engine import CLUMEngine
from .buckets import BucketRegistry
from .fixed_point import WAD, mul_wad, wad_to_usdc
from .lmsr import expected_payoff, payoff, payoff_vector
from .types import OptionType, validate_trade_input

DEFAULT_PREMIUM_FACTOR = WAD
DEFAULT_FUNDING_PERIOD = 86400  # seconds
DEFAULT_MAX_FUNDING_RATE_PER_SECOND = WAD // 100


class FundingDeriver:
    def __init__(
        self,
        engine: CLUMEngine,
        registry: BucketRegistry,
        premium_factor: int = DEFAULT_PREMIUM_FACTOR,
        funding_period: int = DEFAULT_FUNDING_PERIOD,
        max_funding_rate_per_second: int = DEFAULT_MAX_FUNDING_RATE_PER_SECOND,
    ):
        if premium_factor <= 0:
            raise ValueError("premium factor must be positive")
        if funding_period <= 0:
            raise ValueError("funding period must be positive")
        if max_funding_rate_per_second < 0:
            raise ValueError("max funding rate must be non-negative")
        self.engine = engine
        self.registry = registry
        self.premium_factor = premium_factor
        self.funding_period = funding_period
        self.max_funding_rate_per_second = max_funding_rate_per_second

    def get_mark_price(self, option_type, strike: int) -> int:
        """Risk-neutral expected payoff sum_i p_i * payoff(midpoint_i)."""
        option_type = OptionType.parse(option_type)
        midpoints, probabilities = self.engine.get_implied_distribution()
        return expected_payoff(probabilities, payoff_vector(midpoints, option_type, strike))

    def get_intrinsic_value(self, option_type, strike: int) -> int:
        return payoff(option_type, self.registry.get_spot_price(), strike)

    def get_time_value(self, option_type, strike: int) -> int:
        return max(self.get_mark_price(option_type, strike) - self.get_intrinsic_value(option_type, strike), 0)

    def get_funding_rate_per_unit(self, option_type, strike: int) -> int:
        rate = mul_wad(self.get_time_value(option_type, strike), self.premium_factor) // self.funding_period
        return min(rate, self.max_funding_rate_per_second)

    def get_funding_per_second(self, option_type, strike: int, size: int) -> int:
        validate_trade_input(strike, size)
        return mul_wad(self.get_funding_rate_per_unit(option_type, strike), size)

    def get_funding_per_second_usdc(self, option_type, strike: int, size: int) -> int:
        return wad_to_usdc(self.get_funding_per_second(option_type, strike, size))

    def accrued_funding(self, option_type, strike: int, size: int, elapsed_seconds: int) -> int:
        """Funding owed over `elapsed_seconds`, in USDC units."""
        if elapsed_seconds < 0:
            raise ValueError("elapsed time must be non-negative")
        return wad_to_usdc(self.get_funding_per_second(option_type, strike, size) * elapsed_seconds)

    def get_spot_price_usdc(self) -> int:
        return wad_to_usdc(self.registry.get_spot_price())
