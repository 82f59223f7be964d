"""
Static no-arbitrage checks on option prices quoted off the pool.

- call prices must be convex in strike
- puts are bid at least at the price implied by put-call parity (zero rate)
- a quoted premium can never exceed the largest payoff the grid can realise
"""
from typing import Dict, List, Sequence

from .engine import CLUMEngine
from .fixed_point import WAD, div_wad, mul_wad
from .lmsr import payoff
from .types import OptionType

DEFAULT_ARB_TOLERANCE = WAD // 1000


def check_convexity(
    k1: int, c1: int, k2: int, c2: int, k3: int, c3: int, tolerance: int = 0
) -> bool:
    """True when C(k2) <= lambda * C(k1) + (1 - lambda) * C(k3) for k1 < k2 < k3."""
    if not k1 < k2 < k3:
        raise ValueError("strikes must be strictly increasing")
    lam = div_wad(k3 - k2, k3 - k1)
    interpolated = mul_wad(lam, c1) + mul_wad(WAD - lam, c3)
    return c2 <= interpolated + tolerance


def compute_arbitrage_bounds(
    strikes: Sequence[int],
    call_prices: Sequence[int],
    put_prices: Sequence[int],
    spot: int,
) -> Dict[str, List[int]]:
    n = len(strikes)
    if not (len(call_prices) == len(put_prices) == n):
        raise ValueError("strikes, call_prices and put_prices must have the same length")
    call_bids = list(call_prices)
    call_asks = list(call_prices)
    put_bids = list(put_prices)
    put_asks = list(put_prices)

    # convexity caps the ask of each interior call
    for j in range(1, n - 1):
        lam = div_wad(strikes[j + 1] - strikes[j], strikes[j + 1] - strikes[j - 1])
        interpolated = mul_wad(lam, call_prices[j - 1]) + mul_wad(WAD - lam, call_prices[j + 1])
        if call_asks[j] > interpolated:
            call_asks[j] = interpolated

    # parity floors the put bid: P(K) >= C(K) - (S - K)+
    for j in range(n):
        parity = max(spot - strikes[j], 0)
        implied_put = max(call_prices[j] - parity, 0)
        if put_bids[j] < implied_put:
            put_bids[j] = implied_put

    return {"call_bids": call_bids, "call_asks": call_asks, "put_bids": put_bids, "put_asks": put_asks}


class ArbitrageGuard:
    def __init__(self, engine: CLUMEngine, tolerance: int = DEFAULT_ARB_TOLERANCE):
        self.engine = engine
        self.tolerance = tolerance

    def max_payoff(self, option_type, strike: int) -> int:
        return max(payoff(option_type, m, strike) for m in self.engine.get_midpoints())

    def validate_trade(self, option_type, strike: int, size: int, is_buy: bool) -> bool:
        """Per-unit quote lies in [intrinsic - tolerance, max payoff + tolerance]."""
        option_type = OptionType.parse(option_type)
        if is_buy:
            amount = self.engine.quote_buy(option_type, strike, size)
        else:
            amount = self.engine.quote_sell(option_type, strike, size)
        per_unit = div_wad(amount, size)
        intrinsic = payoff(option_type, self.engine.registry.get_spot_price(), strike)
        floor = max(intrinsic - self.tolerance, 0)
        return floor <= per_unit <= self.max_payoff(option_type, strike) + self.tolerance

    def check_call_curve(self, strikes: Sequence[int], size: int = WAD) -> bool:
        """Convexity of per-unit buy quotes across consecutive strike triples."""
        prices = [div_wad(self.engine.quote_buy(OptionType.CALL, k, size), size) for k in strikes]
        return all(
            check_convexity(strikes[j - 1], prices[j - 1], strikes[j], prices[j], strikes[j + 1], prices[j + 1], self.tolerance)
            for j in range(1, len(strikes) - 1)
        )
