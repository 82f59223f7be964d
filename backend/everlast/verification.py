"""
Trusted verify-and-commit stage for off-path cost proposals.

An untrusted solver computes C(q) exactly and submits the result together with
the quantity vector it priced and the trades that produced it. Checking the
submission here is O(N) fixed-point work; the checks run in a fixed order and
the first failure rejects the proposal:

1. delta        - new quantities equal current q plus the kappa vectors of the
                  declared trades (no trades: q unchanged)
2. monotonicity - sign(proposed - cached) matches the trade direction
3. bound        - proposed cost lies inside the integer bracket of C(new q),
                  widened by the tolerance
4. simplex      - probabilities of the new q sum to 1 within N wei + tolerance

verify_cost_update is a pure function of (state, midpoints, proposal); the
engine only adds authorization and the commit.
"""
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

from .errors import VerificationCheck, VerificationFailed
from .fixed_point import WAD, INT256_MAX, INT256_MIN
from .lmsr import kappa_vector, lmsr_cost_bounds, lmsr_prices
from .state import EngineState
from .types import Side, TradeIntent

MAX_BATCH_TRADES = 16
DEFAULT_TOLERANCE_WAD = 10**9


@dataclass(frozen=True)
class CostProposal:
    proposed_cost: int
    new_quantities: Tuple[int, ...]
    trades: Tuple[TradeIntent, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "new_quantities", tuple(self.new_quantities))
        object.__setattr__(self, "trades", tuple(self.trades))


def expected_quantities(
    quantities: Sequence[int], midpoints: Sequence[int], trades: Sequence[TradeIntent]
) -> list:
    expected = list(quantities)
    for trade in trades:
        kappa = kappa_vector(midpoints, trade.option_type, trade.strike, trade.size)
        sign = trade.side.sign
        for i, k in enumerate(kappa):
            expected[i] += sign * k
    return expected


def implied_direction(trades: Sequence[TradeIntent], changed: bool) -> Optional[int]:
    """+1 all buys, -1 all sells, 0 nothing moved, None for a mixed batch."""
    if not changed:
        return 0
    sides = {t.side for t in trades}
    if sides == {Side.BUY}:
        return 1
    if sides == {Side.SELL}:
        return -1
    return None


def _sign(x: int) -> int:
    return (x > 0) - (x < 0)


def check_delta(state: EngineState, midpoints: Sequence[int], proposal: CostProposal) -> None:
    n = state.num_buckets
    if len(midpoints) != n:
        raise VerificationFailed(VerificationCheck.DELTA, "grid and quantity vector disagree in size")
    if len(proposal.new_quantities) != n:
        raise VerificationFailed(
            VerificationCheck.DELTA,
            f"expected {n} quantities, got {len(proposal.new_quantities)}",
        )
    if len(proposal.trades) > MAX_BATCH_TRADES:
        raise VerificationFailed(
            VerificationCheck.DELTA,
            f"{len(proposal.trades)} trades exceeds batch limit {MAX_BATCH_TRADES}",
        )
    for trade in proposal.trades:
        if not isinstance(trade, TradeIntent):
            raise VerificationFailed(VerificationCheck.DELTA, f"not a trade intent: {trade!r}")
    expected = expected_quantities(state.quantities, midpoints, proposal.trades)
    for i, (want, got) in enumerate(zip(expected, proposal.new_quantities)):
        if want != got:
            raise VerificationFailed(
                VerificationCheck.DELTA,
                f"bucket {i} is {got}, declared trades imply {want}",
            )
        if got > INT256_MAX or got < INT256_MIN:
            raise VerificationFailed(VerificationCheck.DELTA, f"bucket {i} outside int256 range")


def check_monotonicity(state: EngineState, proposal: CostProposal, tolerance_wad: int) -> None:
    changed = tuple(proposal.new_quantities) != state.quantities
    direction = implied_direction(proposal.trades, changed)
    diff = proposal.proposed_cost - state.cached_cost
    if direction is None:
        return
    if direction == 0:
        if abs(diff) > tolerance_wad:
            raise VerificationFailed(
                VerificationCheck.MONOTONICITY,
                f"quantities unchanged but cost moved by {diff}",
            )
        return
    if _sign(diff) != direction:
        raise VerificationFailed(
            VerificationCheck.MONOTONICITY,
            f"cost change {diff} does not match trade direction {direction:+d}",
        )


def check_bound(state: EngineState, proposal: CostProposal, tolerance_wad: int) -> None:
    lower, upper = lmsr_cost_bounds(proposal.new_quantities, state.liquidity)
    if not lower - tolerance_wad <= proposal.proposed_cost <= upper + tolerance_wad:
        raise VerificationFailed(
            VerificationCheck.BOUND,
            f"proposed cost {proposal.proposed_cost} outside [{lower}, {upper}] +/- {tolerance_wad}",
        )


def check_simplex(state: EngineState, proposal: CostProposal, tolerance_wad: int) -> None:
    prices = lmsr_prices(proposal.new_quantities, state.liquidity)
    total = sum(prices)
    slack = len(prices) + tolerance_wad
    if any(p < 0 for p in prices) or abs(total - WAD) > slack:
        raise VerificationFailed(
            VerificationCheck.SIMPLEX,
            f"probabilities sum to {total}, expected {WAD} +/- {slack}",
        )


def verify_cost_update(
    state: EngineState,
    midpoints: Sequence[int],
    proposal: CostProposal,
    tolerance_wad: int = DEFAULT_TOLERANCE_WAD,
) -> EngineState:
    """Return the state the proposal commits to, or raise VerificationFailed."""
    check_delta(state, midpoints, proposal)
    check_monotonicity(state, proposal, tolerance_wad)
    check_bound(state, proposal, tolerance_wad)
    check_simplex(state, proposal, tolerance_wad)
    return state.with_update(proposal.new_quantities, proposal.proposed_cost)
