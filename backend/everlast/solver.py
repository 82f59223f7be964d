"""
Off-path CLUM solver.

Evaluates C(q) in 60-digit decimal arithmetic from the engine's public state
and packages the result as a CostProposal for verify_and_set_cost. The
solver is untrusted: nothing here is relied on by the engine, which re-checks
every submission itself.
"""
import logging
from decimal import Decimal, localcontext, ROUND_HALF_EVEN
from typing import Dict, List, Sequence

from .engine import CLUMEngine
from .fixed_point import WAD
from .lmsr import lmsr_cost
from .types import TradeIntent
from .verification import CostProposal, expected_quantities

logger = logging.getLogger(__name__)

PRECISION = 60
_WAD = Decimal(WAD)


def solve_cost(quantities: Sequence[int], liquidity: int) -> int:
    """C(q) = b * ln(sum exp(q_i / b)) in high precision, rounded to the nearest wei."""
    with localcontext() as ctx:
        ctx.prec = PRECISION
        b = Decimal(liquidity) / _WAD
        qs = [Decimal(q) / _WAD for q in quantities]
        max_q = max(qs)
        total = sum(((qk - max_q) / b).exp() for qk in qs)
        cost = max_q + b * total.ln()
        return int((cost * _WAD).to_integral_value(rounding=ROUND_HALF_EVEN))


def solve_probabilities(quantities: Sequence[int], liquidity: int) -> List[Decimal]:
    with localcontext() as ctx:
        ctx.prec = PRECISION
        b = Decimal(liquidity) / _WAD
        qs = [Decimal(q) / _WAD for q in quantities]
        max_q = max(qs)
        weights = [((qk - max_q) / b).exp() for qk in qs]
        total = sum(weights)
        return [w / total for w in weights]


class OffchainSolver:
    def __init__(self, engine: CLUMEngine):
        self.engine = engine

    def propose(self, trades: Sequence[TradeIntent] = ()) -> CostProposal:
        """Price the engine's q after `trades` (none: refresh the cached cost)."""
        state = self.engine.state
        new_q = expected_quantities(state.quantities, state.grid.midpoints(), trades)
        cost = solve_cost(new_q, state.liquidity)
        return CostProposal(proposed_cost=cost, new_quantities=tuple(new_q), trades=tuple(trades))

    def compute_trade_cost(self, trade: TradeIntent) -> Dict[str, object]:
        proposal = self.propose([trade])
        old_cost = self.engine.get_cached_cost()
        delta = proposal.proposed_cost - old_cost
        return {"cost": delta * trade.side.sign, "proposal": proposal}

    def residual(self, proposal: CostProposal) -> int:
        """Gap between the proposal and the engine's own fixed-point evaluation, in wei."""
        return proposal.proposed_cost - lmsr_cost(proposal.new_quantities, self.engine.get_liquidity())

    def submit(self, caller, proposal: CostProposal):
        logger.info(
            "Submitting cost proposal: cost=%d trades=%d residual=%d",
            proposal.proposed_cost, len(proposal.trades), self.residual(proposal),
        )
        return self.engine.verify_and_set_cost(
            caller, proposal.proposed_cost, proposal.new_quantities, proposal.trades
        )

    def implied_distribution(self) -> Dict[str, list]:
        state = self.engine.state
        return {
            "midpoints": state.grid.midpoints(),
            "probabilities": solve_probabilities(state.quantities, state.liquidity),
        }
