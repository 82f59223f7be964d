import logging
from typing import Callable, List, Optional, Sequence, Tuple

from .buckets import BucketRegistry, remap_quantities
from .errors import (
    AlreadyInitialized,
    EngineNotInitialized,
    SolvencyViolation,
    UnauthorizedCaller,
    VerificationFailed,
)
from .fixed_point import WAD, check_int256
from .lmsr import (
    kappa_vector,
    liquidity_for_subsidy,
    lmsr_bid_ask,
    lmsr_cost,
    lmsr_prices,
)
from .state import EngineState
from .types import CostUpdated, OptionType, Side, TradeExecuted, TradeIntent, validate_trade_input
from .verification import DEFAULT_TOLERANCE_WAD, CostProposal, verify_cost_update

logger = logging.getLogger(__name__)

DEFAULT_MAX_EXPOSURE_WAD = 10**12 * WAD
# Quotes round against the trader by one wei whenever the trade moves q.
QUOTE_ROUNDING_WAD = 1


class CLUMEngine:
    """
    LMSR market maker over the bucket grid of a BucketRegistry.

    Owns the quantity vector and cached cost as a single EngineState value.
    Quotes are pure; execute_buy/execute_sell, verify_and_set_cost and
    recenter are the only commit points, and each either swaps in a fully
    computed new state or raises with nothing changed.
    """

    def __init__(
        self,
        registry: BucketRegistry,
        option_manager: Optional[str] = None,
        max_exposure_wad: int = DEFAULT_MAX_EXPOSURE_WAD,
        max_loss_wad: Optional[int] = None,
        tolerance_wad: int = DEFAULT_TOLERANCE_WAD,
    ):
        self.registry = registry
        self.option_manager = option_manager
        self.max_exposure_wad = max_exposure_wad
        self.max_loss_wad = max_loss_wad
        self.tolerance_wad = tolerance_wad
        self.events: List = []
        self._listeners: List[Callable] = []
        self._state: Optional[EngineState] = None

    # --- Lifecycle ---

    @property
    def initialized(self) -> bool:
        return self._state is not None

    def initialize(self, liquidity: int) -> EngineState:
        """Start from q = 0 with liquidity depth b; U = C(0) = b * ln(N)."""
        if self._state is not None:
            raise AlreadyInitialized("engine already initialized")
        if liquidity <= 0:
            raise ValueError(f"liquidity must be positive, got {liquidity}")
        q = [0] * self.registry.num_buckets
        cost = lmsr_cost(q, liquidity)
        self._state = EngineState(
            quantities=q,
            cached_cost=cost,
            utility_level=cost,
            liquidity=liquidity,
            grid=self.registry.grid,
        )
        if self.max_loss_wad is None:
            self.max_loss_wad = cost + self.tolerance_wad
        logger.info(
            "Engine initialized: buckets=%d b=%d C(0)=%d", len(q), liquidity, cost
        )
        return self._state

    def initialize_with_subsidy(self, subsidy: int) -> EngineState:
        return self.initialize(liquidity_for_subsidy(subsidy, self.registry.num_buckets))

    def set_option_manager(self, address: str) -> None:
        if not address:
            raise ValueError("Invalid address")
        self.option_manager = address

    def subscribe(self, listener: Callable) -> None:
        self._listeners.append(listener)

    @property
    def state(self) -> EngineState:
        if self._state is None:
            raise EngineNotInitialized("engine not initialized")
        return self._state

    # --- Reads ---

    def get_num_buckets(self) -> int:
        return self.state.num_buckets

    def get_quantity(self, index: int) -> int:
        return self.state.quantities[index]

    def get_quantities(self) -> Tuple[int, ...]:
        return self.state.quantities

    def get_cached_cost(self) -> int:
        return self.state.cached_cost

    def get_utility_level(self) -> int:
        return self.state.utility_level

    def get_liquidity(self) -> int:
        return self.state.liquidity

    def get_risk_neutral_prices(self) -> List[int]:
        state = self.state
        return lmsr_prices(state.quantities, state.liquidity)

    def get_midpoints(self) -> List[int]:
        return self.state.grid.midpoints()

    def get_implied_distribution(self) -> Tuple[List[int], List[int]]:
        # one snapshot: midpoints and probabilities always come from the same commit
        state = self.state
        return state.grid.midpoints(), lmsr_prices(state.quantities, state.liquidity)

    def get_bid_ask(self):
        state = self.state
        return lmsr_bid_ask(state.quantities, state.liquidity)

    # --- Quotes ---

    def trade_delta(
        self, option_type, strike: int, size: int, state: Optional[EngineState] = None
    ) -> List[int]:
        option_type = OptionType.parse(option_type)
        validate_trade_input(strike, size)
        state = state or self.state
        return kappa_vector(state.grid.midpoints(), option_type, strike, size)

    def _price(
        self, side: Side, option_type, strike: int, size: int, state: Optional[EngineState] = None
    ):
        state = state or self.state
        kappa = self.trade_delta(option_type, strike, size, state)
        new_q = [check_int256(q + side.sign * k, "quantity") for q, k in zip(state.quantities, kappa)]
        old_cost = lmsr_cost(state.quantities, state.liquidity)
        new_cost = lmsr_cost(new_q, state.liquidity)
        moved = any(kappa)
        if side is Side.BUY:
            amount = new_cost - old_cost + (QUOTE_ROUNDING_WAD if moved else 0)
        else:
            amount = max(old_cost - new_cost - (QUOTE_ROUNDING_WAD if moved else 0), 0)
        return amount, new_q, new_cost

    def quote_buy(self, option_type, strike: int, size: int) -> int:
        """Cost of buying `size` options: C(q + kappa) - C(q)."""
        return self._price(Side.BUY, option_type, strike, size)[0]

    def quote_sell(self, option_type, strike: int, size: int) -> int:
        """Revenue of selling `size` options: C(q) - C(q - kappa)."""
        return self._price(Side.SELL, option_type, strike, size)[0]

    # --- Commit points ---

    def _require_manager(self, caller) -> None:
        if self.option_manager is None or caller != self.option_manager:
            logger.warning("Rejected call from unauthorized caller %r", caller)
            raise UnauthorizedCaller(caller, self.option_manager)

    def _check_solvency(self, quantities: Sequence[int], cost: int) -> None:
        worst = max(abs(q) for q in quantities)
        if worst > self.max_exposure_wad:
            raise SolvencyViolation(
                f"bucket exposure {worst} exceeds ceiling {self.max_exposure_wad}"
            )
        # pool pays max(q) if that bucket settles and has collected C(q) - C(0)
        loss = max(quantities) - (cost - self.state.utility_level)
        if loss > self.max_loss_wad:
            raise SolvencyViolation(f"worst-case loss {loss} exceeds ceiling {self.max_loss_wad}")

    def _commit(self, new_state: EngineState, *events) -> None:
        self._state = new_state
        for event in events:
            self.events.append(event)
            for listener in self._listeners:
                listener(event)

    def _execute(self, caller, side: Side, option_type, strike: int, size: int) -> int:
        self._require_manager(caller)
        option_type = OptionType.parse(option_type)
        old_state = self.state
        amount, new_q, new_cost = self._price(side, option_type, strike, size, old_state)
        self._check_solvency(new_q, new_cost)
        old_cost = old_state.cached_cost
        self._commit(
            old_state.with_update(new_q, new_cost),
            TradeExecuted(option_type=option_type, strike=strike, size=size, side=side, cost=amount),
            CostUpdated(old_cost=old_cost, new_cost=new_cost),
        )
        logger.info(
            "Trade executed: %s %s strike=%d size=%d amount=%d cost %d -> %d",
            side.value, option_type.value, strike, size, amount, old_cost, new_cost,
        )
        return amount

    def execute_buy(self, caller, option_type, strike: int, size: int) -> int:
        return self._execute(caller, Side.BUY, option_type, strike, size)

    def execute_sell(self, caller, option_type, strike: int, size: int) -> int:
        return self._execute(caller, Side.SELL, option_type, strike, size)

    def verify_and_set_cost(
        self,
        caller,
        proposed_cost: int,
        new_quantities: Sequence[int],
        trades: Sequence[TradeIntent] = (),
    ) -> EngineState:
        """Verify an off-path (cost, quantities) proposal and commit it."""
        self._require_manager(caller)
        proposal = CostProposal(proposed_cost=proposed_cost, new_quantities=new_quantities, trades=trades)
        old_state = self.state
        try:
            new_state = verify_cost_update(
                old_state, old_state.grid.midpoints(), proposal, self.tolerance_wad
            )
        except VerificationFailed as e:
            logger.warning("Cost proposal rejected: %s", e)
            raise
        # verified trades are held to the same ceilings as executed ones
        try:
            self._check_solvency(new_state.quantities, new_state.cached_cost)
        except SolvencyViolation as e:
            logger.warning("Cost proposal rejected: %s", e)
            raise
        self._commit(new_state, CostUpdated(old_cost=old_state.cached_cost, new_cost=new_state.cached_cost))
        logger.info("Cost updated: %d -> %d", old_state.cached_cost, new_state.cached_cost)
        return new_state

    def recenter(self, new_center: int) -> EngineState:
        """
        Move the grid to `new_center`, carrying exposure across with
        remap_quantities and re-pricing C(q) on the new grid.
        """
        old_state = self.state
        new_grid = old_state.grid.recentered(new_center)
        new_q = remap_quantities(old_state.grid, old_state.quantities, new_grid)
        new_cost = lmsr_cost(new_q, old_state.liquidity)
        new_state = old_state.with_update(new_q, new_cost, grid=new_grid)
        recentered = self.registry.recenter(new_center)
        self._commit(
            new_state,
            recentered,
            CostUpdated(old_cost=old_state.cached_cost, new_cost=new_cost),
        )
        return self._state

    def rebalance(self) -> Optional[EngineState]:
        """Recenter on the current spot price if it has drifted past the threshold."""
        if not self.registry.needs_rebalance():
            return None
        return self.recenter(self.registry.get_spot_price())
