import pytest

from conftest import MANAGER
from everlast import verification
from everlast.engine import CLUMEngine
from everlast.errors import SolvencyViolation, UnauthorizedCaller, VerificationCheck, VerificationFailed
from everlast.fixed_point import WAD
from everlast.solver import OffchainSolver
from everlast.types import CostUpdated, Side, TradeIntent
from everlast.verification import (
    MAX_BATCH_TRADES,
    CostProposal,
    implied_direction,
    verify_cost_update,
)

W = WAD
BUY_CALL = TradeIntent("call", 2000 * W, W)
SELL_CALL = TradeIntent("call", 2000 * W, W, Side.SELL)
SELL_PUT = TradeIntent("put", 2000 * W, W, Side.SELL)


@pytest.fixture
def solver(engine):
    return OffchainSolver(engine)


def _assert_rejected(engine, check, proposed_cost, new_quantities, trades=()):
    before = engine.state
    n_events = len(engine.events)
    with pytest.raises(VerificationFailed) as exc:
        engine.verify_and_set_cost(MANAGER, proposed_cost, new_quantities, trades)
    assert exc.value.check is check
    assert engine.state is before
    assert len(engine.events) == n_events


def test_accepts_solver_proposal_for_buy(engine, solver):
    old_cost = engine.get_cached_cost()
    proposal = solver.propose([BUY_CALL])
    engine.verify_and_set_cost(MANAGER, proposal.proposed_cost, proposal.new_quantities, proposal.trades)
    assert engine.get_cached_cost() == proposal.proposed_cost
    assert engine.get_quantities() == (0, 0, 0, 0, 100 * W, 200 * W, 500 * W)
    assert engine.events[-1] == CostUpdated(old_cost=old_cost, new_cost=proposal.proposed_cost)


def test_accepts_pure_cost_refresh(engine, solver):
    proposal = solver.propose()
    engine.verify_and_set_cost(MANAGER, proposal.proposed_cost, proposal.new_quantities)
    assert engine.get_cached_cost() == proposal.proposed_cost
    assert engine.get_quantities() == (0,) * 7


def test_accepts_sell_batch(engine, solver):
    proposal = solver.propose([SELL_CALL, SELL_PUT])
    solver.submit(MANAGER, proposal)
    assert engine.get_cached_cost() == proposal.proposed_cost


def test_rejects_unauthorized(engine, solver):
    proposal = solver.propose([BUY_CALL])
    with pytest.raises(UnauthorizedCaller):
        engine.verify_and_set_cost("mallory", proposal.proposed_cost, proposal.new_quantities, proposal.trades)


def test_delta_rejects_undeclared_quantity_change(engine, solver):
    proposal = solver.propose([BUY_CALL])
    tampered = list(proposal.new_quantities)
    tampered[0] += 1
    _assert_rejected(engine, VerificationCheck.DELTA, proposal.proposed_cost, tampered, proposal.trades)


def test_delta_rejects_wrong_length(engine):
    _assert_rejected(engine, VerificationCheck.DELTA, engine.get_cached_cost(), [0] * 6)


def test_delta_rejects_oversized_batch(engine):
    trades = [BUY_CALL] * (MAX_BATCH_TRADES + 1)
    _assert_rejected(engine, VerificationCheck.DELTA, engine.get_cached_cost(), [0] * 7, trades)


def test_monotonicity_rejects_cost_drop_on_buy(engine, solver):
    proposal = solver.propose([BUY_CALL])
    _assert_rejected(
        engine,
        VerificationCheck.MONOTONICITY,
        engine.get_cached_cost() - 1,
        proposal.new_quantities,
        proposal.trades,
    )


def test_monotonicity_rejects_cost_move_without_trades(engine):
    _assert_rejected(
        engine,
        VerificationCheck.MONOTONICITY,
        engine.get_cached_cost() + 10 * engine.tolerance_wad,
        engine.get_quantities(),
    )


def test_bound_rejects_inflated_cost(engine, solver):
    proposal = solver.propose([BUY_CALL])
    _assert_rejected(
        engine,
        VerificationCheck.BOUND,
        proposal.proposed_cost + 10**12,
        proposal.new_quantities,
        proposal.trades,
    )


def test_bound_accepts_within_tolerance(engine, solver):
    proposal = solver.propose([BUY_CALL])
    engine.verify_and_set_cost(
        MANAGER, proposal.proposed_cost + engine.tolerance_wad // 2, proposal.new_quantities, proposal.trades
    )


def test_simplex_rejects_degenerate_probabilities(engine, solver, monkeypatch):
    proposal = solver.propose([BUY_CALL])
    monkeypatch.setattr(verification, "lmsr_prices", lambda q, b: [0] * len(q))
    _assert_rejected(
        engine, VerificationCheck.SIMPLEX, proposal.proposed_cost, proposal.new_quantities, proposal.trades
    )


def test_checks_run_in_order(engine):
    # wrong quantities and an absurd cost: delta is reported first
    _assert_rejected(engine, VerificationCheck.DELTA, -(10**30), [1] * 7, [BUY_CALL])


def test_mixed_batch_is_direction_free(engine, solver):
    proposal = solver.propose([BUY_CALL, SELL_PUT])
    assert implied_direction(proposal.trades, True) is None
    solver.submit(MANAGER, proposal)
    assert engine.get_quantities() == tuple(proposal.new_quantities)


def test_implied_direction():
    assert implied_direction([], False) == 0
    assert implied_direction([BUY_CALL], False) == 0
    assert implied_direction([BUY_CALL, BUY_CALL], True) == 1
    assert implied_direction([SELL_CALL], True) == -1
    assert implied_direction([BUY_CALL, SELL_CALL], True) is None


def test_verify_cost_update_is_pure(engine, solver):
    proposal = solver.propose([BUY_CALL])
    state = engine.state
    new_state = verify_cost_update(state, engine.get_midpoints(), proposal)
    assert engine.state is state
    assert new_state.cached_cost == proposal.proposed_cost
    assert new_state.utility_level == state.utility_level


def test_trade_intent_validation():
    with pytest.raises(ValueError):
        TradeIntent("call", 2000 * W, 0)
    with pytest.raises(ValueError):
        TradeIntent("strangle", 2000 * W, W)
    assert CostProposal(1, [0, 0]).new_quantities == (0, 0)


def test_verified_trade_held_to_exposure_ceiling(registry):
    eng = CLUMEngine(registry, option_manager=MANAGER, max_exposure_wad=300 * W)
    eng.initialize(1000 * W)
    with pytest.raises(SolvencyViolation):
        eng.execute_buy(MANAGER, "call", 2000 * W, W)
    # the same trade declared on the verified path is refused too
    proposal = OffchainSolver(eng).propose([BUY_CALL])
    before = eng.state
    with pytest.raises(SolvencyViolation):
        eng.verify_and_set_cost(MANAGER, proposal.proposed_cost, proposal.new_quantities, proposal.trades)
    assert eng.state is before
    assert eng.events == []


def test_verified_trade_held_to_loss_ceiling(registry):
    eng = CLUMEngine(registry, option_manager=MANAGER, max_loss_wad=100 * W)
    eng.initialize(1000 * W)
    proposal = OffchainSolver(eng).propose([BUY_CALL])
    with pytest.raises(SolvencyViolation):
        OffchainSolver(eng).submit(MANAGER, proposal)
    assert eng.get_quantities() == (0,) * 7
