from typing import List, Dict, Any, Sequence, Tuple

from .fixed_point import (
    WAD,
    EXP_ERROR_WAD,
    LN_ERROR_WAD,
    check_int256,
    div_wad,
    exp_wad,
    ln_wad,
    mul_wad,
)
from .types import OptionType


# --- Cost function C(q) = b * ln(sum_i exp(q_i / b)) ---

def _shifted_terms(q: Sequence[int], b: int) -> Tuple[int, List[int]]:
    if b <= 0:
        raise ValueError(f"liquidity b must be positive, got {b}")
    if not q:
        raise ValueError("quantity vector is empty")
    max_q = max(q)
    # every argument is <= 0 after the shift, so no term exceeds WAD
    return max_q, [exp_wad(div_wad(qk - max_q, b)) for qk in q]


def lmsr_cost(q: Sequence[int], b: int) -> int:
    max_q, terms = _shifted_terms(q, b)
    return check_int256(max_q + mul_wad(b, ln_wad(sum(terms))), "cost")


def lmsr_cost_bounds(q: Sequence[int], b: int) -> Tuple[int, int]:
    """
    Cheap bracket [lower, upper] around the exact C(q), widened by the
    approximation errors of exp_wad, ln_wad and the final WAD multiply.
    """
    max_q, terms = _shifted_terms(q, b)
    n = len(terms)
    # the max bucket contributes exp(0) = WAD exactly
    sum_low = max(sum(terms) - n * EXP_ERROR_WAD, WAD)
    sum_high = sum(terms) + n * EXP_ERROR_WAD
    lower = max_q + mul_wad(b, ln_wad(sum_low) - LN_ERROR_WAD) - 1
    upper = max_q + mul_wad(b, ln_wad(sum_high) + LN_ERROR_WAD) + 1
    return lower, upper


def lmsr_prices(q: Sequence[int], b: int) -> List[int]:
    _, terms = _shifted_terms(q, b)
    total = sum(terms)
    return [t * WAD // total for t in terms]


def lmsr_trade(q: Sequence[int], delta: Sequence[int], b: int) -> Dict[str, Any]:
    if len(delta) != len(q):
        raise ValueError(f"delta has {len(delta)} entries, expected {len(q)}")
    q_after = [qk + dk for qk, dk in zip(q, delta)]
    payment = lmsr_cost(q_after, b) - lmsr_cost(q, b)
    return {"payment": payment, "q_after": q_after}


def liquidity_for_subsidy(subsidy: int, n: int) -> int:
    """b such that the worst-case loss b * ln(n) equals `subsidy`."""
    if n < 2:
        raise ValueError("need at least two buckets")
    return div_wad(subsidy, ln_wad(n * WAD))


# --- Option payoffs over buckets ---

def payoff(option_type, price: int, strike: int) -> int:
    option_type = OptionType.parse(option_type)
    if option_type is OptionType.CALL:
        return max(price - strike, 0)
    return max(strike - price, 0)


def payoff_vector(midpoints: Sequence[int], option_type, strike: int) -> List[int]:
    return [payoff(option_type, m, strike) for m in midpoints]


def kappa_vector(midpoints: Sequence[int], option_type, strike: int, size: int) -> List[int]:
    """Quantity delta of `size` options: each bucket's payoff at its midpoint, scaled by size."""
    return [mul_wad(w, size) for w in payoff_vector(midpoints, option_type, strike)]


def expected_payoff(prices: Sequence[int], w: Sequence[int]) -> int:
    return sum(mul_wad(pk, wk) for pk, wk in zip(prices, w))


def lmsr_bid_ask(q: Sequence[int], b: int, unit: int = WAD) -> List[Dict[str, int]]:
    """
    For each bucket k: mid = p_k(q), ask = C(q + unit*e_k) - C(q),
    bid = C(q) - C(q - unit*e_k).
    """
    mids = lmsr_prices(q, b)
    base = lmsr_cost(q, b)
    result = []
    for k in range(len(q)):
        q_plus = list(q)
        q_plus[k] += unit
        q_minus = list(q)
        q_minus[k] -= unit
        result.append({
            "mid": mids[k],
            "bid": base - lmsr_cost(q_minus, b),
            "ask": lmsr_cost(q_plus, b) - base,
        })
    return result
