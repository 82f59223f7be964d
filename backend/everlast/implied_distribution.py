import math
from typing import Dict, Sequence

from scipy.stats import norm

from .fixed_point import WAD


def summarize_distribution(midpoints: Sequence[int], probabilities: Sequence[int]) -> Dict[str, float]:
    """
    Given bucket midpoints and WAD probabilities, return mean/std of the
    implied price and a lognormal fit (mu, sigma of ln price).
    Floating point: this is a reporting view, never an input to pricing.
    """
    if len(midpoints) != len(probabilities):
        raise ValueError("midpoints and probabilities must have the same length")
    x = [m / WAD for m in midpoints]
    p = [pk / WAD for pk in probabilities]
    Z = sum(p)
    if Z <= 0:
        raise ValueError("distribution has no mass")
    p = [pk / Z for pk in p]
    mean = sum(pk * xk for pk, xk in zip(p, x))
    var = sum(pk * (xk - mean) ** 2 for pk, xk in zip(p, x))
    # log-space fit over buckets with a positive representative price
    logs = [(pk, math.log(xk)) for pk, xk in zip(p, x) if xk > 0]
    Z_log = sum(pk for pk, _ in logs)
    mu = sum(pk * lx for pk, lx in logs) / Z_log
    mu2 = sum(pk * lx**2 for pk, lx in logs) / Z_log
    sigma = math.sqrt(max(mu2 - mu**2, 1e-12))
    return {"mean": mean, "std": math.sqrt(var), "mu": mu, "sigma": sigma}


def prob_above(midpoints: Sequence[int], probabilities: Sequence[int], strike: int) -> Dict[str, float]:
    """P(price > strike): bucket-sum estimate and lognormal-fit estimate."""
    if strike <= 0:
        raise ValueError("strike must be positive")
    empirical = sum(pk for m, pk in zip(midpoints, probabilities) if m > strike) / WAD
    fit = summarize_distribution(midpoints, probabilities)
    lognormal = 1.0 - norm.cdf((math.log(strike / WAD) - fit["mu"]) / fit["sigma"])
    return {"empirical": empirical, "lognormal": float(lognormal)}
