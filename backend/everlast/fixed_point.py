"""
Deterministic fixed-point arithmetic on plain Python ints.

WAD values carry 18 fractional digits, USDC values carry 6. Every function
rounds with `//` (floor toward -inf) so the same inputs always give the same
outputs, which the cost verifier relies on.

exp_wad / ln_wad evaluate their series at 36 digits and truncate to WAD. For
exponent arguments <= 0 (the only ones the cost function uses after the
log-sum-exp shift) the result is within EXP_ERROR_WAD of the exact value;
ln_wad is within LN_ERROR_WAD everywhere.
"""
from decimal import Decimal, ROUND_DOWN

from .errors import NumericOverflow

WAD = 10**18
USDC = 10**6
WAD_TO_USDC = WAD // USDC

INT256_MAX = 2**255 - 1
INT256_MIN = -(2**255)

# exp_wad(x) is 0 below this and would leave int256 above EXP_MAX_ARG
EXP_MIN_ARG = -42_139_678_854_452_767_551
EXP_MAX_ARG = 135_305_999_368_893_231_589

# Absolute error bounds (in wei) of one exp_wad term for arguments <= 0,
# including the floor of the argument division, and of one ln_wad call.
EXP_ERROR_WAD = 3
LN_ERROR_WAD = 2

_SCALE = 10**36
_LN2 = 693147180559945309417232121458176568  # ln(2) * 1e36


def mul_wad(a: int, b: int) -> int:
    return (a * b) // WAD


def div_wad(a: int, b: int) -> int:
    if b == 0:
        raise ZeroDivisionError("div_wad by zero")
    return (a * WAD) // b


def check_int256(value: int, what: str = "value") -> int:
    if value > INT256_MAX or value < INT256_MIN:
        raise NumericOverflow(f"{what} outside int256 range: {value}")
    return value


def exp_wad(x: int) -> int:
    """e**(x / 1e18) scaled by 1e18."""
    if x <= EXP_MIN_ARG:
        return 0
    if x >= EXP_MAX_ARG:
        raise NumericOverflow(f"exp_wad argument too large: {x}")

    # x = k*ln2 + r with |r| <= ln2/2, evaluated at 36 digits
    x36 = x * WAD
    k = (2 * x36 + _LN2) // (2 * _LN2)
    r = x36 - k * _LN2

    total = _SCALE
    term = _SCALE
    n = 1
    while term != 0:
        term = (term * r) // (_SCALE * n)
        total += term
        n += 1

    if k >= 0:
        return (total << k) // WAD
    return total // (WAD << -k)


def ln_wad(x: int) -> int:
    """Natural log of x / 1e18, scaled by 1e18."""
    if x <= 0:
        raise ValueError(f"ln_wad undefined for non-positive input: {x}")

    # normalise x36 = m * 2**k with m in [1, 2) at 36 digits
    m = x * WAD
    k = m.bit_length() - _SCALE.bit_length()
    m = m >> k if k >= 0 else m << -k
    while m >= 2 * _SCALE:
        m >>= 1
        k += 1
    while m < _SCALE:
        m <<= 1
        k -= 1

    # ln(m) = 2 * atanh(z), z = (m - 1) / (m + 1) in [0, 1/3)
    z = ((m - _SCALE) * _SCALE) // (m + _SCALE)
    z2 = (z * z) // _SCALE
    series = 0
    term = z
    n = 1
    while term != 0:
        series += term // n
        term = (term * z2) // _SCALE
        n += 2

    return (k * _LN2 + 2 * series) // WAD


def to_wad(value) -> int:
    """Parse an int, str, float or Decimal amount in whole units into WAD."""
    if isinstance(value, bool):
        raise TypeError("bool is not an amount")
    if isinstance(value, int):
        return value * WAD
    scaled = (Decimal(str(value)) * WAD).quantize(Decimal(1), rounding=ROUND_DOWN)
    return int(scaled)


def from_wad(value: int) -> Decimal:
    return Decimal(value) / Decimal(WAD)


def wad_to_usdc(value: int) -> int:
    return value // WAD_TO_USDC


def usdc_to_wad(value: int) -> int:
    return value * WAD_TO_USDC
