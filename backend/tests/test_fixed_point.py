import pytest

from everlast.errors import NumericOverflow
from everlast.fixed_point import (
    WAD,
    EXP_MAX_ARG,
    EXP_MIN_ARG,
    INT256_MAX,
    check_int256,
    div_wad,
    exp_wad,
    from_wad,
    ln_wad,
    mul_wad,
    to_wad,
    usdc_to_wad,
    wad_to_usdc,
)

E_WAD = 2718281828459045235
LN2_WAD = 693147180559945309


def test_mul_div_wad():
    assert mul_wad(3 * WAD, 2 * WAD) == 6 * WAD
    assert div_wad(3 * WAD, 2 * WAD) == 15 * WAD // 10
    # floor toward -inf
    assert mul_wad(-1, 1) == -1
    with pytest.raises(ZeroDivisionError):
        div_wad(WAD, 0)


def test_exp_wad_known_values():
    assert exp_wad(0) == WAD
    assert abs(exp_wad(WAD) - E_WAD) <= 3
    # e^-1 = 0.367879441171442321...
    assert abs(exp_wad(-WAD) - 367879441171442321) <= 3
    assert exp_wad(EXP_MIN_ARG) == 0


def test_exp_wad_overflow():
    with pytest.raises(NumericOverflow):
        exp_wad(EXP_MAX_ARG)


def test_ln_wad_known_values():
    assert ln_wad(WAD) == 0
    assert ln_wad(2 * WAD) == LN2_WAD
    assert abs(ln_wad(E_WAD) - WAD) <= 2
    # ln(0.5) = -ln(2)
    assert abs(ln_wad(WAD // 2) + LN2_WAD) <= 2


def test_ln_wad_rejects_non_positive():
    with pytest.raises(ValueError):
        ln_wad(0)
    with pytest.raises(ValueError):
        ln_wad(-WAD)


def test_ln_exp_inverse():
    for x in [-WAD // 3, WAD // 7, 3 * WAD]:
        assert abs(ln_wad(exp_wad(x)) - x) <= 10


def test_int256_guard():
    assert check_int256(INT256_MAX) == INT256_MAX
    with pytest.raises(NumericOverflow):
        check_int256(INT256_MAX + 1, "quantity")


def test_unit_conversions():
    assert to_wad(2) == 2 * WAD
    assert to_wad("1.5") == 15 * 10**17
    assert to_wad(0.1) == 10**17
    assert from_wad(25 * 10**17) == from_wad(5 * WAD) / 2
    assert wad_to_usdc(WAD) == 10**6
    assert usdc_to_wad(10**6) == WAD
    with pytest.raises(TypeError):
        to_wad(True)
