"""Exception types raised by the pricing core.

Every mutating operation either commits completely or raises one of these
with the prior state untouched. Malformed caller input (unknown option type,
non-positive size or strike, bad bucket index) raises ValueError/IndexError.
"""
from enum import Enum


class EverlastError(Exception):
    """Base class for pricing-core failures."""


class InvalidGeometry(EverlastError):
    """Raised when a grid or recenter would produce out-of-range or non-monotonic bounds."""


class UnauthorizedCaller(EverlastError):
    """Raised when a trade or cost update comes from someone other than the option manager."""

    def __init__(self, caller, expected=None):
        self.caller = caller
        self.expected = expected
        super().__init__(f"caller {caller!r} is not the option manager")


class VerificationCheck(str, Enum):
    DELTA = "delta"
    MONOTONICITY = "monotonicity"
    BOUND = "bound"
    SIMPLEX = "simplex"


class VerificationFailed(EverlastError):
    """Raised when a submitted cost proposal fails one of the four checks."""

    def __init__(self, check: VerificationCheck, detail: str = ""):
        self.check = check
        self.detail = detail
        msg = f"verification failed at {check.value} check"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class NumericOverflow(EverlastError):
    """Raised when an exponential or cost leaves the representable range."""


class SolvencyViolation(EverlastError):
    """Raised when a trade would exceed the exposure or worst-case loss ceiling."""


class EngineNotInitialized(EverlastError):
    pass


class AlreadyInitialized(EverlastError):
    pass


class InvalidPrice(EverlastError):
    """Raised when the price source reports a non-positive price."""


class StalePrice(EverlastError):
    """Raised when the price source has not been updated within the staleness window."""
