"""
Contract violations raised by the netga core.

Three kinds of failure are distinguished:
- PreconditionViolation: a caller passed an argument outside the documented contract.
- PostconditionViolation: an accessor found its own invariant broken.
- AssertionViolation: an internal state assertion failed (e.g. selecting from
  an empty population).

Expected resource rejections (capacity exhausted, etc.) are NOT errors; the
resource mutators report them by returning False.
"""


class ContractViolation(Exception):
    """Base class for all contract violations."""


class PreconditionViolation(ContractViolation, ValueError):
    """Raised when a caller-supplied argument violates an input contract."""


class PostconditionViolation(ContractViolation, RuntimeError):
    """Raised when an accessor detects that its own invariant does not hold."""


class AssertionViolation(ContractViolation, AssertionError):
    """Raised when an internal state assertion fails."""


def require(condition: bool, message: str) -> None:
    """Raise PreconditionViolation unless condition holds."""
    if not condition:
        raise PreconditionViolation(message)


def ensure(condition: bool, message: str) -> None:
    """Raise PostconditionViolation unless condition holds."""
    if not condition:
        raise PostconditionViolation(message)


def check(condition: bool, message: str) -> None:
    """Raise AssertionViolation unless condition holds."""
    if not condition:
        raise AssertionViolation(message)
