"""Tests for the contract violation hierarchy."""

import pytest

from netga.errors import (
    AssertionViolation,
    ContractViolation,
    PostconditionViolation,
    PreconditionViolation,
    check,
    ensure,
    require,
)


@pytest.mark.parametrize(
    "helper, error, builtin",
    [
        (require, PreconditionViolation, ValueError),
        (ensure, PostconditionViolation, RuntimeError),
        (check, AssertionViolation, AssertionError),
    ],
)
def test_helpers_raise_their_violation(helper, error, builtin):
    helper(True, "never raised")
    with pytest.raises(error, match="broken") as info:
        helper(False, "broken")
    assert isinstance(info.value, ContractViolation)
    assert isinstance(info.value, builtin)
