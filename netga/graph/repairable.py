"""
Failure/repair lifecycle shared by network nodes and links.

A Repairable element can fail with some probability. Once failed it stays
inactive for a number of generations (the repair time) and may only be
reactivated when that time has elapsed AND its probability of failure is
within the acceptable threshold. Elements whose failure probability exceeds
the threshold are not worth repairing and stay down.
"""
import sys
from typing import Optional

import numpy as np

from netga.errors import ensure, require

# Generations "since the last failure" of an element that never failed
NEVER_FAILED = sys.maxsize


def _check_probability(value: float, what: str) -> None:
    require(0.0 <= value <= 1.0, f"{what} is {value}; it must be between 0.00 and 1.00")


class Repairable:
    """Probabilistic failure and generation-counted repair state machine."""

    def __init__(
        self,
        avg_repair_generations: int = 0,
        failure_probability: float = 0.0,
        threshold: float = 1.0,
        active: bool = True,
        rng: Optional[np.random.RandomState] = None,
    ):
        """
        Args:
            avg_repair_generations: Average number of generations a repair takes
            failure_probability: Probability that the element fails on a trial
            threshold: Maximum failure probability for which the element is
                worth (re)activating
            active: Whether the element should start switched on; it only does
                so if it can be activated
            rng: Random source used by try_and_fail()
        """
        require(
            avg_repair_generations >= 0,
            f"Generations required for repair is {avg_repair_generations}; it must be non-negative",
        )
        _check_probability(failure_probability, "Probability of failure")
        _check_probability(threshold, "Probability threshold")

        self._avg_repair_generations = int(avg_repair_generations)
        self._repair_generations = 0
        self._activation_counter = NEVER_FAILED
        self._failure_probability = float(failure_probability)
        self._threshold = float(threshold)
        self._rng = rng if rng is not None else np.random.RandomState()
        self._active = bool(active) and self.can_activate()

    def copy(self) -> "Repairable":
        """Return an independent Repairable with the same state."""
        clone = Repairable(
            self._avg_repair_generations,
            self._failure_probability,
            self._threshold,
            active=False,
            rng=self._rng,
        )
        clone._repair_generations = self._repair_generations
        clone._activation_counter = self._activation_counter
        clone._active = self._active
        return clone

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def avg_repair_generations(self) -> int:
        ensure(
            self._avg_repair_generations >= 0,
            f"Average generations required for repair is {self._avg_repair_generations}",
        )
        return self._avg_repair_generations

    @property
    def repair_generations(self) -> int:
        """Generations required to repair the current outage."""
        return self._repair_generations

    @property
    def activation_counter(self) -> int:
        ensure(
            self._activation_counter >= 0,
            f"Generations elapsed in failure state is {self._activation_counter}",
        )
        return self._activation_counter

    @property
    def failure_probability(self) -> float:
        ensure(
            0.0 <= self._failure_probability <= 1.0,
            f"Probability of failure is {self._failure_probability}",
        )
        return self._failure_probability

    def set_failure_probability(self, probability: float) -> None:
        _check_probability(probability, "Probability of failure")
        self._failure_probability = float(probability)

    @property
    def threshold(self) -> float:
        ensure(0.0 <= self._threshold <= 1.0, f"Threshold is {self._threshold}")
        return self._threshold

    def set_threshold(self, threshold: float) -> None:
        _check_probability(threshold, "Threshold")
        self._threshold = float(threshold)

    def can_activate(self) -> bool:
        """True when the repair time has elapsed and the element is worth activating."""
        if self._activation_counter < self._repair_generations:
            return False
        return self._failure_probability <= self._threshold

    def activate(self) -> bool:
        """
        Switch the element on if it can be activated.

        Returns:
            True if the element is active afterwards
        """
        if self._active:
            return True
        if self.can_activate():
            self._active = True
            return True
        return False

    def deactivate(self, generations: Optional[int] = None) -> None:
        """
        Switch the element off for a repair period.

        Args:
            generations: Generations the repair takes; defaults to the average.
                Deactivating an already inactive element changes nothing.
        """
        if generations is None:
            generations = self._avg_repair_generations
        require(
            generations >= 0,
            f"Generations required for repair is {generations}; it must be non-negative",
        )
        if not self._active:
            return
        self._repair_generations = int(generations)
        self._active = False
        self._activation_counter = 0

    def incre_counter(self) -> None:
        """Record that one generation has passed while the element is down."""
        if not self._active:
            self._activation_counter += 1

    def try_and_fail(self) -> bool:
        """
        Fail the element with probability ``failure_probability``.

        The repair period is the average plus a -50% to +250% variation.

        Returns:
            True if the element failed on this trial
        """
        if not self._active:
            return False
        if self._rng.random_sample() < self._failure_probability:
            variation = int(self._avg_repair_generations * (3 * self._rng.random_sample() - 0.5))
            self.deactivate(self._avg_repair_generations + variation)
            return True
        return False

    def __repr__(self) -> str:
        state = "active" if self._active else f"inactive({self._activation_counter})"
        return (
            f"Repairable({state}, avg_gens={self._avg_repair_generations}, "
            f"p_fail={self._failure_probability:.3f}, threshold={self._threshold:.3f})"
        )
