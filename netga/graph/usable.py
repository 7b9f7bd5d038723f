"""
Capacity/efficiency/usage resource contract shared by nodes and edges.
"""
from netga.errors import ensure, require


class Usable:
    """
    A resource with a maximum capacity, an operating efficiency and a usage.

    The capacity actually available is ``capacity * efficiency``; usage may
    never exceed it. Mutators that would break this return False and leave
    the resource untouched.
    """

    def __init__(self, capacity: float = 0.0, efficiency: float = 0.0):
        require(capacity >= 0, f"Capacity is {capacity}; it must not be negative")
        require(
            0.0 <= efficiency <= 1.0,
            f"Efficiency to be set is {efficiency}; it must be between 0.0 and 1.0",
        )
        self._capacity = float(capacity)
        self._efficiency = float(efficiency)
        self._usage = 0.0

    @property
    def max_capacity(self) -> float:
        ensure(self._capacity >= 0, f"The maximum capacity is {self._capacity}")
        return self._capacity

    def set_max_capacity(self, capacity: float) -> bool:
        """Change the capacity unless usage would exceed the new available capacity."""
        if capacity < 0 or capacity * self._efficiency < self._usage:
            return False
        self._capacity = float(capacity)
        return True

    @property
    def efficiency(self) -> float:
        ensure(0.0 <= self._efficiency <= 1.0, f"Efficiency factor is {self._efficiency}")
        return self._efficiency

    def set_efficiency(self, efficiency: float) -> bool:
        require(
            0.0 <= efficiency <= 1.0,
            f"Efficiency to be set is {efficiency}; it must be between 0.0 and 1.0",
        )
        if self._capacity * efficiency < self._usage:
            return False
        self._efficiency = float(efficiency)
        return True

    @property
    def usage(self) -> float:
        ensure(self._usage >= 0, f"Usage is {self._usage}")
        return self._usage

    def incre_usage(self, amount: float) -> bool:
        require(amount >= 0, f"The amount to increment is {amount}; it must be non-negative")
        limit = self._capacity * self._efficiency
        if amount > limit - self._usage:
            return False
        # rounding must not push usage past the limit
        self._usage = min(self._usage + amount, limit)
        return True

    def decre_usage(self, amount: float) -> bool:
        require(amount >= 0, f"The amount to decrement is {amount}; it must be non-negative")
        if self._usage - amount < 0:
            return False
        self._usage -= amount
        return True

    def reset_usage(self) -> None:
        self._usage = 0.0

    def get_available_capacity(self) -> float:
        available = self._capacity * self._efficiency - self._usage
        ensure(available >= 0, f"Available capacity is {available}")
        return available

    def get_utilisation(self) -> float:
        """Fraction of the maximum capacity in use (0 for a zero-capacity resource)."""
        if self._capacity == 0:
            return 0.0
        utilisation = self._usage / self._capacity
        ensure(0.0 <= utilisation <= 1.0, f"Utilisation is {utilisation}")
        return utilisation

    def get_load(self) -> float:
        """Load factor usage / (capacity - usage); infinite once saturated."""
        spare = self._capacity - self._usage
        if spare <= 0:
            return 0.0 if self._usage == 0 else float("inf")
        load = self._usage / spare
        ensure(load >= 0, f"Load factor is {load}")
        return load
