"""Seeded pseudo-random source for reproducible simulations."""

from __future__ import annotations

import math

from .errors import StructuralInputError

MODULUS = 2147483647  # 2**31 - 1
MULTIPLIER = 16807


class ParkMillerRandom:
    """Minimal standard linear congruential generator.

    Each instance owns its state, so independent runs never share a sequence.
    ``normal()`` uses the polar form of the Box-Muller transform.
    """

    def __init__(self, seed: int) -> None:
        if isinstance(seed, bool) or not isinstance(seed, int):
            raise StructuralInputError(f"Seed must be an integer, got {seed!r}")
        state = seed % MODULUS
        if state == 0:
            raise StructuralInputError(f"Seed {seed} is a multiple of 2**31 - 1 and would produce a constant sequence")
        self._state = state

    @property
    def state(self) -> int:
        return self._state

    def uniform(self) -> float:
        """Next draw from the open interval (0, 1)."""
        self._state = (self._state * MULTIPLIER) % MODULUS
        return self._state / MODULUS

    def randint_below(self, n: int) -> int:
        return int(math.floor(self.uniform() * n))

    def normal(self) -> float:
        while True:
            u = 2 * self.uniform() - 1
            v = 2 * self.uniform() - 1
            s = u * u + v * v
            if 0 < s < 1:
                return u * math.sqrt(-2 * math.log(s) / s)
