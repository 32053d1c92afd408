import random
from typing import Optional


class RNG(random.Random):
    """Seeded RNG so patterns can be replayed deterministically."""

    def chance(self, probability: float) -> bool:
        return self.random() < probability

    def spawn(self) -> "RNG":
        """Derive an independent child stream from this one."""
        return new_rng(self.getrandbits(32))


def new_rng(seed: Optional[int] = None) -> RNG:
    rng = RNG()
    rng.seed(seed)
    return rng
