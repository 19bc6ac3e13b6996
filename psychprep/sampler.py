import random
from typing import Optional, Sequence, TypeVar

T = TypeVar("T")


def sample(items: Sequence[T], count: int, rng: Optional[random.Random] = None) -> list[T]:
    """Shuffled subset of `items` without replacement, of size min(count, len(items))."""
    rng = rng or random
    k = max(0, min(count, len(items)))
    return rng.sample(list(items), k)


def choose(items: Sequence[T], rng: Optional[random.Random] = None) -> Optional[T]:
    if not items:
        return None
    return (rng or random).choice(items)
