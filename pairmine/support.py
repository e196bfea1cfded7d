from __future__ import annotations

import math
from collections import Counter
from typing import Callable, Iterable, Optional, Set

from pairmine.baskets import Basket
from pairmine.errors import InvalidParameterError


def check_fraction(fraction: float) -> None:
    """
    Support fraction must be in (0, 1].
    """
    if not (0.0 < fraction <= 1.0):
        raise InvalidParameterError(f"support fraction must be in (0, 1], got {fraction}")


def compute_support(fraction: float, base: int) -> int:
    """
    Minimum occurrence count for an item or pair to be frequent.

    support = floor(fraction * base)

    base is the full dataset size on the first round and the
    round's basket limit afterwards (see engine.run_round).
    """
    check_fraction(fraction)
    if base < 0:
        raise InvalidParameterError(f"base basket count must be >= 0, got {base}")
    return int(math.floor(fraction * base))


def count_singletons(
    baskets: Iterable[Basket],
    visit: Optional[Callable[[Basket], None]] = None,
) -> Counter[int]:
    """
    item -> number of occurrences over all baskets.
    Duplicates inside a basket are counted every time.

    visit(basket) is called once per basket during the same scan
    (PCY hashes its pairs there so pass one stays a single scan).
    """
    counts: Counter[int] = Counter()
    for basket in baskets:
        counts.update(basket)
        if visit is not None:
            visit(basket)
    return counts


def select_frequent_items(counts: Counter[int], threshold: int) -> Set[int]:
    """
    Items whose count is >= threshold.
    """
    return {item for item, c in counts.items() if c >= threshold}
