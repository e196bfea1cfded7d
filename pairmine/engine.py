from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Iterable, Iterator, Optional, Set, Tuple

import pandas as pd

from pairmine.baskets import Basket, BasketSource
from pairmine.errors import EmptyInputError, InvalidParameterError
from pairmine.pcy import FrequencyBitmap, build_bitmap, hash_basket_pairs, pair_hash
from pairmine.support import check_fraction, compute_support, count_singletons, select_frequent_items


# first element -> second element -> count
PairCountTable = Dict[int, Dict[int, int]]


class RoundState(IntEnum):
    IDLE = 0
    SCANNING_PASS_ONE = 1
    COMPUTING_THRESHOLD_AND_CANDIDATES = 2
    SCANNING_PASS_TWO = 3
    DONE = 4


@dataclass
class RoundContext:
    """
    Every table one round needs. Built fresh per round, never shared.
    """
    use_bitmap: bool
    state: RoundState = RoundState.IDLE
    observed: int = 0
    support: int = 0
    singletons: Counter = field(default_factory=Counter)
    bucket_counts: Optional[Counter] = None
    frequent_items: Set[int] = field(default_factory=set)
    bitmap: Optional[FrequencyBitmap] = None
    pair_counts: PairCountTable = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.use_bitmap and self.bucket_counts is None:
            self.bucket_counts = Counter()

    def advance(self, state: RoundState) -> None:
        """
        Move forward in the round. Going back (or staying) is a bug.
        """
        if state <= self.state:
            raise RuntimeError(f"round cannot move from {self.state.name} to {state.name}")
        self.state = state


@dataclass
class RoundResult:
    frequent_pairs: PairCountTable
    basket_count_observed: int
    support: int
    frequent_items: Set[int]
    bitmap: Optional[FrequencyBitmap] = None
    # True when PCY had no buckets to threshold (no pairs in pass one)
    empty: bool = False

    @property
    def candidate_pair_count(self) -> int:
        """
        Number of distinct pair keys counted in pass two.
        """
        return sum(len(inner) for inner in self.frequent_pairs.values())

    def frequent_pair_count(self, threshold: Optional[int] = None) -> int:
        """
        Number of counted pairs that reach the threshold (default: round support).
        """
        t = self.support if threshold is None else threshold
        return sum(1 for _a, _b, c in iter_pairs(self.frequent_pairs) if c >= t)


def _add_pair(table: PairCountTable, a: int, b: int, n: int = 1) -> None:
    inner = table.setdefault(a, {})
    inner[b] = inner.get(b, 0) + n


def count_pairs(
    baskets: Iterable[Basket],
    frequent_items: Set[int],
    bucket_filter: Optional[FrequencyBitmap] = None,
) -> PairCountTable:
    """
    Pass two: exact counts for every candidate pair.

    For each basket and each position pair i < j, the pair
    (basket[i], basket[j]) is a candidate when:
    - both items are in frequent_items
    - and, if bucket_filter is given, its bucket bit is set

    Keys are kept in the order met in the basket, (b, a) is not folded into (a, b).
    """
    table: PairCountTable = {}

    for basket in baskets:
        # Only frequent positions can start or end a candidate
        kept = [x for x in basket if x in frequent_items]
        n = len(kept)
        for i in range(n - 1):
            a = kept[i]
            for j in range(i + 1, n):
                b = kept[j]
                if bucket_filter is not None and not bucket_filter[pair_hash(a, b)]:
                    continue
                _add_pair(table, a, b)

    return table


def _check_limit(basket_limit: Optional[int], is_first_round: bool) -> None:
    if basket_limit is None:
        if not is_first_round:
            raise InvalidParameterError("basket_limit is required after the first round")
        return
    if basket_limit <= 0:
        raise InvalidParameterError(f"basket_limit must be > 0, got {basket_limit}")


def run_round(
    source: BasketSource,
    basket_limit: Optional[int],
    support_fraction: float,
    is_first_round: bool,
    use_bitmap: bool = False,
) -> RoundResult:
    """
    One full two-pass cycle over the first `basket_limit` baskets.

    Support base:
    - first round: total baskets in the dataset, even when basket_limit
      bounds the scan
    - later rounds: basket_limit

    use_bitmap=False is plain A-Priori, True adds the PCY bucket filter.
    """
    check_fraction(support_fraction)
    _check_limit(basket_limit, is_first_round)

    ctx = RoundContext(use_bitmap=use_bitmap)

    # ---- pass one ----
    ctx.advance(RoundState.SCANNING_PASS_ONE)

    def visit(basket: Basket) -> None:
        ctx.observed += 1
        if ctx.bucket_counts is not None:
            hash_basket_pairs(basket, ctx.bucket_counts)

    ctx.singletons = count_singletons(source.scan(basket_limit), visit=visit)

    # ---- threshold + candidates ----
    ctx.advance(RoundState.COMPUTING_THRESHOLD_AND_CANDIDATES)
    if not is_first_round:
        base = basket_limit
    elif basket_limit is None:
        base = ctx.observed
    else:
        base = source.count()
    ctx.support = compute_support(support_fraction, base)
    ctx.frequent_items = select_frequent_items(ctx.singletons, ctx.support)

    if ctx.bucket_counts is not None:
        try:
            ctx.bitmap = build_bitmap(ctx.bucket_counts, ctx.support)
        except EmptyInputError:
            # No pair was ever seen, so there is nothing to count in pass two
            ctx.advance(RoundState.DONE)
            return RoundResult(
                frequent_pairs={},
                basket_count_observed=ctx.observed,
                support=ctx.support,
                frequent_items=ctx.frequent_items,
                empty=True,
            )

    # ---- pass two ----
    ctx.advance(RoundState.SCANNING_PASS_TWO)
    ctx.pair_counts = count_pairs(source.scan(basket_limit), ctx.frequent_items, ctx.bitmap)

    ctx.advance(RoundState.DONE)
    return RoundResult(
        frequent_pairs=ctx.pair_counts,
        basket_count_observed=ctx.observed,
        support=ctx.support,
        frequent_items=ctx.frequent_items,
        bitmap=ctx.bitmap,
    )


class APriori:
    """
    Two-pass frequent pairs, item filter only.
    """
    name = "apriori"
    use_bitmap = False

    def run(
        self,
        source: BasketSource,
        basket_limit: Optional[int],
        support_fraction: float,
        is_first_round: bool,
    ) -> RoundResult:
        return run_round(source, basket_limit, support_fraction, is_first_round, use_bitmap=self.use_bitmap)


class PCY(APriori):
    """
    A-Priori plus the Park-Chen-Yu bucket bitmap in pass two.
    """
    name = "pcy"
    use_bitmap = True


MINERS = {cls.name: cls for cls in (APriori, PCY)}


def get_miner(name: str) -> APriori:
    try:
        return MINERS[name.strip().lower()]()
    except KeyError:
        raise InvalidParameterError(f"unknown miner {name!r}, choose from {sorted(MINERS)}") from None


# ---------------------------------------------------------------------------
# Pair table helpers
# ---------------------------------------------------------------------------


def iter_pairs(table: PairCountTable) -> Iterator[Tuple[int, int, int]]:
    for a, inner in table.items():
        for b, c in inner.items():
            yield a, b, c


def filter_pairs(table: PairCountTable, threshold: int) -> PairCountTable:
    """
    Keep only pairs with count >= threshold.
    """
    out: PairCountTable = {}
    for a, b, c in iter_pairs(table):
        if c >= threshold:
            _add_pair(out, a, b, c)
    return out


def merge_pair_tables(*tables: PairCountTable) -> PairCountTable:
    """
    Sum partial tables (e.g. one per shard of the basket range).
    """
    out: PairCountTable = {}
    for table in tables:
        for a, b, c in iter_pairs(table):
            _add_pair(out, a, b, c)
    return out


def pairs_to_frame(table: PairCountTable) -> pd.DataFrame:
    """
    Pair table as rows item_i,item_j,count, most frequent first.
    """
    rows = [{"item_i": a, "item_j": b, "count": c} for a, b, c in iter_pairs(table)]
    df = pd.DataFrame(rows, columns=["item_i", "item_j", "count"])
    return df.sort_values(["count", "item_i", "item_j"], ascending=[False, True, True]).reset_index(drop=True)
