from __future__ import annotations

from pathlib import Path

import pandas as pd

from pairmine.baskets import BasketFile, BasketSource
from pairmine.config import Config
from pairmine.errors import PairMiningError
from pairmine.support import compute_support


def basket_stats(source: BasketSource) -> dict:
    """
    Quick numbers about a basket dataset.

    pair_positions = sum of n*(n-1)/2 over baskets, i.e. how many
    pairs one pass of either algorithm has to enumerate.
    """
    lengths = []
    distinct: set[int] = set()
    for basket in source.scan():
        lengths.append(len(basket))
        distinct.update(basket)

    s = pd.Series(lengths, dtype="int64")
    return {
        "baskets": int(s.size),
        "distinct_items": len(distinct),
        "total_items": int(s.sum()),
        "min_len": int(s.min()) if s.size else 0,
        "mean_len": float(s.mean()) if s.size else 0.0,
        "max_len": int(s.max()) if s.size else 0,
        "empty_baskets": int((s == 0).sum()),
        "single_item_baskets": int((s == 1).sum()),
        "pair_positions": int((s * (s - 1) // 2).sum()),
    }


def main() -> None:
    cfg = Config()
    path = Path(cfg.dataset_path)

    # Stop early if file is missing
    if not path.exists():
        print(f"ERROR: File not found: {path}")
        print("Fix: put the basket file at data/retail.txt or set DATASET_PATH")
        return

    try:
        with BasketFile(path) as source:
            stats = basket_stats(source)
        support = compute_support(cfg.support_fraction, stats["baskets"])
    except PairMiningError as exc:
        print(f"ERROR: {exc}")
        return

    print("=== BASIC INFO ===")
    print(f"Path: {path}")
    for key, value in stats.items():
        if isinstance(value, float):
            print(f"{key}: {value:.2f}")
        else:
            print(f"{key}: {value}")

    if stats["baskets"] == 0:
        print("\nWARNING: dataset has no baskets")

    print(f"\n=== SUPPORT AT {cfg.support_fraction} ===")
    print(f"Support threshold on full dataset: {support}")

    print("\nDONE")


if __name__ == "__main__":
    main()
