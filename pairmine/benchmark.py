from __future__ import annotations

import math
import time
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import mlflow
import pandas as pd
from dotenv import load_dotenv

from pairmine.baskets import BasketFile, BasketSource
from pairmine.config import Config
from pairmine.engine import APriori, RoundResult, get_miner, pairs_to_frame
from pairmine.errors import InvalidParameterError, PairMiningError
load_dotenv()


REPORT_COLUMNS = [
    "algorithm",
    "percent",
    "baskets",
    "support",
    "runtime_ms",
    "frequent_items",
    "candidate_pairs",
    "frequent_pairs",
    "bitmap_buckets_set",
    "empty",
]


def check_schedule(schedule: Sequence[int]) -> None:
    if not schedule or schedule[0] != 100:
        raise InvalidParameterError(f"schedule must start at 100, got {list(schedule)}")
    for pct in schedule[1:]:
        if not (0 < pct <= 100):
            raise InvalidParameterError(f"schedule percentages must be in (0, 100], got {pct}")


def round_limits(max_baskets: int, schedule: Sequence[int]) -> List[Tuple[int, Optional[int]]]:
    """
    Map each dataset-size percentage to a basket limit.

    The first entry must be 100 and gets limit None (read everything,
    that round also tells us max_baskets). Others get
    floor(percent / 100 * max_baskets).
    """
    check_schedule(schedule)

    out: List[Tuple[int, Optional[int]]] = [(100, None)]
    for pct in schedule[1:]:
        out.append((pct, int(math.floor(pct / 100 * max_baskets))))
    return out


def _row(name: str, pct: int, limit: int, result: RoundResult, runtime_ms: float) -> dict:
    return {
        "algorithm": name,
        "percent": pct,
        "baskets": limit,
        "support": result.support,
        "runtime_ms": runtime_ms,
        "frequent_items": len(result.frequent_items),
        "candidate_pairs": result.candidate_pair_count,
        "frequent_pairs": result.frequent_pair_count(),
        "bitmap_buckets_set": result.bitmap.count() if result.bitmap is not None else 0,
        "empty": result.empty,
    }


def timed_round(
    miner: APriori,
    source: BasketSource,
    basket_limit: Optional[int],
    support_fraction: float,
    is_first_round: bool,
) -> Tuple[RoundResult, float]:
    """
    Run one round and return (result, runtime in ms).
    Only the mining call is timed.
    """
    t0 = time.perf_counter()
    result = miner.run(source, basket_limit, support_fraction, is_first_round)
    elapsed_ms = (time.perf_counter() - t0) * 1000.0
    return result, elapsed_ms


def run_study(
    source: BasketSource,
    support_fraction: float,
    miner: APriori,
    schedule: Sequence[int],
    top_pairs: int = 0,
    verbose: bool = False,
) -> pd.DataFrame:
    """
    Scalability study: one round per schedule entry, biggest first.

    Returns one row per round (see REPORT_COLUMNS).
    """
    check_schedule(schedule)
    rows = []

    # First round: full dataset, also anchors max_baskets
    result, runtime_ms = timed_round(miner, source, None, support_fraction, is_first_round=True)
    max_baskets = result.basket_count_observed
    rows.append(_row(miner.name, 100, max_baskets, result, runtime_ms))
    if verbose:
        _print_round(100, max_baskets, result, runtime_ms, top_pairs)

    for pct, limit in round_limits(max_baskets, schedule)[1:]:
        if not limit:
            if verbose:
                print(f"WARNING: {pct}% of {max_baskets} baskets is 0 baskets, skipping round")
            continue
        result, runtime_ms = timed_round(miner, source, limit, support_fraction, is_first_round=False)
        rows.append(_row(miner.name, pct, limit, result, runtime_ms))
        if verbose:
            _print_round(pct, max_baskets, result, runtime_ms, top_pairs)

    return pd.DataFrame(rows, columns=REPORT_COLUMNS)


def _print_round(pct: int, max_baskets: int, result: RoundResult, runtime_ms: float, top_pairs: int) -> None:
    print(f"({pct}% of Data Size: {max_baskets})")
    print(f"  Runtime: {runtime_ms:.0f} ms")
    print(f"  Baskets: {result.basket_count_observed}, Support: {result.support}")
    if result.empty:
        print("  No pairs in pass one, nothing to count")
    if top_pairs > 0 and result.frequent_pairs:
        top = pairs_to_frame(result.frequent_pairs).head(top_pairs)
        print("  Top pairs:")
        for r in top.itertuples(index=False):
            print(f"    [{r.item_i}, {r.item_j}, {r.count}]")
    print()


def log_study(cfg: Config, name: str, report: pd.DataFrame, report_path: Path) -> None:
    """
    Log one study (one algorithm) as an MLflow run.
    """
    mlflow.set_experiment(cfg.mlflow_experiment)

    run_name = f"{name}_supp{cfg.support_fraction}"

    with mlflow.start_run(run_name=run_name):
        # Params
        mlflow.log_param("algorithm", name)
        mlflow.log_param("support_fraction", cfg.support_fraction)
        mlflow.log_param("max_baskets", int(report["baskets"].iloc[0]) if len(report) else 0)
        mlflow.log_param("schedule", ",".join(str(p) for p in cfg.schedule))
        mlflow.log_param("dataset_path", cfg.dataset_path)

        # One point per round, step = dataset percentage
        for r in report.itertuples(index=False):
            step = int(r.percent)
            mlflow.log_metric("runtime_ms", float(r.runtime_ms), step=step)
            mlflow.log_metric("support", int(r.support), step=step)
            mlflow.log_metric("baskets", int(r.baskets), step=step)
            mlflow.log_metric("frequent_items", int(r.frequent_items), step=step)
            mlflow.log_metric("candidate_pairs", int(r.candidate_pairs), step=step)
            mlflow.log_metric("frequent_pairs", int(r.frequent_pairs), step=step)
            if name == "pcy":
                mlflow.log_metric("bitmap_buckets_set", int(r.bitmap_buckets_set), step=step)

        # Artefacts
        if report_path.exists():
            mlflow.log_artifact(str(report_path))


def main() -> None:
    cfg = Config()
    dataset_path = Path(cfg.dataset_path)
    report_path = Path(cfg.report_path)

    if not dataset_path.exists():
        print(f"ERROR: missing {dataset_path}")
        print("Fix: set DATASET_PATH (or .env) to a basket file, one basket per line")
        return

    try:
        names = cfg.algorithms()
    except InvalidParameterError as exc:
        print(f"ERROR: {exc}")
        return

    reports = []
    try:
        with BasketFile(dataset_path) as source:
            for name in names:
                print(f"Running {name} (support {cfg.support_fraction}) on {dataset_path}...\n")
                reports.append(
                    run_study(
                        source,
                        cfg.support_fraction,
                        get_miner(name),
                        cfg.schedule,
                        top_pairs=cfg.top_pairs,
                        verbose=True,
                    )
                )
    except PairMiningError as exc:
        print(f"ERROR: study aborted: {exc}")
        print("Fix: check DATASET_PATH, SUPPORT_FRACTION and SIZE_SCHEDULE")
        return

    full = pd.concat(reports, ignore_index=True)
    report_path.parent.mkdir(parents=True, exist_ok=True)
    full.to_csv(report_path, index=False)

    if cfg.log_mlflow:
        for name, report in zip(names, reports):
            log_study(cfg, name, report, report_path)

    print("=== RUNTIME (ms) BY DATASET SIZE ===")
    print(full.pivot_table(index="percent", columns="algorithm", values="runtime_ms").sort_index(ascending=False).round(1).to_string())

    print("\nDONE")
    print(f"Saved: {report_path}")
    if cfg.log_mlflow:
        print(f"MLflow experiment: {cfg.mlflow_experiment}")


if __name__ == "__main__":
    main()
