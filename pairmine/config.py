from dataclasses import dataclass
import os

from dotenv import load_dotenv

from pairmine.errors import InvalidParameterError


load_dotenv()  # loads variables from a local .env file (if it exists)


def _get_float(name: str, default: float) -> float:
    """
    Read a float from environment variables.
    Example: SUPPORT_FRACTION="0.01"
    """
    value = os.getenv(name)
    return float(value) if value is not None else default


def _get_int(name: str, default: int) -> int:
    """
    Read an int from environment variables.
    Example: TOP_PAIRS="10"
    """
    value = os.getenv(name)
    return int(value) if value is not None else default


def _get_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value else default


def _get_bool(name: str, default: bool) -> bool:
    """
    Read a yes/no flag. "1", "true", "yes", "on" count as True.
    """
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_list(name: str, default: tuple[int, ...]) -> tuple[int, ...]:
    """
    Read a comma separated list of ints.
    Example: SIZE_SCHEDULE="100,50,10"
    """
    value = os.getenv(name)
    if not value:
        return default
    return tuple(int(x) for x in value.split(",") if x.strip())


DEFAULT_SCHEDULE = (100, 90, 80, 70, 60, 50, 40, 30, 20, 10, 5, 1)


@dataclass(frozen=True)
class Config:
    """
    One place for the benchmark settings.
    """
    dataset_path: str = _get_str("DATASET_PATH", "data/retail.txt")
    support_fraction: float = _get_float("SUPPORT_FRACTION", 0.01)
    schedule: tuple[int, ...] = _get_int_list("SIZE_SCHEDULE", DEFAULT_SCHEDULE)
    algorithm: str = _get_str("ALGORITHM", "both")
    top_pairs: int = _get_int("TOP_PAIRS", 10)
    report_path: str = _get_str("REPORT_PATH", "artefacts/benchmark.csv")
    log_mlflow: bool = _get_bool("LOG_MLFLOW", True)
    mlflow_experiment: str = _get_str("MLFLOW_EXPERIMENT", "pairmine-scalability")

    def algorithms(self) -> list[str]:
        """
        Expand ALGORITHM into the list of miners to run.
        """
        name = self.algorithm.strip().lower()
        if name == "both":
            return ["apriori", "pcy"]
        if name not in {"apriori", "pcy"}:
            raise InvalidParameterError(f"Unknown ALGORITHM: {self.algorithm!r} (use apriori, pcy or both)")
        return [name]
