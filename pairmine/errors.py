from __future__ import annotations

from pathlib import Path


class PairMiningError(Exception):
    """
    Base class for every error raised by the mining core.
    """


class DatasetUnavailable(PairMiningError, OSError):
    """
    The basket file could not be opened.
    """

    def __init__(self, path: Path | str, reason: str = "cannot be opened") -> None:
        self.path = Path(path)
        super().__init__(f"dataset {self.path} {reason}")


class MalformedBasketError(PairMiningError, ValueError):
    """
    A line could not be parsed as a list of non-negative item ids.
    basket_index is 0-based, counted from the first line of the scan.
    """

    def __init__(self, basket_index: int, line: str, token: str | None = None) -> None:
        self.basket_index = basket_index
        self.line = line
        self.token = token
        detail = f" (bad token {token!r})" if token is not None else ""
        super().__init__(f"malformed basket at index {basket_index}: {line!r}{detail}")


class EmptyInputError(PairMiningError):
    """
    Pass one produced nothing to threshold against.
    """


class InvalidParameterError(PairMiningError, ValueError):
    pass
