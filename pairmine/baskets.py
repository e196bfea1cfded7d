from __future__ import annotations

from pathlib import Path
from typing import IO, Iterable, Iterator, List, Optional, Protocol

from pairmine.errors import DatasetUnavailable, InvalidParameterError, MalformedBasketError


Basket = List[int]


def parse_basket(line: str, index: int) -> Basket:
    """
    Turn one text line into a basket.

    - tokens are whitespace separated non-negative ints, ASCII digits only
    - order is kept, duplicates are kept
    - a blank line is an empty basket
    """
    items: Basket = []
    for token in line.split():
        # int() alone would also take "1_000" and non-ASCII digits
        if not (token.isascii() and token.isdigit()):
            raise MalformedBasketError(index, line.rstrip("\n"), token)
        items.append(int(token))
    return items


def _check_limit(limit: Optional[int]) -> None:
    if limit is not None and limit < 0:
        raise InvalidParameterError(f"basket limit must be >= 0, got {limit}")


class BasketSource(Protocol):
    """
    Anything the engine can scan twice in the same order.
    """

    def scan(self, limit: Optional[int] = None) -> Iterator[Basket]:
        ...

    def count(self) -> int:
        ...


class BasketFile:
    """
    Basket source backed by a text file (one basket per line).

    The file is opened lazily in binary mode and each line must be ASCII;
    scan() rewinds to the first line every time,
    so pass one and pass two see the same baskets in the same order.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._fh: Optional[IO[bytes]] = None
        self._index = 0

    def _handle(self) -> IO[bytes]:
        if self._fh is None:
            try:
                self._fh = open(self.path, "rb")
            except OSError as exc:
                raise DatasetUnavailable(self.path, f"cannot be opened: {exc.strerror or exc}") from exc
        return self._fh

    def open(self) -> "BasketFile":
        self._handle()
        return self

    def next_basket(self) -> Optional[Basket]:
        """
        Return the next basket, or None at end of data.
        """
        raw = self._handle().readline()
        if not raw:
            return None
        # Lines are decoded one at a time so a bad byte maps to its own basket index
        try:
            line = raw.decode("ascii")
        except UnicodeDecodeError as exc:
            bad = raw[exc.start : exc.end].decode("ascii", "backslashreplace")
            text = raw.decode("ascii", "backslashreplace").rstrip("\r\n")
            raise MalformedBasketError(self._index, text, bad) from exc
        basket = parse_basket(line, self._index)
        self._index += 1
        return basket

    def reset(self) -> None:
        self._handle().seek(0)
        self._index = 0

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None
        self._index = 0

    def __enter__(self) -> "BasketFile":
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def scan(self, limit: Optional[int] = None) -> Iterator[Basket]:
        """
        Yield at most `limit` baskets from the start of the file.
        limit=None reads to the end. Stops quietly at end of data.
        """
        _check_limit(limit)
        self.reset()
        seen = 0
        while limit is None or seen < limit:
            basket = self.next_basket()
            if basket is None:
                return
            seen += 1
            yield basket

    def count(self) -> int:
        """
        Number of baskets in the file (full scan, lines are parsed).
        """
        return sum(1 for _ in self.scan())


class BasketList:
    """
    In-memory basket source (tests, synthetic data).
    """

    def __init__(self, baskets: Iterable[Iterable[int]]) -> None:
        self.baskets: List[Basket] = [list(b) for b in baskets]
        for i, basket in enumerate(self.baskets):
            for item in basket:
                if not isinstance(item, int) or item < 0:
                    raise MalformedBasketError(i, " ".join(str(x) for x in basket), str(item))

    def scan(self, limit: Optional[int] = None) -> Iterator[Basket]:
        _check_limit(limit)
        end = len(self.baskets) if limit is None else min(limit, len(self.baskets))
        for i in range(end):
            yield self.baskets[i]

    def count(self) -> int:
        return len(self.baskets)
