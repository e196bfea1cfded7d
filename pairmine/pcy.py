from __future__ import annotations

from collections import Counter
from typing import Iterator

from pairmine.baskets import Basket
from pairmine.errors import EmptyInputError


def pair_hash(a: int, b: int) -> int:
    """
    Bucket id for the pair (a, b), a taken from the earlier position.

    h = 31 * (31 * 1 + a) + b

    Not symmetric: pair_hash(a, b) != pair_hash(b, a) in general.
    """
    return 31 * (31 + a) + b


def hash_basket_pairs(basket: Basket, bucket_counts: Counter[int]) -> None:
    """
    Add 1 to the bucket of every position pair i < j of one basket.
    """
    n = len(basket)
    for i in range(n - 1):
        a = basket[i]
        for j in range(i + 1, n):
            bucket_counts[pair_hash(a, basket[j])] += 1


class FrequencyBitmap:
    """
    One bit per bucket id in [0, size). Bit set = bucket was frequent.

    Reading an index outside the range (negative or >= size) gives False.
    """

    def __init__(self, size: int) -> None:
        if size < 0:
            raise ValueError(f"bitmap size must be >= 0, got {size}")
        self.size = size
        self._bits = bytearray((size + 7) // 8)

    def set(self, index: int) -> None:
        if not 0 <= index < self.size:
            raise IndexError(f"bucket {index} outside bitmap of size {self.size}")
        self._bits[index >> 3] |= 1 << (index & 7)

    def __getitem__(self, index: int) -> bool:
        if index < 0 or index >= self.size:
            return False
        return bool(self._bits[index >> 3] & (1 << (index & 7)))

    def __len__(self) -> int:
        return self.size

    def __iter__(self) -> Iterator[int]:
        """
        Iterate over set bucket ids, ascending.
        """
        for byte_index, byte in enumerate(self._bits):
            if not byte:
                continue
            for bit in range(8):
                if byte & (1 << bit):
                    yield (byte_index << 3) + bit

    def count(self) -> int:
        """
        Number of set bits (frequent buckets).
        """
        return sum(bin(byte).count("1") for byte in self._bits)

    def nbytes(self) -> int:
        return len(self._bits)


def build_bitmap(bucket_counts: Counter[int], threshold: int) -> FrequencyBitmap:
    """
    Turn bucket counts into a bitmap of frequent buckets.

    - size = max(bucket id) + 1
    - bit i is set if bucket_counts[i] >= threshold
    - buckets never seen stay unset

    Raises EmptyInputError when no pair was hashed in pass one.
    """
    if not bucket_counts:
        raise EmptyInputError("no bucket counts: pass one saw no pairs")

    # Bucket ids are >= 0 for non-negative items; anything below 0 cannot be stored.
    bitmap = FrequencyBitmap(max(max(bucket_counts), -1) + 1)
    for bucket, c in bucket_counts.items():
        if bucket >= 0 and c >= threshold:
            bitmap.set(bucket)
    return bitmap
