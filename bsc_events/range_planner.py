from dataclasses import dataclass
from typing import Iterator, Optional


@dataclass(frozen=True)
class BlockRange:
    start_block: int
    end_block: int

    def __post_init__(self):
        if self.start_block < 0 or self.end_block < self.start_block:
            raise ValueError(
                f"invalid block range {self.start_block}-{self.end_block}"
            )

    @property
    def width(self) -> int:
        return self.end_block - self.start_block


# -------------------------
# sequential ranges
# unaware of fetch results
# no retry
# -------------------------
class ChunkedRangePlanner:
    """
    Split [head, tail] into chunks of at most `chunk_size` blocks.

    Consecutive ranges share their boundary block: the next range starts
    where the previous one ended, and the last range always ends at tail.
    head == tail still yields one zero-width range.
    """

    def __init__(self, head: int, tail: int, chunk_size: int):
        if head < 0:
            raise ValueError(f"head {head} < 0")
        if head > tail:
            raise ValueError(f"head {head} > tail {tail}")
        if chunk_size < 1:
            raise ValueError(f"chunk_size {chunk_size} < 1")

        self.head = head
        self.tail = tail
        self.chunk_size = chunk_size

        self._cursor = head
        self._issued = 0

    def next_range(self) -> Optional[BlockRange]:
        if self.exhausted:
            return None

        start = self._cursor
        end = min(start + self.chunk_size, self.tail)

        self._cursor = end
        self._issued += 1

        return BlockRange(start_block=start, end_block=end)

    @property
    def exhausted(self) -> bool:
        return self._issued > 0 and self._cursor >= self.tail

    @property
    def cursor(self) -> int:
        return self._cursor

    def expected_ranges(self) -> int:
        span = self.tail - self.head
        return max(1, -(-span // self.chunk_size))

    def __iter__(self) -> Iterator[BlockRange]:
        while True:
            r = self.next_range()
            if r is None:
                return
            yield r


def plan_ranges(head: int, tail: int, chunk_size: int) -> list[BlockRange]:
    return list(ChunkedRangePlanner(head, tail, chunk_size))
