"""
Order-statistic pool of per-frame motion scores.

The pool keeps every frame's score record in a list sorted by the composite
key ``(value, frame_index)``. The frame selector walks that list with a
cursor and, whenever a record's value changes, removes it and reinserts it
at its new sorted position in the part of the list the cursor has not yet
passed. Records also form a chain in physical frame order so the selector
can find the nearest later frame that has not been dropped.
"""

from __future__ import annotations

from bisect import bisect_left
from dataclasses import dataclass
from operator import attrgetter

from .errors import PoolInvariantError

_SORT_KEY = attrgetter("sort_key")


@dataclass(eq=False)
class FrameScore:
    """Motion score record for one input frame.

    Attributes:
        frame_index: 0-based position of the frame in the source.
        value: Current score; raised when a dropped neighbour's weight is
            passed on to this frame.
        dropped: Set once when the frame is selected for removal.
    """

    frame_index: int
    value: float
    dropped: bool = False

    @property
    def sort_key(self) -> tuple[float, int]:
        return (self.value, self.frame_index)


class RankedPool:
    """
    Sorted pool of FrameScore records plus their frame-order chain.

    Ordering is exact and total: lower value first, equal values ordered by
    frame index. Because frame indices are unique, no two records share a
    key and a binary search identifies a single slot.

    Attributes:
        entries: Records in frame order (index ``i`` holds frame ``i``).

    Example:
        >>> pool = RankedPool([3.0, 1.0, 2.0])
        >>> [entry.frame_index for entry in pool]
        [1, 2, 0]
    """

    def __init__(self, scores):
        self.entries: list[FrameScore] = []
        self._next: list[int | None] = []
        self._order: list[FrameScore] = []
        self.build(scores)

    def build(self, scores) -> None:
        """Create one record per score, chain them and sort the pool."""
        self.entries = [FrameScore(i, float(value)) for i, value in enumerate(scores)]
        count = len(self.entries)
        self._next = [i + 1 if i + 1 < count else None for i in range(count)]
        self._order = sorted(self.entries, key=_SORT_KEY)

    def __len__(self) -> int:
        return len(self._order)

    def __getitem__(self, position: int) -> FrameScore:
        return self._order[position]

    def __iter__(self):
        return iter(self._order)

    def successor_not_dropped(self, entry: FrameScore) -> FrameScore | None:
        """
        Find the nearest later frame that has not been dropped.

        Dropped records are unlinked from the chain as they are passed, so
        later lookups skip whole runs of dropped frames in one step.

        Args:
            entry: Record to start from (excluded from the search).

        Returns:
            The next surviving record in frame order, or None at chain end.
        """
        index = self._next[entry.frame_index]
        skipped = []
        while index is not None and self.entries[index].dropped:
            skipped.append(index)
            index = self._next[index]
        for dropped_index in skipped:
            self._next[dropped_index] = index
        if skipped:
            self._next[entry.frame_index] = index
        if index is None:
            return None
        return self.entries[index]

    def mark_dropped(self, entry: FrameScore) -> None:
        """Flag a record as dropped. A record can only be dropped once."""
        if entry.dropped:
            raise PoolInvariantError(f"Frame {entry.frame_index} was dropped twice")
        entry.dropped = True

    def locate(self, entry: FrameScore, start: int = 0) -> int:
        """
        Return the sorted position of ``entry`` at or after ``start``.

        Args:
            entry: Record to look for, with its current (unchanged) value.
            start: First position of the searched range ``[start, end)``.

        Returns:
            int: Position of that exact record.

        Raises:
            PoolInvariantError: If the slot the search lands on does not hold
                ``entry``, which means the sorted order has been broken.
        """
        position = bisect_left(self._order, entry.sort_key, lo=start, key=_SORT_KEY)
        if position >= len(self._order) or self._order[position] is not entry:
            raise PoolInvariantError(
                f"Frame {entry.frame_index} (value {entry.value!r}) is not at its "
                f"sorted position {position}; the ranked pool is out of order"
            )
        return position

    def remove_at(self, position: int) -> FrameScore:
        """Delete the slot at ``position``, shifting later slots left."""
        return self._order.pop(position)

    def insert_sorted(self, entry: FrameScore, start: int = 0) -> int:
        """
        Insert ``entry`` at its sorted position within ``[start, end)``.

        Args:
            entry: Record to insert, with its current value.
            start: First position the record may occupy.

        Returns:
            int: The position the record was inserted at.
        """
        position = bisect_left(self._order, entry.sort_key, lo=start, key=_SORT_KEY)
        self._order.insert(position, entry)
        return position
