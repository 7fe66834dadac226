"""Genomic interval operations.

This module provides the half-open interval arithmetic shared by the
exon extractor and the coverage engine:

- Overlap detection
- Overlap length
- Interval merging

Two intervals overlap only when they share at least one base; intervals
that merely touch (``a.end == b.start``) are kept apart.

Example:
    >>> from exoncov.utils.intervals import Interval, merge_intervals
    >>> merge_intervals([Interval(100, 150), Interval(140, 160)])
    [Interval(start=100, end=160)]
"""

from typing import NamedTuple

# =============================================================================
# Data Structures
# =============================================================================


class Interval(NamedTuple):
    """A simple genomic interval.

    Attributes:
        start: Start position (0-based, inclusive).
        end: End position (0-based, exclusive).
    """

    start: int
    end: int


# =============================================================================
# Overlap Operations
# =============================================================================


def overlaps(a: Interval, b: Interval) -> bool:
    """Check if two intervals overlap.

    Args:
        a: First interval.
        b: Second interval.

    Returns:
        True if intervals share at least one position.
    """
    return a.start < b.end and b.start < a.end


def overlap_length(a: Interval, b: Interval) -> int:
    """Calculate overlap length between two intervals.

    Args:
        a: First interval.
        b: Second interval.

    Returns:
        Overlap length (0 if no overlap).
    """
    if not overlaps(a, b):
        return 0
    return min(a.end, b.end) - max(a.start, b.start)


# =============================================================================
# Merge Operations
# =============================================================================


def merge_intervals(intervals: list[Interval]) -> list[Interval]:
    """Merge overlapping intervals.

    Intervals are sorted by start (stable), then folded left into the last
    merged interval whenever they overlap it.

    Args:
        intervals: List of intervals to merge.

    Returns:
        List of disjoint merged intervals, sorted by start.
    """
    if not intervals:
        return []

    sorted_intervals = sorted(intervals, key=lambda x: x.start)

    merged = [Interval(sorted_intervals[0].start, sorted_intervals[0].end)]
    for current in sorted_intervals[1:]:
        last = merged[-1]
        if overlaps(current, last):
            merged[-1] = Interval(last.start, max(last.end, current.end))
        else:
            merged.append(Interval(current.start, current.end))

    return merged
