"""Utility functions for exoncov.

- Interval operations (overlap, merge)
- Logging configuration

Example:
    >>> from exoncov.utils.intervals import Interval, overlap_length
    >>> overlap_length(Interval(10, 20), Interval(15, 25))
    5
"""

from exoncov.utils.intervals import Interval, merge_intervals, overlap_length, overlaps

__all__ = [
    "Interval",
    "merge_intervals",
    "overlap_length",
    "overlaps",
]
