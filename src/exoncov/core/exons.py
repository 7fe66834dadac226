"""Exon interval extraction and merging.

This module walks the gene -> transcript -> exon hierarchy of an
``IndexedAnnotation`` and produces the exon intervals that coverage is
computed over, grouped by ``(chromosome, strand)``.

Two collections can be built:

- Unmerged: one interval per accepted exon row, remembering the row it
  came from so gene and transcript names can be resolved later.
- Merged: overlapping exons of the same chromosome and strand collapsed
  into disjoint intervals that no longer belong to any single row.

Example:
    >>> from exoncov.core.exons import extract_exon_intervals, merge_exon_intervals
    >>> exons = extract_exon_intervals(annot, gene_types={"gene"}, exon_types={"exon"})
    >>> merged = merge_exon_intervals(exons)
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator

import attrs

from exoncov.io.annotation import IndexedAnnotation
from exoncov.utils.intervals import Interval, merge_intervals

logger = logging.getLogger(__name__)

ExonKey = tuple[str, str]
ExonIntervals = dict[ExonKey, list["ExonInterval"]]


# =============================================================================
# Data Structures
# =============================================================================


def _check_bounds(instance: "ExonInterval", attribute: attrs.Attribute, value: int) -> None:
    if instance.start >= value:
        raise ValueError(
            f"Exon interval start must be less than end: [{instance.start}, {value})"
        )


@attrs.frozen
class ExonInterval:
    """A half-open exon interval.

    Attributes:
        start: Start position (0-based, inclusive).
        end: End position (0-based, exclusive).
        origin: Index of the annotation row this exon came from, or None
            for intervals produced by merging.
    """

    start: int
    end: int = attrs.field(validator=_check_bounds)
    origin: int | None = None

    @property
    def length(self) -> int:
        """Interval length in base pairs."""
        return self.end - self.start

    def to_interval(self) -> Interval:
        """Convert to a plain Interval."""
        return Interval(self.start, self.end)


# =============================================================================
# Extraction
# =============================================================================


def _accepts(types: frozenset[str], feature_type: str) -> bool:
    return not types or feature_type in types


def extract_exon_intervals(
    annot: IndexedAnnotation,
    gene_types: Iterable[str] = (),
    transcript_types: Iterable[str] = (),
    exon_types: Iterable[str] = (),
) -> ExonIntervals:
    """Collect exon intervals from genes and their transcripts.

    A child of an accepted gene is taken as a transcript only when its type
    is accepted and its chromosome and strand equal the gene's. Transcripts
    that disagree with their gene are dropped together with their exons.
    An empty type collection accepts every type.

    Args:
        annot: Indexed annotation to walk.
        gene_types: Accepted gene feature types.
        transcript_types: Accepted transcript feature types.
        exon_types: Accepted exon feature types.

    Returns:
        ``(chromosome, strand)`` -> exon intervals in discovery order.
    """
    gene_types = frozenset(gene_types)
    transcript_types = frozenset(transcript_types)
    exon_types = frozenset(exon_types)

    exons: ExonIntervals = {}
    n_inconsistent = 0

    for gene_row in annot.iter_rows_of_type(gene_types):
        gene = annot.rows[gene_row]
        for transcript_row in annot.children(gene_row):
            transcript = annot.rows[transcript_row]
            if not _accepts(transcript_types, transcript.feature_type):
                continue
            if transcript.seqname != gene.seqname or transcript.strand != gene.strand:
                n_inconsistent += 1
                continue

            for exon_row in annot.children(transcript_row):
                exon = annot.rows[exon_row]
                if not _accepts(exon_types, exon.feature_type):
                    continue
                exons.setdefault((exon.seqname, exon.strand), []).append(
                    ExonInterval(exon.start - 1, exon.end, origin=exon_row)
                )

    if n_inconsistent:
        logger.debug(
            f"Skipped {n_inconsistent} transcripts whose chromosome or strand "
            f"differs from their gene"
        )
    logger.info(f"Extracted {count_intervals(exons)} exons on {len(exons)} strands")
    return exons


# =============================================================================
# Merging
# =============================================================================


def merge_exon_intervals(exons: ExonIntervals) -> ExonIntervals:
    """Merge overlapping exons within each ``(chromosome, strand)`` group.

    The input is left unchanged. Merged intervals carry no origin row.

    Args:
        exons: Unmerged exon intervals.

    Returns:
        New collection of disjoint, origin-less intervals sorted by start.
    """
    merged: ExonIntervals = {}
    for key, intervals in exons.items():
        merged[key] = [
            ExonInterval(iv.start, iv.end)
            for iv in merge_intervals([e.to_interval() for e in intervals])
        ]
    logger.info(f"Merged exons into {count_intervals(merged)} intervals")
    return merged


# =============================================================================
# Utility Functions
# =============================================================================


def count_intervals(exons: ExonIntervals) -> int:
    """Total number of intervals across all groups."""
    return sum(len(v) for v in exons.values())


def iter_exon_intervals(exons: ExonIntervals) -> Iterator[tuple[str, str, ExonInterval]]:
    """Flatten a grouped collection into ``(seqname, strand, interval)`` items."""
    for (seqname, strand), intervals in exons.items():
        for interval in intervals:
            yield seqname, strand, interval
