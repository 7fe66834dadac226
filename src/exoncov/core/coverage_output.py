"""Output rows and TSV writers for exon coverage.

This module turns ``ExonCoverage`` results into report rows, resolving
readable gene and transcript names from the annotation row each exon
came from, and writes them as a sorted tab-separated table.

Output columns:
    seqname, strand, start, end, cov, rpkm, transcript_id, gene_id

Example:
    >>> from exoncov.core.coverage_output import assemble_rows, write_coverage_tsv
    >>> rows = assemble_rows(annot, coverages)
    >>> write_coverage_tsv(rows, "exon_cov.tsv")
"""

from __future__ import annotations

import csv
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Sequence

import attrs
import numpy as np

if TYPE_CHECKING:
    from exoncov.core.coverage import ExonCoverage
    from exoncov.io.annotation import IndexedAnnotation

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

HEADERS = [
    "seqname",
    "strand",
    "start",
    "end",
    "cov",
    "rpkm",
    "transcript_id",
    "gene_id",
]

# Attribute lookup order for names, first present wins
GENE_NAME_KEYS = ("Name", "ID", "gene_name", "gene", "gene_id")
TRANSCRIPT_NAME_KEYS = (
    "transcript_name",
    "transcript",
    "Name",
    "ID",
    "transcript_id",
    "gene_name",
    "gene",
    "gene_id",
)


# =============================================================================
# Data Structures
# =============================================================================


@attrs.frozen(order=True)
class CoverageRow:
    """One output row. Rows sort lexicographically by field order."""

    seqname: str
    strand: str
    start: int
    end: int
    cov: float
    rpkm: float
    transcript_id: str = ""
    gene_id: str = ""

    def to_fields(self) -> list[str]:
        """Format the row as output columns."""
        return [
            self.seqname,
            self.strand,
            str(self.start),
            str(self.end),
            format_float(self.cov),
            format_float(self.rpkm),
            self.transcript_id,
            self.gene_id,
        ]


# =============================================================================
# Name Resolution
# =============================================================================


def _first_attribute(attributes: dict[str, str], keys: Sequence[str]) -> str | None:
    for key in keys:
        if key in attributes:
            return attributes[key]
    return None


def resolve_gene_name(annot: IndexedAnnotation, row: int) -> str | None:
    """Readable gene name of an annotation row, if any attribute provides one."""
    return _first_attribute(annot.rows[row].attributes, GENE_NAME_KEYS)


def resolve_transcript_name(annot: IndexedAnnotation, row: int) -> str | None:
    """Readable transcript name of an annotation row, if any attribute provides one."""
    return _first_attribute(annot.rows[row].attributes, TRANSCRIPT_NAME_KEYS)


# =============================================================================
# Row Assembly
# =============================================================================


def assemble_rows(
    annot: IndexedAnnotation,
    coverages: Iterable[ExonCoverage],
) -> list[CoverageRow]:
    """Build sorted output rows from coverage results.

    Exons with an origin row get transcript and gene names from that
    row's attributes; merged exons get empty names.

    Args:
        annot: Annotation the exons were extracted from.
        coverages: Coverage results, in any order.

    Returns:
        Sorted list of CoverageRow.
    """
    rows = []
    for coverage in coverages:
        origin = coverage.interval.origin
        if origin is None:
            transcript_id = gene_id = ""
        else:
            transcript_id = resolve_transcript_name(annot, origin) or ""
            gene_id = resolve_gene_name(annot, origin) or ""

        rows.append(
            CoverageRow(
                seqname=coverage.seqname,
                strand=coverage.strand,
                start=coverage.interval.start,
                end=coverage.interval.end,
                cov=coverage.cov,
                rpkm=coverage.rpkm,
                transcript_id=transcript_id,
                gene_id=gene_id,
            )
        )
    rows.sort()
    return rows


# =============================================================================
# TSV Writers
# =============================================================================


def format_float(value: float) -> str:
    """Format a float in plain decimal notation with no trailing zeros.

    Example:
        >>> format_float(20.0), format_float(0.5), format_float(1e-5)
        ('20', '0.5', '0.00001')
    """
    return np.format_float_positional(value, trim="-")


def write_coverage_tsv(
    rows: Iterable[CoverageRow],
    output_path: Path | str,
) -> int:
    """Write coverage rows to TSV, sorted.

    Args:
        rows: Rows to write.
        output_path: Output file path, or "-" for stdout.

    Returns:
        Number of rows written.
    """
    rows = sorted(rows)

    if str(output_path) == "-":
        _write_rows(sys.stdout, rows)
        sys.stdout.flush()
    else:
        with open(output_path, "w", newline="") as f:
            _write_rows(f, rows)

    logger.info(f"Wrote {len(rows)} exon coverage rows to {output_path}")
    return len(rows)


def _write_rows(handle, rows: list[CoverageRow]) -> None:
    writer = csv.writer(handle, delimiter="\t", lineterminator="\n")
    writer.writerow(HEADERS)
    for row in rows:
        writer.writerow(row.to_fields())
