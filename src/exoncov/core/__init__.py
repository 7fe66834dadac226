"""Core exon coverage logic.

- exons: Exon interval extraction and merging
- coverage: Per-exon coverage and RPKM
- coverage_output: Report rows and TSV output
"""

from exoncov.core.coverage import (
    ExonCoverage,
    ExonCoverageCounter,
    ExonTask,
    compute_rpkm,
    read_matches_strand,
)
from exoncov.core.coverage_output import CoverageRow, assemble_rows, write_coverage_tsv
from exoncov.core.exons import ExonInterval, extract_exon_intervals, merge_exon_intervals

__all__ = [
    "ExonInterval",
    "extract_exon_intervals",
    "merge_exon_intervals",
    "ExonCoverage",
    "ExonCoverageCounter",
    "ExonTask",
    "compute_rpkm",
    "read_matches_strand",
    "CoverageRow",
    "assemble_rows",
    "write_coverage_tsv",
]
