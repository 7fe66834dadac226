"""BAM file handling for exon coverage.

This module wraps the pieces of pysam that the coverage engine needs:
opening indexed BAM files, mapping reference names to target ids,
reading reference lengths and mapped read totals, and projecting a
read's CIGAR onto the reference.

Features:
    - Strand-pairing modes for stranded and unstranded libraries
    - Per-file target id maps through a chromosome name table
    - Total mapped read counts from the BAM index
    - CIGAR projection to aligned reference blocks

Example:
    >>> from exoncov.io.bam import AlignmentSource, StrandMode, cigar_to_blocks
    >>> source = AlignmentSource("rnaseq.bam", StrandMode.READ2_PLUS)
    >>> cigar_to_blocks([(0, 3), (2, 2), (0, 4)], 0)
    [(0, 3), (5, 9)]
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Iterable, Sequence

import attrs
import pysam

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

# CIGAR operations
CIGAR_M = 0  # Match or mismatch
CIGAR_I = 1  # Insertion
CIGAR_D = 2  # Deletion
CIGAR_N = 3  # Skipped region (intron)
CIGAR_S = 4  # Soft clip
CIGAR_H = 5  # Hard clip
CIGAR_P = 6  # Padding
CIGAR_EQ = 7  # Sequence match
CIGAR_X = 8  # Sequence mismatch

MATCH_OPS = frozenset({CIGAR_M, CIGAR_EQ, CIGAR_X})
REF_SKIP_OPS = frozenset({CIGAR_D, CIGAR_N})
NON_REF_OPS = frozenset({CIGAR_I, CIGAR_S, CIGAR_H, CIGAR_P})


# =============================================================================
# Data Structures
# =============================================================================


class StrandMode(Enum):
    """How a library's read orientation relates to transcript strand."""

    READ1_PLUS = "read1"
    READ2_PLUS = "read2"
    UNSTRANDED = "unstranded"

    @property
    def read1_indicates_plus(self) -> bool | None:
        """True if mate 1 indicates plus, False if mate 2 does, None if unstranded."""
        if self is StrandMode.READ1_PLUS:
            return True
        if self is StrandMode.READ2_PLUS:
            return False
        return None


@attrs.frozen
class AlignmentSource:
    """An indexed BAM file and its strand-pairing mode.

    Attributes:
        path: Path to the coordinate-sorted, indexed BAM file.
        strand_mode: Library strand-pairing mode.
    """

    path: Path = attrs.field(converter=Path)
    strand_mode: StrandMode = attrs.field(
        default=StrandMode.UNSTRANDED, converter=StrandMode
    )

    def open(self) -> pysam.AlignmentFile:
        """Open a fresh read handle on this BAM file."""
        return open_bam(self.path)


# =============================================================================
# File Access
# =============================================================================


def check_bam(bam_path: Path | str) -> Path:
    """Check that a BAM file and its index exist.

    Args:
        bam_path: Path to the BAM file.

    Returns:
        The path as a Path.

    Raises:
        FileNotFoundError: If the BAM file doesn't exist.
        ValueError: If the BAM file is not indexed.
    """
    path = Path(bam_path)
    if not path.exists():
        raise FileNotFoundError(f"BAM file not found: {path}")

    index_paths = [
        path.with_suffix(".bam.bai"),
        path.with_suffix(".bai"),
        Path(str(path) + ".bai"),
        Path(str(path) + ".csi"),
    ]
    if not any(p.exists() for p in index_paths):
        raise ValueError(f"BAM index not found. Please run: samtools index {path}")
    return path


def open_bam(bam_path: Path | str) -> pysam.AlignmentFile:
    """Open an indexed BAM file for reading."""
    return pysam.AlignmentFile(str(bam_path), "rb")


def build_tid_map(
    bam_path: Path | str,
    chrmap: dict[str, str] | None = None,
) -> dict[str, int]:
    """Map normalized chromosome names to a BAM file's target ids.

    Args:
        bam_path: Path to the BAM file.
        chrmap: Optional chromosome name remapping table.

    Returns:
        Chromosome name -> target id.
    """
    chrmap = chrmap or {}
    tidmap: dict[str, int] = {}
    with open_bam(bam_path) as bam:
        for name in bam.references:
            tidmap[chrmap.get(name, name)] = bam.get_tid(name)
    return tidmap


def get_bam_refs(
    bam_path: Path | str,
    chrmap: dict[str, str] | None = None,
) -> dict[str, int]:
    """Read reference lengths from a BAM header, in header order.

    Args:
        bam_path: Path to the BAM file.
        chrmap: Optional chromosome name remapping table.

    Returns:
        Chromosome name -> length.
    """
    chrmap = chrmap or {}
    with open_bam(bam_path) as bam:
        return {
            chrmap.get(name, name): length
            for name, length in zip(bam.references, bam.lengths)
        }


def get_bam_total_reads(bam_paths: Iterable[Path | str]) -> int:
    """Sum mapped read counts over BAM files using their indexes.

    This is the sum of the third column of ``samtools idxstats``.

    Args:
        bam_paths: BAM files to count.

    Returns:
        Total mapped reads across all files.
    """
    total_reads = 0
    for bam_path in bam_paths:
        with open_bam(bam_path) as bam:
            total_reads += sum(stat.mapped for stat in bam.get_index_statistics())
    return total_reads


# =============================================================================
# CIGAR Projection
# =============================================================================


def cigar_to_blocks(
    cigartuples: Sequence[tuple[int, int]] | None,
    pos: int,
) -> list[tuple[int, int]]:
    """Project a CIGAR onto the reference as aligned blocks.

    Match operations (M, =, X) emit a half-open ``(start, end)`` block.
    Deletions and reference skips advance the reference position without
    emitting. Insertions, clips and padding neither advance nor emit.

    Args:
        cigartuples: pysam-style ``(op, length)`` pairs.
        pos: 0-based leftmost reference position of the alignment.

    Returns:
        Ordered list of aligned reference blocks.

    Raises:
        ValueError: On an unknown CIGAR operation.
    """
    blocks = []
    for op, length in cigartuples or ():
        if op in MATCH_OPS:
            if length > 0:
                blocks.append((pos, pos + length))
            pos += length
        elif op in REF_SKIP_OPS:
            pos += length
        elif op not in NON_REF_OPS:
            raise ValueError(f"Unknown CIGAR operation: {op}")
    return blocks
