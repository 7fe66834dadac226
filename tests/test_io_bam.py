"""Unit tests for exoncov.io.bam module.

Tests cover:
- CIGAR projection onto reference blocks
- Strand modes and alignment sources
- BAM checks, target id maps, reference lengths and read totals
"""

from pathlib import Path

import pytest

from exoncov.io.bam import (
    CIGAR_D,
    CIGAR_EQ,
    CIGAR_H,
    CIGAR_I,
    CIGAR_M,
    CIGAR_N,
    CIGAR_P,
    CIGAR_S,
    CIGAR_X,
    AlignmentSource,
    StrandMode,
    build_tid_map,
    check_bam,
    cigar_to_blocks,
    get_bam_refs,
    get_bam_total_reads,
)


# =============================================================================
# CIGAR Projection Tests
# =============================================================================


class TestCigarToBlocks:
    """Tests for cigar_to_blocks."""

    def test_single_match(self) -> None:
        """5M at 100 covers [100,105)."""
        assert cigar_to_blocks([(CIGAR_M, 5)], 100) == [(100, 105)]

    def test_deletion_advances_reference(self) -> None:
        """3M2D4M at 0 covers [0,3) and [5,9)."""
        cigar = [(CIGAR_M, 3), (CIGAR_D, 2), (CIGAR_M, 4)]
        assert cigar_to_blocks(cigar, 0) == [(0, 3), (5, 9)]

    def test_soft_clip_does_not_advance(self) -> None:
        """10S5M at 0 covers [0,5)."""
        assert cigar_to_blocks([(CIGAR_S, 10), (CIGAR_M, 5)], 0) == [(0, 5)]

    def test_reference_skip(self) -> None:
        """Introns split a read into two blocks."""
        cigar = [(CIGAR_M, 50), (CIGAR_N, 100), (CIGAR_M, 50)]
        assert cigar_to_blocks(cigar, 100) == [(100, 150), (250, 300)]

    def test_insertion_and_clips_ignored(self) -> None:
        cigar = [
            (CIGAR_H, 4),
            (CIGAR_S, 2),
            (CIGAR_M, 10),
            (CIGAR_I, 3),
            (CIGAR_P, 1),
            (CIGAR_M, 5),
            (CIGAR_S, 2),
        ]
        assert cigar_to_blocks(cigar, 20) == [(20, 30), (30, 35)]

    def test_sequence_match_and_mismatch_emit(self) -> None:
        cigar = [(CIGAR_EQ, 4), (CIGAR_X, 1), (CIGAR_EQ, 5)]
        assert cigar_to_blocks(cigar, 0) == [(0, 4), (4, 5), (5, 10)]

    def test_zero_length_match_emits_nothing(self) -> None:
        cigar = [(CIGAR_M, 0), (CIGAR_D, 3), (CIGAR_M, 2)]
        assert cigar_to_blocks(cigar, 10) == [(13, 15)]

    def test_empty_and_missing_cigar(self) -> None:
        assert cigar_to_blocks([], 10) == []
        assert cigar_to_blocks(None, 10) == []

    def test_unknown_operation(self) -> None:
        with pytest.raises(ValueError, match="Unknown CIGAR operation"):
            cigar_to_blocks([(CIGAR_M, 5), (42, 1)], 0)


# =============================================================================
# Strand Mode Tests
# =============================================================================


class TestStrandMode:
    """Tests for StrandMode."""

    def test_read1_indicates_plus(self) -> None:
        assert StrandMode.READ1_PLUS.read1_indicates_plus is True
        assert StrandMode.READ2_PLUS.read1_indicates_plus is False
        assert StrandMode.UNSTRANDED.read1_indicates_plus is None

    def test_from_value(self) -> None:
        assert StrandMode("read2") is StrandMode.READ2_PLUS


class TestAlignmentSource:
    """Tests for AlignmentSource."""

    def test_converters(self) -> None:
        source = AlignmentSource("sample.bam", "read1")
        assert source.path == Path("sample.bam")
        assert source.strand_mode is StrandMode.READ1_PLUS

    def test_default_unstranded(self) -> None:
        assert AlignmentSource("sample.bam").strand_mode is StrandMode.UNSTRANDED

    def test_open(self, unstranded_bam: Path) -> None:
        with AlignmentSource(unstranded_bam).open() as bam:
            assert list(bam.references) == ["chr1", "chr2"]


# =============================================================================
# BAM File Tests
# =============================================================================


class TestCheckBam:
    """Tests for check_bam."""

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            check_bam(tmp_path / "missing.bam")

    def test_missing_index(self, tmp_path: Path) -> None:
        bam_path = tmp_path / "unindexed.bam"
        bam_path.write_bytes(b"")
        with pytest.raises(ValueError, match="index not found"):
            check_bam(bam_path)

    def test_indexed(self, unstranded_bam: Path) -> None:
        assert check_bam(unstranded_bam) == unstranded_bam


class TestBamHeaders:
    """Tests for header-derived tables."""

    def test_build_tid_map(self, unstranded_bam: Path) -> None:
        assert build_tid_map(unstranded_bam) == {"chr1": 0, "chr2": 1}

    def test_build_tid_map_with_chrmap(self, unstranded_bam: Path) -> None:
        tidmap = build_tid_map(unstranded_bam, {"chr1": "1"})
        assert tidmap == {"1": 0, "chr2": 1}

    def test_get_bam_refs(self, unstranded_bam: Path) -> None:
        refs = get_bam_refs(unstranded_bam, {"chr2": "2"})
        assert refs == {"chr1": 1000, "2": 500}
        assert list(refs) == ["chr1", "2"]


class TestTotalReads:
    """Tests for get_bam_total_reads."""

    def test_single_file(self, unstranded_bam: Path) -> None:
        assert get_bam_total_reads([unstranded_bam]) == 3

    def test_sums_files(self, unstranded_bam: Path, stranded_bam: Path) -> None:
        assert get_bam_total_reads([unstranded_bam, stranded_bam]) == 7

    def test_no_files(self) -> None:
        assert get_bam_total_reads([]) == 0
