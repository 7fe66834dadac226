"""Pytest configuration and shared fixtures for exoncov tests.

Fixtures are organized by category:

- Annotation fixtures: synthetic GFF3/GTF files
- BAM fixtures: small coordinate-sorted, indexed BAM files built with pysam
"""

from pathlib import Path
from typing import Callable

import pysam
import pytest

# SAM flags
FLAG_PAIRED = 0x1
FLAG_REVERSE = 0x10
FLAG_MATE_REVERSE = 0x20
FLAG_READ1 = 0x40
FLAG_READ2 = 0x80

REFERENCE_LENGTHS = {"chr1": 1000, "chr2": 500}


# =============================================================================
# Annotation Fixtures
# =============================================================================


@pytest.fixture
def synthetic_gff3(tmp_path: Path) -> Path:
    """Create a synthetic GFF3 file for testing.

    - gene1 (chr1 +): mRNA1 with exons 101-150 and 201-250
    - gene2 (chr1 -): mRNA2 with exons 101-150 and 141-160 (overlapping),
      plus mRNA3 declared on chr2, which disagrees with its gene
    - gene3 (chr2 +): ncRNA with one exon and a CDS
    """
    gff_path = tmp_path / "test_annotations.gff3"

    content = """\
##gff-version 3
##sequence-region chr1 1 1000
chr1\ttest\tgene\t101\t250\t.\t+\t.\tID=gene1;Name=GeneOne
chr1\ttest\tmRNA\t101\t250\t.\t+\t.\tID=mRNA1;Parent=gene1
chr1\ttest\texon\t101\t150\t.\t+\t.\tID=exon1;Parent=mRNA1;gene_name=GeneOne;transcript_name=TxOne
chr1\ttest\texon\t201\t250\t.\t+\t.\tID=exon2;Parent=mRNA1;gene_name=GeneOne;transcript_name=TxOne
chr1\ttest\tgene\t101\t160\t.\t-\t.\tID=gene2;Name=GeneTwo
chr1\ttest\tmRNA\t101\t160\t.\t-\t.\tID=mRNA2;Parent=gene2
chr1\ttest\texon\t101\t150\t.\t-\t.\tID=exon3;Parent=mRNA2
chr1\ttest\texon\t141\t160\t.\t-\t.\tID=exon4;Parent=mRNA2
chr2\ttest\tmRNA\t101\t160\t.\t-\t.\tID=mRNA3;Parent=gene2
chr2\ttest\texon\t101\t160\t.\t-\t.\tID=exon5;Parent=mRNA3
chr2\ttest\tgene\t51\t250\t.\t+\t.\tID=gene3;Name=GeneThree
chr2\ttest\tncRNA\t51\t250\t.\t+\t.\tID=nc1;Parent=gene3
chr2\ttest\texon\t51\t250\t.\t+\t.\tID=exon6;Parent=nc1
chr2\ttest\tCDS\t51\t250\t.\t+\t0\tID=cds6;Parent=nc1
"""
    gff_path.write_text(content)
    return gff_path


@pytest.fixture
def synthetic_gtf(tmp_path: Path) -> Path:
    """Create a synthetic GTF file.

    Gene g1 has explicit gene and transcript lines; gene g2 only has
    exon lines, so its gene and transcript rows must be synthesized.
    """
    gtf_path = tmp_path / "test_annotations.gtf"

    content = """\
#!genome-build test
chr1\ttest\tgene\t101\t250\t.\t+\t.\tgene_id "g1"; gene_name "GeneOne";
chr1\ttest\ttranscript\t101\t250\t.\t+\t.\tgene_id "g1"; transcript_id "t1"; transcript_name "TxOne";
chr1\ttest\texon\t101\t150\t.\t+\t.\tgene_id "g1"; transcript_id "t1"; transcript_name "TxOne"; gene_name "GeneOne";
chr1\ttest\texon\t201\t250\t.\t+\t.\tgene_id "g1"; transcript_id "t1"; transcript_name "TxOne"; gene_name "GeneOne";
chr1\ttest\texon\t401\t450\t.\t-\t.\tgene_id "g2"; transcript_id "t2";
chr1\ttest\texon\t501\t560\t.\t-\t.\tgene_id "g2"; transcript_id "t2";
"""
    gtf_path.write_text(content)
    return gtf_path


# =============================================================================
# BAM Fixtures
# =============================================================================


def _write_bam(
    path: Path,
    reads: list[dict],
    reference_lengths: dict[str, int],
) -> Path:
    header = {
        "HD": {"VN": "1.6", "SO": "coordinate"},
        "SQ": [{"SN": name, "LN": length} for name, length in reference_lengths.items()],
    }
    names = list(reference_lengths)
    ordered = sorted(reads, key=lambda r: (names.index(r["reference"]), r["start"]))

    with pysam.AlignmentFile(str(path), "wb", header=header) as out:
        for read in ordered:
            segment = pysam.AlignedSegment(out.header)
            segment.query_name = read["name"]
            segment.flag = read.get("flag", 0)
            segment.reference_id = out.get_tid(read["reference"])
            segment.reference_start = read["start"]
            segment.mapping_quality = read.get("mapq", 60)
            segment.cigarstring = read["cigar"]
            segment.query_sequence = "A" * segment.infer_query_length()
            out.write(segment)

    pysam.index(str(path))
    return path


@pytest.fixture
def bam_writer(tmp_path: Path) -> Callable[..., Path]:
    """Return a function that writes an indexed BAM into tmp_path.

    Each read is a dict with name, reference, start (0-based), cigar and
    optional flag.
    """

    def write(
        name: str,
        reads: list[dict],
        reference_lengths: dict[str, int] | None = None,
    ) -> Path:
        return _write_bam(tmp_path / name, reads, reference_lengths or REFERENCE_LENGTHS)

    return write


@pytest.fixture
def unstranded_bam(bam_writer) -> Path:
    """Three templates inside chr1:[100,150) and nothing in [200,250)."""
    return bam_writer(
        "unstranded.bam",
        [
            {"name": "r1", "reference": "chr1", "start": 100, "cigar": "20M"},
            {"name": "r2", "reference": "chr1", "start": 110, "cigar": "30M"},
            {"name": "r3", "reference": "chr1", "start": 120, "cigar": "5S30M"},
        ],
    )


@pytest.fixture
def stranded_bam(bam_writer) -> Path:
    """Paired reads on chr1 with mixed orientations.

    - fwd: read1 forward at 100 with its read2 mate reverse at 130
    - rev: read1 reverse at 110 (mate unmapped elsewhere)
    - mate2fwd: read2 forward at 120
    """
    return bam_writer(
        "stranded.bam",
        [
            {
                "name": "fwd",
                "reference": "chr1",
                "start": 100,
                "cigar": "20M",
                "flag": FLAG_PAIRED | FLAG_READ1 | FLAG_MATE_REVERSE,
            },
            {
                "name": "fwd",
                "reference": "chr1",
                "start": 130,
                "cigar": "20M",
                "flag": FLAG_PAIRED | FLAG_READ2 | FLAG_REVERSE,
            },
            {
                "name": "rev",
                "reference": "chr1",
                "start": 110,
                "cigar": "10M",
                "flag": FLAG_PAIRED | FLAG_READ1 | FLAG_REVERSE,
            },
            {
                "name": "mate2fwd",
                "reference": "chr1",
                "start": 120,
                "cigar": "10M",
                "flag": FLAG_PAIRED | FLAG_READ2,
            },
        ],
    )


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
