"""Tests for the exoncov command-line interface."""

import logging
from pathlib import Path

import pytest
from click.testing import CliRunner

from exoncov import __version__
from exoncov.cli import main


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo the logging setup performed by each CLI invocation."""
    yield
    logger = logging.getLogger("exoncov")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


# =============================================================================
# Option Handling
# =============================================================================


class TestCliOptions:
    """Tests for argument validation."""

    def test_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "--gff" in result.output
        assert "--cpu-threads" in result.output

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_no_bam_files(self, runner, synthetic_gff3: Path):
        result = runner.invoke(main, ["--gff", str(synthetic_gff3)])
        assert result.exit_code == 1
        assert "No BAM files" in result.output

    def test_no_annotation(self, runner, unstranded_bam: Path):
        result = runner.invoke(main, ["-u", str(unstranded_bam)])
        assert result.exit_code == 1
        assert "Exactly one of --gff or --gtf" in result.output

    def test_both_annotations(self, runner, synthetic_gff3, synthetic_gtf, unstranded_bam):
        result = runner.invoke(
            main,
            ["--gff", str(synthetic_gff3), "--gtf", str(synthetic_gtf), "-u", str(unstranded_bam)],
        )
        assert result.exit_code == 1

    def test_missing_bam_path(self, runner, synthetic_gff3: Path, tmp_path: Path):
        result = runner.invoke(
            main, ["--gff", str(synthetic_gff3), "-u", str(tmp_path / "missing.bam")]
        )
        assert result.exit_code == 2

    def test_negative_threads(self, runner, synthetic_gff3, unstranded_bam):
        result = runner.invoke(
            main, ["--gff", str(synthetic_gff3), "-u", str(unstranded_bam), "-t", "-1"]
        )
        assert result.exit_code == 2


# =============================================================================
# Full Runs
# =============================================================================


@pytest.mark.integration
class TestCliRuns:
    """End-to-end CLI runs on synthetic data."""

    def test_gff_to_files(self, runner, synthetic_gff3, unstranded_bam, tmp_path: Path):
        out = tmp_path / "exon_cov.tsv"
        merged = tmp_path / "merged_exon_cov.tsv"

        result = runner.invoke(
            main,
            [
                "--gff", str(synthetic_gff3),
                "-u", str(unstranded_bam),
                "-o", str(out),
                "-m", str(merged),
                "-t", "1",
            ],
        )

        assert result.exit_code == 0, result.output
        assert len(out.read_text().splitlines()) == 6
        assert len(merged.read_text().splitlines()) == 5

    def test_quiet_writes_report_to_stdout(self, runner, synthetic_gff3, unstranded_bam):
        result = runner.invoke(
            main,
            ["--gff", str(synthetic_gff3), "-u", str(unstranded_bam), "-t", "1", "-q"],
        )

        assert result.exit_code == 0, result.output
        lines = result.stdout.splitlines()
        assert lines[0].startswith("seqname\tstrand\tstart\tend")
        assert lines[1] == "chr1\t+\t100\t150\t1.6\t200000000\tTxOne\texon1"
        assert len(lines) == 6

    def test_gtf_input(self, runner, synthetic_gtf, unstranded_bam, tmp_path: Path):
        out = tmp_path / "exon_cov.tsv"
        result = runner.invoke(
            main,
            ["--gtf", str(synthetic_gtf), "-u", str(unstranded_bam), "-o", str(out), "-t", "1"],
        )

        assert result.exit_code == 0, result.output
        lines = out.read_text().splitlines()
        assert [line.split("\t")[:4] for line in lines[1:]] == [
            ["chr1", "+", "100", "150"],
            ["chr1", "+", "200", "250"],
            ["chr1", "-", "400", "450"],
            ["chr1", "-", "500", "560"],
        ]
        assert lines[1].split("\t")[6:] == ["TxOne", "GeneOne"]
        assert lines[3].split("\t")[6:] == ["t2", "g2"]

    def test_feature_type_options(self, runner, synthetic_gff3, unstranded_bam, tmp_path: Path):
        out = tmp_path / "exon_cov.tsv"
        result = runner.invoke(
            main,
            [
                "--gff", str(synthetic_gff3),
                "-u", str(unstranded_bam),
                "-o", str(out),
                "--transcript-type", "ncRNA",
                "-t", "1",
            ],
        )

        assert result.exit_code == 0, result.output
        lines = out.read_text().splitlines()
        assert len(lines) == 2
        assert lines[1].startswith("chr2\t+\t50\t250\t")

    def test_config_file(self, runner, synthetic_gff3, unstranded_bam, tmp_path: Path):
        merged = tmp_path / "merged.tsv"
        config = tmp_path / "exoncov.toml"
        config.write_text(
            "[parallel]\n"
            "workers = 1\n"
            "\n"
            "[output]\n"
            f'out = "{(tmp_path / "exons.tsv").as_posix()}"\n'
            f'merged = "{merged.as_posix()}"\n'
        )

        result = runner.invoke(
            main, ["--gff", str(synthetic_gff3), "-u", str(unstranded_bam), "--config", str(config)]
        )

        assert result.exit_code == 0, result.output
        assert (tmp_path / "exons.tsv").exists()
        assert merged.exists()

    def test_chrmap_and_sizes(self, runner, synthetic_gff3, bam_writer, tmp_path: Path):
        bam = bam_writer(
            "ensembl.bam",
            [{"name": "r1", "reference": "1", "start": 100, "cigar": "50M"}],
            reference_lengths={"1": 1000, "2": 500},
        )
        chrmap = tmp_path / "chrmap.tsv"
        chrmap.write_text("chr1\t1\nchr2\t2\n")
        sizes = tmp_path / "genome.sizes"
        sizes.write_text("chr1\t1000\nchr2\t500\n")
        out = tmp_path / "exon_cov.tsv"

        result = runner.invoke(
            main,
            [
                "--gff", str(synthetic_gff3),
                "-u", str(bam),
                "--chrmap", str(chrmap),
                "--sizes", str(sizes),
                "-o", str(out),
                "-t", "1",
            ],
        )

        assert result.exit_code == 0, result.output
        first = out.read_text().splitlines()[1].split("\t")
        assert first[:6] == ["1", "+", "100", "150", "1", "200000000"]

    def test_unindexed_bam_reports_error(self, runner, synthetic_gff3, tmp_path: Path):
        bam = tmp_path / "unindexed.bam"
        bam.write_bytes(b"")
        result = runner.invoke(main, ["--gff", str(synthetic_gff3), "-u", str(bam)])

        assert result.exit_code == 1
        assert "index not found" in result.output
