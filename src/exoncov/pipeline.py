"""Exon coverage pipeline.

Ties the pieces together for one run:

1. Check the BAM files and build their target id maps
2. Count total mapped reads
3. Extract exon intervals from the annotation (and optionally merge them)
4. Compute coverage for every interval in parallel
5. Write the sorted report(s)

Example:
    >>> from exoncov.pipeline import run_exon_coverage
    >>> summary = run_exon_coverage(annot, sources, config)
    >>> summary.reports[0].n_failed
    0
"""

from __future__ import annotations

import logging
from typing import Callable, Sequence

import attrs

from exoncov.config import Config
from exoncov.core.coverage import ExonCoverageCounter, make_exon_tasks
from exoncov.core.coverage_output import CoverageRow, assemble_rows, write_coverage_tsv
from exoncov.core.exons import (
    ExonIntervals,
    count_intervals,
    extract_exon_intervals,
    merge_exon_intervals,
)
from exoncov.io.annotation import IndexedAnnotation
from exoncov.io.bam import (
    AlignmentSource,
    build_tid_map,
    check_bam,
    get_bam_refs,
    get_bam_total_reads,
)
from exoncov.parallel.executor import ExecutionStats, ParallelExecutor
from exoncov.utils.logging import Timer

logger = logging.getLogger(__name__)


# =============================================================================
# Data Structures
# =============================================================================


@attrs.define
class ReportSummary:
    """Outcome of computing and writing one report."""

    output: str
    rows: list[CoverageRow]
    stats: ExecutionStats
    failed_tasks: list[str] = attrs.Factory(list)

    @property
    def n_failed(self) -> int:
        """Number of intervals that could not be computed."""
        return len(self.failed_tasks)


@attrs.define
class RunSummary:
    """Outcome of a full pipeline run."""

    total_reads: int
    n_exons: int
    reports: list[ReportSummary] = attrs.Factory(list)


# =============================================================================
# Setup
# =============================================================================


def build_tid_maps(
    sources: Sequence[AlignmentSource],
    chrmap: dict[str, str],
) -> dict[str, dict[str, int]]:
    """Build chromosome -> target id maps for every BAM file.

    Args:
        sources: BAM files to index.
        chrmap: Chromosome name remapping table.

    Returns:
        BAM path (as str) -> chromosome -> target id.
    """
    return {str(source.path): build_tid_map(source.path, chrmap) for source in sources}


def _warn_unknown_chromosomes(annot: IndexedAnnotation, exons: ExonIntervals) -> None:
    if not annot.refs:
        return
    missing = sorted({seqname for seqname, _ in exons} - set(annot.refs))
    if missing:
        logger.warning(
            f"{len(missing)} exon chromosomes are absent from the reference "
            f"list and will have no coverage: {', '.join(missing[:5])}"
            + (" ..." if len(missing) > 5 else "")
        )


# =============================================================================
# Coverage
# =============================================================================


def compute_exon_coverage(
    annot: IndexedAnnotation,
    exons: ExonIntervals,
    counter: ExonCoverageCounter,
    executor: ParallelExecutor,
) -> tuple[list[CoverageRow], ExecutionStats, list[str]]:
    """Compute coverage rows for a collection of exon intervals.

    Failed intervals are left out of the rows and reported by id.

    Args:
        annot: Annotation used to resolve names.
        exons: Exon intervals to process.
        counter: Coverage counter bound to the BAM files.
        executor: Executor that runs one task per interval.

    Returns:
        Tuple of (sorted rows, execution stats, failed task ids).
    """
    tasks = make_exon_tasks(exons)
    results, stats = executor.map_tasks(counter, tasks)

    coverages = [r.result for r in results if r.success]
    failed = sorted(r.task_id for r in results if not r.success)
    return assemble_rows(annot, coverages), stats, failed


def _report(
    annot: IndexedAnnotation,
    exons: ExonIntervals,
    counter: ExonCoverageCounter,
    executor: ParallelExecutor,
    output: str,
    label: str,
) -> ReportSummary:
    with Timer(f"{label} exon coverage", logger):
        rows, stats, failed = compute_exon_coverage(annot, exons, counter, executor)
    logger.debug(f"{label} execution stats: {stats.to_dict()}")
    if failed:
        logger.error(
            f"{len(failed)} of {stats.total_tasks} {label.lower()} intervals failed "
            f"and are missing from {output}"
        )
    write_coverage_tsv(rows, output)
    return ReportSummary(output=output, rows=rows, stats=stats, failed_tasks=failed)


def run_exon_coverage(
    annot: IndexedAnnotation,
    sources: Sequence[AlignmentSource],
    config: Config,
    progress_callback: Callable[[int, int, str], None] | None = None,
) -> RunSummary:
    """Run the exon coverage pipeline and write its reports.

    Feature type filters are used as given; callers apply defaults.
    When ``annot.refs`` is empty it is filled from the first BAM header.

    Args:
        annot: Loaded annotation.
        sources: BAM files with their strand modes.
        config: Run configuration.
        progress_callback: Called with (completed, total, task_id).

    Returns:
        RunSummary describing the written reports.

    Raises:
        ValueError: If no BAM files are given or a BAM is not indexed.
        FileNotFoundError: If a BAM file is missing.
    """
    if not sources:
        raise ValueError("At least one BAM file is required")

    for source in sources:
        check_bam(source.path)

    tid_maps = build_tid_maps(sources, annot.chrmap)
    if not annot.refs:
        logger.info(f"Getting reference lengths from {sources[0].path}")
        annot.refs = get_bam_refs(sources[0].path, annot.chrmap)

    total_reads = get_bam_total_reads(source.path for source in sources)
    logger.info(f"Found {total_reads} total mapped reads")
    if total_reads == 0:
        logger.warning("BAM files contain no mapped reads; all RPKM values will be 0")

    logger.debug(f"Configuration: {config.to_dict()}")
    features = config.features
    exons = extract_exon_intervals(
        annot,
        gene_types=features.gene_types,
        transcript_types=features.transcript_types,
        exon_types=features.exon_types,
    )
    _warn_unknown_chromosomes(annot, exons)

    counter = ExonCoverageCounter(
        sources=tuple(sources), tid_maps=tid_maps, total_reads=total_reads
    )
    executor = ParallelExecutor(
        n_workers=config.parallel.workers,
        backend=config.parallel.backend,
        progress_callback=progress_callback,
    )

    summary = RunSummary(total_reads=total_reads, n_exons=count_intervals(exons))
    summary.reports.append(
        _report(annot, exons, counter, executor, config.output.out, "Unmerged")
    )

    if config.output.merged is not None:
        merged = merge_exon_intervals(exons)
        summary.reports.append(
            _report(annot, merged, counter, executor, config.output.merged, "Merged")
        )

    return summary
