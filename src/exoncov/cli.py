"""Command-line interface for exoncov.

This module provides the main entry point for the exoncov CLI tool.
It uses Click to parse options and rich for console output.

Example:
    $ exoncov --help
    $ exoncov --gff genes.gff3 -u sample.bam -o exon_cov.tsv
    $ exoncov --gtf genes.gtf -2 stranded.bam -o exon_cov.tsv -m merged_exon_cov.tsv -t 8
"""

from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeRemainingColumn,
)

from exoncov import __version__

# Console output goes to stderr; reports may be written to stdout
console = Console(stderr=True)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="exoncov")
# Input files
@click.option(
    "--gff",
    type=click.Path(exists=True, path_type=Path),
    help="A genome annotation file in GFF3 format.",
)
@click.option(
    "--gtf",
    type=click.Path(exists=True, path_type=Path),
    help="A genome annotation file in GTF format.",
)
@click.option(
    "-1",
    "--bam1",
    type=click.Path(exists=True, path_type=Path),
    multiple=True,
    help="Stranded BAM file(s) where read1 indicates strand.",
)
@click.option(
    "-2",
    "--bam2",
    type=click.Path(exists=True, path_type=Path),
    multiple=True,
    help="Stranded BAM file(s) where read2 indicates strand.",
)
@click.option(
    "-u",
    "--bam",
    type=click.Path(exists=True, path_type=Path),
    multiple=True,
    help="Unstranded BAM file(s).",
)
@click.option(
    "--chrmap",
    type=click.Path(exists=True, path_type=Path),
    help="Optional tab-delimited chromosome name mapping file.",
)
@click.option(
    "--sizes",
    type=click.Path(exists=True, path_type=Path),
    help="Optional chromosome sizes file (default: read from the first BAM).",
)
# Output files
@click.option(
    "-o",
    "--out",
    type=str,
    default=None,
    help="Output TSV for unmerged exons ('-' for stdout).  [default: -]",
)
@click.option(
    "-m",
    "--merged",
    type=str,
    default=None,
    help="Output TSV for merged exons.",
)
# Feature type filters
@click.option(
    "--exon-type",
    "exon_type",
    type=str,
    multiple=True,
    help="Exon feature type(s) to search for.  [default: exon]",
)
@click.option(
    "--transcript-type",
    "transcript_type",
    type=str,
    multiple=True,
    help="Transcript feature type(s) to search for.  [default: any]",
)
@click.option(
    "--gene-type",
    "gene_type",
    type=str,
    multiple=True,
    help="Gene feature type(s) to search for.  [default: gene]",
)
# Execution options
@click.option(
    "-t",
    "--cpu-threads",
    type=click.IntRange(min=0),
    default=None,
    help="Number of parallel workers (0 = one per CPU).  [default: 0]",
)
@click.option(
    "--backend",
    type=click.Choice(["serial", "threads", "processes"]),
    default=None,
    help="Parallel execution backend.  [default: processes]",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="TOML configuration file. Command-line options take precedence.",
)
# Logging options
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output.")
@click.option("-q", "--quiet", is_flag=True, help="Suppress non-error output.")
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    help="Write a debug log to this file.",
)
def main(
    gff: Optional[Path],
    gtf: Optional[Path],
    bam1: tuple[Path, ...],
    bam2: tuple[Path, ...],
    bam: tuple[Path, ...],
    chrmap: Optional[Path],
    sizes: Optional[Path],
    out: Optional[str],
    merged: Optional[str],
    exon_type: tuple[str, ...],
    transcript_type: tuple[str, ...],
    gene_type: tuple[str, ...],
    cpu_threads: Optional[int],
    backend: Optional[str],
    config_path: Optional[Path],
    verbose: bool,
    quiet: bool,
    log_file: Optional[Path],
) -> None:
    """Compute per-exon coverage and RPKM from BAM alignments.

    Exons are collected from gene -> transcript -> exon features of the
    annotation. For every exon, aligned bases and distinct reads are
    counted across all BAM files, keeping only reads on the exon's strand
    for stranded libraries.

    \b
    Output columns:
    seqname, strand, start, end, cov, rpkm, transcript_id, gene_id

    \b
    Examples:
        # Unstranded library, report to stdout
        $ exoncov --gff genes.gff3 -u sample.bam

        # Stranded (read2) library with merged exon report
        $ exoncov --gtf genes.gtf -2 sample.bam -o exons.tsv -m merged.tsv -t 8
    """
    from exoncov.config import Config, FeatureTypeConfig
    from exoncov.io.annotation import load_gff, load_gtf, read_chrmap, read_sizes_file
    from exoncov.io.bam import AlignmentSource, StrandMode
    from exoncov.pipeline import run_exon_coverage
    from exoncov.utils.logging import setup_logging

    setup_logging(verbosity=2 if verbose else 0 if quiet else 1, log_file=log_file)

    sources = (
        [AlignmentSource(p, StrandMode.READ1_PLUS) for p in bam1]
        + [AlignmentSource(p, StrandMode.READ2_PLUS) for p in bam2]
        + [AlignmentSource(p, StrandMode.UNSTRANDED) for p in bam]
    )
    if not sources:
        console.print("[red]Error:[/red] No BAM files were given (use -1, -2 or -u)")
        raise SystemExit(1)
    if (gff is None) == (gtf is None):
        console.print("[red]Error:[/red] Exactly one of --gff or --gtf is required")
        raise SystemExit(1)

    try:
        config = Config.load(config_path)

        # Command-line values override the configuration file
        config.features = FeatureTypeConfig(
            gene_types=gene_type or config.features.gene_types,
            transcript_types=transcript_type or config.features.transcript_types,
            exon_types=exon_type or config.features.exon_types,
        ).with_defaults()
        if cpu_threads is not None:
            config.parallel.workers = cpu_threads
        if backend is not None:
            config.parallel.backend = backend
        if out is not None:
            config.output.out = out
        if merged is not None:
            config.output.merged = merged

        chrmap_table = read_chrmap(chrmap) if chrmap else {}

        if not quiet:
            console.print(f"[blue]Annotation:[/blue] {gff or gtf}")
            console.print(f"[blue]BAM files:[/blue] {len(sources)}")
            for source in sources:
                console.print(f"  - {source.path} ({source.strand_mode.value})")
            console.print("[dim]Loading annotation...[/dim]")

        if gff is not None:
            annot = load_gff(gff, chrmap=chrmap_table)
        else:
            annot = load_gtf(
                gtf,
                gene_type=config.features.gene_types[0],
                transcript_type=(config.features.transcript_types or ("transcript",))[0],
                chrmap=chrmap_table,
            )
        if sizes is not None:
            annot.refs = read_sizes_file(sizes, annot.chrmap)

        progress = None
        progress_callback = None
        if not quiet:
            progress = Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeRemainingColumn(),
                console=console,
                transient=True,
            )
            task_id = progress.add_task("Computing exon coverage...", total=None)

            def progress_callback(completed: int, total: int, exon_id: str) -> None:
                progress.update(task_id, completed=completed, total=total)

            progress.start()

        try:
            summary = run_exon_coverage(
                annot, sources, config, progress_callback=progress_callback
            )
        finally:
            if progress is not None:
                progress.stop()

        if not quiet:
            console.print("")
            console.print("[bold]Exon Coverage Summary:[/bold]")
            console.print(f"  Total mapped reads:  {summary.total_reads:,}")
            console.print(f"  Exons:               {summary.n_exons:,}")
            for report in summary.reports:
                console.print(
                    f"[green]Wrote {len(report.rows):,} rows:[/green] {report.output}"
                    + (f" [yellow]({report.n_failed} failed)[/yellow]" if report.n_failed else "")
                )

    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        if verbose:
            import traceback
            traceback.print_exc()
        raise SystemExit(1)


if __name__ == "__main__":
    main()
