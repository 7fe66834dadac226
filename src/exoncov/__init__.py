"""exoncov: strand-aware exon coverage and RPKM from BAM alignments.

exoncov reads a GFF3/GTF annotation, collects the exons of every
gene's transcripts, and reports per-exon mean coverage and RPKM from
one or more indexed BAM files, optionally also for merged exons.

Example:
    >>> import exoncov
    >>> exoncov.__version__
    '0.1.0'

Modules:
    io: Annotation and BAM file access
    core: Exon extraction, coverage calculation, and report output
    parallel: Parallel task execution
    utils: Interval arithmetic and logging
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
