"""Input handlers for exoncov.

- Annotation: GFF3/GTF files, chromosome name maps, sizes files
- BAM: indexed alignment files, strand modes, CIGAR projection

Example:
    >>> from exoncov.io import load_gff, AlignmentSource, StrandMode
    >>> annot = load_gff("annotations.gff3")
    >>> source = AlignmentSource("rnaseq.bam", StrandMode.UNSTRANDED)
"""

from exoncov.io.annotation import (
    FeatureRow,
    IndexedAnnotation,
    load_gff,
    load_gtf,
    read_chrmap,
    read_sizes_file,
)
from exoncov.io.bam import (
    AlignmentSource,
    StrandMode,
    build_tid_map,
    cigar_to_blocks,
    get_bam_refs,
    get_bam_total_reads,
)

__all__ = [
    # Annotation
    "FeatureRow",
    "IndexedAnnotation",
    "load_gff",
    "load_gtf",
    "read_chrmap",
    "read_sizes_file",
    # BAM
    "AlignmentSource",
    "StrandMode",
    "build_tid_map",
    "cigar_to_blocks",
    "get_bam_refs",
    "get_bam_total_reads",
]
