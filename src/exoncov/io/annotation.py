"""Indexed GFF3/GTF annotation loading.

This module reads genome annotation files into a flat, indexed
representation: every feature line becomes a row, and parent/child
relationships are stored as row-index adjacency lists. The resulting
``IndexedAnnotation`` is built once and then only read, so it can be
shared freely across worker threads.

Coordinate conventions:
    - Rows keep the file's 1-based inclusive coordinates.
    - Consumers convert to 0-based half-open when building intervals.

Example:
    >>> from exoncov.io.annotation import load_gff, read_chrmap
    >>> chrmap = read_chrmap("ucsc2ensembl.tsv")
    >>> annot = load_gff("annotations.gff3", chrmap=chrmap)
    >>> for child in annot.children(0):
    ...     print(annot.rows[child].feature_type)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path
from typing import Iterator

import attrs

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

# GFF3/GTF column indices
COL_SEQID = 0
COL_SOURCE = 1
COL_TYPE = 2
COL_START = 3
COL_END = 4
COL_SCORE = 5
COL_STRAND = 6
COL_PHASE = 7
COL_ATTRIBUTES = 8

# Default feature types
FEATURE_GENE = "gene"
FEATURE_TRANSCRIPT = "transcript"


# =============================================================================
# Data Models
# =============================================================================


@attrs.frozen
class FeatureRow:
    """One feature line of an annotation file.

    Attributes:
        feature_type: Feature type column (gene, mRNA, exon, ...).
        seqname: Chromosome name, already normalized through the chrmap.
        strand: Strand column as written ("+", "-" or ".").
        start: Start position (1-based, inclusive).
        end: End position (1-based, inclusive).
        attributes: Parsed attribute column.
    """

    feature_type: str
    seqname: str
    strand: str
    start: int
    end: int
    attributes: dict[str, str] = attrs.field(factory=dict, eq=False)


@attrs.define
class IndexedAnnotation:
    """Annotation rows plus a parent -> children row index.

    Attributes:
        rows: Feature rows in file order.
        row2children: Parent row index -> child row indices.
        chrmap: Alternate chromosome name -> normalized name.
        refs: Chromosome name -> length.
    """

    rows: list[FeatureRow] = attrs.Factory(list)
    row2children: dict[int, list[int]] = attrs.Factory(dict)
    chrmap: dict[str, str] = attrs.Factory(dict)
    refs: dict[str, int] = attrs.Factory(dict)

    def children(self, row: int) -> list[int]:
        """Return the child row indices of a row (empty if none)."""
        return self.row2children.get(row, [])

    def add_child(self, parent: int, child: int) -> None:
        """Link a child row under a parent row."""
        children = self.row2children.setdefault(parent, [])
        if child not in children:
            children.append(child)

    def iter_rows_of_type(self, types: set[str] | frozenset[str]) -> Iterator[int]:
        """Iterate row indices whose type is in ``types`` (all rows if empty)."""
        for i, row in enumerate(self.rows):
            if not types or row.feature_type in types:
                yield i


# =============================================================================
# Attribute Parsing
# =============================================================================


def unescape_gff_value(value: str) -> str:
    """Decode the GFF3 percent escapes for reserved characters."""
    value = value.replace("%3B", ";").replace("%3D", "=").replace("%26", "&")
    return value.replace("%2C", ",")


def parse_gff_attributes(attr_string: str) -> dict[str, str]:
    """Parse a GFF3 attribute column into a dictionary.

    ``Parent`` is multi-valued and kept escaped so that it can be split on
    literal commas before decoding.

    Args:
        attr_string: Semicolon-separated key=value pairs.

    Returns:
        Dictionary of attribute key-value pairs.
    """
    attributes: dict[str, str] = {}
    if not attr_string or attr_string == ".":
        return attributes

    for item in attr_string.split(";"):
        item = item.strip()
        if not item or "=" not in item:
            continue
        key, value = item.split("=", 1)
        attributes[key] = value if key == "Parent" else unescape_gff_value(value)

    return attributes


def split_gff_parents(parent: str) -> list[str]:
    """Split a raw ``Parent`` value into decoded parent IDs."""
    return [unescape_gff_value(p.strip()) for p in parent.split(",") if p.strip()]


def parse_gtf_attributes(attr_string: str) -> dict[str, str]:
    """Parse a GTF attribute column (``key "value";`` pairs).

    Repeated keys keep their first value.
    """
    attributes: dict[str, str] = {}
    if not attr_string or attr_string == ".":
        return attributes

    for item in attr_string.split(";"):
        item = item.strip()
        if not item:
            continue
        parts = item.split(None, 1)
        key = parts[0]
        value = parts[1].strip().strip('"') if len(parts) > 1 else ""
        attributes.setdefault(key, value)

    return attributes


# =============================================================================
# Line Parsing
# =============================================================================


def _split_feature_line(line: str, path: Path, lineno: int) -> list[str] | None:
    """Split a feature line into its 9 columns, or None for skippable lines."""
    line = line.rstrip("\r\n")
    if not line.strip() or line.startswith("#"):
        return None

    parts = line.split("\t")
    if len(parts) < 9:
        logger.warning(
            f"{path.name}:{lineno}: expected 9 columns, found {len(parts)}; skipping"
        )
        return None
    return parts


def _make_row(
    parts: list[str],
    attributes: dict[str, str],
    chrmap: dict[str, str],
    path: Path,
    lineno: int,
) -> FeatureRow:
    try:
        start = int(parts[COL_START])
        end = int(parts[COL_END])
    except ValueError as e:
        raise ValueError(f"{path}:{lineno}: invalid coordinates: {e}") from e

    seqname = parts[COL_SEQID]
    return FeatureRow(
        feature_type=parts[COL_TYPE],
        seqname=chrmap.get(seqname, seqname),
        strand=parts[COL_STRAND],
        start=start,
        end=end,
        attributes=attributes,
    )


# =============================================================================
# GFF3 Loader
# =============================================================================


def load_gff(
    gff_path: Path | str,
    chrmap: dict[str, str] | None = None,
) -> IndexedAnnotation:
    """Load a GFF3 file into an IndexedAnnotation.

    Rows are linked through their ``ID`` and ``Parent`` attributes. A row
    may list several comma-separated parents.

    Args:
        gff_path: Path to the GFF3 file.
        chrmap: Optional chromosome name remapping table.

    Returns:
        The indexed annotation.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If a feature line has unparsable coordinates.
    """
    path = Path(gff_path)
    if not path.exists():
        raise FileNotFoundError(f"GFF3 file not found: {path}")

    chrmap = dict(chrmap or {})
    annot = IndexedAnnotation(chrmap=chrmap)
    id2row: dict[str, int] = {}
    pending_parents: list[tuple[int, list[str]]] = []

    with open(path) as f:
        for lineno, line in enumerate(f, 1):
            parts = _split_feature_line(line, path, lineno)
            if parts is None:
                continue
            attributes = parse_gff_attributes(parts[COL_ATTRIBUTES])
            row = _make_row(parts, attributes, chrmap, path, lineno)
            index = len(annot.rows)
            annot.rows.append(row)

            if "ID" in attributes:
                id2row.setdefault(attributes["ID"], index)
            parent_ids = split_gff_parents(attributes.get("Parent", ""))
            if parent_ids:
                pending_parents.append((index, parent_ids))

    # Parents may be declared after their children
    n_orphans = 0
    for index, parent_ids in pending_parents:
        for parent_id in parent_ids:
            parent_row = id2row.get(parent_id)
            if parent_row is None:
                n_orphans += 1
                continue
            annot.add_child(parent_row, index)

    if n_orphans:
        logger.warning(f"{n_orphans} Parent references in {path.name} did not resolve")
    logger.info(f"Loaded {len(annot.rows)} features from {path.name}")
    return annot


# =============================================================================
# GTF Loader
# =============================================================================


def load_gtf(
    gtf_path: Path | str,
    gene_type: str = FEATURE_GENE,
    transcript_type: str = FEATURE_TRANSCRIPT,
    chrmap: dict[str, str] | None = None,
) -> IndexedAnnotation:
    """Load a GTF file into an IndexedAnnotation.

    Rows are linked through ``gene_id`` and ``transcript_id``. Genes and
    transcripts that have no line of their own get a synthetic row of
    ``gene_type`` / ``transcript_type`` spanning their children.

    Args:
        gtf_path: Path to the GTF file.
        gene_type: Feature type of gene lines (and of synthetic genes).
        transcript_type: Feature type of transcript lines (and of
            synthetic transcripts).
        chrmap: Optional chromosome name remapping table.

    Returns:
        The indexed annotation.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If a feature line has unparsable coordinates.
    """
    path = Path(gtf_path)
    if not path.exists():
        raise FileNotFoundError(f"GTF file not found: {path}")

    chrmap = dict(chrmap or {})
    annot = IndexedAnnotation(chrmap=chrmap)
    gene_rows: dict[str, int] = {}
    transcript_rows: dict[str, int] = {}
    transcript_gene: dict[str, str] = {}
    transcript_children: dict[str, list[int]] = defaultdict(list)

    with open(path) as f:
        for lineno, line in enumerate(f, 1):
            parts = _split_feature_line(line, path, lineno)
            if parts is None:
                continue
            attributes = parse_gtf_attributes(parts[COL_ATTRIBUTES])
            row = _make_row(parts, attributes, chrmap, path, lineno)
            index = len(annot.rows)
            annot.rows.append(row)

            gene_id = attributes.get("gene_id")
            transcript_id = attributes.get("transcript_id")
            if row.feature_type == gene_type and gene_id is not None:
                gene_rows.setdefault(gene_id, index)
            elif row.feature_type == transcript_type and transcript_id is not None:
                transcript_rows.setdefault(transcript_id, index)
                if gene_id is not None:
                    transcript_gene.setdefault(transcript_id, gene_id)
            elif transcript_id is not None:
                transcript_children[transcript_id].append(index)
                if gene_id is not None:
                    transcript_gene.setdefault(transcript_id, gene_id)

    n_synthetic = 0
    for transcript_id in list(transcript_children):
        if transcript_id not in transcript_rows:
            attributes = {"transcript_id": transcript_id}
            if transcript_id in transcript_gene:
                attributes["gene_id"] = transcript_gene[transcript_id]
            transcript_rows[transcript_id] = _add_spanning_row(
                annot, transcript_type, transcript_children[transcript_id], attributes
            )
            n_synthetic += 1
        for child in transcript_children[transcript_id]:
            annot.add_child(transcript_rows[transcript_id], child)

    gene_transcripts: dict[str, list[int]] = defaultdict(list)
    for transcript_id, gene_id in transcript_gene.items():
        if transcript_id in transcript_rows:
            gene_transcripts[gene_id].append(transcript_rows[transcript_id])

    for gene_id, transcripts in gene_transcripts.items():
        if gene_id not in gene_rows:
            gene_rows[gene_id] = _add_spanning_row(
                annot, gene_type, transcripts, {"gene_id": gene_id},
            )
            n_synthetic += 1
        for transcript in transcripts:
            annot.add_child(gene_rows[gene_id], transcript)

    if n_synthetic:
        logger.debug(f"Created {n_synthetic} synthetic gene/transcript rows")
    logger.info(f"Loaded {len(annot.rows)} features from {path.name}")
    return annot


def _add_spanning_row(
    annot: IndexedAnnotation,
    feature_type: str,
    children: list[int],
    attributes: dict[str, str],
) -> int:
    """Append a row covering all ``children`` and return its index."""
    first = annot.rows[children[0]]
    annot.rows.append(
        FeatureRow(
            feature_type=feature_type,
            seqname=first.seqname,
            strand=first.strand,
            start=min(annot.rows[c].start for c in children),
            end=max(annot.rows[c].end for c in children),
            attributes=attributes,
        )
    )
    return len(annot.rows) - 1


# =============================================================================
# Lookup Tables
# =============================================================================


def read_chrmap(chrmap_path: Path | str) -> dict[str, str]:
    """Read a tab-delimited chromosome name mapping file.

    Each line maps the name in column 1 to the name in column 2.

    Args:
        chrmap_path: Path to the mapping file.

    Returns:
        Dictionary of alternate name -> normalized name.
    """
    path = Path(chrmap_path)
    if not path.exists():
        raise FileNotFoundError(f"Chromosome map not found: {path}")

    chrmap: dict[str, str] = {}
    with open(path) as f:
        for lineno, line in enumerate(f, 1):
            line = line.rstrip("\r\n")
            if not line.strip() or line.startswith("#"):
                continue
            cols = line.split("\t")
            if len(cols) < 2 or not cols[0] or not cols[1]:
                logger.warning(f"{path.name}:{lineno}: expected 2 columns; skipping")
                continue
            chrmap[cols[0]] = cols[1]

    logger.debug(f"Read {len(chrmap)} chromosome name mappings from {path.name}")
    return chrmap


def read_sizes_file(
    sizes_path: Path | str,
    chrmap: dict[str, str] | None = None,
) -> dict[str, int]:
    """Read a chromosome sizes file (``chrom<TAB>size``).

    Names are normalized through ``chrmap``. Lines whose size does not
    parse are skipped with a warning.

    Args:
        sizes_path: Path to the sizes file.
        chrmap: Optional chromosome name remapping table.

    Returns:
        Chromosome -> length, sorted by chromosome name.
    """
    path = Path(sizes_path)
    if not path.exists():
        raise FileNotFoundError(f"Sizes file not found: {path}")

    chrmap = chrmap or {}
    refs: dict[str, int] = {}
    with open(path) as f:
        for lineno, line in enumerate(f, 1):
            cols = line.rstrip("\r\n").split("\t")
            if not cols[0] or len(cols) < 2:
                continue
            chrom = chrmap.get(cols[0], cols[0])
            try:
                refs[chrom] = int(cols[1])
            except ValueError:
                logger.warning(
                    f'{path.name}:{lineno}: could not parse size "{cols[1]}" '
                    f'for chr "{chrom}"; skipping'
                )

    return dict(sorted(refs.items()))
