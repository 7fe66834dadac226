"""Configuration management for exoncov.

This module handles loading, validating, and providing access to
exoncov run settings. Configuration can come from:
- Default values
- A TOML configuration file
- Command-line arguments (which override the file)

Example:
    >>> from exoncov.config import Config
    >>> config = Config.load("exoncov.toml")
    >>> config.parallel.workers
    0

A configuration file mirrors the attribute layout::

    [features]
    gene_types = ["gene"]
    transcript_types = ["mRNA", "transcript"]
    exon_types = ["exon"]

    [parallel]
    workers = 8
    backend = "processes"

    [output]
    merged = "merged_exon_cov.tsv"
"""

import tomllib
from pathlib import Path
from typing import Any

import attrs

from exoncov.parallel.executor import ExecutorBackend

# =============================================================================
# Default Configuration Values
# =============================================================================

DEFAULT_GENE_TYPES = ("gene",)
DEFAULT_EXON_TYPES = ("exon",)
DEFAULT_WORKERS = 0  # 0 = one per CPU
DEFAULT_BACKEND = ExecutorBackend.PROCESSES.value


def _to_types(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    return tuple(value)


def _check_backend(instance: Any, attribute: attrs.Attribute, value: str) -> None:
    ExecutorBackend(value)


# =============================================================================
# Configuration Classes
# =============================================================================


@attrs.define
class FeatureTypeConfig:
    """Feature types accepted when collecting exons.

    An empty collection accepts every type.

    Attributes:
        gene_types: Gene feature types.
        transcript_types: Transcript feature types.
        exon_types: Exon feature types.
    """

    gene_types: tuple[str, ...] = attrs.field(default=(), converter=_to_types)
    transcript_types: tuple[str, ...] = attrs.field(default=(), converter=_to_types)
    exon_types: tuple[str, ...] = attrs.field(default=(), converter=_to_types)

    def with_defaults(self) -> "FeatureTypeConfig":
        """Fill empty gene and exon types with the standard defaults."""
        return FeatureTypeConfig(
            gene_types=self.gene_types or DEFAULT_GENE_TYPES,
            transcript_types=self.transcript_types,
            exon_types=self.exon_types or DEFAULT_EXON_TYPES,
        )


@attrs.define
class ParallelConfig:
    """Configuration for parallel processing.

    Attributes:
        workers: Number of parallel workers (0 = one per CPU).
        backend: Execution backend name (serial, threads, processes).
    """

    workers: int = attrs.field(default=DEFAULT_WORKERS, validator=attrs.validators.ge(0))
    backend: str = attrs.field(default=DEFAULT_BACKEND, validator=_check_backend)


@attrs.define
class OutputConfig:
    """Configuration for report outputs.

    Attributes:
        out: Unmerged exon report path ("-" for stdout).
        merged: Optional merged exon report path.
    """

    out: str = "-"
    merged: str | None = None


@attrs.define
class Config:
    """Main configuration container for exoncov.

    Attributes:
        features: Feature type filters.
        parallel: Parallel processing configuration.
        output: Report output configuration.
    """

    features: FeatureTypeConfig = attrs.Factory(FeatureTypeConfig)
    parallel: ParallelConfig = attrs.Factory(ParallelConfig)
    output: OutputConfig = attrs.Factory(OutputConfig)

    @classmethod
    def load(cls, path: Path | str | None = None) -> "Config":
        """Load configuration from a TOML file.

        Args:
            path: Path to configuration file.
                  If None, returns default configuration.

        Returns:
            Loaded configuration object.

        Raises:
            FileNotFoundError: If configuration file doesn't exist.
            ValueError: If configuration file is invalid.
        """
        if path is None:
            return cls()

        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid configuration file {path}: {e}") from e

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Build a configuration from nested dictionaries.

        Raises:
            ValueError: On unknown sections or keys, or invalid values.
        """
        sections = {
            "features": FeatureTypeConfig,
            "parallel": ParallelConfig,
            "output": OutputConfig,
        }
        unknown = set(data) - set(sections)
        if unknown:
            raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

        kwargs = {}
        for name, section_cls in sections.items():
            values = data.get(name, {})
            fields = {f.name for f in attrs.fields(section_cls)}
            unknown = set(values) - fields
            if unknown:
                raise ValueError(f"Unknown keys in [{name}]: {sorted(unknown)}")
            try:
                kwargs[name] = section_cls(**values)
            except (TypeError, ValueError) as e:
                raise ValueError(f"Invalid value in [{name}]: {e}") from e

        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary.

        Returns:
            Dictionary representation of configuration.
        """
        return attrs.asdict(self)
