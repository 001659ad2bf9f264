"""Error kinds raised by the harmonization pipeline and the analysis phases.

Every error here is scoped to a single unit of work (one file, one matrix, one
pair of matrices). Callers catch them in their loop, report the unit as
skipped, and carry on with its siblings.
"""

from pathlib import Path


class MetadataParseError(ValueError):
    """A file path does not match the naming grammar of its election type."""

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        msg = f"{self.path}: {reason}"
        super().__init__(msg)


class SchemaError(ValueError):
    """A raw table lacks the columns (or the shape) the normalizer requires."""


class InsufficientDataError(ValueError):
    """A matrix is too small for the requested decomposition or clustering."""


class DegenerateCCAError(ValueError):
    """Two matrices cannot be put through canonical correlation analysis."""
