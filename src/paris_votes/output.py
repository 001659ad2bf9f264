"""Artifact writers for vote matrices and analysis tables.

The pipeline never decides where things land on disk: it hands a relative
artifact name and a polars frame to an ArtifactWriter, and the writer owns
the directory layout under its root.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Protocol

import polars as pl

from paris_votes.config import MATRIX_PREFIX
from paris_votes.errors import SchemaError
from paris_votes.models import VoteMatrix

_PERIOD_DIR_RE = re.compile(r"^\d{4}_(1er|2eme)$")


class ArtifactWriter(Protocol):
    def write(self, name: str, frame: pl.DataFrame) -> Path: ...


class ParquetArtifactWriter:
    """Writes ``<root>/<name>.parquet``; ``name`` may contain '/' sub-directories."""

    suffix = ".parquet"

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, name: str) -> Path:
        return self.root / f"{name}{self.suffix}"

    def write(self, name: str, frame: pl.DataFrame) -> Path:
        path = self.path_for(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        self._write(frame, path)
        return path

    def _write(self, frame: pl.DataFrame, path: Path) -> None:
        frame.write_parquet(path)


class CsvArtifactWriter(ParquetArtifactWriter):
    """Same layout as ParquetArtifactWriter, CSV payloads."""

    suffix = ".csv"

    def _write(self, frame: pl.DataFrame, path: Path) -> None:
        frame.write_csv(path)


WRITERS = {"parquet": ParquetArtifactWriter, "csv": CsvArtifactWriter}


def save_vote_matrix(matrix: VoteMatrix, writer: ArtifactWriter) -> Path:
    """Persist a freshly built matrix under its metadata-derived artifact name."""
    name = matrix.meta.artifact_path if matrix.meta is not None else matrix.name
    return writer.write(name, matrix.frame)


def matrix_name_from_path(path: Path) -> str:
    """Recover the analysis name of a persisted matrix from its location.

    Examples:
        presidentielles/vote_matrix_2022_1er.parquet         -> presidentielles_2022_1er
        legislatives/2022_1er/vote_matrix_Circ_01.parquet    -> legislatives_2022_1er_Circ_01
    """
    path = Path(path)
    stem = path.stem.removeprefix(MATRIX_PREFIX)
    parent = path.parent
    if _PERIOD_DIR_RE.match(parent.name):
        return f"{parent.parent.name}_{parent.name}_{stem}"
    if parent.name:
        return f"{parent.name}_{stem}"
    return stem


def load_vote_matrix(path: str | Path, name: str | None = None) -> VoteMatrix:
    """Read a persisted vote matrix (.parquet or .csv) back into a VoteMatrix."""
    path = Path(path)
    try:
        if path.suffix.lower() == ".csv":
            frame = pl.read_csv(path, infer_schema_length=10000)
            frame = frame.with_columns(pl.col(frame.columns[0]).cast(pl.Utf8))
        else:
            frame = pl.read_parquet(path)
    except (pl.exceptions.PolarsError, OSError) as e:
        msg = f"{path}: unreadable table: {e}"
        raise SchemaError(msg) from e
    return VoteMatrix.from_frame(frame, name or matrix_name_from_path(path))


def find_vote_matrices(root: Path) -> list[Path]:
    """All persisted matrices under ``root``, sorted for a stable run order."""
    root = Path(root)
    found = [
        p for p in root.rglob(f"{MATRIX_PREFIX}*")
        if p.is_file() and p.suffix.lower() in (".parquet", ".csv")
    ]
    return sorted(found)
