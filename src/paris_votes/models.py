"""Data classes for election metadata and canonical vote matrices."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import numpy as np
import polars as pl

from paris_votes.config import (
    ARRONDISSEMENT_COLUMN,
    MATRIX_PREFIX,
    REGION_COLUMN,
    ROUND_LABELS,
)
from paris_votes.errors import SchemaError


class ElectionType(Enum):
    """The five election datasets. Values double as input/output directory names."""

    PRESIDENTIAL = "presidentielles"
    LEGISLATIVE = "legislatives"
    REGIONAL = "regionales"
    EUROPEAN = "europeennes"
    MUNICIPAL = "municipales"

    @property
    def has_sub_units(self) -> bool:
        """Legislative and municipal files are split by constituency / district."""
        return self in (ElectionType.LEGISLATIVE, ElectionType.MUNICIPAL)


class Round(Enum):
    FIRST = 1
    SECOND = 2

    @property
    def label(self) -> str:
        """Artifact label, '1er' or '2eme'."""
        return ROUND_LABELS[self.value]

    def __str__(self) -> str:
        return "1st" if self is Round.FIRST else "2nd"


class RegionGroup(Enum):
    NORD_EST = "Nord-Est"
    SUD_OUEST = "Sud-Ouest"
    CENTRE = "Centre"
    SUD_EST = "Sud-Est"
    NORD_OUEST = "Nord-Ouest"
    NORD = "Nord"
    AUTRE = "Autre"


@dataclass(frozen=True)
class ElectionMeta:
    """What a raw file is: election type, year, round and optional sub-unit."""

    election_type: ElectionType
    year: int
    round: Round = Round.FIRST
    sub_unit: str | None = None  # "Circ_01" (legislative) or "Ardt_05" (municipal)

    @property
    def round_label(self) -> str:
        return self.round.label

    @property
    def period(self) -> str:
        """e.g. '2022_1er'"""
        return f"{self.year}_{self.round_label}"

    @property
    def output_name(self) -> str:
        """Unique analysis key, e.g. 'presidentielles_2022_1er' or
        'legislatives_2022_1er_Circ_01'."""
        name = f"{self.election_type.value}_{self.period}"
        if self.sub_unit:
            name = f"{name}_{self.sub_unit}"
        return name

    @property
    def artifact_path(self) -> str:
        """Relative artifact name (no extension) for the canonical matrix.

        Single-file election types: '<type>/vote_matrix_<year>_<round>'.
        Split types: '<type>/<year>_<round>/vote_matrix_<SubUnit>'.
        """
        if self.sub_unit:
            return f"{self.election_type.value}/{self.period}/{MATRIX_PREFIX}{self.sub_unit}"
        return f"{self.election_type.value}/{MATRIX_PREFIX}{self.period}"

    @property
    def label(self) -> str:
        """Human-readable label, e.g. 'legislatives 2022 (1st round, Circ_01)'."""
        detail = f"{self.round} round"
        if self.sub_unit:
            detail = f"{detail}, {self.sub_unit}"
        return f"{self.election_type.value} {self.year} ({detail})"


@dataclass
class VoteMatrix:
    """Canonical station x candidate table.

    Column layout: ``[id, grouping keys..., arrondissement, region_group, votes...]``.
    Vote cells are non-null and non-negative; station ids are unique.
    """

    name: str
    frame: pl.DataFrame
    id_column: str
    key_columns: list[str]
    vote_columns: list[str]
    meta: ElectionMeta | None = field(default=None, compare=False)

    @property
    def height(self) -> int:
        return self.frame.height

    @property
    def station_ids(self) -> list[str]:
        return self.frame[self.id_column].to_list()

    def numeric_block(self) -> tuple[np.ndarray, list[str], list[str]]:
        """Return (X, station_ids, vote_columns) with administrative columns stripped."""
        X = self.frame.select(self.vote_columns).to_numpy().astype(np.float64)
        return X, self.station_ids, list(self.vote_columns)

    def votes_frame(self) -> pl.DataFrame:
        """Station id plus the vote block only."""
        return self.frame.select([self.id_column, *self.vote_columns])

    @classmethod
    def from_frame(
        cls, frame: pl.DataFrame, name: str, meta: ElectionMeta | None = None,
    ) -> VoteMatrix:
        """Rebuild the column roles of a persisted matrix from its layout."""
        columns = frame.columns
        if REGION_COLUMN not in columns or ARRONDISSEMENT_COLUMN not in columns:
            msg = f"{name}: not a vote matrix (no {REGION_COLUMN}/{ARRONDISSEMENT_COLUMN})"
            raise SchemaError(msg)
        region_pos = columns.index(REGION_COLUMN)
        return cls(
            name=name,
            frame=frame,
            id_column=columns[0],
            key_columns=columns[1 : region_pos + 1],
            vote_columns=columns[region_pos + 1 :],
            meta=meta,
        )


@dataclass
class BatchReport:
    """Outcome of one harmonization batch: partial success is the normal case."""

    written: list[tuple[Path, Path]] = field(default_factory=list)
    skipped: list[tuple[Path, str]] = field(default_factory=list)

    @property
    def n_inputs(self) -> int:
        return len(self.written) + len(self.skipped)
