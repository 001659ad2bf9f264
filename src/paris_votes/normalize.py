"""Schema normalization: one raw election table -> id, grouping keys, vote block.

The five datasets disagree on casing, accents and which administrative columns
they ship. A NormalizationPolicy per election type says which column is the
station id, which columns are grouping keys, and which names never count as
votes. Everything numeric that survives the exclusions is a per-candidate or
per-list vote count.

Vote-status aggregates (``nb_*``, blank/null/expressed counters) are excluded
outright: their naming is not consistent across the five sources, so no single
rule could keep them comparable.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, replace

import polars as pl

from paris_votes.config import (
    DEFAULT_EXCLUDED_COLUMNS,
    DEFAULT_EXCLUDED_PREFIXES,
    ID_COLUMN,
    SHAPE_EXCLUDED_COLUMNS,
    SHAPE_EXCLUDED_PREFIXES,
)
from paris_votes.errors import SchemaError
from paris_votes.models import ElectionType

CIRCONSCRIPTION_COLUMN = "num_circ"
ARRONDISSEMENT_KEY_COLUMN = "num_arrond"

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class NormalizationPolicy:
    """Which columns play which role in one election type's raw tables."""

    id_column: str = ID_COLUMN
    group_columns: tuple[str, ...] = (CIRCONSCRIPTION_COLUMN,)
    excluded_prefixes: tuple[str, ...] = DEFAULT_EXCLUDED_PREFIXES
    excluded_columns: tuple[str, ...] = DEFAULT_EXCLUDED_COLUMNS

    @property
    def key_columns(self) -> list[str]:
        return [self.id_column, *self.group_columns]

    def is_excluded(self, column: str) -> bool:
        return column in self.excluded_columns or column.startswith(self.excluded_prefixes)

    def with_id_column(self, id_column: str) -> NormalizationPolicy:
        return replace(self, id_column=harmonize_column_name(id_column))


_SHAPE_POLICY_EXTRAS = {
    "excluded_prefixes": DEFAULT_EXCLUDED_PREFIXES + SHAPE_EXCLUDED_PREFIXES,
    "excluded_columns": DEFAULT_EXCLUDED_COLUMNS + SHAPE_EXCLUDED_COLUMNS,
}

POLICIES: dict[ElectionType, NormalizationPolicy] = {
    ElectionType.PRESIDENTIAL: NormalizationPolicy(),
    ElectionType.REGIONAL: NormalizationPolicy(),
    ElectionType.EUROPEAN: NormalizationPolicy(),
    ElectionType.LEGISLATIVE: NormalizationPolicy(**_SHAPE_POLICY_EXTRAS),
    ElectionType.MUNICIPAL: NormalizationPolicy(
        group_columns=(ARRONDISSEMENT_KEY_COLUMN,), **_SHAPE_POLICY_EXTRAS,
    ),
}


def harmonize_column_name(name: str) -> str:
    """'Nb Exprimés' -> 'nb_exprimes', 'LE PEN' -> 'le_pen'. Idempotent."""
    text = unicodedata.normalize("NFD", str(name))
    text = "".join(ch for ch in text if unicodedata.category(ch) != "Mn")
    return _NON_ALNUM_RE.sub("_", text.lower()).strip("_")


def harmonize_columns(raw: pl.DataFrame) -> pl.DataFrame:
    """Rename every column to the snake_case convention.

    Raises SchemaError when two raw columns collapse onto the same name.
    """
    mapping = {c: harmonize_column_name(c) for c in raw.columns}
    seen: dict[str, str] = {}
    for original, new in mapping.items():
        if new in seen:
            msg = f"columns {seen[new]!r} and {original!r} both normalize to {new!r}"
            raise SchemaError(msg)
        seen[new] = original
    return raw.rename(mapping)


def _zero_fill(column: str, dtype: pl.DataType) -> pl.Expr:
    expr = pl.col(column)
    if dtype.is_float():
        expr = expr.fill_nan(0)
    return expr.fill_null(0)


def normalize_schema(
    raw: pl.DataFrame,
    policy: NormalizationPolicy | None = None,
    id_column: str | None = None,
) -> pl.DataFrame:
    """Reduce a raw table to ``[id, grouping keys..., votes...]``.

    1. Harmonize column names.
    2. Select the id and grouping columns and move them first.
    3. Keep numeric columns only.
    4. Drop excluded prefixes and names.
    5. Fill missing vote cells and numeric grouping keys with 0.

    Station ids are cast to trimmed strings; rows without an id are dropped.
    Raises SchemaError if the id or a grouping column is absent, if ids repeat,
    or if a vote count is negative. Deterministic and idempotent.
    """
    policy = policy or NormalizationPolicy()
    if id_column is not None:
        policy = policy.with_id_column(id_column)

    frame = harmonize_columns(raw)

    missing = [c for c in policy.key_columns if c not in frame.columns]
    if missing:
        msg = f"missing required column(s) {missing}; available: {frame.columns}"
        raise SchemaError(msg)

    keys = policy.key_columns
    vote_cols = [
        c for c in frame.columns
        if c not in keys and frame.schema[c].is_numeric() and not policy.is_excluded(c)
    ]

    frame = frame.select(
        pl.col(policy.id_column).cast(pl.Utf8).str.strip_chars(),
        *[
            _zero_fill(c, frame.schema[c]) if frame.schema[c].is_numeric() else pl.col(c)
            for c in policy.group_columns
        ],
        *[_zero_fill(c, frame.schema[c]) for c in vote_cols],
    ).filter(
        pl.col(policy.id_column).is_not_null() & (pl.col(policy.id_column) != "")
    )

    dupes = frame.filter(pl.col(policy.id_column).is_duplicated())[policy.id_column].unique()
    if dupes.len() > 0:
        sample = sorted(dupes.to_list())[:5]
        msg = f"{dupes.len()} duplicated station id(s), e.g. {sample}"
        raise SchemaError(msg)

    if vote_cols:
        negative = [c for c in vote_cols if (frame[c] < 0).any()]
        if negative:
            msg = f"negative vote counts in column(s) {negative}"
            raise SchemaError(msg)

    return frame
