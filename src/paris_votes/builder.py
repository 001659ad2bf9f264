"""Canonical vote matrix construction for one raw input file."""

from __future__ import annotations

from pathlib import Path

import polars as pl

from paris_votes.config import ARRONDISSEMENT_COLUMN, REGION_COLUMN
from paris_votes.election import parse_election_meta
from paris_votes.errors import SchemaError
from paris_votes.geography import arrondissement_from_station, classify_arrondissement
from paris_votes.models import ElectionType, VoteMatrix
from paris_votes.normalize import POLICIES, NormalizationPolicy, normalize_schema

UNCLASSIFIED_ARRONDISSEMENT = 0


def read_raw_table(path: Path) -> pl.DataFrame:
    """Read one raw election table (.csv or .parquet).

    Paris open-data CSV exports are ';'-separated; others use ','. The
    separator is picked from whichever appears more often in the header line.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in (".csv", ".parquet"):
        msg = f"{path}: unsupported table format {suffix!r}"
        raise SchemaError(msg)
    try:
        if suffix == ".parquet":
            return pl.read_parquet(path)
        with open(path, encoding="utf-8-sig", errors="replace") as f:
            header = f.readline()
        sep = ";" if header.count(";") > header.count(",") else ","
        return pl.read_csv(path, separator=sep, encoding="utf8-lossy", infer_schema_length=10000)
    except (pl.exceptions.PolarsError, UnicodeDecodeError, OSError) as e:
        msg = f"{path}: unreadable table: {e}"
        raise SchemaError(msg) from e


def attach_geography(frame: pl.DataFrame, id_column: str) -> pl.DataFrame:
    """Derive arrondissement and region group from the station id.

    Unclassifiable ids get arrondissement 0 and region group 'Autre'.
    """
    arrs = [arrondissement_from_station(s) for s in frame[id_column].to_list()]
    regions = [classify_arrondissement(a).value for a in arrs]
    return frame.with_columns(
        pl.Series(
            ARRONDISSEMENT_COLUMN,
            [UNCLASSIFIED_ARRONDISSEMENT if a is None else a for a in arrs],
            dtype=pl.Int64,
        ),
        pl.Series(REGION_COLUMN, regions, dtype=pl.Utf8),
    )


def build_vote_matrix(
    raw: pl.DataFrame,
    path: str | Path,
    election_type: ElectionType | str,
    policy: NormalizationPolicy | None = None,
) -> VoteMatrix:
    """Parse metadata from ``path``, normalize ``raw``, and attach geography.

    Output layout: ``[id, grouping keys..., arrondissement, region_group, votes...]``,
    rows in input order. Raises MetadataParseError or SchemaError; nothing is
    returned for a file that fails either step.
    """
    meta = parse_election_meta(path, election_type)
    policy = policy or POLICIES[meta.election_type]

    normalized = normalize_schema(raw, policy)
    vote_cols = [c for c in normalized.columns if c not in policy.key_columns]
    frame = attach_geography(normalized, policy.id_column).select(
        *policy.key_columns, ARRONDISSEMENT_COLUMN, REGION_COLUMN, *vote_cols,
    )

    return VoteMatrix(
        name=meta.output_name,
        frame=frame,
        id_column=policy.id_column,
        key_columns=[*policy.group_columns, ARRONDISSEMENT_COLUMN, REGION_COLUMN],
        vote_columns=vote_cols,
        meta=meta,
    )


def harmonize_file(
    path: str | Path,
    election_type: ElectionType | str,
    policy: NormalizationPolicy | None = None,
) -> VoteMatrix:
    """Read + build. Metadata is parsed before the file is read, so a badly named
    file is rejected without touching its contents."""
    parse_election_meta(path, election_type)
    raw = read_raw_table(Path(path))
    return build_vote_matrix(raw, path, election_type, policy)
