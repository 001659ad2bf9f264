"""
Paris polling stations — Canonical Correlation Analysis between two elections

Finds linear combinations of each election's candidate columns that are as
correlated as possible across the stations both elections share. High leading
correlations mean the two elections carve Paris up along the same lines.

Usage:
  uv run python analysis/cca.py \
      --left data/vote_matrices/presidentielles/vote_matrix_2017_1er.parquet \
      --right data/vote_matrices/presidentielles/vote_matrix_2022_1er.parquet [--save-axes 3]

Outputs (in results/<left>_vs_<right>/cca/<date>/):
  - data/cca_<left>_vs_<right>_axis<i>_r=<corr>.parquet   paired canonical variates per axis
  - data/cca_<left>_vs_<right>_summary.parquet            correlation per axis
  - data/cca_<left>_vs_<right>_weights_{left,right}.parquet
  - manifest.json, run_info.json, run_log.txt
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import polars as pl
from scipy import linalg

from paris_votes.errors import DegenerateCCAError, SchemaError
from paris_votes.models import VoteMatrix
from paris_votes.output import ArtifactWriter, ParquetArtifactWriter, load_vote_matrix

try:
    from analysis.run_context import RunContext, print_header, save_manifest
except ModuleNotFoundError:
    from run_context import RunContext, print_header, save_manifest  # type: ignore[no-redef]

CCA_PRIMER = """\
# Canonical Correlation Analysis (CCA)

## Purpose

Quantifies how much of the voting structure of one election is reproduced in
another, station by station, without assuming the candidate rosters match.

## Method

1. **Intersect** the station ids of both matrices and **sort** both sides by
   station id so rows line up one-to-one. A misaligned row would silently
   corrupt every correlation.
2. **Center** each side's candidate columns.
3. **QR + SVD**: orthonormalize each side (pivoted QR, rank-revealing), then
   take the SVD of the cross-product of the two bases. Singular values are the
   canonical correlations, in descending order.
4. Number of axes = min(rank left, rank right).

## Caveats

- Each side needs at least as many shared stations as candidate columns.
- With few stations relative to columns the leading correlations approach 1
  by construction; compare against a shuffled baseline before reading much
  into them.
"""

DEFAULT_SAVE_AXES = 3


@dataclass(frozen=True)
class CanonicalVariatePair:
    axis: int  # 1-based
    correlation: float
    scores_a: np.ndarray
    scores_b: np.ndarray


@dataclass(frozen=True)
class CCAResult:
    name_a: str
    name_b: str
    id_column: str
    station_ids: list[str]
    variables_a: list[str]
    variables_b: list[str]
    weights_a: np.ndarray  # (p_a, n_axes)
    weights_b: np.ndarray  # (p_b, n_axes)
    pairs: list[CanonicalVariatePair]

    @property
    def correlations(self) -> list[float]:
        return [p.correlation for p in self.pairs]

    def summary_df(self) -> pl.DataFrame:
        return pl.DataFrame({
            "axis": [p.axis for p in self.pairs],
            "correlation": self.correlations,
        })

    def variates_df(self, axis: int) -> pl.DataFrame:
        pair = self.pairs[axis - 1]
        return pl.DataFrame({
            self.id_column: list(self.station_ids),
            "variate_a": pair.scores_a.tolist(),
            "variate_b": pair.scores_b.tolist(),
        })

    def weights_df(self, side: str) -> pl.DataFrame:
        if side == "a":
            variables, weights = self.variables_a, self.weights_a
        else:
            variables, weights = self.variables_b, self.weights_b
        cols: dict[str, list] = {"variable": list(variables)}
        for p in self.pairs:
            cols[f"axis{p.axis}"] = weights[:, p.axis - 1].tolist()
        return pl.DataFrame(cols)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Paris polling stations CCA")
    parser.add_argument("--left", type=Path, required=True, help="First vote matrix")
    parser.add_argument("--right", type=Path, required=True, help="Second vote matrix")
    parser.add_argument(
        "--save-axes", type=int, default=DEFAULT_SAVE_AXES,
        help="Number of leading axes whose variates are written",
    )
    return parser.parse_args()


# ── Phase 1: Alignment ──────────────────────────────────────────────────────


def align_matrices(
    a: pl.DataFrame,
    b: pl.DataFrame,
    id_a: str,
    id_b: str | None = None,
) -> tuple[pl.DataFrame, pl.DataFrame]:
    """Restrict both frames to their common station ids and sort both by id.

    After this, row i of one frame and row i of the other describe the same
    station.
    """
    id_b = id_b or id_a
    common = sorted(set(a[id_a].to_list()) & set(b[id_b].to_list()))
    a_aligned = a.filter(pl.col(id_a).is_in(common)).sort(id_a)
    b_aligned = b.filter(pl.col(id_b).is_in(common)).sort(id_b)
    if a_aligned[id_a].to_list() != b_aligned[id_b].to_list():
        msg = "station ids are not unique on at least one side"
        raise DegenerateCCAError(msg)
    return a_aligned, b_aligned


# ── Phase 2: Canonical correlation ──────────────────────────────────────────


def _orthonormal_basis(Xc: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray, int]:
    """Pivoted QR of a centered block. Returns (Q, R, pivots, rank)."""
    Q, R, piv = linalg.qr(Xc, mode="economic", pivoting=True)
    diag = np.abs(np.diag(R))
    if diag.size == 0 or diag[0] == 0:
        return Q, R, piv, 0
    tol = max(Xc.shape) * np.finfo(np.float64).eps * diag[0]
    return Q, R, piv, int((diag > tol).sum())


def canonical_correlation(
    X: np.ndarray, Y: np.ndarray,
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Classical CCA of two row-aligned blocks.

    Returns (correlations, weights_x, weights_y, variates_x, variates_y).
    Correlations are in [0, 1] and non-increasing; there are
    min(rank X, rank Y) of them. Variates have unit variance.
    """
    n = X.shape[0]
    if n != Y.shape[0]:
        msg = f"row counts differ ({n} vs {Y.shape[0]})"
        raise DegenerateCCAError(msg)
    if n < 2:
        msg = f"{n} shared station(s); need at least 2"
        raise DegenerateCCAError(msg)

    Xc = X - X.mean(axis=0)
    Yc = Y - Y.mean(axis=0)
    Qx, Rx, px, rx = _orthonormal_basis(Xc)
    Qy, Ry, py, ry = _orthonormal_basis(Yc)
    if rx == 0 or ry == 0:
        msg = "one side has no variance after centering"
        raise DegenerateCCAError(msg)

    U, s, Vt = linalg.svd(Qx[:, :rx].T @ Qy[:, :ry], full_matrices=False)
    d = min(rx, ry)
    correlations = np.clip(s[:d], 0.0, 1.0)

    scale = np.sqrt(n - 1)
    weights_x = np.zeros((X.shape[1], d))
    weights_x[px[:rx]] = linalg.solve_triangular(Rx[:rx, :rx], U[:, :d]) * scale
    weights_y = np.zeros((Y.shape[1], d))
    weights_y[py[:ry]] = linalg.solve_triangular(Ry[:ry, :ry], Vt.T[:, :d]) * scale

    return correlations, weights_x, weights_y, Xc @ weights_x, Yc @ weights_y


def run_cca(matrix_a: VoteMatrix, matrix_b: VoteMatrix) -> CCAResult:
    """CCA between the vote blocks of two matrices over their shared stations.

    Raises DegenerateCCAError when no station is shared, when a side has fewer
    shared stations than candidate columns, or when a side has no variance.
    """
    a, b = align_matrices(
        matrix_a.votes_frame(), matrix_b.votes_frame(), matrix_a.id_column, matrix_b.id_column,
    )
    if a.height == 0:
        msg = f"{matrix_a.name} and {matrix_b.name} share no station"
        raise DegenerateCCAError(msg)
    for matrix, n_cols in ((matrix_a, len(matrix_a.vote_columns)),
                           (matrix_b, len(matrix_b.vote_columns))):
        if n_cols == 0 or a.height < n_cols:
            msg = f"{matrix.name}: {a.height} shared stations for {n_cols} candidate columns"
            raise DegenerateCCAError(msg)

    X = a.select(matrix_a.vote_columns).to_numpy().astype(np.float64)
    Y = b.select(matrix_b.vote_columns).to_numpy().astype(np.float64)
    correlations, wx, wy, vx, vy = canonical_correlation(X, Y)

    pairs = [
        CanonicalVariatePair(
            axis=i + 1, correlation=float(correlations[i]), scores_a=vx[:, i], scores_b=vy[:, i],
        )
        for i in range(len(correlations))
    ]
    return CCAResult(
        name_a=matrix_a.name,
        name_b=matrix_b.name,
        id_column=matrix_a.id_column,
        station_ids=a[matrix_a.id_column].to_list(),
        variables_a=list(matrix_a.vote_columns),
        variables_b=list(matrix_b.vote_columns),
        weights_a=wx,
        weights_b=wy,
        pairs=pairs,
    )


# ── Phase 3: Artifacts ──────────────────────────────────────────────────────


def cca_pair_name(name_a: str, name_b: str) -> str:
    return f"cca_{name_a}_vs_{name_b}"


def cca_artifact_name(name_a: str, name_b: str, axis: int, correlation: float) -> str:
    """e.g. 'cca_presidentielles_2017_1er_vs_presidentielles_2022_1er_axis1_r=0.993'"""
    return f"{cca_pair_name(name_a, name_b)}_axis{axis}_r={correlation:.3f}"


def save_cca_artifacts(
    result: CCAResult, writer: ArtifactWriter, n_axes: int = DEFAULT_SAVE_AXES,
) -> list[Path]:
    base = cca_pair_name(result.name_a, result.name_b)
    paths = [
        writer.write(f"{base}_summary", result.summary_df()),
        writer.write(f"{base}_weights_left", result.weights_df("a")),
        writer.write(f"{base}_weights_right", result.weights_df("b")),
    ]
    for pair in result.pairs[:n_axes]:
        name = cca_artifact_name(result.name_a, result.name_b, pair.axis, pair.correlation)
        paths.append(writer.write(name, result.variates_df(pair.axis)))
    return paths


# ── Phase 4: Main ───────────────────────────────────────────────────────────


def main() -> None:
    args = parse_args()
    matrix_a = load_vote_matrix(args.left)
    matrix_b = load_vote_matrix(args.right)

    with RunContext(
        scope=f"{matrix_a.name}_vs_{matrix_b.name}",
        analysis_name="cca",
        params=vars(args),
        primer=CCA_PRIMER,
    ) as ctx:
        print(f"CCA — {matrix_a.name} vs {matrix_b.name}")
        print(f"  Left:  {matrix_a.height} stations x {len(matrix_a.vote_columns)} columns")
        print(f"  Right: {matrix_b.height} stations x {len(matrix_b.vote_columns)} columns")
        print(f"Output: {ctx.run_dir}")

        print_header("CANONICAL CORRELATION")
        manifest: dict = {"left": str(args.left), "right": str(args.right)}
        try:
            result = run_cca(matrix_a, matrix_b)
        except (DegenerateCCAError, SchemaError) as e:
            print(f"  Aborted: {e}")
            manifest["aborted"] = str(e)
        else:
            print(f"  Shared stations: {len(result.station_ids)}")
            for pair in result.pairs:
                print(f"    axis {pair.axis}: r = {pair.correlation:.4f}")
            save_cca_artifacts(result, ParquetArtifactWriter(ctx.data_dir), args.save_axes)
            manifest["n_shared"] = len(result.station_ids)
            manifest["correlations"] = result.correlations

        print_header("MANIFEST")
        save_manifest(manifest, ctx.run_dir)


if __name__ == "__main__":
    main()
