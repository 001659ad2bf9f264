"""
Paris polling stations — Principal Component Analysis

PCA on the station x candidate vote matrix. PCA is the cheapest view of the
ideological landscape: which candidates pull stations apart, and where each
station sits on the leading axes.

Usage:
  uv run python analysis/pca.py [--matrices-dir data/vote_matrices] \
      [--type presidentielles] [--n-components 5] [--no-scale]

Outputs (in results/<scope>/pca/<date>/):
  - data/:   Parquet files per matrix (variance, coordinates, contributions)
  - manifest.json, run_info.json, run_log.txt
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import polars as pl
from sklearn.decomposition import PCA
from sklearn.preprocessing import StandardScaler

from paris_votes.config import (
    DEFAULT_N_COMPONENTS,
    MIN_PCA_COLUMNS,
    MIN_PCA_ROWS,
    REGION_COLUMN,
)
from paris_votes.errors import InsufficientDataError, SchemaError
from paris_votes.models import VoteMatrix
from paris_votes.output import (
    ArtifactWriter,
    ParquetArtifactWriter,
    find_vote_matrices,
    load_vote_matrix,
)

try:
    from analysis.run_context import RunContext, print_header, save_manifest
except ModuleNotFoundError:
    from run_context import RunContext, print_header, save_manifest  # type: ignore[no-redef]

# ── Primer ───────────────────────────────────────────────────────────────────
# Written to results/<scope>/pca/README.md by RunContext on each run.

PCA_PRIMER = """\
# Principal Component Analysis (PCA)

## Purpose

PCA extracts the principal axes of variation in how polling stations split
their votes between candidates (or lists). PC1 usually separates the two
electorates that dominate Paris (east/west, left/right); PC2 picks up a second,
cross-cutting contrast.

## Method

1. **Load canonical vote matrices** produced by `paris-votes harmonize`.
2. **Strip administrative columns** (grouping keys, arrondissement, region).
3. **Standardize** each candidate column (center, and scale unless `--no-scale`).
4. **Fit PCA** (full SVD), keeping at most min(rows, columns) - 1 components.
5. **Orient** each component so its largest-magnitude loading is positive.
6. **Contributions**: squared loading of each candidate as a share of the
   component's total squared loading.

## Outputs

All outputs land in `results/<scope>/pca/<date>/data/`, one set per matrix:

| File | Description |
|------|-------------|
| `<matrix>_variance.parquet` | Explained variance ratio and cumulative share per component |
| `<matrix>_coordinates.parquet` | Station coordinates on each component, with region group |
| `<matrix>_contributions.parquet` | Candidate contribution (%) to each component |

## Interpretation Guide

- **PC1 above 50%** means one opposition structures most of the map.
- **Coordinates**: signs are a convention (largest loading positive); compare
  distances and correlations across runs, never raw signs.
- **Contributions** sum to 100% per component; a candidate above 100/p% weighs
  more than average on that axis.

## Caveats

- Matrices with fewer than 3 stations or 2 candidate columns are skipped.
- Raw counts are used, so station size feeds into PC1 unless the matrix is
  scaled; scaling equalizes candidates, not stations.
"""

# ── Constants ────────────────────────────────────────────────────────────────

DEFAULT_MATRICES_DIR = Path("data/vote_matrices")


# ── Result ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PCAResult:
    """PCA of one vote matrix.

    coordinates: (n_stations, k) station scores.
    loadings: (k, n_variables) unit-norm component directions.
    contributions: (n_variables, k) percentages; each column sums to 100.
    """

    name: str
    id_column: str
    station_ids: list[str]
    variables: list[str]
    explained_variance: np.ndarray
    coordinates: np.ndarray
    loadings: np.ndarray
    contributions: np.ndarray
    regions: list[str] | None = None

    @property
    def n_components(self) -> int:
        return self.coordinates.shape[1]

    @property
    def component_names(self) -> list[str]:
        return [f"PC{i + 1}" for i in range(self.n_components)]

    def variance_df(self) -> pl.DataFrame:
        ev = self.explained_variance
        return pl.DataFrame({
            "component": self.component_names,
            "explained_variance": ev.tolist(),
            "cumulative": np.cumsum(ev).tolist(),
        })

    def coordinates_df(self) -> pl.DataFrame:
        cols: dict[str, list] = {self.id_column: list(self.station_ids)}
        if self.regions is not None:
            cols[REGION_COLUMN] = list(self.regions)
        for i, pc in enumerate(self.component_names):
            cols[pc] = self.coordinates[:, i].tolist()
        return pl.DataFrame(cols)

    def contributions_df(self) -> pl.DataFrame:
        cols: dict[str, list] = {"variable": list(self.variables)}
        for i, pc in enumerate(self.component_names):
            cols[pc] = self.contributions[:, i].tolist()
        return pl.DataFrame(cols)


# ── Helpers ──────────────────────────────────────────────────────────────────


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Paris polling stations PCA")
    parser.add_argument(
        "--matrices-dir", type=Path, default=DEFAULT_MATRICES_DIR,
        help="Root of persisted vote matrices",
    )
    parser.add_argument(
        "--type", default=None,
        help="Restrict to one election type sub-directory (e.g. presidentielles)",
    )
    parser.add_argument(
        "--n-components", type=int, default=DEFAULT_N_COMPONENTS,
        help="Maximum number of PCA components to extract",
    )
    parser.add_argument(
        "--no-scale", action="store_true",
        help="Center columns without scaling them to unit variance",
    )
    return parser.parse_args()


# ── Phase 1: Decomposition ──────────────────────────────────────────────────


def check_pca_input(X: np.ndarray, name: str = "matrix") -> None:
    """Refuse matrices too small (or too flat) to decompose."""
    n_rows, n_cols = X.shape
    if n_rows < MIN_PCA_ROWS or n_cols < MIN_PCA_COLUMNS:
        msg = (
            f"{name}: {n_rows} stations x {n_cols} candidates "
            f"(need >= {MIN_PCA_ROWS} x {MIN_PCA_COLUMNS})"
        )
        raise InsufficientDataError(msg)
    if np.allclose(X.std(axis=0), 0.0):
        msg = f"{name}: every candidate column is constant"
        raise InsufficientDataError(msg)


def fit_pca(
    X: np.ndarray, n_components: int, scale: bool = True,
) -> tuple[np.ndarray, np.ndarray, PCA]:
    """Standardize and fit PCA. Returns (scores, loadings, pca)."""
    scaler = StandardScaler(with_std=scale)
    X_std = scaler.fit_transform(X)
    pca = PCA(n_components=n_components, svd_solver="full")
    scores = pca.fit_transform(X_std)
    loadings = pca.components_.copy()  # shape: (n_components, n_variables)
    return scores, loadings, pca


def orient_components(
    scores: np.ndarray, loadings: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """Flip each component so its largest-magnitude loading is positive.

    SVD leaves the sign of every component arbitrary; this fixes one convention
    so reruns on the same matrix agree. Distances and correlations do not
    depend on it.
    """
    scores = scores.copy()
    loadings = loadings.copy()
    for i in range(loadings.shape[0]):
        j = int(np.argmax(np.abs(loadings[i])))
        if loadings[i, j] < 0:
            scores[:, i] *= -1
            loadings[i, :] *= -1
    return scores, loadings


def compute_contributions(loadings: np.ndarray) -> np.ndarray:
    """Squared loadings as a percentage of each component's total.

    Returns an (n_variables, n_components) array whose columns sum to 100.
    """
    sq = loadings**2
    totals = sq.sum(axis=1, keepdims=True)
    totals[totals == 0] = 1.0
    return (100.0 * sq / totals).T


def run_pca(
    matrix: VoteMatrix,
    n_components: int = DEFAULT_N_COMPONENTS,
    scale: bool = True,
) -> PCAResult:
    """Full PCA of one vote matrix.

    Keeps min(n_components, min(rows, columns) - 1) components. Raises
    InsufficientDataError below 3 stations or 2 candidate columns.
    """
    X, station_ids, variables = matrix.numeric_block()
    check_pca_input(X, matrix.name)

    n_comp = min(n_components, min(X.shape) - 1)
    scores, loadings, pca = fit_pca(X, n_comp, scale=scale)
    scores, loadings = orient_components(scores, loadings)

    regions = None
    if REGION_COLUMN in matrix.frame.columns:
        regions = matrix.frame[REGION_COLUMN].to_list()

    return PCAResult(
        name=matrix.name,
        id_column=matrix.id_column,
        station_ids=station_ids,
        variables=variables,
        explained_variance=np.asarray(pca.explained_variance_ratio_, dtype=np.float64),
        coordinates=scores,
        loadings=loadings,
        contributions=compute_contributions(loadings),
        regions=regions,
    )


def print_pca_summary(result: PCAResult, top: int = 3) -> None:
    ev = result.explained_variance
    cumulative = np.cumsum(ev)
    print(f"\n  {result.name}: {len(result.station_ids)} stations x {len(result.variables)} "
          f"candidates, {result.n_components} component(s)")
    for i in range(result.n_components):
        order = np.argsort(result.contributions[:, i])[::-1][:top]
        leaders = ", ".join(
            f"{result.variables[j]} ({result.contributions[j, i]:.1f}%)" for j in order
        )
        print(f"    PC{i + 1}: {100 * ev[i]:5.1f}%  cumulative: {100 * cumulative[i]:5.1f}%  "
              f"[{leaders}]")


# ── Phase 2: Artifacts ──────────────────────────────────────────────────────


def save_pca_artifacts(result: PCAResult, writer: ArtifactWriter) -> list[Path]:
    """Write variance, coordinate and contribution tables prefixed by the matrix name."""
    return [
        writer.write(f"{result.name}_variance", result.variance_df()),
        writer.write(f"{result.name}_coordinates", result.coordinates_df()),
        writer.write(f"{result.name}_contributions", result.contributions_df()),
    ]


# ── Phase 3: Main ───────────────────────────────────────────────────────────


def main() -> None:
    args = parse_args()
    search_dir = args.matrices_dir / args.type if args.type else args.matrices_dir

    with RunContext(
        scope=args.type or "all",
        analysis_name="pca",
        params=vars(args),
        primer=PCA_PRIMER,
    ) as ctx:
        print(f"Paris polling stations PCA — {args.type or 'all election types'}")
        print(f"Matrices:   {search_dir}")
        print(f"Output:     {ctx.run_dir}")
        print(f"Components: {args.n_components} (scale={not args.no_scale})")

        print_header("LOADING MATRICES")
        paths = find_vote_matrices(search_dir)
        print(f"  Found {len(paths)} vote matri{'x' if len(paths) == 1 else 'ces'}")

        print_header("PCA")
        writer = ParquetArtifactWriter(ctx.data_dir)
        done: dict[str, list[float]] = {}
        skipped: dict[str, str] = {}
        for path in paths:
            try:
                matrix = load_vote_matrix(path)
                result = run_pca(matrix, args.n_components, scale=not args.no_scale)
            except (InsufficientDataError, SchemaError) as e:
                print(f"\n  Skipping {path.name}: {e}")
                skipped[str(path)] = str(e)
                continue
            print_pca_summary(result)
            save_pca_artifacts(result, writer)
            done[result.name] = result.explained_variance.tolist()

        print_header("MANIFEST")
        manifest = {
            "matrices_dir": str(search_dir),
            "n_components": args.n_components,
            "scale": not args.no_scale,
            "min_rows": MIN_PCA_ROWS,
            "min_columns": MIN_PCA_COLUMNS,
            "explained_variance": done,
            "skipped": skipped,
        }
        save_manifest(manifest, ctx.run_dir)

        print_header("DONE")
        print(f"  Analysed: {len(done)}  Skipped: {len(skipped)}")
        print(f"  All outputs in: {ctx.run_dir}")


if __name__ == "__main__":
    main()
