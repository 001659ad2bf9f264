"""
Paris polling stations — Hierarchical Clustering of PCA projections

Groups stations by where they sit on the leading PCA axes: Ward linkage over
Euclidean distances, cut at a fixed number of groups.

Usage:
  uv run python analysis/clustering.py [--type presidentielles] [--pca-dir ...] [--k 4]

Outputs (in results/<scope>/clustering/<date>/):
  - data/:   Parquet files per matrix (cluster assignments, cluster summary,
             cluster x region composition)
  - manifest.json, run_info.json, run_log.txt
"""

from __future__ import annotations

import argparse
from pathlib import Path

import numpy as np
import polars as pl
from scipy.cluster.hierarchy import cophenet, cut_tree, linkage
from scipy.spatial.distance import pdist

from paris_votes.config import CLUSTER_K, ID_COLUMN, N_CLUSTER_COMPONENTS, REGION_COLUMN
from paris_votes.errors import InsufficientDataError
from paris_votes.output import ArtifactWriter, ParquetArtifactWriter

try:
    from analysis.pca import PCAResult
    from analysis.run_context import RunContext, print_header, save_manifest
except ModuleNotFoundError:
    from pca import PCAResult  # type: ignore[no-redef]
    from run_context import RunContext, print_header, save_manifest  # type: ignore[no-redef]

# ── Primer ───────────────────────────────────────────────────────────────────

CLUSTERING_PRIMER = """\
# Clustering Analysis

## Purpose

Partitions polling stations into a fixed number of groups with similar
positions on the first two PCA components. The groups are compared with the
static region partition to see how much of the voting structure is geographic.

## Method

1. **Load PCA coordinates** from the latest PCA run.
2. **Ward linkage** (variance-minimizing) on Euclidean distances between
   stations' (PC1, PC2) vectors.
3. **Cut the dendrogram** into exactly k groups (k is a constant, not tuned).
4. **Cophenetic correlation** reports how faithfully the tree preserves the
   original distances.

## Outputs

| File | Description |
|------|-------------|
| `<matrix>_clusters.parquet` | Station id, region group, cluster label (1..k) |
| `<matrix>_cluster_summary.parquet` | Size and centroid of each cluster |
| `<matrix>_cluster_regions.parquet` | Station counts per cluster x region group |

## Caveats

- k is fixed; no silhouette or elbow search is performed.
- Matrices with a single PCA component are clustered on that component alone.
"""

# ── Constants ────────────────────────────────────────────────────────────────

LINKAGE_METHOD = "ward"
COPHENETIC_THRESHOLD = 0.70


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Paris polling stations clustering")
    parser.add_argument("--type", default=None, help="Scope used by the PCA run (default: all)")
    parser.add_argument(
        "--pca-dir", type=Path, default=None,
        help="Override PCA results directory (default: results/<scope>/pca/latest)",
    )
    parser.add_argument("--k", type=int, default=CLUSTER_K, help="Number of clusters")
    parser.add_argument(
        "--n-components", type=int, default=N_CLUSTER_COMPONENTS,
        help="Leading components used as clustering features",
    )
    return parser.parse_args()


# ── Phase 1: Hierarchical Clustering ────────────────────────────────────────


def _component_columns(coords: pl.DataFrame, n_components: int) -> list[str]:
    pcs = [c for c in coords.columns if c.startswith("PC") and c[2:].isdigit()]
    pcs.sort(key=lambda c: int(c[2:]))
    return pcs[:n_components]


def run_hierarchical(points: np.ndarray) -> tuple[np.ndarray, float]:
    """Ward linkage over Euclidean distances. Returns (linkage_matrix, cophenetic_r)."""
    condensed = pdist(points, metric="euclidean")
    Z = linkage(points, method=LINKAGE_METHOD, metric="euclidean")
    if condensed.size > 1 and np.ptp(condensed) > 0:
        coph_corr, _ = cophenet(Z, condensed)
        coph_corr = float(coph_corr)
    else:
        coph_corr = float("nan")
    return Z, coph_corr


def cut_clusters(Z: np.ndarray, k: int) -> np.ndarray:
    """Cut a linkage tree into exactly k groups, labelled 1..k."""
    return cut_tree(Z, n_clusters=k).flatten().astype(np.int64) + 1


def cluster_coordinates(
    coords: pl.DataFrame,
    k: int = CLUSTER_K,
    n_components: int = N_CLUSTER_COMPONENTS,
    id_column: str = ID_COLUMN,
) -> tuple[pl.DataFrame, float]:
    """Cluster a PCA coordinate table.

    Returns (assignments, cophenetic_r) where assignments has the id column,
    the region group (when present) and ``cluster`` in 1..k.
    """
    pcs = _component_columns(coords, n_components)
    if not pcs:
        msg = "coordinate table has no PC columns"
        raise InsufficientDataError(msg)
    if coords.height < max(k, 2):
        msg = f"{coords.height} stations cannot form {k} clusters"
        raise InsufficientDataError(msg)

    points = coords.select(pcs).to_numpy().astype(np.float64)
    Z, coph_corr = run_hierarchical(points)
    labels = cut_clusters(Z, k)

    keep = [id_column] + ([REGION_COLUMN] if REGION_COLUMN in coords.columns else [])
    assignments = coords.select(keep).with_columns(pl.Series("cluster", labels))
    return assignments, coph_corr


def cluster_stations(
    result: PCAResult,
    k: int = CLUSTER_K,
    n_components: int = N_CLUSTER_COMPONENTS,
) -> pl.DataFrame:
    """ClusterAssignment for one PCA result: station id -> cluster label in 1..k."""
    assignments, _ = cluster_coordinates(
        result.coordinates_df(), k=k, n_components=n_components, id_column=result.id_column,
    )
    return assignments


# ── Phase 2: Characterization ───────────────────────────────────────────────


def summarize_clusters(
    coords: pl.DataFrame,
    assignments: pl.DataFrame,
    n_components: int = N_CLUSTER_COMPONENTS,
    id_column: str = ID_COLUMN,
) -> pl.DataFrame:
    """Size and centroid of each cluster, sorted by label."""
    pcs = _component_columns(coords, n_components)
    joined = assignments.select(id_column, "cluster").join(
        coords.select(id_column, *pcs), on=id_column, how="inner",
    )
    return (
        joined.group_by("cluster")
        .agg(
            pl.len().alias("n_stations"),
            *[pl.col(pc).mean().alias(f"{pc}_mean") for pc in pcs],
        )
        .sort("cluster")
    )


def cluster_region_composition(assignments: pl.DataFrame) -> pl.DataFrame:
    """Station counts per (cluster, region group), with each cell's share of its cluster."""
    if REGION_COLUMN not in assignments.columns:
        msg = f"assignments carry no {REGION_COLUMN} column"
        raise InsufficientDataError(msg)
    return (
        assignments.group_by("cluster", REGION_COLUMN)
        .agg(pl.len().alias("n_stations"))
        .with_columns(
            (pl.col("n_stations") / pl.col("n_stations").sum().over("cluster"))
            .alias("share_of_cluster")
        )
        .sort("cluster", REGION_COLUMN)
    )


def save_cluster_artifacts(
    name: str,
    assignments: pl.DataFrame,
    summary: pl.DataFrame,
    writer: ArtifactWriter,
) -> list[Path]:
    paths = [
        writer.write(f"{name}_clusters", assignments),
        writer.write(f"{name}_cluster_summary", summary),
    ]
    if REGION_COLUMN in assignments.columns:
        paths.append(
            writer.write(f"{name}_cluster_regions", cluster_region_composition(assignments))
        )
    return paths


# ── Phase 3: Main ───────────────────────────────────────────────────────────


def main() -> None:
    args = parse_args()
    scope = args.type or "all"
    pca_dir = args.pca_dir or Path("results") / scope / "pca" / "latest"

    with RunContext(
        scope=scope,
        analysis_name="clustering",
        params=vars(args),
        primer=CLUSTERING_PRIMER,
    ) as ctx:
        print(f"Paris polling stations clustering — {scope}")
        print(f"PCA:    {pca_dir}")
        print(f"Output: {ctx.run_dir}")
        print(f"k = {args.k}, components = {args.n_components}")

        print_header("CLUSTERING")
        writer = ParquetArtifactWriter(ctx.data_dir)
        suffix = "_coordinates.parquet"
        coord_paths = sorted((pca_dir / "data").glob(f"*{suffix}"))
        findings: dict[str, dict] = {}
        skipped: dict[str, str] = {}
        for path in coord_paths:
            name = path.name.removesuffix(suffix)
            coords = pl.read_parquet(path)
            try:
                assignments, coph_corr = cluster_coordinates(
                    coords, k=args.k, n_components=args.n_components,
                    id_column=coords.columns[0],
                )
            except InsufficientDataError as e:
                print(f"  Skipping {name}: {e}")
                skipped[name] = str(e)
                continue

            summary = summarize_clusters(
                coords, assignments, args.n_components, id_column=coords.columns[0],
            )
            sizes = summary["n_stations"].to_list()
            flag = "OK" if coph_corr >= COPHENETIC_THRESHOLD else "WARNING"
            print(f"  {name}: sizes={sizes}  cophenetic r={coph_corr:.4f} ({flag})")
            save_cluster_artifacts(name, assignments, summary, writer)
            findings[name] = {"cluster_sizes": sizes, "cophenetic_r": coph_corr}

        print_header("MANIFEST")
        save_manifest(
            {
                "pca_source": str(pca_dir),
                "k": args.k,
                "n_components": args.n_components,
                "linkage": LINKAGE_METHOD,
                "results": findings,
                "skipped": skipped,
            },
            ctx.run_dir,
        )

        print_header("DONE")
        print(f"  Clustered: {len(findings)}  Skipped: {len(skipped)}")


if __name__ == "__main__":
    main()
