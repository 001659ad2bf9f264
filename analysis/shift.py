"""
Paris polling stations — Station Shift between two elections

Compares two independently computed PCA projections of the same election type
(e.g. presidentielles 2017 vs 2022) and measures how far each station moved on
the first two components.

Usage:
  uv run python analysis/shift.py --earlier results/all/pca/latest/data/<a>_coordinates.parquet \
      --later results/all/pca/latest/data/<b>_coordinates.parquet [--top 10]

Outputs (in results/<scope>/shift/<date>/):
  - data/shift_<a>_vs_<b>.parquet          per-station displacement
  - data/shift_<a>_vs_<b>_regions.parquet  magnitude summary per region group
  - manifest.json, run_info.json, run_log.txt
"""

from __future__ import annotations

import argparse
from pathlib import Path

import polars as pl

from paris_votes.config import ID_COLUMN, N_CLUSTER_COMPONENTS, REGION_COLUMN
from paris_votes.errors import InsufficientDataError
from paris_votes.output import ParquetArtifactWriter

try:
    from analysis.pca import PCAResult
    from analysis.run_context import RunContext, print_header, save_manifest
except ModuleNotFoundError:
    from pca import PCAResult  # type: ignore[no-redef]
    from run_context import RunContext, print_header, save_manifest  # type: ignore[no-redef]

SHIFT_PRIMER = """\
# Station Shift

## Purpose

Measures how much each polling station moved in the PCA plane between two
elections of the same type.

## Method

1. Intersect the station ids of both PCA results; stations present in only
   one election are dropped.
2. Take (PC1, PC2) from each result.
3. Displacement = later - earlier, component-wise; magnitude = Euclidean norm.

## Caveats

- Each PCA is fitted independently. Component signs follow a fixed convention
  (largest loading positive), but if the candidate rosters differ the axes
  themselves may not mean the same thing in both years. Read magnitudes as
  "how differently this station behaves relative to the rest of Paris".
"""

SHIFT_COMPONENTS = ("PC1", "PC2")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Paris polling stations shift")
    parser.add_argument("--earlier", type=Path, required=True, help="Earlier coordinates parquet")
    parser.add_argument("--later", type=Path, required=True, help="Later coordinates parquet")
    parser.add_argument("--top", type=int, default=10, help="Largest movers to print")
    return parser.parse_args()


def _coordinates(source: PCAResult | pl.DataFrame) -> pl.DataFrame:
    if isinstance(source, PCAResult):
        return source.coordinates_df()
    return source


def shift_artifact_name(earlier: str, later: str) -> str:
    return f"shift_{earlier}_vs_{later}"


def compute_shift(
    earlier: PCAResult | pl.DataFrame,
    later: PCAResult | pl.DataFrame,
    sort_by_magnitude: bool = False,
    id_column: str = ID_COLUMN,
) -> pl.DataFrame:
    """Per-station displacement in the (PC1, PC2) plane.

    Only stations present in both inputs appear. Columns: id, region group
    (when the earlier input carries it), pc1/pc2 for each side, delta_pc1,
    delta_pc2, magnitude. Raises InsufficientDataError if either side has
    fewer than two components.
    """
    a = _coordinates(earlier)
    b = _coordinates(later)
    for label, frame in (("earlier", a), ("later", b)):
        missing = [pc for pc in SHIFT_COMPONENTS if pc not in frame.columns]
        if missing:
            msg = f"{label} projection lacks {missing} (needs {N_CLUSTER_COMPONENTS} components)"
            raise InsufficientDataError(msg)

    extra = [REGION_COLUMN] if REGION_COLUMN in a.columns else []
    left = a.select(
        id_column, *extra,
        pl.col("PC1").alias("pc1_earlier"), pl.col("PC2").alias("pc2_earlier"),
    )
    right = b.select(
        id_column, pl.col("PC1").alias("pc1_later"), pl.col("PC2").alias("pc2_later"),
    )

    shift = (
        left.join(right, on=id_column, how="inner")
        .with_columns(
            (pl.col("pc1_later") - pl.col("pc1_earlier")).alias("delta_pc1"),
            (pl.col("pc2_later") - pl.col("pc2_earlier")).alias("delta_pc2"),
        )
        .with_columns(
            (pl.col("delta_pc1") ** 2 + pl.col("delta_pc2") ** 2).sqrt().alias("magnitude")
        )
    )
    if sort_by_magnitude:
        shift = shift.sort("magnitude", descending=True)
    return shift


def shift_by_region(shift: pl.DataFrame) -> pl.DataFrame:
    """Mean / median / max magnitude per region group."""
    if REGION_COLUMN not in shift.columns:
        msg = f"shift table carries no {REGION_COLUMN} column"
        raise InsufficientDataError(msg)
    return (
        shift.group_by(REGION_COLUMN)
        .agg(
            pl.len().alias("n_stations"),
            pl.col("magnitude").mean().alias("mean_magnitude"),
            pl.col("magnitude").median().alias("median_magnitude"),
            pl.col("magnitude").max().alias("max_magnitude"),
        )
        .sort("mean_magnitude", descending=True)
    )


def _name_from_coordinates_path(path: Path) -> str:
    return path.stem.removesuffix("_coordinates")


def main() -> None:
    args = parse_args()
    earlier_name = _name_from_coordinates_path(args.earlier)
    later_name = _name_from_coordinates_path(args.later)
    name = shift_artifact_name(earlier_name, later_name)

    with RunContext(
        scope=f"{earlier_name}_vs_{later_name}",
        analysis_name="shift",
        params=vars(args),
        primer=SHIFT_PRIMER,
    ) as ctx:
        print(f"Station shift — {earlier_name} -> {later_name}")
        print(f"Output: {ctx.run_dir}")

        print_header("LOADING COORDINATES")
        earlier = pl.read_parquet(args.earlier)
        later = pl.read_parquet(args.later)
        print(f"  Earlier: {earlier.height} stations")
        print(f"  Later:   {later.height} stations")

        print_header("SHIFT")
        shift = compute_shift(
            earlier, later, sort_by_magnitude=True, id_column=earlier.columns[0],
        )
        print(f"  Common stations: {shift.height}")
        if shift.height == 0:
            print("  No station in common; nothing to compare")
        else:
            print(f"  Mean magnitude: {shift['magnitude'].mean():.3f}")
            print(f"\n  Top {args.top} movers:")
            for row in shift.head(args.top).iter_rows(named=True):
                print(f"    {row[shift.columns[0]]:>8s}  d=({row['delta_pc1']:+.3f}, "
                      f"{row['delta_pc2']:+.3f})  |d|={row['magnitude']:.3f}")

        writer = ParquetArtifactWriter(ctx.data_dir)
        writer.write(name, shift)
        regions: list[dict] = []
        if REGION_COLUMN in shift.columns and shift.height > 0:
            by_region = shift_by_region(shift)
            writer.write(f"{name}_regions", by_region)
            regions = by_region.to_dicts()

        print_header("MANIFEST")
        save_manifest(
            {
                "earlier": str(args.earlier),
                "later": str(args.later),
                "n_earlier": earlier.height,
                "n_later": later.height,
                "n_common": shift.height,
                "regions": regions,
            },
            ctx.run_dir,
        )


if __name__ == "__main__":
    main()
