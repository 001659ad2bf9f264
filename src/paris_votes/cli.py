"""Command-line interface for the Paris vote-matrix harmonization pipeline."""

import argparse
from pathlib import Path

from paris_votes.config import MAX_WORKERS, REGION_GROUPS
from paris_votes.models import ElectionType
from paris_votes.output import WRITERS
from paris_votes.pipeline import discover_inputs, harmonize_batch, print_batch_report

DEFAULT_OUTPUT = Path("data/vote_matrices")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="paris-votes",
        description="Harmonize Paris polling-station results into canonical vote matrices.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    harmonize = sub.add_parser(
        "harmonize",
        help="Build one vote matrix per raw file under INPUT_ROOT/<election type>/",
    )
    harmonize.add_argument(
        "input_root", type=Path, help="Directory holding one folder per election type",
    )
    harmonize.add_argument(
        "--output",
        "-o",
        type=Path,
        default=DEFAULT_OUTPUT,
        help=f"Output directory (default: {DEFAULT_OUTPUT}/)",
    )
    harmonize.add_argument(
        "--format",
        choices=sorted(WRITERS),
        default="parquet",
        help="Artifact format (default: parquet)",
    )
    harmonize.add_argument(
        "--workers",
        type=int,
        default=MAX_WORKERS,
        help=f"Concurrent files (default: {MAX_WORKERS})",
    )
    harmonize.add_argument(
        "--type",
        dest="types",
        action="append",
        choices=[t.value for t in ElectionType],
        help="Restrict to one election type (repeatable)",
    )
    harmonize.add_argument(
        "--no-progress",
        action="store_true",
        help="Hide the progress bar",
    )

    sub.add_parser("regions", help="Print the arrondissement -> region group table and exit")

    args = parser.parse_args(argv)

    if args.command == "regions":
        print("Region groups:")
        print()
        for group, arrondissements in REGION_GROUPS.items():
            arrs = ", ".join(str(a) for a in arrondissements)
            print(f"  {group:12s}  {arrs}")
        print(f"  {'Autre':12s}  anything else")
        return 0

    types = [ElectionType(t) for t in args.types] if args.types else None
    inputs = list(discover_inputs(args.input_root, types))
    if not inputs:
        print(f"No input tables found under {args.input_root}")
        return 1

    writer = WRITERS[args.format](args.output)
    report = harmonize_batch(
        inputs, writer, max_workers=args.workers, progress=not args.no_progress,
    )
    print_batch_report(report)
    return 0 if report.written else 1
