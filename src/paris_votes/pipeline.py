"""Batch harmonization: many raw files -> many canonical vote matrices.

Each file is independent, so matrices are built concurrently (one file per
task). A file that fails metadata parsing or normalization is skipped and
reported; its siblings carry on. Writes happen afterwards, in input order, so
the output set does not depend on thread scheduling.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

from tqdm import tqdm

from paris_votes.builder import harmonize_file
from paris_votes.config import INPUT_SUFFIXES, MAX_WORKERS
from paris_votes.errors import MetadataParseError, SchemaError
from paris_votes.models import BatchReport, ElectionType, VoteMatrix
from paris_votes.output import ArtifactWriter, save_vote_matrix


def discover_inputs(
    root: Path, election_types: Iterable[ElectionType] | None = None,
) -> Iterator[tuple[Path, ElectionType]]:
    """Yield (path, election type) for every raw table under ``root/<type>/``."""
    root = Path(root)
    types = list(election_types) if election_types else list(ElectionType)
    for election_type in types:
        type_dir = root / election_type.value
        if not type_dir.is_dir():
            continue
        for path in sorted(type_dir.rglob("*")):
            if path.is_file() and path.suffix.lower() in INPUT_SUFFIXES:
                yield path, election_type


def harmonize_batch(
    inputs: Iterable[tuple[Path, ElectionType]],
    writer: ArtifactWriter,
    max_workers: int = MAX_WORKERS,
    progress: bool = True,
) -> BatchReport:
    """Build and persist one vote matrix per input; return what was written and skipped."""
    inputs = list(inputs)
    report = BatchReport()
    built: dict[int, VoteMatrix] = {}
    failed: dict[int, str] = {}

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_idx = {
            executor.submit(harmonize_file, path, election_type): i
            for i, (path, election_type) in enumerate(inputs)
        }
        for future in tqdm(
            as_completed(future_to_idx),
            total=len(future_to_idx),
            desc="Harmonizing",
            unit="file",
            disable=not progress,
        ):
            idx = future_to_idx[future]
            try:
                built[idx] = future.result()
            except (MetadataParseError, SchemaError) as e:
                failed[idx] = f"{type(e).__name__}: {e}"

    seen: dict[str, Path] = {}
    for i, (path, _) in enumerate(inputs):
        if i in failed:
            report.skipped.append((path, failed[i]))
            continue
        matrix = built[i]
        if matrix.name in seen:
            reason = f"duplicate artifact {matrix.name!r} (already built from {seen[matrix.name]})"
            report.skipped.append((path, reason))
            continue
        seen[matrix.name] = path
        report.written.append((path, save_vote_matrix(matrix, writer)))

    return report


def print_batch_report(report: BatchReport) -> None:
    print("\n" + "=" * 60)
    print(f"Harmonized {len(report.written)} of {report.n_inputs} file(s)")
    print("=" * 60)
    for source, artifact in report.written:
        print(f"  {source.name} -> {artifact}")
    if report.skipped:
        print(f"\n  Skipped {len(report.skipped)} file(s):")
        for source, reason in report.skipped:
            print(f"    {source}: {reason}")
