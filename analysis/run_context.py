"""Reusable run context for structured analysis output.

Every analysis script (PCA, shift, CCA) uses RunContext to get:
  - Structured output directories: results/<scope>/<analysis>/<date>/data/
  - Console log capture (run_log.txt)
  - Run metadata (run_info.json): git hash, timestamps, parameters
  - A `latest` symlink pointing to the most recent run

Usage:
    with RunContext(
        scope="presidentielles",
        analysis_name="pca",
        params=vars(args),
        primer=PCA_PRIMER,        # Markdown primer kept at results/<scope>/pca/README.md
    ) as ctx:
        writer = ParquetArtifactWriter(ctx.data_dir)
        save_manifest(manifest, ctx.run_dir)
"""

from __future__ import annotations

import io
import json
import re
import subprocess
import sys
from datetime import datetime, timezone
from pathlib import Path
from types import TracebackType

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class _TeeStream(io.StringIO):
    """StringIO that also echoes every write to the console stream it replaces."""

    def __init__(self, console: io.TextIOBase) -> None:
        super().__init__()
        self.console = console

    def write(self, data: str) -> int:
        self.console.write(data)
        return super().write(data)

    def flush(self) -> None:
        self.console.flush()


def _normalize_scope(scope: str) -> str:
    """Turn a scope label into a directory name.

    Examples:
        "presidentielles"                     -> "presidentielles"
        "Presidentielles 2017 vs 2022"        -> "presidentielles_2017_vs_2022"
        ""                                    -> "all"
    """
    slug = re.sub(r"[^A-Za-z0-9]+", "_", scope.strip()).strip("_").lower()
    return slug or "all"


def _git_commit_hash() -> str | None:
    """Short commit hash of the project checkout, None outside a git repo."""
    try:
        out = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            cwd=PROJECT_ROOT, capture_output=True, text=True, timeout=5, check=True,
        )
    except (OSError, subprocess.SubprocessError):
        return None
    return out.stdout.strip() or None


class RunContext:
    """Context manager that sets up structured output for an analysis run.

    Attributes:
        scope: Normalized scope string (e.g. "presidentielles").
        analysis_name: Name of the analysis phase (e.g. "pca", "cca").
        params: Script parameters to record in run_info.json.
        run_dir: Root of this run's output (results/<scope>/<analysis>/<date>/).
        data_dir: Directory for parquet/intermediate data files.
    """

    def __init__(
        self,
        scope: str,
        analysis_name: str,
        params: dict | None = None,
        results_root: Path | None = None,
        primer: str | None = None,
    ) -> None:
        self.scope = _normalize_scope(scope)
        self.analysis_name = analysis_name
        self.params = params or {}

        self.analysis_dir = Path(results_root or "results") / self.scope / analysis_name
        self.run_date = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        self.run_dir = self.analysis_dir / self.run_date
        self.data_dir = self.run_dir / "data"

        self._primer = primer
        self._tee: _TeeStream | None = None
        self._started: datetime | None = None

    def __enter__(self) -> RunContext:
        self.setup()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.finalize()

    def setup(self) -> None:
        """Create directories, refresh the primer, and start log capture."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        if self._primer:
            readme = self.analysis_dir / "README.md"
            if not readme.exists() or readme.read_text(encoding="utf-8") != self._primer:
                readme.write_text(self._primer, encoding="utf-8")

        self._tee = _TeeStream(sys.stdout)
        sys.stdout = self._tee
        self._started = datetime.now(timezone.utc)

    def finalize(self) -> None:
        """Restore stdout, then write run_log.txt, run_info.json and the `latest` link."""
        log_text = ""
        if self._tee is not None:
            sys.stdout = self._tee.console
            log_text = self._tee.getvalue()
            self._tee = None
        (self.run_dir / "run_log.txt").write_text(log_text, encoding="utf-8")

        run_info = {
            "analysis": self.analysis_name,
            "scope": self.scope,
            "run_date": self.run_date,
            "started": self._started.isoformat() if self._started else None,
            "finished": datetime.now(timezone.utc).isoformat(),
            "git_commit": _git_commit_hash(),
            "params": self.params,
        }
        (self.run_dir / "run_info.json").write_text(
            json.dumps(run_info, indent=2, default=str), encoding="utf-8",
        )

        # Relative target so the results tree can be moved
        latest = self.analysis_dir / "latest"
        if latest.is_symlink() or latest.exists():
            latest.unlink()
        latest.symlink_to(self.run_date)


def save_manifest(manifest: dict, out_dir: Path, filename: str = "manifest.json") -> None:
    path = out_dir / filename
    path.write_text(json.dumps(manifest, indent=2, default=str), encoding="utf-8")
    print(f"  Saved: {path.name}")


def print_header(title: str) -> None:
    """Print a visually distinct section header to stdout."""
    width = 80
    print(f"\n{'=' * width}")
    print(f"  {title}")
    print(f"{'=' * width}")
