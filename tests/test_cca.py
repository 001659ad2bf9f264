"""
Tests for canonical correlation analysis in analysis/cca.py.

Covers station alignment (intersection and ordering), the correlation
properties, sensitivity to misalignment, artifact naming, and the degenerate
inputs that abort a pair.

Run: uv run pytest tests/test_cca.py -v
"""

import sys
from pathlib import Path

import numpy as np
import polars as pl
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from analysis.cca import (
    align_matrices,
    canonical_correlation,
    cca_artifact_name,
    run_cca,
    save_cca_artifacts,
)
from paris_votes.builder import build_vote_matrix
from paris_votes.errors import DegenerateCCAError
from paris_votes.output import ParquetArtifactWriter

# ── Fixtures ─────────────────────────────────────────────────────────────────


def _matrix(frame: pl.DataFrame, year: int = 2017):
    return build_vote_matrix(
        frame, f"presidentielles-{year}-1er-tour.csv", "presidentielles",
    )


def _linked_pair(n: int = 200, seed: int = 11) -> tuple[pl.DataFrame, pl.DataFrame]:
    """Two elections whose candidate counts share a latent east/west factor."""
    rng = np.random.default_rng(seed)
    latent = rng.normal(size=n)
    ids = [f"{1 + i % 20}-{i}" for i in range(n)]

    def votes(loadings, base):
        return [
            np.clip(base + 40 * w * latent + rng.normal(scale=5, size=n), 0, None).round()
            for w in loadings
        ]

    a_cols = votes([1.0, -0.8, 0.3], 150)
    b_cols = votes([0.9, -1.0, 0.1], 150)
    a = pl.DataFrame({"id_bvote": ids, "num_circ": [1] * n}).with_columns(
        pl.Series("macron", a_cols[0]), pl.Series("le_pen", a_cols[1]),
        pl.Series("fillon", a_cols[2]),
    )
    b = pl.DataFrame({"id_bvote": ids, "num_circ": [1] * n}).with_columns(
        pl.Series("macron", b_cols[0]), pl.Series("le_pen", b_cols[1]),
        pl.Series("zemmour", b_cols[2]),
    )
    return a, b


# ── align_matrices() ────────────────────────────────────────────────────────


class TestAlignMatrices:
    """Station alignment between two matrices."""

    def test_intersection_only(self):
        """Only stations present in both matrices survive."""
        a = pl.DataFrame({"id_bvote": ["1-1", "1-2", "2-1"], "x": [1, 2, 3]})
        b = pl.DataFrame({"id_bvote": ["1-2", "2-1", "3-1"], "y": [4, 5, 6]})
        a2, b2 = align_matrices(a, b, "id_bvote")
        assert a2["id_bvote"].to_list() == ["1-2", "2-1"]
        assert b2["id_bvote"].to_list() == ["1-2", "2-1"]

    def test_sorted_by_id(self):
        """Both blocks come back in the same id order."""
        a = pl.DataFrame({"id_bvote": ["2-1", "1-1"], "x": [1, 2]})
        b = pl.DataFrame({"id_bvote": ["1-1", "2-1"], "y": [3, 4]})
        a2, b2 = align_matrices(a, b, "id_bvote")
        assert a2["x"].to_list() == [2, 1]
        assert b2["y"].to_list() == [3, 4]

    def test_different_id_names(self):
        """Id columns may have different names."""
        a = pl.DataFrame({"id_bvote": ["1-1"], "x": [1]})
        b = pl.DataFrame({"bureau": ["1-1"], "y": [2]})
        a2, b2 = align_matrices(a, b, "id_bvote", "bureau")
        assert a2.height == b2.height == 1

    def test_duplicate_ids_rejected(self):
        """Repeated ids make the alignment ambiguous."""
        a = pl.DataFrame({"id_bvote": ["1-1", "1-1"], "x": [1, 2]})
        b = pl.DataFrame({"id_bvote": ["1-1"], "y": [3]})
        with pytest.raises(DegenerateCCAError, match="not unique"):
            align_matrices(a, b, "id_bvote")


# ── canonical_correlation() ─────────────────────────────────────────────────


class TestCanonicalCorrelation:
    """Core CCA computation on numeric blocks."""

    def test_properties(self):
        """Correlations are sorted, bounded and one per pair."""
        rng = np.random.default_rng(0)
        X = rng.normal(size=(150, 4))
        Y = X[:, :3] @ rng.normal(size=(3, 3)) + rng.normal(scale=0.5, size=(150, 3))
        corrs, wx, wy, vx, vy = canonical_correlation(X, Y)
        assert len(corrs) == 3
        assert np.all(np.diff(corrs) <= 1e-12)
        assert np.all((corrs >= 0) & (corrs <= 1))
        assert wx.shape == (4, 3)
        assert wy.shape == (3, 3)
        np.testing.assert_allclose(vx.std(axis=0, ddof=1), 1.0)
        np.testing.assert_allclose(vy.std(axis=0, ddof=1), 1.0)

    def test_correlations_match_variates(self):
        """Reported correlations equal those of the variates."""
        rng = np.random.default_rng(1)
        X = rng.normal(size=(100, 3))
        Y = X @ rng.normal(size=(3, 2)) + rng.normal(size=(100, 2))
        corrs, _, _, vx, vy = canonical_correlation(X, Y)
        for i, r in enumerate(corrs):
            assert np.corrcoef(vx[:, i], vy[:, i])[0, 1] == pytest.approx(r, abs=1e-8)

    def test_identical_blocks_correlate_perfectly(self):
        """Same block on both sides gives correlations of 1."""
        X = np.random.default_rng(2).normal(size=(50, 3))
        corrs, *_ = canonical_correlation(X, X.copy())
        np.testing.assert_allclose(corrs, 1.0, atol=1e-10)

    def test_rank_deficient_block(self):
        """A duplicated column adds no axis."""
        rng = np.random.default_rng(3)
        X = rng.normal(size=(60, 2))
        X = np.column_stack([X, X[:, 0]])
        Y = rng.normal(size=(60, 3))
        corrs, wx, *_ = canonical_correlation(X, Y)
        assert len(corrs) == 2
        assert wx.shape == (3, 2)

    def test_constant_block(self):
        """A constant block has no variance to correlate."""
        with pytest.raises(DegenerateCCAError, match="no variance"):
            canonical_correlation(np.ones((10, 2)), np.random.default_rng(4).normal(size=(10, 2)))

    def test_row_mismatch(self):
        """Blocks must have the same number of rows."""
        with pytest.raises(DegenerateCCAError):
            canonical_correlation(np.zeros((5, 2)), np.zeros((4, 2)))


# ── run_cca() ───────────────────────────────────────────────────────────────


class TestRunCca:
    """CCA between two vote matrices."""

    def test_linked_elections(self):
        """Two linked elections yield a strong first correlation."""
        a, b = _linked_pair()
        result = run_cca(_matrix(a, 2017), _matrix(b, 2022))
        assert len(result.pairs) == 3
        assert result.correlations[0] > 0.8
        assert result.correlations == sorted(result.correlations, reverse=True)

    def test_shuffled_copy_correlates_less(self):
        """Misaligned stations destroy the leading correlation."""
        a, _ = _linked_pair()
        aligned = run_cca(_matrix(a, 2017), _matrix(a, 2022))
        votes = a.select("macron", "le_pen", "fillon").sample(
            fraction=1.0, shuffle=True, seed=42,
        )
        shuffled = a.select("id_bvote", "num_circ").hstack(votes)
        misaligned = run_cca(_matrix(a, 2017), _matrix(shuffled, 2022))
        assert aligned.correlations[0] == pytest.approx(1.0)
        assert misaligned.correlations[0] < aligned.correlations[0] - 0.3

    def test_row_order_does_not_matter(self):
        """Shuffling input rows leaves the correlations unchanged."""
        a, b = _linked_pair()
        forward = run_cca(_matrix(a, 2017), _matrix(b, 2022))
        reordered = run_cca(
            _matrix(a, 2017), _matrix(b.sample(fraction=1.0, shuffle=True, seed=9), 2022),
        )
        np.testing.assert_allclose(forward.correlations, reordered.correlations)

    def test_only_common_stations(self):
        """Stations missing from one election are ignored."""
        a, b = _linked_pair(n=60)
        a = a.filter(pl.col("id_bvote") != "1-0")
        b = b.filter(pl.col("id_bvote") != "2-1")
        result = run_cca(_matrix(a, 2017), _matrix(b, 2022))
        assert "1-0" not in result.station_ids
        assert "2-1" not in result.station_ids
        assert len(result.station_ids) == 58
        assert result.station_ids == sorted(result.station_ids)

    def test_no_common_station(self):
        """Disjoint station sets."""
        a, b = _linked_pair(n=20)
        b = b.with_columns(pl.col("id_bvote") + "x")
        with pytest.raises(DegenerateCCAError, match="share no station"):
            run_cca(_matrix(a, 2017), _matrix(b, 2022))

    def test_too_few_shared_stations(self):
        """Fewer shared stations than variables."""
        a, b = _linked_pair(n=40)
        b = b.head(2)
        with pytest.raises(DegenerateCCAError, match="shared stations"):
            run_cca(_matrix(a, 2017), _matrix(b, 2022))


# ── Artifacts ───────────────────────────────────────────────────────────────


class TestArtifacts:
    """Naming and persistence of CCA outputs."""

    def test_artifact_name(self):
        name = cca_artifact_name(
            "presidentielles_2017_1er", "presidentielles_2022_1er", 1, 0.99312,
        )
        assert name == "cca_presidentielles_2017_1er_vs_presidentielles_2022_1er_axis1_r=0.993"

    def test_save(self, tmp_path):
        """Correlations, weights and variates are all written."""
        a, b = _linked_pair()
        result = run_cca(_matrix(a, 2017), _matrix(b, 2022))
        paths = save_cca_artifacts(result, ParquetArtifactWriter(tmp_path), n_axes=2)
        names = [p.name for p in paths]
        assert len(names) == 5
        base = "cca_presidentielles_2017_1er_vs_presidentielles_2022_1er"
        assert names[:3] == [
            f"{base}_summary.parquet",
            f"{base}_weights_left.parquet",
            f"{base}_weights_right.parquet",
        ]
        assert names[3].startswith(f"{base}_axis1_r=")
        variates = pl.read_parquet(paths[3])
        assert variates.columns == ["id_bvote", "variate_a", "variate_b"]
        assert variates.height == 200
