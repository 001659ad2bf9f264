"""
Tests for arrondissement -> region group classification in geography.py.

Run: uv run pytest tests/test_geography.py -v
"""

import pytest

from paris_votes.config import N_ARRONDISSEMENTS, REGION_GROUPS
from paris_votes.geography import (
    arrondissement_from_station,
    classify_arrondissement,
    region_for_station,
)
from paris_votes.models import RegionGroup


class TestPartition:
    """The static table is a total, non-overlapping cover of 1..20."""

    def test_total_and_disjoint(self):
        """Arrondissements 1 to 20 each appear exactly once."""
        listed = [a for arrs in REGION_GROUPS.values() for a in arrs]
        assert sorted(listed) == list(range(1, N_ARRONDISSEMENTS + 1))

    def test_six_named_groups(self):
        """Six named groups, 'Autre' excluded."""
        assert len(REGION_GROUPS) == 6
        assert "Autre" not in REGION_GROUPS

    @pytest.mark.parametrize("arr", range(1, N_ARRONDISSEMENTS + 1))
    def test_every_arrondissement_has_one_group(self, arr):
        group = classify_arrondissement(arr)
        assert group is not RegionGroup.AUTRE
        assert arr in REGION_GROUPS[group.value]


class TestClassifyArrondissement:
    """Arrondissement number to region group."""

    def test_known_groups(self):
        """A sample of arrondissements in each group."""
        assert classify_arrondissement(1) is RegionGroup.CENTRE
        assert classify_arrondissement(7) is RegionGroup.SUD_OUEST
        assert classify_arrondissement(16) is RegionGroup.NORD_OUEST
        assert classify_arrondissement(18) is RegionGroup.NORD
        assert classify_arrondissement(20) is RegionGroup.NORD_EST
        assert classify_arrondissement(13) is RegionGroup.SUD_EST

    @pytest.mark.parametrize("arr", [0, 21, -3, 99, None])
    def test_outside_table_is_autre(self, arr):
        """Numbers outside 1..20 fall back to 'Autre'."""
        assert classify_arrondissement(arr) is RegionGroup.AUTRE


class TestStationIds:
    """Arrondissement parsed from a station id."""

    def test_leading_integer(self):
        """The integer before the dash is the arrondissement."""
        assert arrondissement_from_station("11-23") == 11
        assert arrondissement_from_station(" 5-1") == 5

    @pytest.mark.parametrize("station", ["", "abc", "11", "21-4", "0-1", "x-1", None])
    def test_unparseable(self, station):
        """Ids without a leading integer give None."""
        assert arrondissement_from_station(station) is None

    def test_region_for_station(self):
        assert region_for_station("19-2") is RegionGroup.NORD_EST
        assert region_for_station("bureau-1") is RegionGroup.AUTRE
