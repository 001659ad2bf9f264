"""
Tests for election metadata parsing in election.py.

Covers the three file-naming grammars (round in file name, year only, round in
directory + sub-unit code), the derived artifact names, and the rejection of
paths that match none of them.

Run: uv run pytest tests/test_election.py -v
"""

from pathlib import Path

import pytest

from paris_votes.election import parse_election_meta
from paris_votes.errors import MetadataParseError
from paris_votes.models import ElectionMeta, ElectionType, Round

# ── Round in file name (presidentielles, regionales) ────────────────────────


class TestRoundInFilename:
    """'<type>-<year>-<round>...' stems."""

    def test_presidential_first_round(self):
        """'1er-tour' in the filename is round 1."""
        meta = parse_election_meta(
            Path("raw/presidentielles/presidentielles-2022-1er-tour.csv"),
            ElectionType.PRESIDENTIAL,
        )
        assert meta.year == 2022
        assert meta.round is Round.FIRST
        assert meta.sub_unit is None

    def test_regional_second_round(self):
        """'2eme-tour' in the filename is round 2."""
        meta = parse_election_meta("regionales/regionales-2021-2eme-tour.csv", "regionales")
        assert meta.election_type is ElectionType.REGIONAL
        assert meta.year == 2021
        assert meta.round is Round.SECOND

    def test_bad_round_digit(self):
        """A round marker other than 1 or 2 is a parse error, not a third round."""
        with pytest.raises(MetadataParseError, match="neither 1 nor 2"):
            parse_election_meta("presidentielles-2022-3eme-tour.csv", ElectionType.PRESIDENTIAL)

    def test_missing_round(self):
        """No round token at all."""
        with pytest.raises(MetadataParseError):
            parse_election_meta("presidentielles-2022.csv", ElectionType.PRESIDENTIAL)


# ── Year only (europeennes) ─────────────────────────────────────────────────


class TestYearOnly:
    """European filenames carry only the year."""

    def test_european(self):
        """Year-only files default to round 1."""
        meta = parse_election_meta("europeennes/europeennes-2019.csv", ElectionType.EUROPEAN)
        assert meta.year == 2019
        assert meta.round is Round.FIRST

    def test_extra_suffix_rejected(self):
        """Anything after the year is not accepted."""
        with pytest.raises(MetadataParseError):
            parse_election_meta("europeennes-2019-1er-tour.csv", ElectionType.EUROPEAN)


# ── Round in directory (legislatives, municipales) ──────────────────────────


class TestRoundInDirectory:
    """Legislative and municipal files: year and round in the directory name."""

    def test_legislative_constituency(self):
        """Constituency code becomes the sub-unit."""
        meta = parse_election_meta(
            "legislatives/2022-01/resultats_Circ_03.csv", ElectionType.LEGISLATIVE,
        )
        assert meta.year == 2022
        assert meta.round is Round.FIRST
        assert meta.sub_unit == "Circ_03"

    def test_municipal_district_second_round(self):
        """Sector files in a round-2 directory."""
        meta = parse_election_meta(
            "municipales/2020-02/resultats_ardt_11.parquet", ElectionType.MUNICIPAL,
        )
        assert meta.round is Round.SECOND
        assert meta.sub_unit == "Ardt_11"

    def test_sub_unit_zero_padded(self):
        """Sub-units keep two digits."""
        meta = parse_election_meta("2017-02/Circ_7.csv", ElectionType.LEGISLATIVE)
        assert meta.sub_unit == "Circ_07"

    def test_bad_directory(self):
        """Directory is not YYYY-RR."""
        with pytest.raises(MetadataParseError, match="parent directory"):
            parse_election_meta("legislatives/2022/Circ_03.csv", ElectionType.LEGISLATIVE)

    def test_missing_sub_unit(self):
        """Filename without a sub-unit code."""
        with pytest.raises(MetadataParseError, match="Circ_<NN>"):
            parse_election_meta("2022-01/resultats.csv", ElectionType.LEGISLATIVE)

    def test_wrong_sub_unit_code(self):
        """A municipal code in a legislative tree is not a constituency."""
        with pytest.raises(MetadataParseError):
            parse_election_meta("2022-01/resultats_Ardt_03.csv", ElectionType.LEGISLATIVE)


# ── parse_election_meta() ───────────────────────────────────────────────────


class TestParseElectionMeta:
    """Dispatch on election type and error reporting."""

    def test_unknown_type(self):
        """Types outside the enum are rejected."""
        with pytest.raises(MetadataParseError, match="unknown election type"):
            parse_election_meta("senatoriales-2020.csv", "senatoriales")

    def test_error_carries_path(self):
        """MetadataParseError names the offending file."""
        with pytest.raises(MetadataParseError) as exc_info:
            parse_election_meta("oops.csv", ElectionType.EUROPEAN)
        assert exc_info.value.path == Path("oops.csv")
        assert "oops.csv" in str(exc_info.value)

    def test_is_value_error(self):
        """Callers that only know ValueError still catch parse failures."""
        with pytest.raises(ValueError):
            parse_election_meta("oops.csv", ElectionType.EUROPEAN)


# ── ElectionMeta naming ─────────────────────────────────────────────────────


class TestElectionMetaNaming:
    """Artifact names and labels derived from metadata."""

    def test_single_file_artifact(self):
        """Single-file elections write directly under the type directory."""
        meta = ElectionMeta(ElectionType.PRESIDENTIAL, 2022, Round.SECOND)
        assert meta.period == "2022_2eme"
        assert meta.output_name == "presidentielles_2022_2eme"
        assert meta.artifact_path == "presidentielles/vote_matrix_2022_2eme"

    def test_sub_unit_artifact(self):
        """Sub-unit elections get their own year/round directory."""
        meta = ElectionMeta(ElectionType.LEGISLATIVE, 2022, Round.FIRST, "Circ_01")
        assert meta.output_name == "legislatives_2022_1er_Circ_01"
        assert meta.artifact_path == "legislatives/2022_1er/vote_matrix_Circ_01"

    def test_label(self):
        meta = ElectionMeta(ElectionType.MUNICIPAL, 2020, Round.FIRST, "Ardt_05")
        assert meta.label == "municipales 2020 (1st round, Ardt_05)"

    def test_has_sub_units(self):
        """Only legislative and municipal elections split by sub-unit."""
        assert ElectionType.LEGISLATIVE.has_sub_units
        assert ElectionType.MUNICIPAL.has_sub_units
        assert not ElectionType.PRESIDENTIAL.has_sub_units
