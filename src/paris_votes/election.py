"""Election metadata from file paths.

Each election type names its files differently:

  presidentielles / regionales:  presidentielles/presidentielles-2022-1er-tour.csv
  europeennes:                   europeennes/europeennes-2019.csv
  legislatives:                  legislatives/2022-01/resultats_Circ_03.csv
  municipales:                   municipales/2020-02/resultats_Ardt_11.csv

For the last two the round and year live in the enclosing directory
(``<year>-01`` = 1st round, ``<year>-02`` = 2nd round) and the file name
carries the constituency (``Circ_NN``) or district (``Ardt_NN``) code.

This module encapsulates those grammars so the pipeline can ask for an
ElectionMeta by election type without string matching of its own.
"""

import re
from dataclasses import dataclass
from pathlib import Path

from paris_votes.errors import MetadataParseError
from paris_votes.models import ElectionMeta, ElectionType, Round


def _round_from_digit(digit: str, path: Path) -> Round:
    try:
        return Round(int(digit))
    except ValueError:
        raise MetadataParseError(path, f"round marker {digit!r} is neither 1 nor 2") from None


@dataclass(frozen=True)
class RoundInFilename:
    """'<type>-<year>-<round><suffix>' in the file stem, e.g. 'regionales-2021-2eme-tour'."""

    pattern: re.Pattern = re.compile(r"^[A-Za-z_]+-(?P<year>\d{4})-(?P<round>\d)(?P<suffix>.*)$")

    def parse(self, path: Path, election_type: ElectionType) -> ElectionMeta:
        m = self.pattern.match(path.stem)
        if not m:
            raise MetadataParseError(path, "expected '<type>-<year>-<round>...' file name")
        return ElectionMeta(
            election_type=election_type,
            year=int(m.group("year")),
            round=_round_from_digit(m.group("round"), path),
        )


@dataclass(frozen=True)
class YearOnly:
    """'<type>-<year>' in the file stem; single-round elections."""

    pattern: re.Pattern = re.compile(r"^[A-Za-z_]+-(?P<year>\d{4})$")

    def parse(self, path: Path, election_type: ElectionType) -> ElectionMeta:
        m = self.pattern.match(path.stem)
        if not m:
            raise MetadataParseError(path, "expected '<type>-<year>' file name")
        return ElectionMeta(election_type=election_type, year=int(m.group("year")))


@dataclass(frozen=True)
class RoundInDirectory:
    """'<year>-0<round>' parent directory plus a '<code>_<NN>' sub-unit in the file name."""

    sub_unit_code: str  # "Circ" or "Ardt"
    directory_pattern: re.Pattern = re.compile(r"^(?P<year>\d{4})-0(?P<round>\d)$")

    @property
    def sub_unit_pattern(self) -> re.Pattern:
        return re.compile(rf"{self.sub_unit_code}_(?P<number>\d{{1,2}})(?!\d)", re.I)

    def parse(self, path: Path, election_type: ElectionType) -> ElectionMeta:
        d = self.directory_pattern.match(path.parent.name)
        if not d:
            raise MetadataParseError(
                path, f"parent directory {path.parent.name!r} is not '<year>-01' or '<year>-02'"
            )
        s = self.sub_unit_pattern.search(path.name)
        if not s:
            raise MetadataParseError(path, f"no '{self.sub_unit_code}_<NN>' code in file name")
        return ElectionMeta(
            election_type=election_type,
            year=int(d.group("year")),
            round=_round_from_digit(d.group("round"), path),
            sub_unit=f"{self.sub_unit_code}_{int(s.group('number')):02d}",
        )


GRAMMARS = {
    ElectionType.PRESIDENTIAL: RoundInFilename(),
    ElectionType.REGIONAL: RoundInFilename(),
    ElectionType.EUROPEAN: YearOnly(),
    ElectionType.LEGISLATIVE: RoundInDirectory("Circ"),
    ElectionType.MUNICIPAL: RoundInDirectory("Ardt"),
}


def parse_election_meta(path: str | Path, election_type: ElectionType | str) -> ElectionMeta:
    """Derive the ElectionMeta of one raw file from its path.

    Accepts the election type as an enum member or its directory name
    ('legislatives', ...). Raises MetadataParseError when the path does not
    follow the grammar of that type.
    """
    path = Path(path)
    if not isinstance(election_type, ElectionType):
        try:
            election_type = ElectionType(election_type)
        except ValueError:
            raise MetadataParseError(path, f"unknown election type {election_type!r}") from None
    return GRAMMARS[election_type].parse(path, election_type)
