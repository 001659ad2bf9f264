"""Arrondissement -> region group classification."""

import re

from paris_votes.config import N_ARRONDISSEMENTS, REGION_GROUPS
from paris_votes.models import RegionGroup

_ARRONDISSEMENT_TO_GROUP: dict[int, RegionGroup] = {
    arr: RegionGroup(group) for group, arrs in REGION_GROUPS.items() for arr in arrs
}

_LEADING_INT_RE = re.compile(r"^\s*(\d+)\s*-")


def classify_arrondissement(arrondissement: int | None) -> RegionGroup:
    """Map an arrondissement number to its region group. Never fails: anything
    outside the partition table is Autre."""
    if arrondissement is None:
        return RegionGroup.AUTRE
    return _ARRONDISSEMENT_TO_GROUP.get(arrondissement, RegionGroup.AUTRE)


def arrondissement_from_station(station_id: str | None) -> int | None:
    """Leading integer of a '<arrondissement>-<sequence>' id, or None if it is
    missing or outside 1..20."""
    if station_id is None:
        return None
    m = _LEADING_INT_RE.match(str(station_id))
    if not m:
        return None
    arr = int(m.group(1))
    if not 1 <= arr <= N_ARRONDISSEMENTS:
        return None
    return arr


def region_for_station(station_id: str | None) -> RegionGroup:
    return classify_arrondissement(arrondissement_from_station(station_id))
