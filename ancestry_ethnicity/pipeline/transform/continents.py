"""
CONTINENT GROUPS

Maps a single ancestry response to one of nine continent/aggregate groups.
Used only by the resolver's fallback branch to synthesise "Multiethnic" labels.

The mapper is not total: Indigenous responses, "Australian South
Sea Islander" and the supplementary codes have no continent group, because
earlier rules must have dealt with them before the fallback is reached.
"""

from enum import Enum
from functools import lru_cache
from types import MappingProxyType
from typing import Optional

import pandas as pd

from ancestry_ethnicity.errors import UnmappedAncestryError
from ancestry_ethnicity.pipeline.transform.reference import (
    MULTIETHNIC_PREFIX,
    load_ancestry_groups,
)


class ContinentGroup(str, Enum):
    """Continent/aggregate groups; members are declared in canonical order."""

    AFRICAN = "African"
    ASIAN = "Asian"
    EUROPEAN = "European"
    LATIN_AMERICAN = "Latin American"
    MAORI = "Maori"
    MIDDLE_EASTERN = "Middle Eastern"
    NORTH_AFRICAN = "North African"
    NORTH_AMERICAN = "North American"
    PASIFIKA = "Pasifika"

    def __str__(self) -> str:
        return self.value


def multiethnic_label(first: ContinentGroup, second: ContinentGroup) -> str:
    """
    Build a "Multiethnic" label from two continent groups.

    Order-independent: the pair is sorted by code-point order of the group
    names, so ("European", "Asian") gives "Multiethnic Asian-European".
    """
    if first == second:
        return f"{MULTIETHNIC_PREFIX} {ContinentGroup(first).value}"
    low, high = sorted((ContinentGroup(first).value, ContinentGroup(second).value))
    return f"{MULTIETHNIC_PREFIX} {low}-{high}"


class ContinentMapper:
    """Static lookup from ancestry response to ContinentGroup."""

    def __init__(self, ancestry_groups: Optional[pd.DataFrame] = None):
        """
        Args:
            ancestry_groups (pd.DataFrame, optional): ancestry table with
                'ancestry' and 'continent_group' columns; defaults to the
                shipped reference table
        """
        if ancestry_groups is None:
            ancestry_groups = load_ancestry_groups()

        known = {group.value for group in ContinentGroup}
        rows = ancestry_groups[ancestry_groups["continent_group"].isin(known)]

        self._lookup = MappingProxyType({
            ancestry: ContinentGroup(continent)
            for ancestry, continent in zip(rows["ancestry"], rows["continent_group"])
        })

    def __contains__(self, ancestry) -> bool:
        return ancestry in self._lookup

    def __len__(self) -> int:
        return len(self._lookup)

    @property
    def responses(self):
        return self._lookup.keys()

    def get(self, ancestry) -> Optional[ContinentGroup]:
        return self._lookup.get(ancestry)

    def lookup(self, ancestry) -> ContinentGroup:
        """Continent group for one response; raises UnmappedAncestryError on a miss."""
        try:
            return self._lookup[ancestry]
        except (KeyError, TypeError):
            raise UnmappedAncestryError(ancestry) from None


@lru_cache(maxsize=1)
def default_mapper() -> ContinentMapper:
    return ContinentMapper()


def continent_of(ancestry: str) -> ContinentGroup:
    return default_mapper().lookup(ancestry)
