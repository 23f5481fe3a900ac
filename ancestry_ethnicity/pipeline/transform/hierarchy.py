"""
CATEGORY HIERARCHY

Three nested granularity levels for every label the resolver can produce:

    ethnic group  →  intermediate group  →  continent group

The hierarchy is assembled from three sources:
    1. The ancestry code list (labels passed through unchanged)
    2. FIXED_LABELS (Indigenous labels, Anglo-Celtic, pair overrides, ...)
    3. Generated "Multiethnic" labels, one per continent and per continent pair

Functions:
    - load_hierarchy: Build (and cache) the hierarchy table
    - hierarchy_lookup: Read-only label → (intermediate, continent) mapping
    - producible_labels: Every label the resolver can emit
    - validate_hierarchy: Check coverage and consistency, raising on drift
    - collapsed_labels: The "other- <group>" labels the collapser can write
"""

from enum import Enum
from functools import lru_cache
from itertools import combinations
from types import MappingProxyType
from typing import FrozenSet, List, Optional

import pandas as pd

from ancestry_ethnicity.errors import UnmappedEthnicityError
from ancestry_ethnicity.pipeline.transform.continents import (
    ContinentGroup,
    ContinentMapper,
    multiethnic_label,
)
from ancestry_ethnicity.pipeline.transform.reference import (
    FIXED_LABELS,
    INDIGENOUS_RESPONSES,
    PAIR_OVERRIDES,
    SOUTH_SEA_ISLANDER,
    load_ancestry_groups,
    rule_responses,
)


HIERARCHY_COLUMNS = ["ethnicity", "intermediate_group", "continent_group"]
COLLAPSED_PREFIX = "other- "

MULTIETHNIC_CONTINENT = "Multiethnic"
MULTIETHNIC_WITHIN = "Multiethnic within continent"
MULTIETHNIC_ACROSS = "Multiethnic across continents"


class GranularityLevel(str, Enum):
    ETHNIC_GROUP = "ethnic_group"
    INTERMEDIATE_GROUP = "intermediate_group"
    CONTINENT_GROUP = "continent_group"


def collapsed_label(group: str) -> str:
    return f"{COLLAPSED_PREFIX}{group}"


def multiethnic_rows() -> pd.DataFrame:
    """Hierarchy rows for all 9 single-continent and 36 two-continent labels."""
    rows = [
        {
            "ethnicity": multiethnic_label(group, group),
            "intermediate_group": MULTIETHNIC_WITHIN,
            "continent_group": MULTIETHNIC_CONTINENT,
        }
        for group in ContinentGroup
    ]
    rows += [
        {
            "ethnicity": multiethnic_label(first, second),
            "intermediate_group": MULTIETHNIC_ACROSS,
            "continent_group": MULTIETHNIC_CONTINENT,
        }
        for first, second in combinations(ContinentGroup, 2)
    ]
    return pd.DataFrame(rows, columns=HIERARCHY_COLUMNS)


def build_hierarchy(ancestry_groups: Optional[pd.DataFrame] = None) -> pd.DataFrame:
    """
    Assemble the hierarchy table from its three sources.

    Raises:
        ValueError: if a label appears in more than one source with
            conflicting groups
    """
    if ancestry_groups is None:
        ancestry_groups = load_ancestry_groups()

    ancestry_rows = ancestry_groups.rename(columns={"ancestry": "ethnicity"})
    hierarchy = pd.concat(
        [ancestry_rows[HIERARCHY_COLUMNS], FIXED_LABELS[HIERARCHY_COLUMNS], multiethnic_rows()],
        ignore_index=True,
    ).drop_duplicates()

    conflicting = hierarchy.loc[hierarchy["ethnicity"].duplicated(), "ethnicity"]
    if not conflicting.empty:
        raise ValueError(
            f"Conflicting hierarchy entries for: {', '.join(sorted(conflicting))}"
        )

    return hierarchy.reset_index(drop=True)


@lru_cache(maxsize=1)
def _default_hierarchy() -> pd.DataFrame:
    return build_hierarchy()


def load_hierarchy() -> pd.DataFrame:
    """The shipped hierarchy table (a copy of the cached frame)."""
    return _default_hierarchy().copy()


def hierarchy_lookup(hierarchy: Optional[pd.DataFrame] = None):
    """Read-only mapping label → (intermediate_group, continent_group)."""
    if hierarchy is None:
        hierarchy = _default_hierarchy()
    return MappingProxyType({
        label: (intermediate, continent)
        for label, intermediate, continent in zip(
            hierarchy["ethnicity"],
            hierarchy["intermediate_group"],
            hierarchy["continent_group"],
        )
    })


def collapsed_labels(hierarchy: Optional[pd.DataFrame] = None) -> FrozenSet[str]:
    """Every "other- <group>" label the collapser can write for this hierarchy."""
    if hierarchy is None:
        hierarchy = _default_hierarchy()
    groups = set(hierarchy["intermediate_group"]) | set(hierarchy["continent_group"])
    return frozenset(collapsed_label(group) for group in groups)


def producible_labels(ancestry_groups: Optional[pd.DataFrame] = None) -> FrozenSet[str]:
    """
    Every ethnicity label the resolver can produce (excluding UNRESOLVED).

    Any ancestry response can be passed through by the single-response,
    dilution or reclassification rules, so the whole code list counts.
    """
    if ancestry_groups is None:
        ancestry_groups = load_ancestry_groups()

    labels = set(ancestry_groups["ancestry"])
    labels |= set(FIXED_LABELS["ethnicity"])
    labels |= set(PAIR_OVERRIDES.values())
    labels |= INDIGENOUS_RESPONSES
    labels.add(SOUTH_SEA_ISLANDER)
    labels |= set(multiethnic_rows()["ethnicity"])
    return frozenset(labels)


def validate_hierarchy(
    hierarchy: Optional[pd.DataFrame] = None,
    mapper: Optional[ContinentMapper] = None,
) -> List[str]:
    """
    Check the hierarchy against the resolver's reference data.

    Checks:
        1. Every producible label has a hierarchy entry
        2. Every ancestry named by a rule set has a hierarchy entry
        3. Each ContinentMapper entry agrees with the hierarchy's continent

    Returns:
        List[str]: Human-readable notes for the QA report (empty when clean)

    Raises:
        UnmappedEthnicityError: if any producible label is missing
        ValueError: if continent assignments disagree
    """
    if hierarchy is None:
        hierarchy = _default_hierarchy()
    if mapper is None:
        mapper = ContinentMapper()

    lookup = hierarchy_lookup(hierarchy)

    missing = (producible_labels() | set(rule_responses())) - set(lookup)
    if missing:
        raise UnmappedEthnicityError(missing)

    disagreements = [
        f"{ancestry}: mapper={mapper.lookup(ancestry).value}, hierarchy={lookup[ancestry][1]}"
        for ancestry in sorted(mapper.responses)
        if lookup[ancestry][1] != mapper.lookup(ancestry).value
    ]
    if disagreements:
        raise ValueError("Continent assignments disagree: " + "; ".join(disagreements))

    notes = []
    unused = sorted(set(lookup) - producible_labels())
    if unused:
        notes.append(f"{len(unused)} hierarchy label(s) cannot be produced by the resolver")
    return notes
