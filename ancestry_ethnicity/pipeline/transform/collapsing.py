"""
GRANULARITY MODULE FOR ETHNICITY LABELS

Collapses rare ethnicity labels upward through the category hierarchy so that
only "high-risk" categories stay visible at full granularity.

Part of the TRANSFORM stage in the ETL process.

Functions:
    - annotate_hierarchy: Add intermediate and continent group columns
    - collapse_granularity: Conditional collapse driven by a high-risk set
    - map_to_level: Unconditional relabelling to one granularity level
"""

from typing import Iterable, Optional

import pandas as pd

from ancestry_ethnicity.errors import MissingColumnsError, UnmappedEthnicityError
from ancestry_ethnicity.pipeline.transform.hierarchy import (
    GranularityLevel,
    collapsed_label,
    collapsed_labels,
    load_hierarchy,
)
from ancestry_ethnicity.pipeline.transform.reference import UNRESOLVED


# CONFIGURATION
DEFAULT_ETHNICITY_COL = "ethnicity"
DEFAULT_CONTINENT_COL = "continent_group"
DEFAULT_INTERMEDIATE_COL = "intermediate_group"

COLLAPSED_TO_CONTINENT = "collapsed to continent"
KEPT_SINGLE_GROUP = "high-risk kept, rest collapsed to continent"
SPLIT_BY_INTERMEDIATE = "split by intermediate group"


class CollapseReport:
    """Track and report what happened in each continent partition."""

    def __init__(self):
        self.partitions = []
        self.passthrough_records = 0
        self.unknown_high_risk = []

    def add_partition(self, continent: str, decision: str, records: int,
                      high_risk_records: int, rewritten: int):
        self.partitions.append({
            "continent_group": continent,
            "decision": decision,
            "records": records,
            "high_risk_records": high_risk_records,
            "rewritten": rewritten,
        })

    @property
    def total_rewritten(self) -> int:
        return sum(p["rewritten"] for p in self.partitions)

    def partitions_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            self.partitions,
            columns=["continent_group", "decision", "records", "high_risk_records", "rewritten"],
        )

    def generate_report(self) -> str:
        report = ["\n" + "="*60]
        report.append("GRANULARITY COLLAPSE REPORT")
        report.append("="*60)

        report.append("\n[PARTITIONS]")
        for p in self.partitions:
            report.append(
                f"  {p['continent_group']}: {p['decision']} "
                f"({p['high_risk_records']}/{p['records']} high-risk, {p['rewritten']} rewritten)"
            )

        report.append("\n[TOTALS]")
        report.append(f"  Labels rewritten: {self.total_rewritten}")
        report.append(f"  Records passed through unchanged: {self.passthrough_records}")

        if self.unknown_high_risk:
            report.append(f"\n[HIGH-RISK LABELS NOT IN HIERARCHY] ({len(self.unknown_high_risk)} total)")
            for label in self.unknown_high_risk:
                report.append(f"    - {label}")

        report.append("="*60 + "\n")
        return "\n".join(report)


def _passthrough_mask(labels: pd.Series, hierarchy: pd.DataFrame) -> pd.Series:
    """Rows the collapser never touches: missing, UNRESOLVED or already collapsed."""
    return labels.isna() | labels.isin([UNRESOLVED]) | labels.isin(collapsed_labels(hierarchy))


def _group_columns(
    df: pd.DataFrame,
    labels: pd.Series,
    active: pd.Series,
    continent_col: str,
    intermediate_col: str,
    hierarchy: pd.DataFrame,
):
    """
    Continent and intermediate group per row, from df when present else the hierarchy.

    Every active label must be in the hierarchy either way.
    """
    lookup = hierarchy.set_index("ethnicity")
    unmapped = set(labels[active]) - set(lookup.index)
    if unmapped:
        raise UnmappedEthnicityError(unmapped)

    if continent_col in df.columns and intermediate_col in df.columns:
        continents = df[continent_col]
        intermediates = df[intermediate_col]
    else:
        continents = labels.map(lookup["continent_group"])
        intermediates = labels.map(lookup["intermediate_group"])

    ungrouped = active & (continents.isna() | intermediates.isna())
    if ungrouped.any():
        raise UnmappedEthnicityError(labels[ungrouped])

    return continents, intermediates


def annotate_hierarchy(
    df: pd.DataFrame,
    ethnicity_col: str = DEFAULT_ETHNICITY_COL,
    continent_col: str = DEFAULT_CONTINENT_COL,
    intermediate_col: str = DEFAULT_INTERMEDIATE_COL,
    hierarchy: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """
    Add intermediate and continent group columns for each ethnicity label.

    Missing, UNRESOLVED and already-collapsed labels get missing groups.

    Raises:
        UnmappedEthnicityError: any other label absent from the hierarchy
    """
    if ethnicity_col not in df.columns:
        raise MissingColumnsError([ethnicity_col], df.columns)
    if hierarchy is None:
        hierarchy = load_hierarchy()

    labels = df[ethnicity_col]
    active = ~_passthrough_mask(labels, hierarchy)
    lookup = hierarchy.set_index("ethnicity")

    unmapped = set(labels[active]) - set(lookup.index)
    if unmapped:
        raise UnmappedEthnicityError(unmapped)

    out = df.copy()
    out[intermediate_col] = labels.map(lookup["intermediate_group"])
    out[continent_col] = labels.map(lookup["continent_group"])
    return out


def collapse_granularity(
    df: pd.DataFrame,
    high_risk: Iterable[str],
    ethnicity_col: str = DEFAULT_ETHNICITY_COL,
    continent_col: str = DEFAULT_CONTINENT_COL,
    intermediate_col: str = DEFAULT_INTERMEDIATE_COL,
    hierarchy: Optional[pd.DataFrame] = None,
    report: Optional[CollapseReport] = None,
) -> pd.DataFrame:
    """
    Collapse non-high-risk labels to "other- <group>" per continent partition.

    For each continent group:
        - No high-risk rows: every label becomes "other- <continent>"
        - High-risk rows in one intermediate group: high-risk rows are kept,
          every other row becomes "other- <continent>"
        - High-risk rows in two or more intermediate groups: within each
          intermediate group holding a high-risk row, the other rows become
          "other- <intermediate>"; intermediate groups without a high-risk
          row are left unchanged

    Missing, UNRESOLVED and already-collapsed labels pass through unchanged,
    which makes repeated application a no-op.

    Args:
        df (pd.DataFrame): Labelled data
        high_risk (Iterable[str]): Labels to keep at full granularity
        ethnicity_col (str): Label column to rewrite
        continent_col, intermediate_col (str): Group columns; used when both
            exist in df, otherwise looked up in the hierarchy
        hierarchy (pd.DataFrame, optional): Defaults to the shipped hierarchy
        report (CollapseReport, optional): Collects per-partition outcomes

    Returns:
        pd.DataFrame: Copy of df with only ethnicity_col rewritten

    Raises:
        UnmappedEthnicityError: a label has no hierarchy entry (raised before
            any label is rewritten)
    """
    print("\n[COLLAPSING GRANULARITY]")

    if ethnicity_col not in df.columns:
        raise MissingColumnsError([ethnicity_col], df.columns)
    if hierarchy is None:
        hierarchy = load_hierarchy()
    if report is None:
        report = CollapseReport()

    high_risk = frozenset(high_risk)
    report.unknown_high_risk = sorted(high_risk - set(hierarchy["ethnicity"]))
    if report.unknown_high_risk:
        print(f"  ⚠️ {len(report.unknown_high_risk)} high-risk label(s) not in the hierarchy: "
              f"{', '.join(report.unknown_high_risk)}")

    labels = df[ethnicity_col]
    passthrough = _passthrough_mask(labels, hierarchy)
    continents, intermediates = _group_columns(
        df, labels, ~passthrough, continent_col, intermediate_col, hierarchy
    )

    # positional working frame so a non-unique index is safe
    work = pd.DataFrame({
        "label": labels.to_numpy(dtype=object),
        "continent": continents.to_numpy(dtype=object),
        "intermediate": intermediates.to_numpy(dtype=object),
        "passthrough": passthrough.to_numpy(dtype=bool),
    })
    work["high_risk"] = work["label"].isin(high_risk)
    new_labels = work["label"].copy()
    report.passthrough_records = int(work["passthrough"].sum())

    active = work[~work["passthrough"]]
    for continent, part in active.groupby("continent", sort=True):
        high = part[part["high_risk"]]

        if high.empty:
            targets = part.index
            new_labels.loc[targets] = collapsed_label(continent)
            decision = COLLAPSED_TO_CONTINENT
            rewritten = len(targets)

        elif high["intermediate"].nunique() == 1:
            targets = part.index[~part["high_risk"]]
            new_labels.loc[targets] = collapsed_label(continent)
            decision = KEPT_SINGLE_GROUP
            rewritten = len(targets)

        else:
            decision = SPLIT_BY_INTERMEDIATE
            rewritten = 0
            for intermediate, sub in part.groupby("intermediate", sort=True):
                if not sub["high_risk"].any():
                    continue
                targets = sub.index[~sub["high_risk"]]
                new_labels.loc[targets] = collapsed_label(intermediate)
                rewritten += len(targets)

        report.add_partition(continent, decision, len(part), len(high), rewritten)
        print(f"  → {continent}: {decision} ({rewritten} rewritten)")

    out = df.copy()
    out[ethnicity_col] = new_labels.to_numpy()

    print(f"  ✓ Collapsed {report.total_rewritten}/{len(out)} labels "
          f"({len(high_risk)} high-risk categories kept)")
    return out


def map_to_level(
    df: pd.DataFrame,
    level: GranularityLevel,
    ethnicity_col: str = DEFAULT_ETHNICITY_COL,
    hierarchy: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """
    Relabel every row at a fixed granularity level.

    Missing, UNRESOLVED and already-collapsed labels pass through unchanged.

    Raises:
        UnmappedEthnicityError: a label has no hierarchy entry
    """
    level = GranularityLevel(level)
    if ethnicity_col not in df.columns:
        raise MissingColumnsError([ethnicity_col], df.columns)
    if level == GranularityLevel.ETHNIC_GROUP:
        return df.copy()
    if hierarchy is None:
        hierarchy = load_hierarchy()

    labels = df[ethnicity_col]
    passthrough = _passthrough_mask(labels, hierarchy)
    lookup = hierarchy.set_index("ethnicity")[level.value]

    unmapped = set(labels[~passthrough]) - set(lookup.index)
    if unmapped:
        raise UnmappedEthnicityError(unmapped)

    out = df.copy()
    out[ethnicity_col] = labels.where(passthrough, labels.map(lookup))
    print(f"  → Mapped {int((~passthrough).sum())} labels to {level.value}")
    return out
