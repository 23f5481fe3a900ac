"""
ETHNICITY RESOLVER

Classifies one respondent from two ancestry responses and an Indigenous-status
code. The classification is an ordered list of rules; each rule takes
(ancestry1, ancestry2, status) and returns a label or None, and the first
label returned wins. The order of RULES is the classification contract:

    1. indigenous_status        Indigenous status 2/3/4 short-circuits
    2. indigenous_ancestry      policy-dependent (exclude / reclassify)
    3. south_sea_islander       Australian South Sea Islander in either response
    4. single_response          Anglo-Celtic cluster, Eurasian, or pass-through
    5. australian_new_zealander national-identity dilution
    6. american_canadian_south_african
    7. region_priority          specific ethnic group over broader nationality
    8. pair_override            five hard-coded pairs
    9. continent_synthesis      "Multiethnic <continent>[-<continent>]"

Part of the TRANSFORM stage.

Functions:
    - resolve_ethnicity: Classify one record under a policy
    - add_ethnicity_column: Classify every row of a DataFrame
    - drop_unresolved: Remove rows carrying the UNRESOLVED marker
"""

from collections import Counter
from enum import Enum, IntEnum
from functools import lru_cache
from typing import Callable, Dict, List, Optional, Tuple

import pandas as pd

from ancestry_ethnicity.errors import (
    InvalidIndigenousStatusError,
    MissingColumnsError,
    UnmappedAncestryError,
)
from ancestry_ethnicity.pipeline.transform.continents import (
    ContinentMapper,
    default_mapper,
    multiethnic_label,
)
from ancestry_ethnicity.pipeline.transform.reference import (
    AMERICAN_CANADIAN_SOUTH_AFRICAN,
    ANGLO_CELTIC,
    ANGLO_CELTIC_RESPONSES,
    AUSTRALIAN_ABORIGINAL,
    AUSTRALIAN_NEW_ZEALANDER,
    BOTH_INDIGENOUS,
    EURASIAN,
    INDIGENOUS_RESPONSES,
    NOT_APPLICABLE,
    PAIR_OVERRIDES,
    REGION_PRIORITY_PAIRS,
    SOUTH_SEA_ISLANDER,
    TORRES_STRAIT_ISLANDER,
    UNRESOLVED,
    pair_key,
)


# CONFIGURATION
DEFAULT_ANCESTRY1_COL = "ancestry1"
DEFAULT_ANCESTRY2_COL = "ancestry2"
DEFAULT_STATUS_COL = "indigenous_status"
DEFAULT_OUTPUT_COL = "ethnicity"

Rule = Callable[[str, str, "IndigenousStatus"], Optional[str]]


class IndigenousStatus(IntEnum):
    NON_INDIGENOUS = 1
    ABORIGINAL = 2
    TORRES_STRAIT_ISLANDER = 3
    BOTH = 4


class ResolverPolicy(str, Enum):
    """How to treat Indigenous ancestry from non-Indigenous-identifying respondents."""

    EXCLUDE = "exclude"
    PRIORITIZE_INDIGENOUS = "reclassify-prioritize-indigenous"
    PRIORITIZE_OTHER = "reclassify-prioritize-other"


INDIGENOUS_STATUS_LABELS = {
    IndigenousStatus.ABORIGINAL: AUSTRALIAN_ABORIGINAL,
    IndigenousStatus.TORRES_STRAIT_ISLANDER: TORRES_STRAIT_ISLANDER,
    IndigenousStatus.BOTH: BOTH_INDIGENOUS,
}


def parse_indigenous_status(value) -> IndigenousStatus:
    """
    Convert a raw status value (int, float or numeric string) to IndigenousStatus.

    Strings are parsed as numbers, so "1" and "1.0" are both accepted.

    Raises:
        InvalidIndigenousStatusError: for missing, boolean, non-integral or
            out-of-range values
    """
    if isinstance(value, IndigenousStatus):
        return value
    if isinstance(value, bool):
        raise InvalidIndigenousStatusError(value)

    number = value
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            raise InvalidIndigenousStatusError(value) from None
    if isinstance(number, float) and not number.is_integer():
        raise InvalidIndigenousStatusError(value)

    try:
        return IndigenousStatus(int(number))
    except (TypeError, ValueError):
        raise InvalidIndigenousStatusError(value) from None


def is_single_response(ancestry2: str) -> bool:
    return ancestry2 == NOT_APPLICABLE


# ==================== RULES ====================

def indigenous_status_rule(ancestry1, ancestry2, status) -> Optional[str]:
    return INDIGENOUS_STATUS_LABELS.get(status)


def exclude_indigenous_ancestry(ancestry1, ancestry2, status) -> Optional[str]:
    if ancestry1 in INDIGENOUS_RESPONSES or ancestry2 in INDIGENOUS_RESPONSES:
        return UNRESOLVED
    return None


def _indigenous_responses(ancestry1, ancestry2) -> List[str]:
    return [r for r in (ancestry1, ancestry2) if r in INDIGENOUS_RESPONSES]


def prioritize_indigenous_ancestry(ancestry1, ancestry2, status) -> Optional[str]:
    indigenous = _indigenous_responses(ancestry1, ancestry2)
    if not indigenous:
        return None
    if len(indigenous) == 2 and indigenous[0] != indigenous[1]:
        return BOTH_INDIGENOUS
    return indigenous[0]


def prioritize_other_ancestry(ancestry1, ancestry2, status) -> Optional[str]:
    indigenous = _indigenous_responses(ancestry1, ancestry2)
    if not indigenous:
        return None
    if len(indigenous) == 2:
        return BOTH_INDIGENOUS if indigenous[0] != indigenous[1] else indigenous[0]

    other = ancestry2 if ancestry1 in INDIGENOUS_RESPONSES else ancestry1
    if is_single_response(other):
        # nothing else was reported
        return indigenous[0]
    return other


INDIGENOUS_ANCESTRY_RULES: Dict[ResolverPolicy, Rule] = {
    ResolverPolicy.EXCLUDE: exclude_indigenous_ancestry,
    ResolverPolicy.PRIORITIZE_INDIGENOUS: prioritize_indigenous_ancestry,
    ResolverPolicy.PRIORITIZE_OTHER: prioritize_other_ancestry,
}


def south_sea_islander_rule(ancestry1, ancestry2, status) -> Optional[str]:
    if SOUTH_SEA_ISLANDER in (ancestry1, ancestry2):
        return SOUTH_SEA_ISLANDER
    return None


def single_response_rule(ancestry1, ancestry2, status) -> Optional[str]:
    if not is_single_response(ancestry2):
        return None
    if ancestry1 in ANGLO_CELTIC_RESPONSES:
        return ANGLO_CELTIC
    if ancestry1 == EURASIAN:
        return "Multiethnic Asian-European"
    return ancestry1


def _dilute(ancestry1, ancestry2, identities) -> Tuple[bool, Optional[str]]:
    """(both present, the non-identity response when exactly one is present)."""
    first, second = ancestry1 in identities, ancestry2 in identities
    if first and second:
        return True, None
    if first:
        return False, ancestry2
    if second:
        return False, ancestry1
    return False, None


def australian_new_zealander_rule(ancestry1, ancestry2, status) -> Optional[str]:
    both, other = _dilute(ancestry1, ancestry2, AUSTRALIAN_NEW_ZEALANDER)
    return ANGLO_CELTIC if both else other


def american_canadian_south_african_rule(ancestry1, ancestry2, status) -> Optional[str]:
    # two of these together falls through to later rules
    both, other = _dilute(ancestry1, ancestry2, AMERICAN_CANADIAN_SOUTH_AFRICAN)
    return other


def region_priority_rule(ancestry1, ancestry2, status) -> Optional[str]:
    for specific, broader in REGION_PRIORITY_PAIRS.values():
        if ancestry1 in specific and ancestry2 in broader:
            return ancestry1
        if ancestry2 in specific and ancestry1 in broader:
            return ancestry2
    return None


def pair_override_rule(ancestry1, ancestry2, status) -> Optional[str]:
    if not (isinstance(ancestry1, str) and isinstance(ancestry2, str)):
        return None
    return PAIR_OVERRIDES.get(pair_key(ancestry1, ancestry2))


def continent_synthesis_rule(ancestry1, ancestry2, status, mapper=None) -> str:
    mapper = mapper or default_mapper()
    return multiethnic_label(mapper.lookup(ancestry1), mapper.lookup(ancestry2))


# ==================== RESOLVER ====================

class EthnicityResolver:
    """One resolver, parameterised by a ResolverPolicy chosen at construction."""

    def __init__(
        self,
        policy: ResolverPolicy = ResolverPolicy.EXCLUDE,
        mapper: Optional[ContinentMapper] = None,
    ):
        self.policy = ResolverPolicy(policy)
        self.mapper = mapper or default_mapper()

        def continent_synthesis(ancestry1, ancestry2, status):
            return continent_synthesis_rule(ancestry1, ancestry2, status, self.mapper)

        self.rules: List[Tuple[str, Rule]] = [
            ("indigenous_status", indigenous_status_rule),
            ("indigenous_ancestry", INDIGENOUS_ANCESTRY_RULES[self.policy]),
            ("south_sea_islander", south_sea_islander_rule),
            ("single_response", single_response_rule),
            ("australian_new_zealander", australian_new_zealander_rule),
            ("american_canadian_south_african", american_canadian_south_african_rule),
            ("region_priority", region_priority_rule),
            ("pair_override", pair_override_rule),
            ("continent_synthesis", continent_synthesis),
        ]

    def __repr__(self) -> str:
        return f"EthnicityResolver(policy={self.policy.value!r})"

    def resolve_with_rule(self, ancestry1, ancestry2, status) -> Tuple[str, str]:
        """
        Classify one record and report which rule decided it.

        Returns:
            Tuple[str, str]: (label, rule name)

        Raises:
            InvalidIndigenousStatusError: status is not 1-4
            UnmappedAncestryError: a response reached continent synthesis
                without a continent group
        """
        status = parse_indigenous_status(status)
        *ordered, (fallback_name, fallback) = self.rules
        for name, rule in ordered:
            label = rule(ancestry1, ancestry2, status)
            if label is not None:
                return label, name
        return fallback(ancestry1, ancestry2, status), fallback_name

    def resolve(self, ancestry1, ancestry2, status) -> str:
        return self.resolve_with_rule(ancestry1, ancestry2, status)[0]


@lru_cache(maxsize=None)
def get_resolver(policy: ResolverPolicy = ResolverPolicy.EXCLUDE) -> EthnicityResolver:
    return EthnicityResolver(ResolverPolicy(policy))


def resolve_ethnicity(
    ancestry1: str,
    ancestry2: str,
    indigenous_status,
    policy: ResolverPolicy = ResolverPolicy.EXCLUDE,
) -> str:
    """
    Classify one respondent.

    Args:
        ancestry1 (str): First ancestry response
        ancestry2 (str): Second ancestry response, or "Not applicable"
        indigenous_status: Status code 1-4 (int, numeric string or IndigenousStatus)
        policy (ResolverPolicy): Treatment of Indigenous ancestry responses
            from non-Indigenous-identifying respondents

    Returns:
        str: Ethnicity label, or UNRESOLVED under the exclude policy

    Examples:
        >>> resolve_ethnicity("German", "Japanese", 1)
        'Multiethnic Asian-European'
        >>> resolve_ethnicity("Indian", "Fijian", 1)
        'Fijian Indian'
    """
    return get_resolver(policy).resolve(ancestry1, ancestry2, indigenous_status)


# ==================== DATASET LEVEL ====================

class ResolutionReport:
    """Track and report on resolution outcomes."""

    def __init__(self):
        self.total_records = 0
        self.unresolved_records = 0
        self.rule_counts = Counter()
        self.failures = []

    def add_result(self, label: str, rule: str):
        self.total_records += 1
        self.rule_counts[rule] += 1
        if label == UNRESOLVED:
            self.unresolved_records += 1

    def add_failure(self, index, ancestry1, ancestry2, status, reason: str):
        self.total_records += 1
        self.failures.append({
            "row": index,
            "ancestry1": ancestry1,
            "ancestry2": ancestry2,
            "indigenous_status": status,
            "reason": reason,
        })

    @property
    def resolved_records(self) -> int:
        return self.total_records - self.unresolved_records - len(self.failures)

    def get_resolution_rate(self) -> float:
        """Percentage of records given an ethnicity label."""
        if self.total_records == 0:
            return 0.0
        return (self.resolved_records / self.total_records) * 100

    def failures_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            self.failures,
            columns=["row", "ancestry1", "ancestry2", "indigenous_status", "reason"],
        )

    def generate_report(self) -> str:
        """Generate formatted resolution report."""
        report = ["\n" + "="*60]
        report.append("ETHNICITY RESOLUTION REPORT")
        report.append("="*60)

        report.append("\n[RESOLUTION STATISTICS]")
        report.append(f"  Total records: {self.total_records}")
        report.append(f"  Resolved: {self.resolved_records}")
        report.append(f"  Unresolved (excluded): {self.unresolved_records}")
        report.append(f"  Failed: {len(self.failures)}")
        report.append(f"  Resolution rate: {self.get_resolution_rate():.1f}%")

        report.append("\n[DECIDING RULE]")
        for rule, count in self.rule_counts.most_common():
            report.append(f"  {rule}: {count}")

        if self.failures:
            report.append(f"\n[FAILED RECORDS] ({len(self.failures)} total)")
            for failure in self.failures[:10]:
                report.append(f"    - row {failure['row']}: {failure['reason']}")
            if len(self.failures) > 10:
                report.append(f"    ... and {len(self.failures) - 10} more")

        report.append("="*60 + "\n")
        return "\n".join(report)


def add_ethnicity_column(
    df: pd.DataFrame,
    policy: ResolverPolicy = ResolverPolicy.EXCLUDE,
    ancestry1_col: str = DEFAULT_ANCESTRY1_COL,
    ancestry2_col: str = DEFAULT_ANCESTRY2_COL,
    status_col: str = DEFAULT_STATUS_COL,
    output_col: str = DEFAULT_OUTPUT_COL,
    errors: str = "raise",
    report: Optional[ResolutionReport] = None,
) -> pd.DataFrame:
    """
    Resolve an ethnicity label for every row.

    Args:
        df (pd.DataFrame): Survey data, one row per respondent
        policy (ResolverPolicy): Resolver policy
        ancestry1_col, ancestry2_col, status_col (str): Input column names
        output_col (str): Name of the added label column
        errors (str): 'raise' stops at the first failing row; 'flag' leaves a
            missing label on failing rows and records them in the report
        report (ResolutionReport, optional): Collects outcome statistics

    Returns:
        pd.DataFrame: Copy of df with output_col added; index and row order kept
    """
    if errors not in ("raise", "flag"):
        raise ValueError(f"errors must be 'raise' or 'flag', got {errors!r}")

    missing = [c for c in (ancestry1_col, ancestry2_col, status_col) if c not in df.columns]
    if missing:
        raise MissingColumnsError(missing, df.columns)

    resolver = get_resolver(ResolverPolicy(policy))
    if report is None:
        report = ResolutionReport()

    labels = []
    for index, ancestry1, ancestry2, status in zip(
        df.index, df[ancestry1_col], df[ancestry2_col], df[status_col]
    ):
        try:
            label, rule = resolver.resolve_with_rule(ancestry1, ancestry2, status)
        except (UnmappedAncestryError, InvalidIndigenousStatusError) as e:
            if errors == "raise":
                raise
            report.add_failure(index, ancestry1, ancestry2, status, str(e))
            labels.append(pd.NA)
            continue
        report.add_result(label, rule)
        labels.append(label)

    out = df.copy()
    out[output_col] = pd.Series(labels, index=df.index, dtype="object")

    print(f"  → Resolved {report.resolved_records}/{report.total_records} records "
          f"(policy: {resolver.policy.value})")
    if report.unresolved_records:
        print(f"  → {report.unresolved_records} records marked '{UNRESOLVED}'")
    if report.failures:
        print(f"  ⚠️ {len(report.failures)} records could not be classified")

    return out


def drop_unresolved(df: pd.DataFrame, column: str = DEFAULT_OUTPUT_COL) -> pd.DataFrame:
    """Remove rows carrying the UNRESOLVED marker."""
    mask = df[column].isin([UNRESOLVED])
    dropped = int(mask.sum())
    if dropped:
        print(f"  → Dropped {dropped} '{UNRESOLVED}' records")
    return df[~mask].copy()
