"""
CLEANING MODULE FOR THE ANCESTRY → ETHNICITY PIPELINE

Prepares survey extracts for resolution. Ancestry strings are matched exactly
against the census code list, so nothing here rewrites a response that is
present; only missing cells are filled with the census sentinels.

Part of the TRANSFORM stage in the ETL process.

Functions:
    - fill_missing_responses: Fill empty ancestry cells with census sentinels
    - audit_indigenous_status: Count status codes and flag invalid ones
    - audit_ancestry_codes: List responses absent from the code list
    - prepare_survey_data: Complete preparation pipeline
"""

import pandas as pd
from typing import Optional, Set

from ancestry_ethnicity.errors import InvalidIndigenousStatusError, MissingColumnsError
from ancestry_ethnicity.pipeline.transform.reference import (
    INDIGENOUS_RESPONSES,
    NOT_APPLICABLE,
    NOT_STATED,
    SOUTH_SEA_ISLANDER,
    load_ancestry_groups,
)
from ancestry_ethnicity.pipeline.transform.resolver import (
    DEFAULT_ANCESTRY1_COL,
    DEFAULT_ANCESTRY2_COL,
    DEFAULT_STATUS_COL,
    parse_indigenous_status,
)


# CONFIGURATION
SUPPLEMENTARY_CODES: Set[str] = {
    NOT_APPLICABLE,
    NOT_STATED,
    "Inadequately described",
}


def fill_missing_responses(
    df: pd.DataFrame,
    ancestry1_col: str = DEFAULT_ANCESTRY1_COL,
    ancestry2_col: str = DEFAULT_ANCESTRY2_COL,
) -> pd.DataFrame:
    """
    Fill empty ancestry cells with the census sentinels.

    A missing second response means no second response was given
    ("Not applicable"); a missing first response becomes "Not stated".

    Args:
        df (pd.DataFrame): Survey data
        ancestry1_col (str): First ancestry response column
        ancestry2_col (str): Second ancestry response column

    Returns:
        pd.DataFrame: Copy with missing responses filled
    """
    df = df.copy()

    missing_first = int(df[ancestry1_col].isna().sum())
    missing_second = int(df[ancestry2_col].isna().sum())

    df[ancestry1_col] = df[ancestry1_col].fillna(NOT_STATED)
    df[ancestry2_col] = df[ancestry2_col].fillna(NOT_APPLICABLE)

    if missing_first > 0:
        print(f"  → Filled {missing_first} missing first responses with '{NOT_STATED}'")
    if missing_second > 0:
        print(f"  → Filled {missing_second} missing second responses with '{NOT_APPLICABLE}'")

    return df


def audit_indigenous_status(
    df: pd.DataFrame,
    status_col: str = DEFAULT_STATUS_COL,
) -> pd.DataFrame:
    """
    Count rows per Indigenous-status code.

    Invalid codes are reported but left in place; the resolver fails those
    rows individually.

    Returns:
        pd.DataFrame: Columns 'indigenous_status' and 'records'
    """
    parsed = []
    invalid = 0
    for value in df[status_col]:
        try:
            parsed.append(parse_indigenous_status(value).name)
        except InvalidIndigenousStatusError:
            parsed.append("INVALID")
            invalid += 1

    counts = (
        pd.Series(parsed, name="indigenous_status", dtype="object")
        .value_counts()
        .rename_axis("indigenous_status")
        .reset_index(name="records")
    )

    if invalid > 0:
        print(f"  ⚠️ {invalid} records have an invalid Indigenous status")

    return counts


def audit_ancestry_codes(
    df: pd.DataFrame,
    ancestry1_col: str = DEFAULT_ANCESTRY1_COL,
    ancestry2_col: str = DEFAULT_ANCESTRY2_COL,
    ancestry_groups: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """
    Frequency audit of responses that are not in the ancestry code list.

    These responses can still classify (e.g. through the Indigenous-status
    short-circuit) but will fail if they reach the continent fallback.

    Returns:
        pd.DataFrame: Columns 'ancestry' and 'records', most frequent first
    """
    if ancestry_groups is None:
        ancestry_groups = load_ancestry_groups()

    known = set(ancestry_groups["ancestry"]) | INDIGENOUS_RESPONSES | SUPPLEMENTARY_CODES
    known.add(SOUTH_SEA_ISLANDER)

    responses = pd.concat([df[ancestry1_col], df[ancestry2_col]], ignore_index=True).dropna()
    unknown = responses[~responses.isin(known)]

    audit = (
        unknown.value_counts()
        .rename_axis("ancestry")
        .reset_index(name="records")
    )

    if not audit.empty:
        print(f"  ⚠️ {len(audit)} distinct responses are not in the ancestry code list")

    return audit


def prepare_survey_data(
    df: pd.DataFrame,
    ancestry1_col: str = DEFAULT_ANCESTRY1_COL,
    ancestry2_col: str = DEFAULT_ANCESTRY2_COL,
    status_col: str = DEFAULT_STATUS_COL,
) -> pd.DataFrame:
    """
    Complete preparation pipeline for survey extracts.

    Checks the required columns exist, then in order:
    1. Fill missing ancestry responses
    2. Audit Indigenous-status codes
    3. Audit ancestry responses against the code list

    Args:
        df (pd.DataFrame): Raw survey extract

    Returns:
        pd.DataFrame: Prepared survey data (same rows, same index)

    Example:
        >>> raw_df = pd.read_csv("survey.csv", dtype=str)
        >>> prepared = prepare_survey_data(raw_df)
    """
    print("\n[PREPARING SURVEY DATA]")

    missing = [c for c in (ancestry1_col, ancestry2_col, status_col) if c not in df.columns]
    if missing:
        raise MissingColumnsError(missing, df.columns)

    if df.empty:
        print("  ⚠️ No data to prepare")
        return df.copy()

    print("Step 1: Filling missing responses...")
    df = fill_missing_responses(df, ancestry1_col, ancestry2_col)

    print("Step 2: Auditing Indigenous status codes...")
    status_counts = audit_indigenous_status(df, status_col)
    for status, records in zip(status_counts["indigenous_status"], status_counts["records"]):
        print(f"  → {status}: {records}")

    print("Step 3: Auditing ancestry responses...")
    audit_ancestry_codes(df, ancestry1_col, ancestry2_col)

    print(f"\n✓ Preparation complete: {len(df)} records processed")

    return df
