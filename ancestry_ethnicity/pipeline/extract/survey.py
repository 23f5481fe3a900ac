"""
SURVEY EXTRACT LOADER
Reads a survey extract holding two ancestry responses and an Indigenous-status
code per respondent.
"""

import os
import pandas as pd
from typing import Optional

from ancestry_ethnicity.errors import MissingColumnsError
from ancestry_ethnicity.pipeline.transform.resolver import (
    DEFAULT_ANCESTRY1_COL,
    DEFAULT_ANCESTRY2_COL,
    DEFAULT_STATUS_COL,
)


class SurveyQASignals:
    """Track QA signals for survey extraction."""

    def __init__(self):
        self.signals = {
            "records_loaded": 0,
            "missing_ancestry1": 0,
            "missing_ancestry2": 0,
            "missing_indigenous_status": 0,
        }

    def update(self, key: str, value):
        self.signals[key] = value

    def increment(self, key: str, amount: int = 1):
        self.signals[key] = self.signals.get(key, 0) + amount

    def report(self) -> str:
        lines = ["\n" + "="*60]
        lines.append("QA SIGNALS - SURVEY EXTRACT")
        lines.append("="*60)
        for key, value in self.signals.items():
            lines.append(f"  {key}: {value}")
        lines.append("="*60 + "\n")
        return "\n".join(lines)


def load_survey_extract(
    path: str,
    ancestry1_col: str = DEFAULT_ANCESTRY1_COL,
    ancestry2_col: str = DEFAULT_ANCESTRY2_COL,
    status_col: str = DEFAULT_STATUS_COL,
    qa_signals: Optional[SurveyQASignals] = None,
) -> pd.DataFrame:
    """
    Load a survey extract CSV.

    All columns are read as strings and only empty cells count as missing,
    so census labels such as "Not applicable" arrive untouched.

    Args:
        path (str): CSV file path
        ancestry1_col, ancestry2_col, status_col (str): Required column names
        qa_signals (SurveyQASignals, optional): Collects extraction signals

    Returns:
        pd.DataFrame: Raw survey records

    Raises:
        FileNotFoundError: path does not exist
        MissingColumnsError: a required column is absent
    """
    if qa_signals is None:
        qa_signals = SurveyQASignals()

    if not os.path.exists(path):
        raise FileNotFoundError(f"Survey extract not found: {path}")

    qa_signals.update("source_file", str(path))

    survey_df = pd.read_csv(path, dtype=str, keep_default_na=False, na_values=[""])

    required = [ancestry1_col, ancestry2_col, status_col]
    missing = [c for c in required if c not in survey_df.columns]
    if missing:
        raise MissingColumnsError(missing, survey_df.columns)

    qa_signals.update("records_loaded", len(survey_df))
    qa_signals.update("missing_ancestry1", int(survey_df[ancestry1_col].isna().sum()))
    qa_signals.update("missing_ancestry2", int(survey_df[ancestry2_col].isna().sum()))
    qa_signals.update("missing_indigenous_status", int(survey_df[status_col].isna().sum()))
    qa_signals.update(
        "indigenous_status_distribution",
        {str(k): int(v) for k, v in survey_df[status_col].value_counts().sort_index().items()},
    )

    print(f"✓ Loaded {len(survey_df)} records from {path}")
    return survey_df
