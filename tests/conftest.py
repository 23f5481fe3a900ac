from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest


SURVEY_ROWS = [
    # ancestry1, ancestry2, indigenous_status
    ("German", "Japanese", "1"),
    ("German", "French", "1"),
    ("English", "Not applicable", "1"),
    ("Bari", "South Sudanese", "1"),
    ("Indian", "Fijian", "1"),
    ("Australian", "Italian", "1"),
    ("Australian Aboriginal", "German", "1"),
    ("Vietnamese", "Not applicable", "2"),
    ("Samoan", "Tongan", "1"),
    ("Chinese", "Not applicable", "1"),
]


@pytest.fixture
def survey_frame() -> pd.DataFrame:
    return pd.DataFrame(
        SURVEY_ROWS,
        columns=["ancestry1", "ancestry2", "indigenous_status"],
    )


@pytest.fixture
def survey_csv(tmp_path: Path, survey_frame: pd.DataFrame) -> Path:
    path = tmp_path / "survey.csv"
    survey_frame.to_csv(path, index=False)
    return path


@pytest.fixture
def labelled_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "person_id": range(1, 14),
            "ethnicity": [
                "German",
                "French",
                "Italian",
                "Greek",
                "Chinese",
                "Vietnamese",
                "Hmong",
                "Japanese",
                "Indian",
                "Samoan",
                "Tongan",
                "Unresolved",
                None,
            ],
        }
    )
