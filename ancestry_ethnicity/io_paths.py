# io_paths.py

"""
OUTPUT LOCATIONS FOR THE ANCESTRY → ETHNICITY PIPELINE

One IOPaths object per run. It fixes the run timestamp used in versioned file
names and creates the output tree on construction:

    <base_dir>/
        csv files/    labelled and collapsed survey data, flagged records
        tables/       frequency tables, collapse partitions, export manifest
        qa_reports/   QA_<Type>_<timestamp>.txt
"""

import os
from datetime import datetime, UTC
from pathlib import Path
from typing import Optional


class IOPaths:
    """Every file location the pipeline writes to, for a single run."""

    def __init__(self, base_dir: Optional[str] = None):
        """
        Args:
            base_dir (str, optional): Output root; ./outputs under the current
                working directory when omitted
        """
        self.run_timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")

        self.base_dir = Path(base_dir) if base_dir else Path.cwd() / "outputs"
        self.csv_dir = self.base_dir / "csv files"
        self.tables_dir = self.base_dir / "tables"
        self.qa_reports_dir = self.base_dir / "qa_reports"

        for directory in (self.csv_dir, self.tables_dir, self.qa_reports_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def _versioned(self, stem: str) -> str:
        return os.path.join(self.csv_dir, f"{stem}_{self.run_timestamp}.csv")

    # ==================== SURVEY DATA ====================

    @property
    def labelled_latest(self) -> str:
        return os.path.join(self.csv_dir, "ethnicity_labelled.csv")

    @property
    def labelled_versioned(self) -> str:
        return self._versioned("ethnicity_labelled")

    @property
    def collapsed_latest(self) -> str:
        return os.path.join(self.csv_dir, "ethnicity_collapsed.csv")

    @property
    def collapsed_versioned(self) -> str:
        return self._versioned("ethnicity_collapsed")

    @property
    def resolution_failures(self) -> str:
        """Records the resolver could not classify (flag mode only)."""
        return os.path.join(self.csv_dir, "resolution_failures.csv")

    @property
    def unknown_ancestries(self) -> str:
        """Responses absent from the ancestry code list."""
        return os.path.join(self.csv_dir, "unknown_ancestry_responses.csv")

    # ==================== TABLES ====================

    def frequency_table(self, name: str) -> str:
        """Frequency table CSV, e.g. frequency_table('continent_group')."""
        safe_name = name.replace(" ", "_")
        return os.path.join(self.tables_dir, f"frequency_{safe_name}.csv")

    @property
    def collapse_partitions(self) -> str:
        return os.path.join(self.tables_dir, "collapse_partitions.csv")

    @property
    def export_manifest(self) -> str:
        return os.path.join(self.tables_dir, f"export_manifest_{self.run_timestamp}.csv")

    # ==================== QA REPORTS ====================

    def qa_report(self, report_type: str) -> str:
        """QA report for 'survey', 'resolution', 'collapse' or 'pipeline'."""
        filename = f"QA_{report_type.capitalize()}_{self.run_timestamp}.txt"
        return os.path.join(self.qa_reports_dir, filename)

    @property
    def qa_report_pipeline(self) -> str:
        return self.qa_report("pipeline")
