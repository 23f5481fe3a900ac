# export.py

"""
EXPORT MODULE FOR THE ANCESTRY → ETHNICITY PIPELINE

Writes labelled and collapsed survey data, frequency tables, flagged records
and QA reports under IOPaths. Every file written is entered in a manifest,
which is saved as a CSV and appended to the pipeline QA report.

Part of the LOAD stage in the ETL process.
"""

import pandas as pd
from typing import Dict, Optional

from ancestry_ethnicity.io_paths import IOPaths


MANIFEST_COLUMNS = ["output", "version", "records", "path"]


class ExportManager:
    """Write pipeline outputs and keep a manifest of them."""

    def __init__(self, paths: IOPaths):
        self.paths = paths
        self.manifest = []

    def _record(self, output: str, path: str, records: Optional[int] = None,
                version: str = "latest"):
        self.manifest.append({
            "output": output,
            "version": version,
            "records": records,
            "path": str(path),
        })
        count = f" ({records} records)" if records is not None else ""
        print(f"  ✓ {output} [{version}]{count} → {path}")

    def _write_csv(self, df: pd.DataFrame, output: str, path: str, version: str = "latest"):
        df.to_csv(path, index=False)
        self._record(output, path, len(df), version)

    def _write_pair(self, df: pd.DataFrame, output: str, latest: str, versioned: str):
        # latest is overwritten each run, versioned carries the run timestamp
        self._write_csv(df, output, latest)
        self._write_csv(df, output, versioned, version=self.paths.run_timestamp)

    def export_labelled(self, labelled_df: pd.DataFrame):
        self._write_pair(
            labelled_df, "labelled survey",
            self.paths.labelled_latest, self.paths.labelled_versioned,
        )

    def export_collapsed(self, collapsed_df: pd.DataFrame):
        self._write_pair(
            collapsed_df, "collapsed survey",
            self.paths.collapsed_latest, self.paths.collapsed_versioned,
        )

    def export_resolution_failures(self, failures_df: pd.DataFrame):
        """Records the resolver could not classify; nothing is written when there are none."""
        if failures_df is None or failures_df.empty:
            return
        self._write_csv(failures_df, "resolution failures", self.paths.resolution_failures)

    def export_unknown_ancestries(self, audit_df: pd.DataFrame):
        """Responses absent from the code list; nothing is written when there are none."""
        if audit_df is None or audit_df.empty:
            return
        self._write_csv(audit_df, "unknown ancestry responses", self.paths.unknown_ancestries)

    def export_collapse_partitions(self, partitions_df: pd.DataFrame):
        self._write_csv(partitions_df, "collapse partitions", self.paths.collapse_partitions)

    def export_frequency_table(self, table: pd.DataFrame, name: str):
        self._write_csv(table, f"frequency table: {name}", self.paths.frequency_table(name))

    def export_qa_report(self, report_content: str, report_type: str = "pipeline"):
        """
        Write a QA report as plain text.

        Args:
            report_content (str): Rendered report
            report_type (str): 'survey', 'resolution', 'collapse' or 'pipeline'
        """
        path = self.paths.qa_report(report_type)
        with open(path, "w", encoding="utf-8") as f:
            f.write(report_content)
        self._record(f"QA report: {report_type}", path, version=self.paths.run_timestamp)

    def manifest_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.manifest, columns=MANIFEST_COLUMNS)

    def render_manifest(self) -> str:
        frame = self.manifest_frame()

        lines = ["=" * 60, "OUTPUT MANIFEST", "=" * 60]
        lines.append(f"Run Timestamp: {self.paths.run_timestamp}")
        lines.append(f"Files written: {len(frame)}")
        for output, group in frame.groupby("output", sort=False):
            records = group["records"].dropna()
            suffix = f" - {int(records.iloc[0])} records" if not records.empty else ""
            lines.append(f"\n  {output}{suffix}")
            for path in group["path"]:
                lines.append(f"     → {path}")
        lines.append("=" * 60)
        return "\n".join(lines)

    def save_manifest(self):
        """Save the manifest CSV and append its rendering to the pipeline QA report."""
        self.manifest_frame().to_csv(self.paths.export_manifest, index=False)

        rendered = self.render_manifest()
        with open(self.paths.qa_report_pipeline, "a", encoding="utf-8") as f:
            f.write("\n\n" + rendered + "\n")

        print("\n" + rendered)


def export_all(
    paths: IOPaths,
    labelled_df: pd.DataFrame,
    qa_reports: Dict[str, str],
    collapsed_df: Optional[pd.DataFrame] = None,
    frequency_tables: Optional[Dict[str, pd.DataFrame]] = None,
    partitions_df: Optional[pd.DataFrame] = None,
    manager: Optional[ExportManager] = None,
) -> ExportManager:
    """
    Write every output of a run in one call.

    Args:
        paths (IOPaths): Output locations
        labelled_df (pd.DataFrame): Survey data with ethnicity labels
        qa_reports (Dict[str, str]): Rendered QA reports by type, written in
            order; empty ones are skipped
        collapsed_df (pd.DataFrame, optional): Collapsed survey data
        frequency_tables (Dict[str, pd.DataFrame], optional): Tables by name
        partitions_df (pd.DataFrame, optional): CollapseReport partitions
        manager (ExportManager, optional): Manager that already holds earlier
            exports of this run; a new one is created when omitted

    Returns:
        ExportManager: Manager holding the manifest
    """
    print("\n[EXPORTING OUTPUTS]")

    if manager is None:
        manager = ExportManager(paths)
    manager.export_labelled(labelled_df)
    if collapsed_df is not None:
        manager.export_collapsed(collapsed_df)
    if partitions_df is not None:
        manager.export_collapse_partitions(partitions_df)

    for name, table in (frequency_tables or {}).items():
        manager.export_frequency_table(table, name)

    for report_type, content in qa_reports.items():
        if content:
            manager.export_qa_report(content, report_type)

    manager.save_manifest()
    return manager
