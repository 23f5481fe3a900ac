"""
ANCESTRY → ETHNICITY CLASSIFICATION PIPELINE

Complete ETL pipeline orchestrating:
    EXTRACT → Load a survey extract (two ancestry responses + Indigenous status)
    TRANSFORM → Resolve ethnicity labels, then optionally collapse granularity
    LOAD → Export labelled data, frequency tables and QA reports

USAGE:
    ancestry-ethnicity --input survey.csv
    ancestry-ethnicity --input survey.csv --policy reclassify-prioritize-other
    ancestry-ethnicity --input survey.csv --high-risk "Samoan,Vietnamese"
    ancestry-ethnicity --input survey.csv --level continent_group

OUTPUTS (under --output-dir, default ./outputs):
    - csv files/ethnicity_labelled.csv (latest) and a versioned copy
    - csv files/ethnicity_collapsed.csv (when high-risk labels are given)
    - tables/frequency_*.csv
    - qa_reports/QA_Pipeline_YYYYMMDD_HHMMSS.txt (quality report)
"""

import argparse
import os
import sys
import pandas as pd
from datetime import datetime, UTC
from typing import Iterable, List, Optional

from ancestry_ethnicity.io_paths import IOPaths
from ancestry_ethnicity.pipeline.extract.survey import SurveyQASignals, load_survey_extract
from ancestry_ethnicity.pipeline.load.export import ExportManager, export_all
from ancestry_ethnicity.pipeline.load.summary import ethnicity_frequency_table, small_cells
from ancestry_ethnicity.pipeline.transform.cleaning import audit_ancestry_codes, prepare_survey_data
from ancestry_ethnicity.pipeline.transform.collapsing import (
    CollapseReport,
    annotate_hierarchy,
    collapse_granularity,
    map_to_level,
)
from ancestry_ethnicity.pipeline.transform.hierarchy import GranularityLevel, validate_hierarchy
from ancestry_ethnicity.pipeline.transform.reference import CLASSIFICATION_VERSION
from ancestry_ethnicity.pipeline.transform.resolver import (
    DEFAULT_ANCESTRY1_COL,
    DEFAULT_ANCESTRY2_COL,
    DEFAULT_OUTPUT_COL,
    DEFAULT_STATUS_COL,
    ResolutionReport,
    ResolverPolicy,
    add_ethnicity_column,
    drop_unresolved,
)


class PipelineOrchestrator:
    """Orchestrate the complete ETL pipeline with QA tracking."""

    def __init__(
        self,
        input_path: str,
        policy: ResolverPolicy = ResolverPolicy.EXCLUDE,
        high_risk: Optional[Iterable[str]] = None,
        level: Optional[GranularityLevel] = None,
        output_dir: Optional[str] = None,
        ancestry1_col: str = DEFAULT_ANCESTRY1_COL,
        ancestry2_col: str = DEFAULT_ANCESTRY2_COL,
        status_col: str = DEFAULT_STATUS_COL,
        ethnicity_col: str = DEFAULT_OUTPUT_COL,
        on_unmapped: str = "raise",
        drop_unresolved_records: bool = False,
    ):
        """
        Initialize pipeline orchestrator.

        Args:
            input_path (str): Survey extract CSV
            policy (ResolverPolicy): Resolver policy
            high_risk (Iterable[str], optional): Labels kept at full
                granularity; collapsing runs only when given
            level (GranularityLevel, optional): Fixed level applied to the
                labelled data instead of conditional collapsing
            output_dir (str, optional): Base output directory
            on_unmapped (str): 'raise' or 'flag' for unclassifiable rows
            drop_unresolved_records (bool): Drop UNRESOLVED rows before collapsing
        """
        self.input_path = input_path
        self.policy = ResolverPolicy(policy)
        self.high_risk = frozenset(high_risk) if high_risk is not None else None
        self.level = GranularityLevel(level) if level is not None else None
        self.ancestry1_col = ancestry1_col
        self.ancestry2_col = ancestry2_col
        self.status_col = status_col
        self.ethnicity_col = ethnicity_col
        self.on_unmapped = on_unmapped
        self.drop_unresolved_records = drop_unresolved_records

        # Initialize paths and managers
        self.paths = IOPaths(output_dir)
        self.export_manager = ExportManager(self.paths)

        # QA tracking
        self.survey_qa = SurveyQASignals()
        self.resolution_report = ResolutionReport()
        self.collapse_report = None
        self.hierarchy_notes: List[str] = []

        # Pipeline start time
        self.start_time = datetime.now(UTC)

    def print_header(self, stage: str):
        """Print stage header."""
        print("\n" + "="*60)
        print(f"STAGE: {stage}")
        print("="*60)

    def extract(self) -> pd.DataFrame:
        """
        EXTRACT: Load the survey extract.

        Returns:
            pd.DataFrame: Raw survey records
        """
        self.print_header("EXTRACT - Loading Survey Extract")

        survey_df = load_survey_extract(
            self.input_path,
            self.ancestry1_col,
            self.ancestry2_col,
            self.status_col,
            qa_signals=self.survey_qa,
        )

        print(f"\n✓ EXTRACT complete: {len(survey_df)} records loaded")
        return survey_df

    def transform_resolve(self, survey_df: pd.DataFrame) -> pd.DataFrame:
        """
        TRANSFORM (Part 1): Prepare records and resolve ethnicity labels.

        Args:
            survey_df (pd.DataFrame): Raw survey records

        Returns:
            pd.DataFrame: Survey records with the ethnicity column added
        """
        self.print_header("TRANSFORM - Resolving Ethnicity")

        print(f"\nReference data: {CLASSIFICATION_VERSION}")
        self.hierarchy_notes = validate_hierarchy()
        print("  ✓ Hierarchy covers every producible label")

        prepared = prepare_survey_data(
            survey_df, self.ancestry1_col, self.ancestry2_col, self.status_col
        )
        self.export_manager.export_unknown_ancestries(
            audit_ancestry_codes(prepared, self.ancestry1_col, self.ancestry2_col)
        )

        print(f"\n[RESOLVING ETHNICITY] policy={self.policy.value}")
        labelled = add_ethnicity_column(
            prepared,
            policy=self.policy,
            ancestry1_col=self.ancestry1_col,
            ancestry2_col=self.ancestry2_col,
            status_col=self.status_col,
            output_col=self.ethnicity_col,
            errors=self.on_unmapped,
            report=self.resolution_report,
        )

        if self.resolution_report.failures:
            self.export_manager.export_resolution_failures(
                self.resolution_report.failures_frame()
            )

        if self.drop_unresolved_records:
            labelled = drop_unresolved(labelled, self.ethnicity_col)

        print(f"\n✓ TRANSFORM (Resolution) complete: "
              f"{self.resolution_report.get_resolution_rate():.1f}% records resolved")
        return labelled

    def transform_granularity(self, labelled_df: pd.DataFrame) -> Optional[pd.DataFrame]:
        """
        TRANSFORM (Part 2): Collapse or relabel granularity.

        Returns:
            pd.DataFrame or None: Relabelled data, or None when neither a
                high-risk set nor a level was configured
        """
        if self.high_risk is None and self.level is None:
            return None

        self.print_header("TRANSFORM - Managing Granularity")

        if self.high_risk is not None:
            self.collapse_report = CollapseReport()
            result = collapse_granularity(
                labelled_df,
                self.high_risk,
                ethnicity_col=self.ethnicity_col,
                report=self.collapse_report,
            )
        else:
            print(f"\nMapping every label to {self.level.value}")
            result = map_to_level(labelled_df, self.level, ethnicity_col=self.ethnicity_col)

        print(f"\n✓ TRANSFORM (Granularity) complete: {len(result)} records")
        return result

    def summarise(self, labelled_df: pd.DataFrame, final_df: Optional[pd.DataFrame]) -> dict:
        """Frequency tables at each granularity level, plus the final labels."""
        annotated = annotate_hierarchy(labelled_df, ethnicity_col=self.ethnicity_col)

        tables = {
            "ethnicity": ethnicity_frequency_table(annotated, self.ethnicity_col),
            "intermediate_group": ethnicity_frequency_table(annotated, "intermediate_group"),
            "continent_group": ethnicity_frequency_table(annotated, "continent_group"),
        }
        if final_df is not None:
            tables["final"] = ethnicity_frequency_table(final_df, self.ethnicity_col)

        flagged = small_cells(tables["ethnicity"], self.ethnicity_col)
        if flagged:
            print(f"  ⚠️ {len(flagged)} ethnicity categories are small cells")
        return tables

    def load(self, labelled_df: pd.DataFrame, final_df: Optional[pd.DataFrame], tables: dict):
        """
        LOAD: Export all final outputs and generate reports.

        Args:
            labelled_df (pd.DataFrame): Survey data with ethnicity labels
            final_df (pd.DataFrame, optional): Collapsed or relabelled data
            tables (dict): Frequency tables by name
        """
        self.print_header("LOAD - Exporting Outputs & Reports")

        qa_reports = {
            "survey": self.survey_qa.report(),
            "resolution": self.resolution_report.generate_report(),
        }
        partitions_df = None
        if self.collapse_report is not None:
            qa_reports["collapse"] = self.collapse_report.generate_report()
            partitions_df = self.collapse_report.partitions_frame()
        qa_reports["pipeline"] = self.generate_pipeline_summary(labelled_df, final_df)

        export_all(
            self.paths,
            labelled_df,
            qa_reports,
            collapsed_df=final_df,
            frequency_tables=tables,
            partitions_df=partitions_df,
            manager=self.export_manager,
        )

        print(f"\n✓ LOAD complete: All outputs saved")

    def generate_pipeline_summary(self, labelled_df: pd.DataFrame,
                                  final_df: Optional[pd.DataFrame]) -> str:
        """
        Generate comprehensive pipeline summary report.

        Returns:
            str: Formatted pipeline summary
        """
        end_time = datetime.now(UTC)
        duration = (end_time - self.start_time).total_seconds()

        summary = ["="*60]
        summary.append("ANCESTRY → ETHNICITY PIPELINE - SUMMARY REPORT")
        summary.append("="*60)
        summary.append(f"Run Timestamp: {self.paths.run_timestamp}")
        summary.append(f"Duration: {duration:.2f} seconds")
        summary.append(f"Input: {self.input_path}")
        summary.append(f"Policy: {self.policy.value}")
        summary.append(f"Reference data: {CLASSIFICATION_VERSION}")

        summary.append("\n[EXTRACT STAGE]")
        summary.append(f"  Records loaded: {self.survey_qa.signals.get('records_loaded', 0)}")
        summary.append(f"  Missing second responses: {self.survey_qa.signals.get('missing_ancestry2', 0)}")

        summary.append("\n[TRANSFORM STAGE]")
        summary.append(f"  Resolved: {self.resolution_report.resolved_records}")
        summary.append(f"  Unresolved (excluded): {self.resolution_report.unresolved_records}")
        summary.append(f"  Failed: {len(self.resolution_report.failures)}")
        summary.append(f"  Distinct labels: {labelled_df[self.ethnicity_col].nunique()}")
        for note in self.hierarchy_notes:
            summary.append(f"  Note: {note}")

        if self.collapse_report is not None:
            summary.append(f"  High-risk categories: {len(self.high_risk)}")
            summary.append(f"  Labels collapsed: {self.collapse_report.total_rewritten}")
        elif self.level is not None:
            summary.append(f"  Fixed level: {self.level.value}")

        summary.append("\n[LOAD STAGE]")
        summary.append(f"  Labelled records: {len(labelled_df)}")
        if final_df is not None:
            summary.append(f"  Final distinct labels: {final_df[self.ethnicity_col].nunique()}")

        summary.append("\n[DATA QUALITY]")
        if self.resolution_report.failures:
            summary.append(f"  ⚠️ {len(self.resolution_report.failures)} records could not be classified")
            summary.append(f"     → Review: {self.paths.resolution_failures}")
        if self.collapse_report is not None and self.collapse_report.unknown_high_risk:
            summary.append(f"  ⚠️ {len(self.collapse_report.unknown_high_risk)} high-risk labels not in hierarchy")

        summary.append("\n[KEY OUTPUT FILES]")
        summary.append(f"  Main Output: {self.paths.labelled_latest}")
        if final_df is not None:
            summary.append(f"  Collapsed: {self.paths.collapsed_latest}")
        summary.append(f"  QA Report: {self.paths.qa_report_pipeline}")

        summary.append("\n" + "="*60)
        summary.append("PIPELINE COMPLETE")
        summary.append("="*60)

        return "\n".join(summary)

    def run(self) -> pd.DataFrame:
        """
        Execute the complete ETL pipeline.

        Returns:
            pd.DataFrame: Final data (collapsed when configured, else labelled)
        """
        print("\n" + "="*60)
        print("ANCESTRY → ETHNICITY CLASSIFICATION PIPELINE")
        print("="*60)
        print(f"Run Timestamp: {self.paths.run_timestamp}")
        print(f"Policy: {self.policy.value}")

        try:
            survey_df = self.extract()
            labelled_df = self.transform_resolve(survey_df)
            final_df = self.transform_granularity(labelled_df)
            tables = self.summarise(labelled_df, final_df)
            self.load(labelled_df, final_df, tables)

            print("\n" + "="*60)
            print("✓ PIPELINE COMPLETED SUCCESSFULLY")
            print("="*60)
            print(f"\nMain output file:")
            print(f"  → {self.paths.labelled_latest}")
            print(f"\nFor detailed results, see:")
            print(f"  → {self.paths.qa_report_pipeline}")
            print("\n")

            return final_df if final_df is not None else labelled_df

        except KeyboardInterrupt:
            print("\n\n⚠️ Pipeline interrupted by user")
            sys.exit(1)
        except Exception as e:
            print(f"\n\n❌ PIPELINE FAILED")
            print(f"Error: {str(e)}")
            print("\nFor debugging, check:")
            print("  1. Input columns match --ancestry1-col / --ancestry2-col / --status-col")
            print("  2. Responses are spelled exactly as in the census code list")
            print("  3. Re-run with --on-unmapped flag to isolate failing records")
            raise


def read_high_risk(labels: Optional[str], path: Optional[str]) -> Optional[List[str]]:
    """High-risk labels from a comma-separated string and/or a one-per-line file."""
    if labels is None and path is None:
        return None

    high_risk = []
    if labels:
        high_risk += [label.strip() for label in labels.split(",") if label.strip()]
    if path:
        with open(path, encoding="utf-8") as f:
            high_risk += [line.strip() for line in f if line.strip()]
    return high_risk


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Ancestry → Ethnicity Classification Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ancestry-ethnicity --input survey.csv
  ancestry-ethnicity --input survey.csv --policy reclassify-prioritize-indigenous
  ancestry-ethnicity --input survey.csv --high-risk "Samoan,Tongan" --drop-unresolved
  ancestry-ethnicity --input survey.csv --level intermediate_group

Output Files:
  - csv files/ethnicity_labelled.csv (main output)
  - qa_reports/QA_Pipeline_YYYYMMDD_HHMMSS.txt (quality report)
        """
    )

    parser.add_argument("--input", required=True, metavar="PATH",
                        help="Survey extract CSV")
    parser.add_argument("--output-dir", default=None, metavar="PATH",
                        help="Base output directory (default: ./outputs)")
    parser.add_argument("--policy", default=ResolverPolicy.EXCLUDE.value,
                        choices=[p.value for p in ResolverPolicy],
                        help="Treatment of Indigenous ancestry from non-Indigenous respondents "
                             "(default: exclude)")
    parser.add_argument("--high-risk", default=None, metavar="LABELS",
                        help="Comma-separated high-risk ethnicity labels (enables collapsing)")
    parser.add_argument("--high-risk-file", default=None, metavar="PATH",
                        help="File with one high-risk label per line (enables collapsing)")
    parser.add_argument("--level", default=None,
                        choices=[level.value for level in GranularityLevel],
                        help="Relabel every record at a fixed granularity level")
    parser.add_argument("--ancestry1-col", default=DEFAULT_ANCESTRY1_COL)
    parser.add_argument("--ancestry2-col", default=DEFAULT_ANCESTRY2_COL)
    parser.add_argument("--status-col", default=DEFAULT_STATUS_COL)
    parser.add_argument("--ethnicity-col", default=DEFAULT_OUTPUT_COL)
    parser.add_argument("--on-unmapped", default="raise", choices=["raise", "flag"],
                        help="Stop on unclassifiable records, or flag them and continue")
    parser.add_argument("--drop-unresolved", action="store_true",
                        help="Drop 'Unresolved' records before collapsing")
    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point with command-line argument parsing."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not os.path.exists(args.input):
        print(f"❌ ERROR: input file not found: {args.input}")
        sys.exit(1)

    if args.high_risk_file and not os.path.exists(args.high_risk_file):
        print(f"❌ ERROR: high-risk file not found: {args.high_risk_file}")
        sys.exit(1)

    high_risk = read_high_risk(args.high_risk, args.high_risk_file)

    if high_risk is not None and args.level is not None:
        print("❌ ERROR: use either --high-risk/--high-risk-file or --level, not both")
        sys.exit(1)

    if high_risk is not None and not high_risk:
        print("❌ ERROR: no high-risk labels given")
        sys.exit(1)

    pipeline = PipelineOrchestrator(
        input_path=args.input,
        policy=ResolverPolicy(args.policy),
        high_risk=high_risk,
        level=args.level,
        output_dir=args.output_dir,
        ancestry1_col=args.ancestry1_col,
        ancestry2_col=args.ancestry2_col,
        status_col=args.status_col,
        ethnicity_col=args.ethnicity_col,
        on_unmapped=args.on_unmapped,
        drop_unresolved_records=args.drop_unresolved,
    )
    pipeline.run()


if __name__ == "__main__":
    main()
