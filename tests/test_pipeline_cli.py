from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from ancestry_ethnicity.main import PipelineOrchestrator, main, read_high_risk
from ancestry_ethnicity.pipeline.transform.resolver import ResolverPolicy


def _read_output(output_dir: Path, name: str) -> pd.DataFrame:
    return pd.read_csv(output_dir / "csv files" / name, dtype=str, keep_default_na=False, na_values=[""])


def test_cli_end_to_end(tmp_path: Path, survey_csv: Path) -> None:
    output_dir = tmp_path / "outputs"
    main(["--input", str(survey_csv), "--output-dir", str(output_dir)])

    labelled = _read_output(output_dir, "ethnicity_labelled.csv")
    assert len(labelled) == 10
    assert labelled.loc[0, "ethnicity"] == "Multiethnic Asian-European"
    assert labelled.loc[6, "ethnicity"] == "Unresolved"

    assert (output_dir / "tables" / "frequency_ethnicity.csv").exists()
    assert (output_dir / "tables" / "frequency_continent_group.csv").exists()
    reports = sorted(p.name for p in (output_dir / "qa_reports").iterdir())
    assert any(name.startswith("QA_Pipeline_") for name in reports)
    assert any(name.startswith("QA_Resolution_") for name in reports)
    assert not (output_dir / "csv files" / "ethnicity_collapsed.csv").exists()


def test_cli_collapses_with_high_risk_file(tmp_path: Path, survey_csv: Path) -> None:
    output_dir = tmp_path / "outputs"
    high_risk = tmp_path / "high_risk.txt"
    high_risk.write_text("Chinese\n\nBari\n", encoding="utf-8")

    main([
        "--input", str(survey_csv),
        "--output-dir", str(output_dir),
        "--high-risk-file", str(high_risk),
        "--drop-unresolved",
    ])

    collapsed = _read_output(output_dir, "ethnicity_collapsed.csv")
    assert len(collapsed) == 9
    labels = collapsed["ethnicity"].tolist()
    assert "Chinese" in labels
    assert "Bari" in labels
    assert "Unresolved" not in labels
    assert "other- Multiethnic" in labels
    assert (output_dir / "tables" / "collapse_partitions.csv").exists()


def test_cli_level(tmp_path: Path, survey_csv: Path) -> None:
    output_dir = tmp_path / "outputs"
    main([
        "--input", str(survey_csv),
        "--output-dir", str(output_dir),
        "--level", "continent_group",
        "--policy", "reclassify-prioritize-other",
    ])

    relabelled = _read_output(output_dir, "ethnicity_collapsed.csv")
    assert relabelled.loc[0, "ethnicity"] == "Multiethnic"
    assert relabelled.loc[6, "ethnicity"] == "European"


def test_cli_flags_unmapped_records(tmp_path: Path) -> None:
    survey = tmp_path / "survey.csv"
    survey.write_text(
        "ancestry1,ancestry2,indigenous_status\nGerman,Klingon,1\nEnglish,,1\n",
        encoding="utf-8",
    )
    output_dir = tmp_path / "outputs"
    main(["--input", str(survey), "--output-dir", str(output_dir), "--on-unmapped", "flag"])

    labelled = _read_output(output_dir, "ethnicity_labelled.csv")
    assert pd.isna(labelled.loc[0, "ethnicity"])
    assert labelled.loc[1, "ethnicity"] == "Anglo-Celtic"
    failures = pd.read_csv(output_dir / "csv files" / "resolution_failures.csv")
    assert failures["ancestry2"].tolist() == ["Klingon"]


def test_cli_missing_input_exits_1(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["--input", str(tmp_path / "absent.csv"), "--output-dir", str(tmp_path)])
    assert excinfo.value.code == 1


def test_cli_rejects_high_risk_with_level(tmp_path: Path, survey_csv: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main([
            "--input", str(survey_csv),
            "--output-dir", str(tmp_path),
            "--high-risk", "Chinese",
            "--level", "continent_group",
        ])
    assert excinfo.value.code == 1


def test_cli_rejects_empty_high_risk(tmp_path: Path, survey_csv: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["--input", str(survey_csv), "--output-dir", str(tmp_path), "--high-risk", " , "])
    assert excinfo.value.code == 1


def test_read_high_risk(tmp_path: Path) -> None:
    path = tmp_path / "labels.txt"
    path.write_text("Samoan\n  Tongan  \n", encoding="utf-8")
    assert read_high_risk(None, None) is None
    assert read_high_risk("Chinese, Bari", None) == ["Chinese", "Bari"]
    assert read_high_risk("Chinese", str(path)) == ["Chinese", "Samoan", "Tongan"]


def test_orchestrator_run_returns_final_frame(tmp_path: Path, survey_csv: Path) -> None:
    pipeline = PipelineOrchestrator(
        str(survey_csv),
        policy=ResolverPolicy.PRIORITIZE_INDIGENOUS,
        high_risk=["Chinese", "Australian Aboriginal"],
        output_dir=str(tmp_path),
    )
    result = pipeline.run()

    assert len(result) == 10
    assert result.loc[6, "ethnicity"] == "Australian Aboriginal"
    assert result.loc[9, "ethnicity"] == "Chinese"
    assert result.loc[4, "ethnicity"] == "other- Asian"
    assert pipeline.collapse_report is not None
    summary = Path(pipeline.paths.qa_report_pipeline).read_text(encoding="utf-8")
    assert "PIPELINE COMPLETE" in summary
    assert "reclassify-prioritize-indigenous" in summary


def test_manifest_lists_every_output_of_the_run(tmp_path: Path) -> None:
    survey = tmp_path / "survey.csv"
    survey.write_text(
        "ancestry1,ancestry2,indigenous_status\nGerman,Klingon,1\nChinese,Not applicable,1\n"
        "English,,1\n",
        encoding="utf-8",
    )
    output_dir = tmp_path / "outputs"
    main([
        "--input", str(survey),
        "--output-dir", str(output_dir),
        "--on-unmapped", "flag",
        "--high-risk", "Chinese",
    ])

    manifests = list((output_dir / "tables").glob("export_manifest_*.csv"))
    assert len(manifests) == 1
    outputs = pd.read_csv(manifests[0])["output"].tolist()
    for expected in [
        "unknown ancestry responses",
        "resolution failures",
        "labelled survey",
        "collapsed survey",
        "collapse partitions",
        "QA report: collapse",
        "QA report: pipeline",
    ]:
        assert expected in outputs
    assert outputs.index("unknown ancestry responses") < outputs.index("labelled survey")

    summary = next((output_dir / "qa_reports").glob("QA_Pipeline_*")).read_text(encoding="utf-8")
    assert "OUTPUT MANIFEST" in summary
