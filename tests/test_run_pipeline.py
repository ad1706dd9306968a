import os
from unittest import mock

import pandas as pd
import pytest

from layoffs_pipeline import PipelineError
from layoffs_pipeline.gold import REPORTS
from layoffs_pipeline.run_pipeline import LayoffsPipeline, export_table_to_parquet, main
from data_generator import generate_layoff_data


@pytest.fixture
def pipeline(tmp_path, db_file):
    return LayoffsPipeline(db_path=db_file, export_dir=str(tmp_path / "exports"))


def test_run_exports_clean_table_and_reports(pipeline, dirty_csv):
    exported = pipeline.run(csv_file=dirty_csv)

    assert len(exported) == len(REPORTS) + 1
    assert all(os.path.exists(path) for path in exported)

    clean_file = [path for path in exported if path.endswith("_layoffs_staging2.parquet")][0]
    clean = pd.read_parquet(clean_file)
    assert len(clean) == 4
    assert "Netflix" in set(clean["company"])

    assert pipeline.get_layer_stats() == {"layoffs": 6, "layoffs_staging": 6, "layoffs_staging2": 4}


def test_run_missing_csv_raises(pipeline, tmp_path):
    with pytest.raises(PipelineError):
        pipeline.run(csv_file=str(tmp_path / "missing.csv"))


def test_run_uses_loaded_raw_table_when_csv_missing(pipeline, dirty_csv, tmp_path):
    pipeline.run(csv_file=dirty_csv)

    exported = pipeline.run(csv_file=str(tmp_path / "missing.csv"))

    assert len(exported) == len(REPORTS) + 1
    assert pipeline.get_layer_stats()["layoffs_staging2"] == 4


def test_run_without_raw_table_raises(pipeline):
    with pytest.raises(PipelineError, match="staging copy"):
        pipeline.run()


def test_run_publishes_to_s3(pipeline, dirty_csv):
    with mock.patch("layoffs_pipeline.run_pipeline.upload_files") as upload:
        upload.side_effect = lambda files, bucket, prefix: {path: True for path in files}
        exported = pipeline.run(csv_file=dirty_csv, s3_bucket="layoffs-exports")

    upload.assert_called_once()
    assert upload.call_args.args[0] == exported
    assert upload.call_args.args[1] == "layoffs-exports"


def test_run_fails_when_publish_fails(pipeline, dirty_csv):
    with mock.patch("layoffs_pipeline.run_pipeline.upload_files") as upload:
        upload.side_effect = lambda files, bucket, prefix: {path: False for path in files}
        with pytest.raises(PipelineError, match="publish"):
            pipeline.run(csv_file=dirty_csv, s3_bucket="layoffs-exports")


def test_get_layer_stats_on_empty_database(pipeline):
    assert pipeline.get_layer_stats() == {"layoffs": -1, "layoffs_staging": -1, "layoffs_staging2": -1}


def test_export_table_to_parquet_missing_table(db_file, tmp_path):
    assert export_table_to_parquet(db_file, "layoffs_staging2", str(tmp_path / "out.parquet")) is None


def test_generated_data_cleans(tmp_path, pipeline):
    csv_file = str(tmp_path / "generated.csv")
    pd.DataFrame(generate_layoff_data(300, seed=7)).to_csv(csv_file, index=False)

    pipeline.run(csv_file=csv_file)
    stats = pipeline.get_layer_stats()

    assert stats["layoffs"] > 300
    assert 0 < stats["layoffs_staging2"] < stats["layoffs"]


def test_main_list_reports(capsys, tmp_path):
    assert main(["--list-reports", "--log-dir", str(tmp_path / "logs")]) == 0
    assert capsys.readouterr().out.split() == list(REPORTS)


def test_main_unknown_report(capsys, tmp_path, db_file):
    code = main(["--db", db_file, "--report", "nope", "--log-dir", str(tmp_path / "logs")])
    assert code == 2
    assert "Unknown report" in capsys.readouterr().err


def test_main_runs_pipeline_and_prints_report(capsys, tmp_path, db_file, dirty_csv):
    log_dir = str(tmp_path / "logs")
    export_dir = str(tmp_path / "exports")

    assert main(["--csv", dirty_csv, "--db", db_file, "--export-dir", export_dir, "--log-dir", log_dir]) == 0
    assert os.path.exists(os.path.join(log_dir, "layoffs_pipeline.log"))

    assert main(["--db", db_file, "--report", "layoffs_by_company", "--log-dir", log_dir]) == 0
    out = capsys.readouterr().out
    assert "Netflix" in out
    assert "Acme" in out


def test_main_reports_pipeline_failure(tmp_path, db_file):
    code = main(["--csv", str(tmp_path / "missing.csv"), "--db", db_file,
                 "--export-dir", str(tmp_path / "exports"), "--log-dir", str(tmp_path / "logs")])
    assert code == 1
