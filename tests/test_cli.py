"""Tests for the CLI entry point (scv_report.cli).

Covers argument parsing, option collection, the generate pipeline against
a local bucket, job tracking, and the validate, inspect and status
commands.
"""

import json

import pytest

from scv_report.cli import _cli_options, build_parser, main
from scv_report.schema.loader import save_presets


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def parser():
    return build_parser()


@pytest.fixture
def acme_bucket(bucket, write_inputs, acme_products, acme_users):
    write_inputs("acme_x1", acme_products, acme_users)
    return bucket


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("REPORT_BUCKET_DIR", "IMAGES_BASE_URL", "IMAGES_BUCKET", "IMAGES_REGION"):
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

class TestParser:
    def test_command_required(self, parser):
        with pytest.raises(SystemExit):
            parser.parse_args([])

    def test_project_or_preset_required(self, parser):
        with pytest.raises(SystemExit):
            parser.parse_args(["generate", "--bucket-dir", "b"])

    def test_project_and_preset_exclusive(self, parser):
        with pytest.raises(SystemExit):
            parser.parse_args(["generate", "--project", "a", "--preset", "b"])

    def test_defaults_leave_options_unset(self, parser):
        args = parser.parse_args(["generate", "--project", "acme_x1"])
        assert args.prices is None
        assert _cli_options(args) == {}

    def test_flags_to_options(self, parser):
        args = parser.parse_args([
            "generate", "--project", "acme_x1", "--interim", "--no-prices",
            "--no-findability", "--aoi", "--large-dataset",
            "--large-dataset-threshold", "5000", "--price-threshold", "0.25",
        ])
        assert _cli_options(args) == {
            "is_final": False,
            "has_prices": False,
            "has_findability": False,
            "is_aoi": True,
            "large_dataset": True,
            "large_dataset_threshold": 5000,
            "price_threshold": 0.25,
        }

    def test_images_url_from_bucket_env(self, parser, monkeypatch):
        monkeypatch.setenv("IMAGES_BUCKET", "shelf-images")
        monkeypatch.setenv("IMAGES_REGION", "us-east-1")
        args = parser.parse_args(["generate", "--project", "acme_x1"])
        assert _cli_options(args)["images_base_url"] == \
            "https://shelf-images.s3.us-east-1.amazonaws.com"

    def test_images_url_flag_wins(self, parser, monkeypatch):
        monkeypatch.setenv("IMAGES_BASE_URL", "https://env")
        args = parser.parse_args(["generate", "--project", "a", "--images-url", "https://flag"])
        assert _cli_options(args)["images_base_url"] == "https://flag"


# ---------------------------------------------------------------------------
# generate
# ---------------------------------------------------------------------------

class TestGenerate:
    def test_generate(self, acme_bucket, capsys):
        main(["generate", "--project", "acme_x1", "--bucket-dir", str(acme_bucket)])
        captured = capsys.readouterr()
        manifest = json.loads(captured.out)
        assert manifest["filename"].startswith("acme_x1-final_data_set-")
        assert manifest["counts"] == {"productCount": 2, "userCount": 1}
        assert manifest["pricingIncluded"] is True
        assert (acme_bucket / manifest["storageKey"]).is_file()
        assert "QA PASS" in captured.err

    def test_bucket_from_env(self, acme_bucket, capsys, monkeypatch):
        monkeypatch.setenv("REPORT_BUCKET_DIR", str(acme_bucket))
        main(["generate", "--project", "acme_x1", "--skip-qa", "--interim"])
        captured = capsys.readouterr()
        assert "interim_data_set" in json.loads(captured.out)["filename"]
        assert "QA validation skipped" in captured.err

    def test_no_bucket(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["generate", "--project", "acme_x1"])
        assert exc_info.value.code == 1
        assert "REPORT_BUCKET_DIR" in capsys.readouterr().err

    def test_missing_inputs(self, bucket, capsys):
        with pytest.raises(SystemExit):
            main(["generate", "--project", "acme_x1", "--bucket-dir", str(bucket)])
        assert "InputNotFoundError" in capsys.readouterr().err

    def test_tracked_job(self, acme_bucket, tmp_path, capsys):
        jobs_dir = tmp_path / "jobs"
        main(["generate", "--project", "acme_x1", "--bucket-dir", str(acme_bucket),
              "--jobs-dir", str(jobs_dir), "--job-id", "run-42", "--skip-qa"])
        capsys.readouterr()

        main(["status", "run-42", "--jobs-dir", str(jobs_dir)])
        job = json.loads(capsys.readouterr().out)
        assert job["status"] == "completed"
        assert job["project_id"] == "acme_x1"
        assert job["result"]["counts"]["userCount"] == 1

    def test_preset(self, acme_bucket, tmp_path, capsys):
        presets = tmp_path / "presets.yaml"
        save_presets({"acme": {"project_id": "acme_x1",
                               "options": {"has_prices": False}}}, presets)
        main(["generate", "--preset", "acme", "--presets", str(presets),
              "--bucket-dir", str(acme_bucket), "--interim"])
        manifest = json.loads(capsys.readouterr().out)
        assert manifest["pricingIncluded"] is False
        assert "interim_data_set" in manifest["filename"]

    def test_unknown_preset(self, acme_bucket, tmp_path, capsys):
        presets = tmp_path / "presets.yaml"
        save_presets({"acme": {"project_id": "acme_x1"}}, presets)
        with pytest.raises(SystemExit):
            main(["generate", "--preset", "other", "--presets", str(presets),
                  "--bucket-dir", str(acme_bucket)])
        assert "Unknown preset 'other'" in capsys.readouterr().err

    def test_invalid_threshold(self, acme_bucket, capsys):
        with pytest.raises(SystemExit):
            main(["generate", "--project", "acme_x1", "--bucket-dir", str(acme_bucket),
                  "--price-threshold", "3"])
        assert "price_threshold must be a number between 0 and 1" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# validate / inspect / status
# ---------------------------------------------------------------------------

class TestOtherCommands:
    def test_validate_pass(self, acme_bucket, capsys):
        main(["generate", "--project", "acme_x1", "--bucket-dir", str(acme_bucket),
              "--skip-qa"])
        key = json.loads(capsys.readouterr().out)["storageKey"]
        with pytest.raises(SystemExit) as exc_info:
            main(["validate", "--project", "acme_x1", "--xlsx", str(acme_bucket / key)])
        assert exc_info.value.code == 0
        assert "QA PASS" in capsys.readouterr().out

    def test_validate_missing_file(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["validate", "--project", "acme_x1", "--xlsx", str(tmp_path / "x.xlsx")])
        assert exc_info.value.code == 1

    def test_inspect(self, capsys):
        main(["inspect", "--project", "niq_store_01", "--products", "40", "--prices", "-v"])
        out = capsys.readouterr().out
        assert "Partner:     niq" in out
        assert "sales" in out and "208 columns" in out
        assert "not_purchased" in out
        assert "Price-Product Index:" in out

    def test_inspect_default_partner(self, capsys):
        main(["inspect", "--project", "acme_x1", "--products", "3"])
        out = capsys.readouterr().out
        assert "funnel" not in out
        assert "17 columns" in out

    def test_status_unknown_job(self, tmp_path, capsys):
        with pytest.raises(SystemExit):
            main(["status", "nope", "--jobs-dir", str(tmp_path)])
        assert "Job not found" in capsys.readouterr().err

