"""Tests for the command-line interface."""

import pytest
from typer.testing import CliRunner

from posglm.cli import app

runner = CliRunner()


class TestSimulateCommand:
    """Tests for `posglm simulate`."""

    def test_writes_csv_files(self, tmp_path):
        result = runner.invoke(app, ["simulate", "--output-dir", str(tmp_path), "--seed", "3"])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "lime.csv").exists()
        assert (tmp_path / "perm.csv").exists()


class TestReportCommand:
    """Tests for `posglm report`."""

    def test_perm_report_from_simulated_data(self, tmp_path):
        out = tmp_path / "report.html"
        result = runner.invoke(app, ["report", "--only", "perm", "--output", str(out)])
        assert result.exit_code == 0, result.output
        text = out.read_text(encoding="utf-8")
        assert "Permeability of sheet metal" in text
        assert "simulated" in text
        assert "Report written to" in result.output

    def test_report_from_config(self, tmp_path):
        runner.invoke(app, ["simulate", "--output-dir", str(tmp_path / "data")])
        config = tmp_path / "config.yaml"
        config.write_text(
            "data:\n"
            f"  perm: {tmp_path / 'data' / 'perm.csv'}\n"
            "  simulate_missing: false\n"
            "fit:\n"
            "  backend: cpu\n"
            "report:\n"
            f"  output_dir: {tmp_path / 'reports'}\n"
            "  dpi: 60\n"
            "log_level: WARNING\n",
            encoding="utf-8",
        )
        result = runner.invoke(
            app, ["report", "--config", str(config), "--only", "perm", "--save-figures"]
        )
        assert result.exit_code == 0, result.output
        report = tmp_path / "reports" / "positive_glms.html"
        assert report.exists()
        assert "simulated" not in report.read_text(encoding="utf-8")
        assert any((tmp_path / "reports" / "positive_glms_figures").glob("*.png"))

    def test_missing_data_without_simulation(self, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text("data:\n  simulate_missing: false\n", encoding="utf-8")
        result = runner.invoke(
            app, ["report", "--config", str(config), "--only", "lime",
                  "--output", str(tmp_path / "r.html")]
        )
        assert result.exit_code == 1
        assert "No lime data" in result.output

    def test_invalid_case_study(self):
        result = runner.invoke(app, ["report", "--only", "foo"])
        assert result.exit_code == 1
        assert "Invalid case study" in result.output

    @pytest.mark.parametrize("text", ["fit:\n  backend: tpu\n"])
    def test_invalid_config(self, tmp_path, text):
        config = tmp_path / "bad.yaml"
        config.write_text(text, encoding="utf-8")
        result = runner.invoke(app, ["report", "--config", str(config), "--only", "perm"])
        assert result.exit_code == 1
        assert "Report failed" in result.output


class TestBackendsCommand:
    """Tests for `posglm backends`."""

    def test_lists_cpu(self):
        result = runner.invoke(app, ["backends"])
        assert result.exit_code == 0, result.output
        assert "cpu" in result.output
        assert "Default" in result.output
