"""Tests for configuration loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from posglm.config import AnalysisConfig, FitControl, ReportConfig, load_config


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults(self):
        """No file gives the default configuration."""
        cfg = load_config()
        assert isinstance(cfg, AnalysisConfig)
        assert cfg.fit.maxit == 25
        assert cfg.fit.epsilon == 1e-8
        assert cfg.fit.backend == 'auto'
        assert cfg.dispersion_method == 'pearson'
        assert cfg.data.simulate_missing
        assert cfg.report.path == Path('reports') / 'positive_glms.html'

    def test_yaml_with_env_vars(self, tmp_path, monkeypatch):
        """${VAR} and ${VAR:default} are interpolated."""
        monkeypatch.setenv('POSGLM_DATA', str(tmp_path))
        monkeypatch.delenv('POSGLM_OUT', raising=False)
        path = tmp_path / 'config.yaml'
        path.write_text(
            "data:\n"
            "  lime: ${POSGLM_DATA}/lime.csv\n"
            "  seed: 7\n"
            "fit:\n"
            "  maxit: 50\n"
            "  backend: CPU\n"
            "report:\n"
            "  output_dir: ${POSGLM_OUT:out}\n"
            "dispersion_method: ml\n"
            "log_level: debug\n",
            encoding='utf-8',
        )
        cfg = load_config(path)
        assert cfg.data.lime == tmp_path / 'lime.csv'
        assert cfg.data.perm is None
        assert cfg.data.seed == 7
        assert cfg.fit.maxit == 50
        assert cfg.fit.backend == 'cpu'
        assert cfg.report.output_dir == Path('out')
        assert cfg.dispersion_method == 'ml'
        assert cfg.log_level == 'DEBUG'

    def test_empty_file(self, tmp_path):
        """An empty file means defaults."""
        path = tmp_path / 'empty.yaml'
        path.write_text("", encoding='utf-8')
        assert load_config(path) == AnalysisConfig()

    def test_missing_file(self, tmp_path):
        """Missing file raises."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / 'missing.yaml')

    def test_not_a_mapping(self, tmp_path):
        """Top level must be a mapping."""
        path = tmp_path / 'list.yaml'
        path.write_text("- a\n- b\n", encoding='utf-8')
        with pytest.raises(ValueError, match="mapping"):
            load_config(path)

    @pytest.mark.parametrize('text', [
        "fit:\n  backend: tpu\n",
        "fit:\n  maxit: 0\n",
        "dispersion_method: huber\n",
        "log_level: loud\n",
        "report:\n  dpi: 10\n",
    ])
    def test_invalid_values(self, tmp_path, text):
        """Invalid values raise ValidationError."""
        path = tmp_path / 'bad.yaml'
        path.write_text(text, encoding='utf-8')
        with pytest.raises(ValidationError):
            load_config(path)


class TestModels:
    """Tests for the config models themselves."""

    def test_frozen(self):
        """Configs are immutable."""
        control = FitControl()
        with pytest.raises(ValidationError):
            control.maxit = 3

    def test_report_path(self):
        """path joins output_dir and filename."""
        report = ReportConfig(output_dir=Path('x'), filename='r.html')
        assert report.path == Path('x') / 'r.html'
