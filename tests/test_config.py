"""Tests for configuration loading."""

from pathlib import Path

import pytest

from strategist.config import SelectionSettings, StrategistConfig, load_config
from strategist.errors import InvalidArgumentError


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.toml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "nope.toml", environ={})
        assert config.selection.seed is None
        assert config.selection.prior_alpha == 2.0
        assert config.loop_detection.window_size == 5
        assert config.similarity.embeddings_url is None

    def test_reads_sections(self, tmp_path):
        path = _write(
            tmp_path,
            """
[selection]
seed = 42
prior_alpha = 1.0

[loop_detection]
window_size = 8
recovery_threshold = 0.6

[similarity]
embeddings_url = "http://localhost:8080/v1"
""",
        )
        config = load_config(path, environ={})
        assert config.selection.seed == 42
        assert config.selection.prior_alpha == 1.0
        assert config.loop_detection.window_size == 8
        assert config.loop_detection.recovery_threshold == 0.6
        assert config.similarity.embeddings_url == "http://localhost:8080/v1"

    def test_unknown_keys_ignored(self, tmp_path):
        path = _write(tmp_path, "[selection]\nflavour = 'mint'\n")
        assert load_config(path, environ={}).selection.seed is None

    def test_environment_overrides(self, tmp_path):
        path = _write(tmp_path, "[selection]\nseed = 1\n")
        config = load_config(
            path,
            environ={
                "STRATEGIST_SEED": "99",
                "STRATEGIST_WINDOW_SIZE": "4",
                "STRATEGIST_EMBEDDINGS_URL": "http://embed",
            },
        )
        assert config.selection.seed == 99
        assert config.loop_detection.window_size == 4
        assert config.similarity.embeddings_url == "http://embed"

    def test_home_from_environment(self, tmp_path):
        (tmp_path / "config.toml").write_text("[selection]\nseed = 5\n", encoding="utf-8")
        config = load_config(environ={"STRATEGIST_HOME": str(tmp_path)})
        assert config.data_dir == tmp_path
        assert config.config_path == tmp_path / "config.toml"
        assert config.selection.seed == 5

    def test_bad_seed(self, tmp_path):
        with pytest.raises(InvalidArgumentError, match="STRATEGIST_SEED"):
            load_config(tmp_path / "nope.toml", environ={"STRATEGIST_SEED": "abc"})

    def test_bad_toml(self, tmp_path):
        path = _write(tmp_path, "[selection\nseed = ")
        with pytest.raises(InvalidArgumentError, match="Invalid TOML"):
            load_config(path, environ={})

    def test_section_must_be_table(self, tmp_path):
        path = _write(tmp_path, "selection = 3\n")
        with pytest.raises(InvalidArgumentError, match="must be a table"):
            load_config(path, environ={})

    def test_invalid_loop_options(self, tmp_path):
        path = _write(tmp_path, "[loop_detection]\nwindow_size = 0\n")
        with pytest.raises(InvalidArgumentError, match="window_size"):
            load_config(path, environ={})


class TestSettings:
    def test_selection_validation(self):
        with pytest.raises(InvalidArgumentError, match="prior"):
            SelectionSettings(prior_beta=0.0)
        with pytest.raises(InvalidArgumentError, match="confidence_saturation"):
            SelectionSettings(confidence_saturation=0)
        with pytest.raises(InvalidArgumentError, match="lock_stripes"):
            SelectionSettings(lock_stripes=0)

    def test_default_config(self):
        config = StrategistConfig()
        assert config.config_path.name == "config.toml"
