"""Tests for configuration loading."""

from pathlib import Path

import pytest

from receipt_recon.config import (
    MatchingConfig,
    ReconConfig,
    generate_default_config,
    get_default_config,
    load_config,
)
from receipt_recon.utils.exceptions import ConfigurationError


class TestDefaults:
    def test_matching_defaults(self):
        matching = ReconConfig().matching
        assert matching.auto_match_threshold == 70
        assert (matching.weights.amount, matching.weights.date, matching.weights.text) == (
            0.5,
            0.3,
            0.2,
        )
        assert [(s.max_days, s.score) for s in matching.date_steps] == [
            (0, 100),
            (1, 90),
            (2, 75),
            (3, 60),
            (7, 40),
        ]

    def test_delimiter_order(self):
        assert [d.char for d in ReconConfig().ingest.delimiters] == [",", ";", "\t", "|"]

    def test_default_dict_excludes_file_path(self):
        assert "config_file_path" not in get_default_config()

    def test_date_steps_are_sorted(self):
        config = MatchingConfig(
            date_steps=[{"max_days": 7, "score": 40}, {"max_days": 0, "score": 100}]
        )
        assert [s.max_days for s in config.date_steps] == [0, 7]


class TestLoadConfig:
    def test_missing_path_gives_defaults(self):
        config = load_config(None)
        assert config.config_file_path is None

    def test_partial_override_is_deep_merged(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "matching:\n  auto_match_threshold: 80\nstorage:\n  database_url: sqlite:///x.db\n",
            encoding="utf-8",
        )

        config = load_config(path)

        assert config.matching.auto_match_threshold == 80
        assert config.matching.weights.amount == 0.5
        assert config.storage.database_url == "sqlite:///x.db"
        assert config.config_file_path == str(path)

    def test_weights_must_sum_to_one(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("matching:\n  weights:\n    amount: 0.9\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_threshold_out_of_range(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("matching:\n  auto_match_threshold: 120\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("matching: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_config(path)


def test_generated_config_loads_back(tmp_path):
    path = tmp_path / "nested" / "config.yaml"

    generate_default_config(path)

    assert path.read_text(encoding="utf-8").startswith("# Receipt / Bank Statement")
    assert load_config(path).model_dump(exclude={"config_file_path"}) == get_default_config()


def test_default_config_path_is_optional():
    assert load_config(Path("does-not-exist.yaml")).config_file_path is None
