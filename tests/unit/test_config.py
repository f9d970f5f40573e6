"""Configuration loading and validation tests."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from dispute_service.config import (
    REDACTION_MARKER,
    Settings,
    clear_settings_cache,
    get_config_path,
    get_safe_config,
    get_settings,
    load_settings,
)

_PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _shipped_config() -> dict:
    return yaml.safe_load((_PROJECT_ROOT / "config.yaml").read_text())


def _write(tmp_path, raw: dict) -> Path:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump(raw))
    return config_path


@pytest.mark.unit
class TestConfig:
    """Settings loading tests."""

    def test_shipped_config_is_valid(self) -> None:
        settings = load_settings(_PROJECT_ROOT / "config.yaml")
        assert isinstance(settings, Settings)
        assert settings.service.name == "disputes"
        assert settings.disputes.response_window_seconds == 48 * 3600
        assert settings.disputes.counter_window_seconds == 72 * 3600
        assert settings.evidence.max_file_size_bytes == 10 * 1024 * 1024

    def test_config_path_env_var_respected(self, tmp_path) -> None:
        raw = _shipped_config()
        raw["service"]["name"] = "disputes-test"
        os.environ["CONFIG_PATH"] = str(_write(tmp_path, raw))
        clear_settings_cache()

        assert get_config_path() == tmp_path / "config.yaml"
        assert get_settings().service.name == "disputes-test"

    def test_missing_section_rejected(self, tmp_path) -> None:
        raw = _shipped_config()
        del raw["escrow"]
        with pytest.raises(ValidationError):
            load_settings(_write(tmp_path, raw))

    def test_unknown_key_rejected(self, tmp_path) -> None:
        raw = _shipped_config()
        raw["disputes"]["auto_resolve"] = True
        with pytest.raises(ValidationError):
            load_settings(_write(tmp_path, raw))

    def test_inverted_description_limits_rejected(self, tmp_path) -> None:
        raw = _shipped_config()
        raw["disputes"]["min_description_length"] = 3000
        with pytest.raises(ValidationError, match="min_description_length"):
            load_settings(_write(tmp_path, raw))

    def test_zero_window_rejected(self, tmp_path) -> None:
        raw = _shipped_config()
        raw["disputes"]["response_window_seconds"] = 0
        with pytest.raises(ValidationError, match="response_window_seconds"):
            load_settings(_write(tmp_path, raw))

    def test_non_positive_file_cap_rejected(self, tmp_path) -> None:
        raw = _shipped_config()
        raw["evidence"]["max_file_size_bytes"] = 0
        with pytest.raises(ValidationError):
            load_settings(_write(tmp_path, raw))

    def test_blank_platform_agent_rejected(self, tmp_path) -> None:
        raw = _shipped_config()
        raw["platform"]["agent_id"] = "   "
        with pytest.raises(ValidationError):
            load_settings(_write(tmp_path, raw))

    def test_non_mapping_file_rejected(self, tmp_path) -> None:
        config_path = tmp_path / "config.yaml"
        config_path.write_text("- just\n- a list\n")
        with pytest.raises(ValueError, match="Invalid config file"):
            load_settings(config_path)

    def test_safe_config_redacts_key_path(self) -> None:
        os.environ["CONFIG_PATH"] = str(_PROJECT_ROOT / "config.yaml")
        clear_settings_cache()

        safe = get_safe_config()

        assert safe["platform"]["private_key_path"] == REDACTION_MARKER
        assert safe["platform"]["agent_id"] == "korrect-platform"
        assert safe["escrow"]["base_url"] == "http://localhost:8012"
