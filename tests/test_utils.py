"""
Tests for Utility Functions

Covers:
    - Configuration loading and merging
    - URL normalization and token masking
    - Host identification
    - Logging setup
"""

import logging
import pytest
from unittest.mock import patch

from desktop_companion.utils import (
    get_default_config,
    get_system_info,
    load_config,
    mask_token,
    merge_config,
    normalize_server_url,
    setup_logging,
)


class TestConfigurationLoading:
    """Tests for configuration loading."""

    def test_default_sections(self):
        """Test the default configuration has every section."""
        config = get_default_config()
        for section in ("http", "registration", "scheduler", "dashboard", "debug"):
            assert section in config

    def test_load_missing_config(self, tmp_path):
        """Test loading a missing config file returns defaults."""
        assert load_config(str(tmp_path / "missing.yaml")) == get_default_config()

    def test_partial_override(self, tmp_path):
        """Test a partial file only overrides what it names."""
        path = tmp_path / "companion.yaml"
        path.write_text("http:\n  timeout: 5\n", encoding="utf-8")
        config = load_config(str(path))
        assert config["http"]["timeout"] == 5
        assert config["http"]["verify_ssl"] is False
        assert config["registration"]["settle_delay"] == 3.0

    def test_invalid_yaml(self, tmp_path):
        """Test an unparseable file falls back to defaults."""
        path = tmp_path / "companion.yaml"
        path.write_text("http: [", encoding="utf-8")
        assert load_config(str(path)) == get_default_config()

    def test_merge_does_not_mutate(self):
        """Test merging leaves the base dict untouched."""
        base = {"a": {"b": 1, "c": 2}}
        merged = merge_config(base, {"a": {"b": 9}})
        assert merged == {"a": {"b": 9, "c": 2}}
        assert base == {"a": {"b": 1, "c": 2}}


class TestConnectionHelpers:
    """URL and token helpers."""

    @pytest.mark.parametrize("raw, expected", [
        ("http://hub:8123/", "http://hub:8123"),
        ("  https://hub.example.com//  ", "https://hub.example.com"),
        ("", ""),
        (None, ""),
    ])
    def test_normalize(self, raw, expected):
        """Test URL normalization."""
        assert normalize_server_url(raw) == expected

    def test_mask_long_token(self):
        """Test long tokens keep only their last four characters."""
        token = "x" * 30 + "WXYZ"
        masked = mask_token(token)
        assert masked.endswith("WXYZ")
        assert "x" not in masked

    def test_mask_short_token(self):
        """Test short tokens are fully hidden."""
        assert mask_token("short") == "********"

    def test_mask_empty(self):
        """Test empty tokens mask to empty."""
        assert mask_token("") == ""
        assert mask_token(None) == ""


class TestSystemInfo:
    """Host identification."""

    def test_system_info(self):
        """Test host facts are populated."""
        with patch("desktop_companion.utils._collect_board_info", return_value={
            "motherboard_manufacturer": "ACME",
            "motherboard_model": "B550",
            "bios_version": None,
            "bios_vendor": None,
        }), patch("desktop_companion.utils.get_cpu_model", return_value="Test CPU"):
            info = get_system_info()
        assert info.hostname
        assert info.os_name is not None
        assert info.cpu_model == "Test CPU"
        assert info.motherboard_model == "B550"


class TestLogging:
    """Logging setup."""

    @pytest.fixture(autouse=True)
    def clean_logger(self):
        logger = logging.getLogger("desktop_companion")
        handlers = list(logger.handlers)
        yield
        for handler in list(logger.handlers):
            if handler not in handlers:
                logger.removeHandler(handler)

    def test_level(self):
        """Test the configured level is applied."""
        config = get_default_config()
        config["debug"]["log_level"] = "WARNING"
        logger = setup_logging(config)
        assert logger.name == "desktop_companion"
        assert logger.level == logging.WARNING

    def test_verbose_adds_console_once(self):
        """Test repeated setup does not stack console handlers."""
        config = get_default_config()
        config["debug"]["verbose"] = True
        logger = setup_logging(config)
        setup_logging(config)
        console = [h for h in logger.handlers if type(h) is logging.StreamHandler]
        assert len(console) == 1
