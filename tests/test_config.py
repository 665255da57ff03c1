# tests/test_config.py: unit tests for role management configuration

import os
import pytest
from unittest.mock import patch
from config import load_config, DEFAULTS


class TestConfig:
    """Test configuration loading and validation."""

    def test_defaults_when_env_empty(self):
        """Test that defaults are returned when nothing is set."""
        with patch.dict(os.environ, {}, clear=True):
            cfg = load_config()

        assert set(cfg) == set(DEFAULTS)
        assert cfg["ROLES_STRICT"] is False
        assert cfg["ROLES_MIRROR_ENABLED"] is True
        assert cfg["ROLES_REFRESH_SESSION"] is True
        assert cfg["ROLES_DEFINITIONS_PATH"] is None

    @pytest.mark.parametrize("raw,expected", [
        ("true", True), ("1", True), ("YES", True), ("on", True),
        ("false", False), ("0", False), ("no", False), ("off", False),
    ])
    def test_boolean_parsing(self, raw, expected):
        """Test that boolean flags accept the usual spellings."""
        with patch.dict(os.environ, {"ROLES_STRICT": raw}, clear=True):
            assert load_config()["ROLES_STRICT"] is expected

    def test_invalid_boolean_raises(self):
        """Test that an unparseable boolean fails loudly."""
        with patch.dict(os.environ, {"ROLES_MIRROR_ENABLED": "maybe"}, clear=True):
            with pytest.raises(RuntimeError) as exc_info:
                load_config()
        assert "ROLES_MIRROR_ENABLED must be a boolean" in str(exc_info.value)

    def test_definitions_path(self):
        """Test that a YAML definitions path is passed through."""
        with patch.dict(os.environ, {"ROLES_DEFINITIONS_PATH": "/etc/app/roles.yaml"}, clear=True):
            assert load_config()["ROLES_DEFINITIONS_PATH"] == "/etc/app/roles.yaml"

    def test_blank_definitions_path_is_none(self):
        with patch.dict(os.environ, {"ROLES_DEFINITIONS_PATH": "  "}, clear=True):
            assert load_config()["ROLES_DEFINITIONS_PATH"] is None

    def test_non_yaml_definitions_path_raises(self):
        """Test that a non-YAML definitions file is rejected."""
        with patch.dict(os.environ, {"ROLES_DEFINITIONS_PATH": "roles.json"}, clear=True):
            with pytest.raises(RuntimeError) as exc_info:
                load_config()
        assert "ROLES_DEFINITIONS_PATH must point to a .yaml or .yml file" in str(exc_info.value)
