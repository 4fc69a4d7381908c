"""Tests for the config module."""

import os
from dataclasses import FrozenInstanceError
from pathlib import Path
from unittest import mock

import pytest

from bracket_client.config import (
    DEFAULT_SERVER_URL,
    ClientConfig,
    env_float,
    env_int,
    env_str,
    read_client_config,
)


class TestEnvHelpers:
    """Test the environment parsing helpers."""

    def test_env_int_default_when_unset(self):
        """Should return the default when the variable is not set."""
        with mock.patch.dict(os.environ, {}, clear=True):
            assert env_int("TEST_VAR", default=3) == 3

    def test_env_int_invalid_value(self):
        """Should fall back to the default for non-numeric values."""
        with mock.patch.dict(os.environ, {"TEST_VAR": "many"}, clear=True):
            assert env_int("TEST_VAR", default=3) == 3

    def test_env_float_parses_value(self):
        """Should parse floating point values."""
        with mock.patch.dict(os.environ, {"TEST_VAR": "0.25"}, clear=True):
            assert env_float("TEST_VAR", default=1.0) == 0.25

    def test_env_float_empty_value(self):
        """Should treat an empty value as unset."""
        with mock.patch.dict(os.environ, {"TEST_VAR": ""}, clear=True):
            assert env_float("TEST_VAR", default=1.5) == 1.5

    def test_env_str_blank_value(self):
        """Should ignore whitespace-only values."""
        with mock.patch.dict(os.environ, {"TEST_VAR": "   "}, clear=True):
            assert env_str("TEST_VAR", default="fallback") == "fallback"


class TestReadClientConfig:
    """Test read_client_config function."""

    def test_defaults(self):
        """Should use defaults when nothing is configured."""
        with mock.patch.dict(os.environ, {}, clear=True):
            config = read_client_config()

        assert config.server_url == DEFAULT_SERVER_URL
        assert config.max_retries == 2
        assert config.retry_backoff == 0.5
        assert config.request_timeout == 10.0
        assert config.lookup_timeout == 5.0
        assert config.session_path.name == "session.json"

    def test_environment_overrides(self, tmp_path):
        """Should read every setting from the environment."""
        env = {
            "BRACKET_SERVER_URL": "https://chess.example.com/api/",
            "BRACKET_SESSION_FILE": str(tmp_path / "s.json"),
            "BRACKET_MAX_RETRIES": "5",
            "BRACKET_RETRY_BACKOFF": "0.1",
            "BRACKET_REQUEST_TIMEOUT": "3",
            "BRACKET_LOOKUP_TIMEOUT": "1.5",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            config = read_client_config()

        assert config == ClientConfig(
            server_url="https://chess.example.com/api",
            session_path=Path(tmp_path / "s.json"),
            max_retries=5,
            retry_backoff=0.1,
            request_timeout=3.0,
            lookup_timeout=1.5,
        )

    def test_negative_retries_are_clamped(self):
        """Should never configure a negative retry count."""
        with mock.patch.dict(os.environ, {"BRACKET_MAX_RETRIES": "-2"}, clear=True):
            assert read_client_config().max_retries == 0

    def test_frozen_dataclass(self):
        """Should be frozen and immutable."""
        with mock.patch.dict(os.environ, {}, clear=True):
            config = read_client_config()

        with pytest.raises(FrozenInstanceError):
            config.max_retries = 9  # type: ignore[misc]
