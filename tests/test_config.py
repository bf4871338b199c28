"""Config module tests.

Parsing of the DOCKER_COM_DOCKER_CLI / MOBYCLI_* environment variables.
"""

from __future__ import annotations

import os
from unittest import mock

import pytest

from mobycli.config import (
    COM_DOCKER_CLI,
    DEFAULT_DEEPLINK_SCHEME,
    REFRESH_COMMANDS,
    SHORT_ID_LENGTH,
    get_config,
    load_config,
    reload_config,
)


class TestDefaults:
    """Defaults with a clean environment."""

    def test_defaults(self):
        config = load_config()
        assert config.cli_override is None
        assert config.deeplink_scheme == DEFAULT_DEEPLINK_SCHEME
        assert config.log_debug is False
        assert config.log_file is None

    def test_constants(self):
        assert SHORT_ID_LENGTH == 12
        assert REFRESH_COMMANDS == frozenset({"run"})
        assert COM_DOCKER_CLI.startswith("com.docker.cli")


class TestOverride:
    """DOCKER_COM_DOCKER_CLI."""

    def test_override(self):
        with mock.patch.dict(os.environ, {"DOCKER_COM_DOCKER_CLI": "/opt/docker/cli"}):
            assert load_config().cli_override == "/opt/docker/cli"

    def test_empty_override_ignored(self):
        with mock.patch.dict(os.environ, {"DOCKER_COM_DOCKER_CLI": ""}):
            assert load_config().cli_override is None


class TestScheme:
    """MOBYCLI_DEEPLINK_SCHEME."""

    def test_custom_scheme(self):
        with mock.patch.dict(os.environ, {"MOBYCLI_DEEPLINK_SCHEME": "dd-test"}):
            assert load_config().deeplink_scheme == "dd-test"

    def test_scheme_separator_stripped(self):
        with mock.patch.dict(os.environ, {"MOBYCLI_DEEPLINK_SCHEME": "dd-test://"}):
            assert load_config().deeplink_scheme == "dd-test"

    @pytest.mark.parametrize("value", ["", "   "])
    def test_blank_scheme_uses_default(self, value: str):
        with mock.patch.dict(os.environ, {"MOBYCLI_DEEPLINK_SCHEME": value}):
            assert load_config().deeplink_scheme == DEFAULT_DEEPLINK_SCHEME


class TestLogDebug:
    """MOBYCLI_LOG_DEBUG."""

    @pytest.mark.parametrize("value", ["true", "TRUE", "1", "yes", "on"])
    def test_truthy_values(self, value: str):
        with mock.patch.dict(os.environ, {"MOBYCLI_LOG_DEBUG": value}):
            config = load_config()
            assert config.log_debug is True
            assert config.log_file is not None
            assert "mobycli_debug_" in config.log_file

    @pytest.mark.parametrize("value", ["false", "0", "no", "off", "", "maybe"])
    def test_falsy_values(self, value: str):
        with mock.patch.dict(os.environ, {"MOBYCLI_LOG_DEBUG": value}):
            config = load_config()
            assert config.log_debug is False
            assert config.log_file is None


class TestGlobalConfig:
    """get_config / reload_config."""

    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_reload_picks_up_environment(self):
        first = get_config()
        with mock.patch.dict(os.environ, {"DOCKER_COM_DOCKER_CLI": "/x/cli"}):
            second = reload_config()
        assert second is not first
        assert get_config().cli_override == "/x/cli"

    def test_repr(self):
        assert "deeplink_scheme=docker-desktop" in repr(load_config())
