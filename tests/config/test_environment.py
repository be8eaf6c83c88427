"""Tests for Environment, settings and logging configuration."""

import logging
import os

import pytest
import yaml

from quicksub.config.environment import Environment
from quicksub.config.logging_config import configure_logging, get_logger
from quicksub.config.settings import (
    SETTINGS_FILE,
    get_system_file_path,
    get_value,
    load_settings,
)


class TestSettings:
    def test_system_file_path(self, tmp_path):
        assert get_system_file_path(SETTINGS_FILE) == tmp_path / ".config" / "quicksub" / SETTINGS_FILE

    def test_load_missing_settings(self):
        assert load_settings() == {}

    def test_load_settings(self):
        settings_path = get_system_file_path(SETTINGS_FILE)
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text(yaml.dump({"AWS_REGION": "eu-central-1"}))
        assert load_settings() == {"AWS_REGION": "eu-central-1"}

    def test_get_value_precedence(self, monkeypatch):
        settings = {"AWS_REGION": "from-settings"}
        defaults = {"AWS_REGION": "from-defaults", "OTHER": "default-only"}

        assert get_value("AWS_REGION", settings, defaults) == "from-settings"
        assert get_value("OTHER", settings, defaults) == "default-only"

        monkeypatch.setenv("AWS_REGION", "from-env")
        assert get_value("AWS_REGION", settings, defaults) == "from-env"

    def test_get_value_missing(self):
        with pytest.raises(KeyError):
            get_value("NOT_THERE", {}, {})
        assert get_value("NOT_THERE", {}, {}, default=None) is None


class TestEnvironment:
    def test_default_region(self):
        # Unset so boto3 can fall back to the profile's configured region
        assert Environment.get_aws_region() is None
        assert Environment.get_aws_profile() is None
        assert Environment.get_config_path() is None

    def test_region_from_environment(self, monkeypatch):
        monkeypatch.setenv("AWS_REGION", "ap-southeast-2")
        assert Environment.get_aws_region() == "ap-southeast-2"

    def test_region_from_settings_file(self, tmp_path):
        settings_path = get_system_file_path(SETTINGS_FILE)
        settings_path.parent.mkdir(parents=True)
        settings_path.write_text(yaml.dump({"AWS_REGION": "sa-east-1"}))
        Environment.reset()

        assert Environment.get_aws_region() == "sa-east-1"

    def test_dotenv_file(self, tmp_path, monkeypatch):
        (tmp_path / ".env").write_text("AWS_PROFILE=analytics\n")
        Environment.reset()

        assert Environment.get_aws_profile() == "analytics"
        os.environ.pop("AWS_PROFILE", None)

    def test_config_path_expands_user(self, tmp_path, monkeypatch):
        monkeypatch.setenv("QUICKSUB_CONFIG_PATH", "~/infra/resources.yaml")
        assert Environment.get_config_path() == tmp_path / "infra" / "resources.yaml"

    @pytest.mark.parametrize(
        "env, expected",
        [
            ({}, "INFO"),
            ({"LOG_LEVEL": "warning"}, "WARNING"),
            ({"DEBUG": "1"}, "DEBUG"),
            ({"DEBUG": "false"}, "INFO"),
            ({"QUICKSUB_LOG_LEVEL": "error"}, "ERROR"),
        ],
    )
    def test_log_level(self, monkeypatch, env, expected):
        monkeypatch.delenv("QUICKSUB_LOG_LEVEL", raising=False)
        for key, value in env.items():
            monkeypatch.setenv(key, value)
        assert Environment.get_log_level() == expected


class TestLogging:
    def test_get_logger(self):
        logger = get_logger("quicksub.tests.sample")
        assert logger is logging.getLogger("quicksub.tests.sample")
        assert logger.level == logging.INFO

    def test_configure_logging_updates_module_loggers(self):
        logger = get_logger("quicksub.tests.sample")

        configure_logging(level="DEBUG")
        assert logger.level == logging.DEBUG
        assert logging.getLogger("botocore").level == logging.WARNING

        configure_logging(level="INFO")
        assert logger.level == logging.INFO

    def test_configure_logging_sets_root_level(self):
        try:
            assert configure_logging(level="warning") == "WARNING"
            assert logging.getLogger().level == logging.WARNING
        finally:
            configure_logging(level="INFO")
