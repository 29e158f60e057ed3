import logging
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from wallet_tracker.utils.setup_logging import PACKAGE_LOGGER, setup_logging


class TestSetupLogging:
    """Tests for the setup_logging module."""

    @pytest.fixture
    def sample_logging_config(self, tmp_path):
        """Create a sample logging config file."""
        config = {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {"format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s"},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": "INFO",
                    "formatter": "standard",
                    "stream": "ext://sys.stdout",
                },
                "file": {
                    "class": "logging.FileHandler",
                    "level": "DEBUG",
                    "formatter": "standard",
                    "filename": "test.log",
                    "mode": "a",
                },
            },
            "loggers": {
                "wallet_tracker": {
                    "level": "WARNING",
                    "handlers": ["console", "file"],
                    "propagate": False,
                }
            },
            "root": {"level": "ERROR", "handlers": ["console"]},
        }

        config_path = tmp_path / "logging_config.yaml"
        with open(config_path, "w") as f:
            yaml.dump(config, f)

        return config_path

    @pytest.fixture(autouse=True)
    def restore_package_level(self):
        package_logger = logging.getLogger(PACKAGE_LOGGER)
        level = package_logger.level
        yield
        package_logger.setLevel(level)

    @patch("logging.config.dictConfig")
    def test_setup_logging_with_valid_config(self, mock_dict_config, sample_logging_config):
        """Test setting up logging with a valid config file."""
        setup_logging(sample_logging_config, "DEBUG")

        mock_dict_config.assert_called_once()
        config_dict = mock_dict_config.call_args[0][0]

        assert "version" in config_dict
        assert "handlers" in config_dict
        assert "wallet_tracker" in config_dict["loggers"]
        # Left alone when no log file is given
        assert config_dict["handlers"]["file"]["filename"] == "test.log"

    @patch("logging.config.dictConfig")
    def test_log_file_path_is_applied(self, mock_dict_config, sample_logging_config, tmp_path):
        log_file: Path = tmp_path / "logs" / "app.log"

        setup_logging(sample_logging_config, "INFO", log_file)

        config_dict = mock_dict_config.call_args[0][0]
        assert config_dict["handlers"]["file"]["filename"] == str(log_file)
        assert "filename" not in config_dict["handlers"]["console"]
        assert log_file.parent.is_dir()

    @patch("logging.config.dictConfig")
    @patch("logging.warning")
    def test_setup_logging_with_invalid_level(
        self, mock_warning, mock_dict_config, sample_logging_config
    ):
        """Test setting up logging with an invalid log level."""
        setup_logging(sample_logging_config, "INVALID_LEVEL")

        mock_dict_config.assert_called_once()
        mock_warning.assert_called_once()
        assert "Invalid log level" in mock_warning.call_args[0][0]

    @patch("logging.config.dictConfig")
    def test_setup_logging_with_override_level(self, mock_dict_config, sample_logging_config):
        """Test overriding the package log level."""
        setup_logging(sample_logging_config, "error")

        assert logging.getLogger(PACKAGE_LOGGER).level == logging.ERROR

    @patch("logging.basicConfig")
    @patch("logging.error")
    @patch("builtins.print")
    def test_setup_logging_with_missing_file(self, mock_print, mock_error, mock_basic_config):
        """Test handling of a missing config file."""
        nonexistent_path = Path("/path/does/not/exist.yaml")

        setup_logging(nonexistent_path, "INFO")

        mock_basic_config.assert_called_once()
        mock_error.assert_called_once()
        assert "Failed to load logging config" in mock_error.call_args[0][0]

    @patch("logging.basicConfig")
    @patch("logging.error")
    @patch("builtins.print")
    def test_setup_logging_with_bad_config(
        self, mock_print, mock_error, mock_basic_config, sample_logging_config
    ):
        """Test handling of a config dictConfig rejects."""
        with patch("logging.config.dictConfig", side_effect=ValueError("Unable to configure handler")):
            setup_logging(sample_logging_config, "INFO")

            mock_basic_config.assert_called_once()
            mock_error.assert_called_once()
            assert "Invalid logging config" in mock_error.call_args[0][0]
