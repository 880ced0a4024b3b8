"""Tests for CLI common utilities."""

import argparse

import pytest

from gsbt.cli.common import (
    add_output_args,
    add_verbosity_args,
    get_log_level,
    get_output_format,
    load_cli_config,
)
from gsbt.config import ConfigError


class TestAddVerbosityArgs:
    """Tests for add_verbosity_args function."""

    def test_adds_verbose(self):
        """Test that --verbose is added."""
        parser = argparse.ArgumentParser()
        add_verbosity_args(parser)
        args = parser.parse_args(["--verbose"])
        assert args.verbose is True

    def test_adds_quiet(self):
        """Test that --quiet is added."""
        parser = argparse.ArgumentParser()
        add_verbosity_args(parser)
        args = parser.parse_args(["--quiet"])
        assert args.quiet is True

    def test_adds_debug(self):
        """Test that --debug is added."""
        parser = argparse.ArgumentParser()
        add_verbosity_args(parser)
        args = parser.parse_args(["--debug"])
        assert args.debug is True

    def test_short_verbose(self):
        """Test that -v works for verbose."""
        parser = argparse.ArgumentParser()
        add_verbosity_args(parser)
        args = parser.parse_args(["-v"])
        assert args.verbose is True

    def test_short_quiet(self):
        """Test that -q works for quiet."""
        parser = argparse.ArgumentParser()
        add_verbosity_args(parser)
        args = parser.parse_args(["-q"])
        assert args.quiet is True

    def test_defaults_are_false(self):
        """Test that defaults are False."""
        parser = argparse.ArgumentParser()
        add_verbosity_args(parser)
        args = parser.parse_args([])
        assert args.verbose is False
        assert args.quiet is False
        assert args.debug is False


class TestGetLogLevel:
    """Tests for get_log_level function."""

    def test_debug_flag(self):
        """Test that debug flag returns DEBUG."""
        args = argparse.Namespace(debug=True, quiet=False, verbose=False)
        assert get_log_level(args) == "DEBUG"

    def test_quiet_flag(self):
        """Test that quiet flag returns WARNING."""
        args = argparse.Namespace(debug=False, quiet=True, verbose=False)
        assert get_log_level(args) == "WARNING"

    def test_verbose_flag(self):
        """Test that verbose flag returns DEBUG."""
        args = argparse.Namespace(debug=False, quiet=False, verbose=True)
        assert get_log_level(args) == "DEBUG"

    def test_no_flags(self):
        """Test that no flags returns INFO."""
        args = argparse.Namespace(debug=False, quiet=False, verbose=False)
        assert get_log_level(args) == "INFO"

    def test_debug_takes_precedence(self):
        """Test that debug takes precedence over other flags."""
        args = argparse.Namespace(debug=True, quiet=True, verbose=True)
        assert get_log_level(args) == "DEBUG"

    def test_missing_attributes(self):
        """Test handling of missing attributes."""
        args = argparse.Namespace()
        # Should default to INFO when attributes are missing
        assert get_log_level(args) == "INFO"

    def test_partial_attributes(self):
        """Test handling of partial attributes."""
        args = argparse.Namespace(debug=True)
        assert get_log_level(args) == "DEBUG"

        args = argparse.Namespace(quiet=True)
        assert get_log_level(args) == "WARNING"


class TestOutputArgs:
    """Tests for add_output_args and get_output_format."""

    def test_default_is_text(self):
        """Test that text is the default output format."""
        parser = argparse.ArgumentParser()
        add_output_args(parser)
        args = parser.parse_args([])
        assert get_output_format(args) == "text"

    @pytest.mark.parametrize("fmt", ["text", "json", "rich"])
    def test_choices(self, fmt):
        """Test that every output format is accepted."""
        parser = argparse.ArgumentParser()
        add_output_args(parser)
        args = parser.parse_args(["--output", fmt])
        assert get_output_format(args) == fmt

    def test_invalid_choice(self):
        """Test that unknown formats are rejected."""
        parser = argparse.ArgumentParser()
        add_output_args(parser)
        with pytest.raises(SystemExit):
            parser.parse_args(["-o", "xml"])

    def test_missing_attribute(self):
        """Test fallback when the option is absent."""
        assert get_output_format(argparse.Namespace()) == "text"


class TestLoadCliConfig:
    """Tests for load_cli_config function."""

    def test_loads_explicit_config(self, config_file):
        """Test loading the file named by --config."""
        config = load_cli_config(argparse.Namespace(config=str(config_file)))
        assert [s.name for s in config.servers] == ["ark", "valheim", "nitrado-ark"]

    def test_missing_config(self, tmp_path):
        """Test that a missing file propagates as ConfigError."""
        with pytest.raises(ConfigError):
            load_cli_config(argparse.Namespace(config=str(tmp_path / "nope.toml")))
