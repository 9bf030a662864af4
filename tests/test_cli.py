"""Tests for CLI commands.

Tests info, resolve, preprocess, and clear-cache commands.
"""

import json
from unittest.mock import patch

import pytest
from loguru import logger
from typer.testing import CliRunner

from m2d_image.cli import app
from m2d_image.config import Settings

runner = CliRunner()


@pytest.fixture
def cli_settings(temp_cache_dir):
    """Patch CLI settings to use a temporary cache."""
    settings = Settings(_env_file=None, cache_dir=str(temp_cache_dir))
    with patch("m2d_image.cli.settings", settings):
        yield settings


class TestInfoCommand:
    """Test info command."""

    def test_info_displays_settings(self, cli_settings):
        """Test info command displays settings and cache status."""
        result = runner.invoke(app, ["info"])

        assert result.exit_code == 0
        assert "m2d-image Configuration" in result.output
        assert "Cached images: 0" in result.output

    def test_info_cache_disabled(self):
        """Test info reports a disabled cache."""
        with patch("m2d_image.cli.settings", Settings(_env_file=None, cache_enabled=False)):
            result = runner.invoke(app, ["info"])

        assert result.exit_code == 0
        assert "Image cache disabled" in result.output


class TestLogFileOption:
    """Test the --log-file option."""

    def test_log_file_written(self, cli_settings, temp_dir):
        """Test debug logs of a command are written to the log file."""
        log_file = temp_dir / "m2d.log"

        result = runner.invoke(app, ["--log-file", str(log_file), "info"])
        logger.remove()

        assert result.exit_code == 0
        assert "Displaying configuration and status" in log_file.read_text()


class TestResolveCommand:
    """Test resolve command."""

    def test_resolve_data_url(self, cli_settings, temp_dir, sample_png_bytes, sample_png_data_url):
        """Test resolving a data URL and saving the image."""
        out = temp_dir / "out.png"

        result = runner.invoke(app, ["resolve", sample_png_data_url, "--out", str(out)])

        assert result.exit_code == 0
        assert "png" in result.output
        assert out.read_bytes() == sample_png_bytes

    def test_resolve_failure_uses_placeholder(self, cli_settings, temp_dir):
        """Test an unresolvable source reports the placeholder."""
        result = runner.invoke(app, ["resolve", str(temp_dir / "missing.png"), "--no-cache"])

        assert result.exit_code == 0
        assert "placeholder used" in result.output


class TestPreprocessCommand:
    """Test preprocess command."""

    def test_preprocess_tree(self, cli_settings, temp_dir, sample_png_data_url):
        """Test resolving a tree file and writing the result."""
        tree = temp_dir / "tree.json"
        definitions = temp_dir / "defs.json"
        out = temp_dir / "out.json"
        tree.write_text(
            json.dumps(
                {
                    "type": "root",
                    "children": [
                        {"type": "image", "url": sample_png_data_url},
                        {"type": "imageReference", "identifier": "logo"},
                    ],
                }
            )
        )
        definitions.write_text(json.dumps({"logo": sample_png_data_url}))

        result = runner.invoke(
            app, ["preprocess", str(tree), "-d", str(definitions), "-o", str(out)]
        )

        assert result.exit_code == 0
        assert "Resolved 2 images" in result.output
        resolved = json.loads(out.read_text())
        assert resolved["children"][1]["data"]["type"] == "png"
        assert resolved["children"][1]["data"]["transformation"] == {"width": 400, "height": 200}

    def test_preprocess_reports_failures(self, cli_settings, temp_dir):
        """Test failed images are counted."""
        tree = temp_dir / "tree.json"
        tree.write_text(json.dumps({"type": "root", "children": [{"type": "image", "url": ""}]}))

        result = runner.invoke(app, ["preprocess", str(tree)])

        assert result.exit_code == 0
        assert "1 failed" in result.output

    def test_preprocess_missing_file(self, cli_settings, temp_dir):
        """Test a missing tree file exits with an error."""
        result = runner.invoke(app, ["preprocess", str(temp_dir / "missing.json")])

        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_preprocess_invalid_json(self, cli_settings, temp_dir):
        """Test an invalid tree file exits with an error."""
        tree = temp_dir / "tree.json"
        tree.write_text("{not json")

        result = runner.invoke(app, ["preprocess", str(tree)])

        assert result.exit_code == 1
        assert "Cannot load input" in result.output


class TestClearCacheCommand:
    """Test clear-cache command."""

    def test_clear_cache(self, cli_settings, sample_png_data_url):
        """Test clearing images persisted by a previous run."""
        runner.invoke(app, ["resolve", sample_png_data_url])

        result = runner.invoke(app, ["clear-cache", "--yes"])

        assert result.exit_code == 0
        assert "Removed 1 cached images" in result.output

    def test_clear_cache_aborted(self, cli_settings):
        """Test declining the confirmation keeps the cache."""
        result = runner.invoke(app, ["clear-cache"], input="n\n")

        assert result.exit_code == 0
        assert "Removed" not in result.output


class TestHelpOutput:
    """Test help output for commands."""

    def test_main_help(self):
        """Test main help output."""
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        assert "info" in result.output
        assert "resolve" in result.output
        assert "preprocess" in result.output
        assert "clear-cache" in result.output

    def test_resolve_help(self):
        """Test resolve command help."""
        result = runner.invoke(app, ["resolve", "--help"])

        assert result.exit_code == 0
        assert "--width" in result.output
        assert "--no-cache" in result.output
