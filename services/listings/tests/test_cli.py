"""
Tests for the operator CLI.
"""

from typer.testing import CliRunner

from listings.cli import app

runner = CliRunner()


class TestCoords:
    def test_prints_pair(self):
        result = runner.invoke(app, ["coords", "https://www.google.com/maps/place/X/@10.8231,106.6297,17z"])

        assert result.exit_code == 0
        assert "10.8231,106.6297" in result.stdout

    def test_short_link_hint(self):
        result = runner.invoke(app, ["coords", "https://maps.app.goo.gl/AbCdEf123"])

        assert result.exit_code == 1
        assert "short links" in result.stdout
