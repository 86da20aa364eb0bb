"""
Tests for the command-line interface.

The sync command runs with the offline dummy model.

Run with: pytest tests/test_cli.py -v
"""

import json

import pytest
from typer.testing import CliRunner

from jsontrans_llms import __version__
from jsontrans_llms.cli import app

runner = CliRunner()


def write_json(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture
def locales(tmp_path):
    folder = tmp_path / "locales"
    write_json(folder / "en.json", {"hero": {"title": "Welcome"}, "items": ["One"]})
    write_json(folder / "es.json", {})
    return folder


def sync_args(tmp_path, folder, *extra):
    return [
        "sync",
        "-f", str(folder),
        "-m", "dummy",
        "-c", str(tmp_path / "cache.json"),
        "--report", str(tmp_path / "report.json"),
        "--skip-health-check",
        *extra,
    ]


class TestGeneral:
    """Tests for version and model listing."""

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_models(self):
        result = runner.invoke(app, ["models"])
        assert result.exit_code == 0
        assert "Supported Models" in result.output


class TestSync:
    """Tests for the sync command."""

    def test_sync_translates_missing_keys(self, tmp_path, locales):
        result = runner.invoke(app, sync_args(tmp_path, locales))
        assert result.exit_code == 0, result.output
        assert json.loads((locales / "es.json").read_text(encoding="utf-8")) == {
            "hero": {"title": "[es] Welcome"},
            "items": ["[es] One"],
        }
        assert (tmp_path / "cache.json").exists()
        assert not (tmp_path / "report.json").exists()
        assert "Translation completed" in result.output

    def test_comma_separated_languages(self, tmp_path, locales):
        result = runner.invoke(app, sync_args(tmp_path, locales, "-l", "de,fr"))
        assert result.exit_code == 0, result.output
        assert (locales / "de.json").exists()
        assert (locales / "fr.json").exists()

    def test_language_file(self, tmp_path, locales):
        language_file = tmp_path / "languages.txt"
        language_file.write_text("it\n", encoding="utf-8")
        result = runner.invoke(app, sync_args(tmp_path, locales, "-l", str(language_file)))
        assert result.exit_code == 0, result.output
        assert (locales / "it.json").exists()

    def test_unknown_preset(self, tmp_path, locales):
        result = runner.invoke(app, sync_args(tmp_path, locales, "-p", "turbo"))
        assert result.exit_code == 1
        assert "Unknown preset" in result.output

    def test_missing_template(self, tmp_path):
        folder = tmp_path / "empty"
        folder.mkdir()
        result = runner.invoke(app, sync_args(tmp_path, folder))
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_invalid_batch_size(self, tmp_path, locales):
        result = runner.invoke(app, sync_args(tmp_path, locales, "--batch-size", "50"))
        assert result.exit_code == 1

    def test_broken_target_fails_run(self, tmp_path, locales):
        (locales / "es.json").write_text("{", encoding="utf-8")
        result = runner.invoke(app, sync_args(tmp_path, locales))
        assert result.exit_code == 1


class TestCheck:
    """Tests for the check command."""

    def test_reports_missing_keys(self, locales):
        result = runner.invoke(app, ["check", "-f", str(locales)])
        assert result.exit_code == 0
        assert "hero.title" in result.output

    def test_strict_fails_on_missing_keys(self, locales):
        result = runner.invoke(app, ["check", "-f", str(locales), "--strict"])
        assert result.exit_code == 1

    def test_strict_passes_after_sync(self, tmp_path, locales):
        runner.invoke(app, sync_args(tmp_path, locales))
        result = runner.invoke(app, ["check", "-f", str(locales), "--strict"])
        assert result.exit_code == 0, result.output

    def test_invalid_marker(self, tmp_path):
        folder = tmp_path / "locales"
        write_json(folder / "en.json", {"a": "A", "__updated_keys__": ["b"]})
        write_json(folder / "es.json", {"a": "Ah"})
        result = runner.invoke(app, ["check", "-f", str(folder), "--strict"])
        assert result.exit_code == 1
        assert "Invalid __updated_keys__" in result.output


class TestMaintenance:
    """Tests for the cache, clear and keys commands."""

    def test_cache_stats_and_clear(self, tmp_path, locales):
        runner.invoke(app, sync_args(tmp_path, locales))
        cache_file = tmp_path / "cache.json"

        result = runner.invoke(app, ["cache", "-c", str(cache_file)])
        assert result.exit_code == 0
        assert "Entries" in result.output

        result = runner.invoke(app, ["cache", "-c", str(cache_file), "--clear"])
        assert result.exit_code == 0
        assert json.loads(cache_file.read_text(encoding="utf-8"))["translations"] == {}

    def test_missing_cache(self, tmp_path):
        result = runner.invoke(app, ["cache", "-c", str(tmp_path / "none.json")])
        assert result.exit_code == 0
        assert "No cache file" in result.output

    def test_clear(self, locales):
        write_json(locales / "es.json", {"hero": {"title": "Hola"}})
        result = runner.invoke(app, ["clear", "-f", str(locales), "--yes"])
        assert result.exit_code == 0
        assert json.loads((locales / "es.json").read_text(encoding="utf-8")) == {}
        assert json.loads((locales / "en.json").read_text(encoding="utf-8"))["hero"] == {"title": "Welcome"}

    def test_clear_aborted(self, locales):
        write_json(locales / "es.json", {"a": "b"})
        result = runner.invoke(app, ["clear", "-f", str(locales)], input="n\n")
        assert result.exit_code == 0
        assert json.loads((locales / "es.json").read_text(encoding="utf-8")) == {"a": "b"}

    def test_keys_unknown_action(self):
        result = runner.invoke(app, ["keys", "rotate", "openai"])
        assert result.exit_code == 1
        assert "Unknown action" in result.output
