"""
CLI Tests

All commands run with --offline against a temporary cache.
"""

import json
import logging

import pytest

from harm_catalog.cli import main
from harm_catalog.config import ENV_CACHE_PATH, ENV_LOG_LEVEL, ENV_TIMEOUT


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    for name in (ENV_CACHE_PATH, ENV_TIMEOUT, ENV_LOG_LEVEL):
        monkeypatch.delenv(name, raising=False)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def run(tmp_path, *args):
    return main(["--offline", "--cache", str(tmp_path / "cache.sqlite3"), *args])


class TestCommands:

    def test_combo(self, tmp_path, capsys):
        assert run(tmp_path, "combo", "MDMA", "tramadol") == 0
        out = capsys.readouterr().out
        assert "mdma + tramadol" in out
        assert "Dangerous" in out
        assert "serotonin" in out

    def test_combo_missing(self, tmp_path, capsys):
        assert run(tmp_path, "combo", "cannabis", "tramadol") == 0
        assert "No documented interaction" in capsys.readouterr().out

    def test_timeline_from_text(self, tmp_path, capsys):
        assert run(tmp_path, "timeline", "30 minutes", "2 hours", "1 hour") == 0
        out = capsys.readouterr().out
        assert "onset" in out
        assert "axis: 0h" in out

    def test_timeline_from_substance(self, tmp_path, capsys):
        assert run(tmp_path, "timeline", "--substance", "acid") == 0
        assert "after_effects" in capsys.readouterr().out

    def test_timeline_unknown_substance(self, tmp_path, capsys):
        assert run(tmp_path, "timeline", "--substance", "unobtainium") == 1

    def test_timeline_without_data(self, tmp_path, capsys):
        assert run(tmp_path, "timeline") == 0
        assert "No duration data" in capsys.readouterr().out

    def test_search(self, tmp_path, capsys):
        assert run(tmp_path, "search", "--category", "psychedelic") == 0
        out = capsys.readouterr().out
        assert "LSD" in out
        assert "MDMA" not in out

    def test_status_json(self, tmp_path, capsys):
        assert run(tmp_path, "status", "--json") == 0
        status = json.loads(capsys.readouterr().out)
        assert status["substances"]["state"] == "bootstrapped"
        assert status["definitions"]["records"] == 6

    def test_sync_offline_keeps_bundled(self, tmp_path, capsys):
        assert run(tmp_path, "sync") == 0
        out = capsys.readouterr().out
        assert "[OK]   substances: bootstrapped" in out


class TestArguments:

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 2
        assert "usage" in capsys.readouterr().out

    def test_missing_config_file(self, tmp_path, capsys):
        assert main(["--config", str(tmp_path / "nope.json"), "status"]) == 2
        assert "Config file not found" in capsys.readouterr().out

    def test_timeline_rejects_extra_durations(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            run(tmp_path, "timeline", "30 minutes", "2 hours", "1 hour", "5 hours")
        assert exc_info.value.code == 2
        assert "at most 3 durations" in capsys.readouterr().err

    def test_timeline_accepts_partial_durations(self, tmp_path, capsys):
        assert run(tmp_path, "timeline", "30 minutes") == 0
        out = capsys.readouterr().out
        assert "total" in out
        assert "30.0 min" in out
