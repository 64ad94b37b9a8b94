"""Tests for the command-line entry points."""

import argparse
import json
import sys
from unittest.mock import patch

import pytest

from refscout.cli import main
from refscout.cli._shared import add_discovery_arguments, config_overrides
from refscout.models import SearchIndex


@pytest.fixture(autouse=True)
def config_home(tmp_path, monkeypatch):
    monkeypatch.setenv("REFSCOUT_HOME", str(tmp_path / "home"))


def _parse(argv):
    parser = argparse.ArgumentParser()
    add_discovery_arguments(parser)
    return parser.parse_args(argv)


class TestConfigOverrides:
    def test_no_flags(self):
        assert config_overrides(_parse([])) == {}

    def test_flags(self):
        args = _parse(["--min-publications", "2", "--years", "3", "--no-arxiv", "--no-reasoning"])
        assert config_overrides(args) == {
            "min_publications": 2,
            "years_lookback": 3,
            "search_arxiv": False,
            "generate_reasoning": False,
        }


class TestMain:
    def test_no_command(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["refscout"])
        with pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 1

    def test_discover_missing_file(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setattr(sys, "argv", ["refscout", "discover", str(tmp_path / "nope.json")])
        with pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 1
        assert "Analysis file not found" in capsys.readouterr().out

    def test_discover_writes_result(self, monkeypatch, tmp_path, capsys, analysis, fake_client, article_factory):
        analysis_path = tmp_path / "analysis.json"
        analysis_path.write_text(json.dumps(analysis.to_dict()))
        output = tmp_path / "out" / "result.json"
        pubmed = fake_client(
            SearchIndex.PUBMED,
            articles=[article_factory("t1", title="Marine phage ecology", authors=["Kim Park", "Mia Wong"])],
        )
        monkeypatch.setattr(
            sys,
            "argv",
            ["refscout", "discover", str(analysis_path), "--no-reasoning", "--quiet", "-o", str(output)],
        )

        with patch("refscout.search.create_clients", return_value={SearchIndex.PUBMED: pubmed}):
            main()

        data = json.loads(output.read_text())
        assert data["analysis"]["proposal"]["title"] == analysis.proposal.title
        ranked = [c["name"] for c in data["discovery"]["ranked"]]
        assert ranked == ["Mia Wong", "Jane Q. Smith"]
        assert data["discovery"]["unverified"][0]["reason"] == "No matching publications found"
        out = capsys.readouterr().out
        assert "Discovery complete" in out
        assert "Mia Wong" in out


class TestConfigCommand:
    def test_set_and_show(self, monkeypatch, capsys):
        monkeypatch.setattr(
            sys, "argv", ["refscout", "config", "--set", "min_publications=2", "--set", "years_lookback=4"]
        )
        main()
        out = capsys.readouterr().out
        assert "Saved 2 setting(s)" in out
        assert "  min_publications: 2" in out
        assert "  years_lookback: 4" in out

    def test_unknown_setting(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["refscout", "config", "--set", "bogus=1"])
        with pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 1
        assert "Unknown discovery setting: bogus" in capsys.readouterr().out

    def test_malformed_assignment(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["refscout", "config", "--set", "min_publications"])
        with pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 1
