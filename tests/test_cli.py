"""
Tests for command line parsing and the offline CLI commands.

Run with: pytest tests/test_cli.py -v
"""

import json

import pytest

from config.settings import AnalysisConfig, CacheConfig
from main import create_cache, main, parse_args, split_cells
from src.loaders.analysis_cache import InMemoryAnalysisCache


class TestParseArgs:
    """Argument parsing."""

    def test_split_cells(self):
        assert split_cells("A1, B2,,C3 ") == ["A1", "B2", "C3"]

    def test_analysis_options(self):
        args = parse_args(
            ["--front", "f.jpg", "--side", "s.jpg", "--parallel", "--product-id", "p-1"]
        )
        assert args.front == "f.jpg"
        assert args.back is None
        assert args.side == "s.jpg"
        assert args.parallel
        assert args.product_id == "p-1"
        assert args.product_name == "Product"

    def test_score_lists(self):
        args = parse_args(["--score", "A1,B2", "--actual", "B2"])
        assert args.score == ["A1", "B2"]
        assert args.actual == ["B2"]

    def test_place_rejects_unknown_element(self):
        with pytest.raises(SystemExit):
            parse_args(["--analyze", "x.jpg", "--place", "sticker"])


class TestOfflineCommands:
    """Commands that run without the vision model."""

    def test_score_json(self, capsys):
        assert main(["--score", "A1,A2", "--actual", "A2,B1,B2,B3", "--json"]) == 0
        output = json.loads(capsys.readouterr().out)
        assert output == {
            "precision": 25,
            "accuracy": 50,
            "unintended_changes": ["B1", "B2", "B3"],
            "missed_targets": ["A1"],
        }

    def test_score_console(self):
        assert main(["--score", "A1", "--actual", "A1"]) == 0

    def test_nothing_to_do(self):
        assert main([]) == 2


class TestCreateCache:
    """Cache selection."""

    def test_no_cache_flag(self):
        assert isinstance(create_cache(True, AnalysisConfig()), InMemoryAnalysisCache)

    def test_missing_supabase_credentials_falls_back(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_KEY", raising=False)
        config = AnalysisConfig(cache=CacheConfig(ttl_days=7))
        cache = create_cache(False, config)
        assert isinstance(cache, InMemoryAnalysisCache)
        assert cache.config.ttl_days == 7
