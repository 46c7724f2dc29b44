"""
Tests for the cached, retried multi-view image analyzer.

The vision client, image fetcher and cache are replaced with in-process
fakes; retry delays are zeroed through config.

Run with: pytest tests/test_image_analyzer.py -v
"""

import asyncio

import pytest

from config.settings import AnalysisConfig, VisionConfig
from src.ai.image_analyzer import (
    ImageAnalyzer,
    MultiViewResult,
    build_analysis_prompt,
    generate_combined_analysis,
)
from src.ai.openai_client import VisionModelError, VisionResponse
from src.loaders.analysis_cache import InMemoryAnalysisCache
from src.spatial.models import ImageAnalysis

FRONT = "https://cdn.example.com/tee-front.jpg"
BACK = "https://cdn.example.com/tee-back.jpg"
SIDE = "https://cdn.example.com/tee-side.jpg"

FRONT_TEXT = """Product type: T-shirt
Colors: Red
Materials: cotton
Key features: crew neck
A1: Empty white background
B2: Shirt chest with brand logo
"""
BACK_TEXT = """Product type: T-shirt
Colors: Blue, Red
Materials: cotton
Key features: back print
"""
SIDE_TEXT = "Product type: T-shirt\nColors: Red\nKey features: side seam"


class FakeVisionClient:
    """Replays scripted replies per image. Exceptions in the script are raised."""

    def __init__(self, script: dict):
        self.script = {image: list(replies) for image, replies in script.items()}
        self.calls = []

    async def analyze_image(
        self, image, prompt, system=None, max_tokens=None, temperature=None
    ):
        self.calls.append(
            {"image": image, "prompt": prompt, "system": system, "max_tokens": max_tokens}
        )
        replies = self.script[image]
        reply = replies.pop(0) if len(replies) > 1 else replies[0]
        if isinstance(reply, Exception):
            raise reply
        return VisionResponse(text=reply, model="gpt-4o", total_tokens=640)

    def calls_for(self, image: str) -> int:
        return sum(1 for call in self.calls if call["image"] == image)


class BrokenCache:
    """Cache whose backend is down."""

    def get(self, image_url):
        raise ConnectionError("cache offline")

    def put(self, image_url, analysis, metadata=None):
        raise ConnectionError("cache offline")

    def link(self, *args, **kwargs):
        raise ConnectionError("cache offline")


async def no_fetch(image_url):
    return None


def fast_config() -> AnalysisConfig:
    return AnalysisConfig(
        vision=VisionConfig(retry_delay_seconds=0, retry_delay_cap_seconds=0)
    )


def make_analyzer(script: dict, cache=None, image_fetcher=no_fetch):
    client = FakeVisionClient(script)
    analyzer = ImageAnalyzer(
        client, cache=cache, config=fast_config(), image_fetcher=image_fetcher
    )
    return analyzer, client


class TestPrompt:
    def test_grid_section_optional(self):
        assert "SPATIAL GRID ANALYSIS" in build_analysis_prompt("Tee")
        assert "SPATIAL GRID ANALYSIS" not in build_analysis_prompt(
            "Tee", include_spatial_grid=False
        )

    def test_context_line(self):
        prompt = build_analysis_prompt("Tee", additional_context="This is the back view")
        assert "Analyze this Tee product image" in prompt
        assert "Context: This is the back view" in prompt


class TestAnalyzeImage:
    def test_success_parses_and_caches(self):
        cache = InMemoryAnalysisCache()
        analyzer, client = make_analyzer({FRONT: [FRONT_TEXT]}, cache=cache)

        analysis = asyncio.run(analyzer.analyze_image(FRONT, "Tee", view="front"))

        assert analysis.product_type == "T-shirt"
        assert analysis.spatial_grid.square("B2").has_logo
        assert analysis.view_specific_details == {"front": FRONT_TEXT}
        assert analysis.timestamp is not None
        assert client.calls[0]["max_tokens"] == 1500

        row = cache.rows[FRONT]
        assert row["tokens_used"] == 640
        assert row["model_used"] == "gpt-4o"
        assert cache.get(FRONT) == analysis

    def test_without_grid(self):
        analyzer, client = make_analyzer({FRONT: [FRONT_TEXT]})
        analysis = asyncio.run(
            analyzer.analyze_image(FRONT, include_spatial_grid=False)
        )
        assert analysis.spatial_grid is None
        assert client.calls[0]["max_tokens"] == 800

    def test_fetched_data_url_is_sent(self):
        async def fetch(image_url):
            return "data:image/png;base64,iVBORw0KGgo="

        analyzer, client = make_analyzer(
            {"data:image/png;base64,iVBORw0KGgo=": [FRONT_TEXT]}, image_fetcher=fetch
        )
        assert asyncio.run(analyzer.analyze_image(FRONT)) is not None
        assert client.calls[0]["image"].startswith("data:image/png")

    def test_retries_then_succeeds(self):
        analyzer, client = make_analyzer(
            {FRONT: [VisionModelError("rate limited"), FRONT_TEXT]}
        )
        analysis = asyncio.run(analyzer.analyze_image(FRONT))
        assert analysis.product_type == "T-shirt"
        assert client.calls_for(FRONT) == 2

    def test_empty_response_counts_as_failure(self):
        analyzer, client = make_analyzer({FRONT: ["", "   \n"]})
        assert asyncio.run(analyzer.analyze_image(FRONT)) is None
        assert client.calls_for(FRONT) == 3

    def test_non_retryable_stops_immediately(self):
        cache = InMemoryAnalysisCache()
        analyzer, client = make_analyzer(
            {FRONT: [VisionModelError("insufficient_quota", retryable=False)]},
            cache=cache,
        )
        assert asyncio.run(analyzer.analyze_image(FRONT)) is None
        assert client.calls_for(FRONT) == 1
        assert cache.rows == {}

    def test_attempts_from_config(self):
        config = fast_config()
        config.vision.retry_attempts = 5
        client = FakeVisionClient({FRONT: [VisionModelError("timeout")]})
        analyzer = ImageAnalyzer(client, config=config, image_fetcher=no_fetch)
        assert asyncio.run(analyzer.analyze_image(FRONT)) is None
        assert client.calls_for(FRONT) == 5

    def test_malformed_url_falls_back_to_url(self):
        """A URL httpx cannot parse degrades to sending the URL itself."""
        bad_url = "http://[::1/x.png"
        client = FakeVisionClient({bad_url: [FRONT_TEXT]})
        analyzer = ImageAnalyzer(client, config=fast_config())
        analysis = asyncio.run(analyzer.analyze_image(bad_url))
        assert analysis.product_type == "T-shirt"
        assert client.calls[0]["image"] == bad_url

    def test_cache_failure_does_not_fail_analysis(self):
        analyzer, _ = make_analyzer({FRONT: [FRONT_TEXT]}, cache=BrokenCache())
        assert asyncio.run(analyzer.analyze_image(FRONT)).product_type == "T-shirt"


class TestAnalyzeProductViews:
    def test_two_views_combined(self):
        analyzer, _ = make_analyzer({FRONT: [FRONT_TEXT], BACK: [BACK_TEXT]})
        result = asyncio.run(
            analyzer.analyze_product_views({"front": FRONT, "back": BACK}, "Tee")
        )

        assert list(result.views) == ["front", "back"]
        assert result.combined_analysis.startswith(
            "Product analysis based on 2 views:\n\n"
        )
        assert "Colors: Red, Blue\n" in result.combined_analysis
        assert "Materials: cotton\n" in result.combined_analysis
        assert "Key Features: crew neck, back print\n" in result.combined_analysis
        assert "\nFRONT VIEW:\n" in result.combined_analysis
        assert "\nBACK VIEW:\n" in result.combined_analysis

    def test_single_view_has_no_combined_summary(self):
        analyzer, _ = make_analyzer({FRONT: [FRONT_TEXT]})
        result = asyncio.run(analyzer.analyze_product_views({"front": FRONT}))
        assert list(result.views) == ["front"]
        assert result.combined_analysis is None

    def test_view_prompt_mentions_view(self):
        analyzer, client = make_analyzer({BACK: [BACK_TEXT]})
        asyncio.run(analyzer.analyze_product_views({"back": BACK}, "Tee"))
        assert "Tee - back view" in client.calls[0]["prompt"]
        assert "This is the back view of the product." in client.calls[0]["prompt"]

    def test_cache_hit_skips_model(self):
        cache = InMemoryAnalysisCache()
        cache.put(FRONT, ImageAnalysis(product_type="Cached tee", current_colors=["Green"]))
        analyzer, client = make_analyzer(
            {FRONT: [FRONT_TEXT], BACK: [BACK_TEXT]}, cache=cache
        )

        result = asyncio.run(
            analyzer.analyze_product_views({"front": FRONT, "back": BACK})
        )

        assert client.calls_for(FRONT) == 0
        assert client.calls_for(BACK) == 1
        assert result.views["front"].product_type == "Cached tee"
        assert "Colors: Green, Blue, Red\n" in result.combined_analysis

    def test_empty_cached_analysis_is_left_out(self):
        cache = InMemoryAnalysisCache()
        cache.put(FRONT, ImageAnalysis())
        analyzer, client = make_analyzer({FRONT: [FRONT_TEXT]}, cache=cache)
        result = asyncio.run(analyzer.analyze_product_views({"front": FRONT}))
        assert result.views == {}
        assert client.calls_for(FRONT) == 0

    def test_failed_view_is_left_out(self):
        analyzer, _ = make_analyzer(
            {
                FRONT: [FRONT_TEXT],
                BACK: [VisionModelError("invalid_api_key", retryable=False)],
            }
        )
        result = asyncio.run(
            analyzer.analyze_product_views({"front": FRONT, "back": BACK})
        )
        assert list(result.views) == ["front"]
        assert result.combined_analysis is None

    def test_unexpected_client_error_is_contained(self):
        analyzer, _ = make_analyzer(
            {FRONT: [RuntimeError("socket closed")], SIDE: [SIDE_TEXT]}
        )
        result = asyncio.run(
            analyzer.analyze_product_views({"front": FRONT, "side": SIDE})
        )
        assert list(result.views) == ["side"]

    def test_all_views_fail(self):
        analyzer, _ = make_analyzer({FRONT: [""], BACK: [""]})
        result = asyncio.run(
            analyzer.analyze_product_views({"front": FRONT, "back": BACK})
        )
        assert result.views == {}
        assert result.combined_analysis is None
        assert result.to_dict() == {}

    def test_empty_urls_skipped(self):
        analyzer, client = make_analyzer({SIDE: [SIDE_TEXT]})
        result = asyncio.run(
            analyzer.analyze_product_views({"front": "", "back": None, "side": SIDE})
        )
        assert list(result.views) == ["side"]
        assert len(client.calls) == 1

    def test_unknown_view(self):
        analyzer, client = make_analyzer({})
        with pytest.raises(ValueError):
            asyncio.run(analyzer.analyze_product_views({"top": FRONT}))
        assert client.calls == []

    def test_canonical_order(self):
        analyzer, _ = make_analyzer(
            {FRONT: [FRONT_TEXT], BACK: [BACK_TEXT], SIDE: [SIDE_TEXT]}
        )
        result = asyncio.run(
            analyzer.analyze_product_views({"side": SIDE, "back": BACK, "front": FRONT})
        )
        assert list(result.views) == ["front", "back", "side"]
        assert result.combined_analysis.index("FRONT VIEW") < result.combined_analysis.index(
            "SIDE VIEW"
        )

    def test_parallel_matches_sequential(self):
        script = {FRONT: [FRONT_TEXT], BACK: [BACK_TEXT], SIDE: [SIDE_TEXT]}
        views = {"side": SIDE, "front": FRONT, "back": BACK}

        sequential, _ = make_analyzer(script)
        parallel, _ = make_analyzer(script)
        seq_result = asyncio.run(sequential.analyze_product_views(views))
        par_result = asyncio.run(parallel.analyze_product_views(views, parallel=True))

        assert list(par_result.views) == ["front", "back", "side"]
        assert par_result.combined_analysis == seq_result.combined_analysis

    def test_links_to_product(self):
        cache = InMemoryAnalysisCache()
        analyzer, _ = make_analyzer({FRONT: [FRONT_TEXT]}, cache=cache)
        asyncio.run(
            analyzer.analyze_product_views(
                {"front": FRONT},
                product_id="prod-42",
                revision_id="rev-7",
                revision_number=2,
            )
        )
        row = cache.rows[FRONT]
        assert row["product_id"] == "prod-42"
        assert row["revision_id"] == "rev-7"
        assert row["revision_number"] == 2

    def test_cached_view_linked_to_product(self):
        """Cache hits are linked to the product just like fresh analyses."""
        cache = InMemoryAnalysisCache()
        cache.put(FRONT, ImageAnalysis(product_type="Cached tee", full_analysis="Cached"))
        analyzer, client = make_analyzer({FRONT: [FRONT_TEXT]}, cache=cache)
        asyncio.run(
            analyzer.analyze_product_views(
                {"front": FRONT}, product_id="prod-42", revision_number=3
            )
        )
        assert client.calls == []
        assert cache.rows[FRONT]["product_id"] == "prod-42"
        assert cache.rows[FRONT]["revision_number"] == 3

    def test_empty_cached_analysis_is_not_linked(self):
        cache = InMemoryAnalysisCache()
        cache.put(FRONT, ImageAnalysis())
        analyzer, _ = make_analyzer({FRONT: [FRONT_TEXT]}, cache=cache)
        result = asyncio.run(
            analyzer.analyze_product_views({"front": FRONT}, product_id="prod-42")
        )
        assert result.views == {}
        assert cache.rows[FRONT]["product_id"] is None

    def test_collection_views_linked_to_collection(self):
        cache = InMemoryAnalysisCache()
        analyzer, _ = make_analyzer({FRONT: [FRONT_TEXT], BACK: [BACK_TEXT]}, cache=cache)
        result = asyncio.run(
            analyzer.analyze_collection_views(
                {"front": FRONT, "back": BACK},
                collection_id="fall-24",
                product_id="prod-42",
                revision_id="rev-1",
            )
        )
        assert list(result.views) == ["front", "back"]
        assert result.combined_analysis is not None
        for url in (FRONT, BACK):
            assert cache.rows[url]["collection_id"] == "fall-24"
            assert cache.rows[url]["product_id"] == "prod-42"
            assert cache.rows[url]["revision_id"] == "rev-1"

    def test_collection_not_linked_without_product(self):
        cache = InMemoryAnalysisCache()
        analyzer, _ = make_analyzer({FRONT: [FRONT_TEXT]}, cache=cache)
        asyncio.run(analyzer.analyze_collection_views({"front": FRONT}, "fall-24"))
        assert cache.rows[FRONT]["collection_id"] is None

    def test_broken_cache_still_analyzes(self):
        analyzer, _ = make_analyzer({FRONT: [FRONT_TEXT]}, cache=BrokenCache())
        result = asyncio.run(
            analyzer.analyze_product_views({"front": FRONT}, product_id="prod-1")
        )
        assert list(result.views) == ["front"]


class TestCombinedAnalysis:
    def test_format(self):
        views = {
            "front": ImageAnalysis(current_colors=["Red"], full_analysis="x" * 300),
            "back": ImageAnalysis(current_colors=["Red", "Blue"], full_analysis="short"),
        }
        combined = generate_combined_analysis(views)
        assert combined == (
            "Product analysis based on 2 views:\n\n"
            "Colors: Red, Blue\n"
            f"\nFRONT VIEW:\n{'x' * 200}...\n"
            "\nBACK VIEW:\nshort...\n"
        )

    def test_dedup_is_case_sensitive(self):
        views = {
            "front": ImageAnalysis(current_colors=["red"], full_analysis="a"),
            "back": ImageAnalysis(current_colors=["Red"], full_analysis="b"),
        }
        assert "Colors: red, Red\n" in generate_combined_analysis(views)

    def test_result_to_dict(self):
        result = MultiViewResult(
            views={"front": ImageAnalysis(product_type="Tee")},
            combined_analysis="summary",
        )
        data = result.to_dict()
        assert data["front"]["product_type"] == "Tee"
        assert data["combined_analysis"] == "summary"
        assert result.get("side") is None
