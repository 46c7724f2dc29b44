"""
Multi-View Image Analyzer

Runs the analysis pipeline for product photos:

    cache lookup -> (miss) fetch image -> vision model -> parse -> cache save

for a single image or for up to three product views (front, back, side),
and merges the per-view results into one combined summary.

Failures degrade instead of propagating: a view whose analysis is
unavailable is left out of the result and the remaining views continue.

Usage:
    from src.ai import ImageAnalyzer, OpenAIVisionClient
    from src.loaders.analysis_cache import SupabaseAnalysisCache

    async with OpenAIVisionClient() as client:
        analyzer = ImageAnalyzer(client, cache=SupabaseAnalysisCache())
        result = await analyzer.analyze_product_views(
            {"front": front_url, "back": back_url},
            product_name="Oxford Shirt",
        )
        result.views["front"].spatial_grid
        result.combined_analysis
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from rich.console import Console

from config.settings import AnalysisConfig
from src.loaders.analysis_cache import CacheMetadata
from src.spatial.models import ImageAnalysis
from src.spatial.parser import parse_analysis_text

from .image_fetch import fetch_image_as_data_url
from .openai_client import VisionModelError, VisionResponse

console = Console()

ImageFetcher = Callable[[str], Awaitable[Optional[str]]]


# =============================================================================
# PROMPTS
# =============================================================================

SYSTEM_PROMPT = """You are a professional product designer analyzing product images.
Provide a detailed, structured analysis that can be used for AI image editing.
Focus on visual elements that can be modified or enhanced."""

GRID_SECTION = """
9. SPATIAL GRID ANALYSIS:
Mentally divide the image into a 4x4 grid (16 squares).
Label them as A1-A4 (top row), B1-B4 (second row), C1-C4 (third row), D1-D4 (bottom row).
For each square, briefly describe:
- What's visible (product part, background, text, logo, empty)
- Dominant color if any
- Key features

Format: [Square ID]: [Content description]
Example: A1: Empty white background
Example: B2: Product collar with blue fabric
Example: C3: Logo placement area, currently empty
"""


def build_analysis_prompt(
    product_name: str = "Product",
    additional_context: Optional[str] = None,
    include_spatial_grid: bool = True,
) -> str:
    """Build the user prompt for a structured image analysis."""
    context_line = f"Context: {additional_context}\n" if additional_context else ""
    grid_section = GRID_SECTION if include_spatial_grid else ""

    return f"""Analyze this {product_name} product image in detail.
{context_line}
Provide a structured analysis with one labeled line per item:
1. Product type: product type and category
2. Colors: current colors (be specific with color names)
3. Materials: materials visible
4. Textures: textures visible
5. Key features: key design features and elements
6. Style: overall style and aesthetic
7. Quality: quality and finish
8. Suggestions: suggestions for potential improvements
{grid_section}
Be technical and specific to help with accurate AI image generation."""


def view_prompt_context(view: str) -> str:
    return f"This is the {view} view of the product."


# =============================================================================
# COMBINED ANALYSIS
# =============================================================================


def _merge_unique(values_per_view: list[list[str]]) -> list[str]:
    """Case-sensitive de-dup, first-seen order."""
    merged: dict[str, None] = {}
    for values in values_per_view:
        for value in values:
            merged.setdefault(value, None)
    return list(merged)


def generate_combined_analysis(
    view_analyses: dict[str, ImageAnalysis], excerpt_chars: int = 200
) -> str:
    """
    Merge several view analyses into one text summary.

    Colors, materials and features are unioned across views in the order
    the views are given, then each view contributes a short raw-text excerpt.
    """
    views = list(view_analyses)
    combined = f"Product analysis based on {len(views)} views:\n\n"

    colors = _merge_unique([view_analyses[v].current_colors for v in views])
    materials = _merge_unique([view_analyses[v].materials for v in views])
    features = _merge_unique([view_analyses[v].key_features for v in views])

    if colors:
        combined += f"Colors: {', '.join(colors)}\n"
    if materials:
        combined += f"Materials: {', '.join(materials)}\n"
    if features:
        combined += f"Key Features: {', '.join(features)}\n"

    for view in views:
        full_analysis = view_analyses[view].full_analysis
        if full_analysis:
            combined += f"\n{view.upper()} VIEW:\n{full_analysis[:excerpt_chars]}...\n"

    return combined


@dataclass
class MultiViewResult:
    """Per-view analyses (canonical view order) and the merged summary."""

    views: dict[str, ImageAnalysis] = field(default_factory=dict)
    combined_analysis: Optional[str] = None

    def get(self, view: str) -> Optional[ImageAnalysis]:
        return self.views.get(view)

    def to_dict(self) -> dict:
        result = {view: analysis.to_dict() for view, analysis in self.views.items()}
        if self.combined_analysis:
            result["combined_analysis"] = self.combined_analysis
        return result


# =============================================================================
# ANALYZER
# =============================================================================


class ImageAnalyzer:
    """
    Cached, retried vision analysis for product images.

    The vision client and cache are injected, so tests can swap in fakes.
    Any object with an async analyze_image(image, prompt, system=...,
    max_tokens=..., temperature=...) returning a VisionResponse works as
    the client; any object with get/put/link works as the cache.
    """

    def __init__(
        self,
        vision_client,
        cache=None,
        config: Optional[AnalysisConfig] = None,
        image_fetcher: Optional[ImageFetcher] = None,
    ):
        self.config = config or AnalysisConfig()
        self.client = vision_client
        self.cache = cache
        self._fetch_image = image_fetcher or (
            lambda url: fetch_image_as_data_url(url, self.config.fetch)
        )

    async def analyze_image(
        self,
        image_url: str,
        product_name: str = "Product",
        additional_context: Optional[str] = None,
        include_spatial_grid: bool = True,
        view: Optional[str] = None,
    ) -> Optional[ImageAnalysis]:
        """
        Analyze one image with the vision model and cache the result.

        Args:
            image_url: Remote image URL (also the cache key)
            product_name: Name used in the prompt
            additional_context: Extra prompt context
            include_spatial_grid: Ask for and parse the 4x4 grid
            view: View name recorded in view_specific_details

        Returns:
            ImageAnalysis, or None when the vision model is unavailable
        """
        start_time = time.monotonic()
        console.print(f"[cyan]Analyzing image: {image_url}[/cyan]")

        image = await self._fetch_image(image_url)
        if image:
            console.print("[dim]Using base64 encoded image for analysis[/dim]")
        else:
            console.print("[yellow]Base64 conversion failed, falling back to URL[/yellow]")
            image = image_url

        vision = self.config.vision
        prompt = build_analysis_prompt(product_name, additional_context, include_spatial_grid)
        max_tokens = (
            vision.max_tokens_with_grid
            if include_spatial_grid
            else vision.max_tokens_without_grid
        )

        response = await self._call_vision_model(image, prompt, max_tokens)
        if response is None:
            return None

        processing_time_ms = int((time.monotonic() - start_time) * 1000)

        update = {"timestamp": datetime.now(timezone.utc).isoformat()}
        if view:
            update["view_specific_details"] = {view: response.text}
        analysis = parse_analysis_text(response.text, include_spatial_grid).model_copy(
            update=update
        )

        self._cache_put(
            image_url,
            analysis,
            CacheMetadata(
                model_used=response.model,
                analysis_prompt=f"Analyze {product_name}",
                tokens_used=response.total_tokens,
                processing_time_ms=processing_time_ms,
                ttl_days=self.config.cache.ttl_days,
            ),
        )

        console.print(f"[green]✓ Analyzed image in {processing_time_ms}ms[/green]")
        return analysis

    async def analyze_product_views(
        self,
        views: dict[str, Optional[str]],
        product_name: str = "Product",
        product_id: Optional[str] = None,
        revision_id: Optional[str] = None,
        revision_number: Optional[int] = None,
        parallel: bool = False,
        collection_id: Optional[str] = None,
    ) -> MultiViewResult:
        """
        Analyze the front/back/side views of a product.

        Args:
            views: View name -> image URL (empty URLs are skipped)
            product_name: Name used in the prompts
            product_id: Links cached and fresh analyses to this product
            revision_id: Revision to link
            revision_number: Revision number to link
            parallel: Analyze views concurrently (result order is unchanged)
            collection_id: Collection the product belongs to, also linked

        Returns:
            MultiViewResult; combined_analysis is set when 2+ views succeed
        """
        unknown = [view for view in views if view not in self.config.views]
        if unknown:
            raise ValueError(
                f"Unknown view(s) {', '.join(unknown)}. "
                f"Expected: {', '.join(self.config.views)}"
            )

        ordered = [
            (view, views[view]) for view in self.config.views if views.get(view)
        ]

        async def run(view: str, image_url: str) -> Optional[ImageAnalysis]:
            return await self._analyze_view(
                view,
                image_url,
                product_name,
                product_id,
                revision_id,
                revision_number,
                collection_id,
            )

        if parallel:
            analyses = await asyncio.gather(*(run(view, url) for view, url in ordered))
        else:
            analyses = [await run(view, url) for view, url in ordered]

        result = MultiViewResult()
        for (view, _), analysis in zip(ordered, analyses):
            if analysis is not None:
                result.views[view] = analysis

        if len(result.views) > 1:
            result.combined_analysis = generate_combined_analysis(
                result.views, self.config.combined_excerpt_chars
            )

        return result

    async def analyze_collection_views(
        self,
        views: dict[str, Optional[str]],
        collection_id: str,
        product_name: str = "Product",
        product_id: Optional[str] = None,
        revision_id: Optional[str] = None,
        revision_number: Optional[int] = None,
        parallel: bool = False,
    ) -> MultiViewResult:
        """Analyze the views of a collection item; cached rows are linked to the collection."""
        return await self.analyze_product_views(
            views,
            product_name=product_name,
            product_id=product_id,
            revision_id=revision_id,
            revision_number=revision_number,
            parallel=parallel,
            collection_id=collection_id,
        )

    async def _analyze_view(
        self,
        view: str,
        image_url: str,
        product_name: str,
        product_id: Optional[str],
        revision_id: Optional[str],
        revision_number: Optional[int],
        collection_id: Optional[str] = None,
    ) -> Optional[ImageAnalysis]:
        """Cache-first analysis of one view. Returns None if it cannot be analyzed."""
        try:
            analysis = self._cache_get(image_url)
            if analysis is not None:
                console.print(f"[dim]Using cached analysis for {view} view[/dim]")
            else:
                console.print(
                    f"[cyan]No cached analysis for {view} view, analyzing...[/cyan]"
                )
                analysis = await self.analyze_image(
                    image_url,
                    product_name=f"{product_name} - {view} view",
                    additional_context=view_prompt_context(view),
                    view=view,
                )
        except Exception as e:
            console.print(f"[red]Error analyzing {view} view: {e}[/red]")
            return None

        # Cached and fresh results go through the same check
        if analysis is None or analysis.is_empty:
            console.print(f"[yellow]No analysis available for {view} view[/yellow]")
            return None

        if product_id and self.cache is not None:
            try:
                self.cache.link(
                    image_url,
                    product_id,
                    revision_id,
                    revision_number,
                    collection_id=collection_id,
                )
            except Exception as e:
                console.print(f"[yellow]Could not link {view} analysis: {e}[/yellow]")

        return analysis

    async def _call_vision_model(
        self, image: str, prompt: str, max_tokens: int
    ) -> Optional[VisionResponse]:
        """Call the vision model with bounded retries. None when all attempts fail."""
        vision = self.config.vision
        last_error: Optional[Exception] = None

        for attempt in range(1, vision.retry_attempts + 1):
            try:
                console.print(
                    f"[dim]Calling vision model (attempt {attempt}/{vision.retry_attempts})[/dim]"
                )
                response = await self.client.analyze_image(
                    image,
                    prompt,
                    system=SYSTEM_PROMPT,
                    max_tokens=max_tokens,
                    temperature=vision.temperature,
                )
                if response.text.strip():
                    return response
                console.print(f"[yellow]Empty response (attempt {attempt})[/yellow]")

            except VisionModelError as e:
                last_error = e
                console.print(f"[red]Vision model attempt {attempt} failed: {e}[/red]")
                if not e.retryable:
                    console.print("[red]Non-retryable error, stopping attempts[/red]")
                    break

            if attempt < vision.retry_attempts:
                wait = min(vision.retry_delay_seconds * attempt, vision.retry_delay_cap_seconds)
                await asyncio.sleep(wait)

        console.print(f"[red]All vision model attempts failed. Last error: {last_error}[/red]")
        return None

    def _cache_get(self, image_url: str) -> Optional[ImageAnalysis]:
        if self.cache is None:
            return None
        try:
            return self.cache.get(image_url)
        except Exception as e:
            console.print(f"[yellow]Cache unavailable, treating as miss: {e}[/yellow]")
            return None

    def _cache_put(
        self, image_url: str, analysis: ImageAnalysis, metadata: CacheMetadata
    ) -> bool:
        if self.cache is None:
            return False
        try:
            return self.cache.put(image_url, analysis, metadata)
        except Exception as e:
            console.print(f"[yellow]Could not save analysis to cache: {e}[/yellow]")
            return False
