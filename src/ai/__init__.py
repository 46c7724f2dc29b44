"""
AI Service Module

Vision-model access for product image analysis:
- OpenAI vision client with retryable / non-retryable error split
- Image fetch-and-normalize (remote URL -> base64 data URL)
- Multi-view analyzer with caching and combined summaries

Configuration:
- Set OPENAI_API_KEY in .env file
- Set SUPABASE_URL and SUPABASE_KEY to cache analyses in Supabase
"""

from .image_analyzer import (
    ImageAnalyzer,
    MultiViewResult,
    build_analysis_prompt,
    generate_combined_analysis,
)
from .image_fetch import fetch_image_as_data_url, normalize_content_type
from .openai_client import (
    OpenAIVisionClient,
    VisionModelError,
    VisionResponse,
    is_retryable_error,
)

__all__ = [
    # Client
    "OpenAIVisionClient",
    "VisionModelError",
    "VisionResponse",
    "is_retryable_error",
    # Image fetch
    "fetch_image_as_data_url",
    "normalize_content_type",
    # Analyzer
    "ImageAnalyzer",
    "MultiViewResult",
    "build_analysis_prompt",
    "generate_combined_analysis",
]
