"""
Configuration settings for the spatial grid image analysis engine.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file from project root
load_dotenv(Path(__file__).parent.parent / ".env")


@dataclass
class VisionConfig:
    """Configuration for the vision-model call."""

    api_key: Optional[str] = None

    # gpt-4o handles inline base64 images at "high" detail
    model: str = "gpt-4o"
    image_detail: str = "high"

    # Timeouts
    timeout_seconds: float = 120.0

    # Generation settings
    temperature: float = 0.3  # Low for consistent structured output
    max_tokens_with_grid: int = 1500
    max_tokens_without_grid: int = 800

    # Retry policy: min(base * attempt, cap) seconds between attempts
    retry_attempts: int = 3
    retry_delay_seconds: float = 2.0
    retry_delay_cap_seconds: float = 6.0

    def resolve_api_key(self) -> Optional[str]:
        """Get the API key from config or environment."""
        return self.api_key or os.getenv("OPENAI_API_KEY")


@dataclass
class FetchConfig:
    """Configuration for downloading images before analysis."""

    timeout_seconds: float = 10.0
    max_retries: int = 3

    # Exponential backoff: min(base * 2^(attempt-1), cap)
    backoff_base_seconds: float = 1.0
    backoff_cap_seconds: float = 5.0


@dataclass
class CacheConfig:
    """Configuration for the analysis cache."""

    table_name: str = "image_analysis_cache"
    ttl_days: int = 30  # Expired rows are removed by cleanup_expired()
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    def resolve_credentials(self) -> tuple[Optional[str], Optional[str]]:
        """Get Supabase credentials from config or environment."""
        return (
            self.supabase_url or os.getenv("SUPABASE_URL"),
            self.supabase_key or os.getenv("SUPABASE_KEY"),
        )


@dataclass
class AnalysisConfig:
    """Main configuration combining all settings."""

    vision: VisionConfig = field(default_factory=VisionConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)

    # Views analyzed per product, in canonical order
    views: tuple[str, ...] = ("front", "back", "side")

    # Characters of raw model text quoted per view in the combined summary
    combined_excerpt_chars: int = 200


# Default configuration instance
config = AnalysisConfig()
