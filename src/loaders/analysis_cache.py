"""
Analysis cache gateway.

Stores ImageAnalysis results keyed by image URL so repeated requests skip
the vision-model call. The cache is advisory: every failure is logged and
reported as a miss (get) or False (put), never raised.

Two implementations share the same interface:
- SupabaseAnalysisCache: rows in the image_analysis_cache table
- InMemoryAnalysisCache: process-local dict, for local runs and tests
"""

import hashlib
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import ValidationError
from rich.console import Console
from supabase import Client, create_client

from config.settings import CacheConfig
from src.spatial.models import ImageAnalysis

console = Console()

DEFAULT_MODEL = "gpt-4o"


def hash_image_url(image_url: str) -> str:
    """Stable cache key for an image URL (md5 hex digest)."""
    return hashlib.md5(image_url.encode("utf-8")).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CacheMetadata:
    """Bookkeeping stored next to a cached analysis."""

    model_used: str = DEFAULT_MODEL
    analysis_prompt: Optional[str] = None
    tokens_used: Optional[int] = None
    processing_time_ms: Optional[int] = None
    product_id: Optional[str] = None
    revision_id: Optional[str] = None
    revision_number: Optional[int] = None
    collection_id: Optional[str] = None
    ttl_days: Optional[int] = 30

    def expires_at(self, now: Optional[datetime] = None) -> Optional[str]:
        """Expiry timestamp, or None for entries that never expire."""
        if self.ttl_days is None:
            return None
        return ((now or _utcnow()) + timedelta(days=self.ttl_days)).isoformat()


def build_cache_row(
    image_url: str, analysis: ImageAnalysis, metadata: CacheMetadata
) -> dict:
    """Row layout shared by every cache backend."""
    now = _utcnow()
    return {
        "image_url": image_url,
        "image_hash": hash_image_url(image_url),
        "analysis_data": analysis.to_dict(),
        "model_used": metadata.model_used,
        "analysis_prompt": metadata.analysis_prompt,
        "tokens_used": metadata.tokens_used,
        "processing_time_ms": metadata.processing_time_ms,
        "product_id": metadata.product_id,
        "revision_id": metadata.revision_id,
        "revision_number": metadata.revision_number,
        "collection_id": metadata.collection_id,
        "created_at": now.isoformat(),
        "expires_at": metadata.expires_at(now),
    }


def link_fields(
    product_id: str,
    revision_id: Optional[str] = None,
    revision_number: Optional[int] = None,
    collection_id: Optional[str] = None,
) -> dict:
    """Columns written when linking a row. A missing collection leaves it untouched."""
    fields = {
        "product_id": product_id,
        "revision_id": revision_id,
        "revision_number": revision_number,
    }
    if collection_id is not None:
        fields["collection_id"] = collection_id
    return fields


def _load_analysis(data: Optional[dict]) -> Optional[ImageAnalysis]:
    if not data:
        return None
    try:
        return ImageAnalysis.model_validate(data)
    except ValidationError as e:
        console.print(f"[yellow]Ignoring unreadable cached analysis: {e}[/yellow]")
        return None


class SupabaseAnalysisCache:
    """
    Analysis cache backed by a Supabase table.

    One row per image URL (upsert on image_url, last write wins).
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        client: Optional[Client] = None,
    ):
        """
        Initialize the cache.

        Args:
            config: Table name, TTL and credentials (env vars by default)
            client: Pre-built Supabase client
        """
        self.config = config or CacheConfig()
        self.table_name = self.config.table_name

        if client is not None:
            self.client = client
            return

        supabase_url, supabase_key = self.config.resolve_credentials()
        if not supabase_url or not supabase_key:
            raise ValueError(
                "Supabase credentials required. Set SUPABASE_URL and SUPABASE_KEY "
                "environment variables or pass them in CacheConfig."
            )
        self.client: Client = create_client(supabase_url, supabase_key)

    def hash(self, image_url: str) -> str:
        return hash_image_url(image_url)

    def get(self, image_url: str) -> Optional[ImageAnalysis]:
        """Newest cached analysis for an image, or None."""
        try:
            result = (
                self.client.table(self.table_name)
                .select("analysis_data")
                .eq("image_url", image_url)
                .order("created_at", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            console.print(f"[yellow]Error fetching cached analysis: {e}[/yellow]")
            return None

        if not result.data:
            console.print(f"[dim]No cached analysis found for image: {image_url}[/dim]")
            return None

        console.print("[dim]Found cached analysis for image[/dim]")
        return _load_analysis(result.data[0].get("analysis_data"))

    def put(
        self,
        image_url: str,
        analysis: ImageAnalysis,
        metadata: Optional[CacheMetadata] = None,
    ) -> bool:
        """Upsert an analysis. Returns False on any failure."""
        metadata = metadata or CacheMetadata(ttl_days=self.config.ttl_days)
        try:
            self.client.table(self.table_name).upsert(
                build_cache_row(image_url, analysis, metadata),
                on_conflict="image_url",
            ).execute()
        except Exception as e:
            console.print(f"[yellow]Error saving analysis to cache: {e}[/yellow]")
            return False

        console.print("[dim]Image analysis saved to cache[/dim]")
        return True

    def link(
        self,
        image_url: str,
        product_id: str,
        revision_id: Optional[str] = None,
        revision_number: Optional[int] = None,
        collection_id: Optional[str] = None,
    ) -> bool:
        """Attach a cached analysis to a product revision (and collection)."""
        try:
            self.client.table(self.table_name).update(
                link_fields(product_id, revision_id, revision_number, collection_id)
            ).eq("image_url", image_url).execute()
        except Exception as e:
            console.print(f"[yellow]Could not link cached analysis: {e}[/yellow]")
            return False
        return True

    def cleanup_expired(self) -> int:
        """Delete expired rows. Returns the number removed."""
        try:
            result = (
                self.client.table(self.table_name)
                .delete()
                .lt("expires_at", _utcnow().isoformat())
                .execute()
            )
        except Exception as e:
            console.print(f"[red]Error cleaning up expired analyses: {e}[/red]")
            return 0

        count = len(result.data or [])
        console.print(f"[green]Cleaned up {count} expired analysis entries[/green]")
        return count


class InMemoryAnalysisCache:
    """Process-local cache with the same interface as SupabaseAnalysisCache."""

    def __init__(self, config: Optional[CacheConfig] = None):
        self.config = config or CacheConfig()
        self.rows: dict[str, dict] = {}

    def hash(self, image_url: str) -> str:
        return hash_image_url(image_url)

    def get(self, image_url: str) -> Optional[ImageAnalysis]:
        row = self.rows.get(image_url)
        if not row:
            return None
        return _load_analysis(row["analysis_data"])

    def put(
        self,
        image_url: str,
        analysis: ImageAnalysis,
        metadata: Optional[CacheMetadata] = None,
    ) -> bool:
        metadata = metadata or CacheMetadata(ttl_days=self.config.ttl_days)
        self.rows[image_url] = build_cache_row(image_url, analysis, metadata)
        return True

    def link(
        self,
        image_url: str,
        product_id: str,
        revision_id: Optional[str] = None,
        revision_number: Optional[int] = None,
        collection_id: Optional[str] = None,
    ) -> bool:
        row = self.rows.get(image_url)
        if not row:
            return False
        row.update(link_fields(product_id, revision_id, revision_number, collection_id))
        return True

    def cleanup_expired(self, now: Optional[datetime] = None) -> int:
        now_iso = (now or _utcnow()).isoformat()
        expired = [
            url
            for url, row in self.rows.items()
            if row["expires_at"] is not None and row["expires_at"] < now_iso
        ]
        for url in expired:
            del self.rows[url]
        return len(expired)
