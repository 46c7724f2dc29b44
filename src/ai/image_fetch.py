"""
Image fetch-and-normalize.

Downloads a remote image and returns it as a base64 data URL so the vision
model does not have to fetch the URL itself. Content types are normalized
to the formats OpenAI accepts: png, jpeg, gif, webp.
"""

import asyncio
import base64
from typing import Optional

import httpx
from rich.console import Console

from config.settings import FetchConfig

console = Console()

DEFAULT_CONTENT_TYPE = "image/png"


def normalize_content_type(content_type: Optional[str]) -> str:
    """Map a response content type onto png/jpeg/gif/webp (unknown -> png)."""
    content_type = (content_type or "").lower()
    if "jpg" in content_type or "jpeg" in content_type:
        return "image/jpeg"
    elif "png" in content_type:
        return "image/png"
    elif "gif" in content_type:
        return "image/gif"
    elif "webp" in content_type:
        return "image/webp"
    return DEFAULT_CONTENT_TYPE


def backoff_delay(attempt: int, config: FetchConfig) -> float:
    """Wait before retry number `attempt` (1-based): base * 2^(attempt-1), capped."""
    return min(config.backoff_base_seconds * (2 ** (attempt - 1)), config.backoff_cap_seconds)


async def fetch_image_as_data_url(
    image_url: str,
    config: Optional[FetchConfig] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> Optional[str]:
    """
    Download an image and encode it as a data URL.

    Args:
        image_url: Remote image URL
        config: Timeout and retry settings
        http_client: Optional shared client (one is created otherwise)

    Returns:
        "data:<type>;base64,<data>" or None once every attempt has failed
    """
    config = config or FetchConfig()
    owns_client = http_client is None
    client = http_client or httpx.AsyncClient(follow_redirects=True)

    try:
        for attempt in range(1, config.max_retries + 1):
            try:
                console.print(
                    f"[dim]Fetching image (attempt {attempt}/{config.max_retries}): "
                    f"{image_url}[/dim]"
                )
                response = await client.get(
                    image_url,
                    headers={"Accept": "image/*"},
                    timeout=config.timeout_seconds,
                )
                response.raise_for_status()

                content_type = normalize_content_type(response.headers.get("content-type"))
                image_b64 = base64.b64encode(response.content).decode("utf-8")
                console.print(
                    f"[dim]  Converted image to base64 ({len(response.content)} bytes)[/dim]"
                )
                return f"data:{content_type};base64,{image_b64}"

            except httpx.InvalidURL as e:
                # Malformed URLs fail the same way on every attempt
                console.print(f"[yellow]  Invalid image URL {image_url}: {e}[/yellow]")
                break
            except httpx.HTTPError as e:
                console.print(
                    f"[yellow]  Attempt {attempt} failed to fetch image: {e}[/yellow]"
                )
                if attempt == config.max_retries:
                    break
                await asyncio.sleep(backoff_delay(attempt, config))
    finally:
        if owns_client:
            await client.aclose()

    console.print(f"[red]All {config.max_retries} attempts failed for image: {image_url}[/red]")
    return None
