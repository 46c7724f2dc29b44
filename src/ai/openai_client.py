"""
OpenAI Vision Client

Async wrapper around the OpenAI chat completions API for image analysis.
Errors are translated into VisionModelError so callers can tell retryable
failures (timeouts, rate limits, server errors) from ones that will never
succeed (bad credentials, exhausted quota).

Usage:
    from src.ai import OpenAIVisionClient

    async with OpenAIVisionClient() as client:
        response = await client.analyze_image(image_data_url, "Describe this shirt")
        response.text
        response.total_tokens
"""

import asyncio
import base64
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import openai
from openai import AsyncOpenAI
from rich.console import Console

from config.settings import VisionConfig

console = Console()

# Error codes that will fail the same way on every retry
NON_RETRYABLE_CODES = frozenset({"invalid_api_key", "insufficient_quota"})

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


class VisionModelError(Exception):
    """A failed vision-model call."""

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable


@dataclass
class VisionResponse:
    """Text answer from the vision model plus usage stats."""

    text: str
    model: str
    total_tokens: Optional[int] = None


def is_retryable_error(error: Exception) -> bool:
    """Decide whether an OpenAI SDK error is worth another attempt."""
    if getattr(error, "code", None) in NON_RETRYABLE_CODES:
        return False
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return False
    return True


class OpenAIVisionClient:
    """
    Async client for OpenAI vision models.

    Accepts images as data URLs, remote URLs, raw bytes or file paths.
    """

    def __init__(
        self,
        config: Optional[VisionConfig] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.config = config or VisionConfig()
        if client is not None:
            self._client = client
            return

        api_key = self.config.resolve_api_key()
        if not api_key:
            raise ValueError(
                "OpenAI API key not found. Set OPENAI_API_KEY environment variable."
            )
        self._client = AsyncOpenAI(
            api_key=api_key,
            timeout=self.config.timeout_seconds,
        )

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.close()

    async def is_available(self) -> bool:
        """Check if OpenAI API is accessible."""
        try:
            await self._client.models.list()
            return True
        except Exception as e:
            console.print(f"[red]OpenAI API not available: {e}[/red]")
            return False

    async def analyze_image(
        self,
        image: Union[str, Path, bytes],
        prompt: str,
        system: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        model: Optional[str] = None,
    ) -> VisionResponse:
        """
        Ask the vision model about an image.

        Args:
            image: Data URL, http(s) URL, raw bytes or file path
            prompt: The user prompt describing what to analyze
            system: Optional system prompt
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature
            model: Vision model to use (defaults to config.model)

        Returns:
            VisionResponse with the model's text

        Raises:
            VisionModelError: the image could not be prepared or the call failed
        """
        model = model or self.config.model

        image_content = self._prepare_image_for_api(image)
        if not image_content:
            raise VisionModelError("Failed to prepare image", retryable=False)

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append(
            {
                "role": "user",
                "content": [{"type": "text", "text": prompt}, image_content],
            }
        )

        token_limit = max_tokens or self.config.max_tokens_with_grid
        # GPT-5.x models use max_completion_tokens instead of max_tokens
        if model.startswith("gpt-5"):
            limit_kwargs = {"max_completion_tokens": token_limit}
        else:
            limit_kwargs = {"max_tokens": token_limit}

        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=(
                    self.config.temperature if temperature is None else temperature
                ),
                **limit_kwargs,
            )
        except openai.OpenAIError as e:
            raise VisionModelError(str(e), retryable=is_retryable_error(e)) from e

        usage = getattr(response, "usage", None)
        return VisionResponse(
            text=response.choices[0].message.content or "",
            model=model,
            total_tokens=getattr(usage, "total_tokens", None),
        )

    def _prepare_image_for_api(self, image: Union[str, Path, bytes]) -> Optional[dict]:
        """Convert image to OpenAI API format."""
        detail = self.config.image_detail

        # Data URLs and remote URLs go through unchanged
        if isinstance(image, str) and image.startswith(("data:", "http://", "https://")):
            return {"type": "image_url", "image_url": {"url": image, "detail": detail}}

        if isinstance(image, bytes):
            image_b64 = base64.b64encode(image).decode("utf-8")
            return {
                "type": "image_url",
                "image_url": {
                    "url": f"data:image/jpeg;base64,{image_b64}",
                    "detail": detail,
                },
            }

        image_path = Path(image)
        if not image_path.exists():
            console.print(f"[red]Image not found: {image_path}[/red]")
            return None

        image_b64 = base64.b64encode(image_path.read_bytes()).decode("utf-8")
        mime_type = MIME_TYPES.get(image_path.suffix.lower(), "image/jpeg")
        return {
            "type": "image_url",
            "image_url": {"url": f"data:{mime_type};base64,{image_b64}", "detail": detail},
        }


async def test_client():
    """Smoke-test the vision client against the live API."""
    console.print("\n[bold cyan]Testing OpenAI Vision Client[/bold cyan]\n")

    try:
        async with OpenAIVisionClient() as client:
            available = await client.is_available()
            console.print(f"OpenAI API available: {'✓' if available else '✗'}")
            if not available:
                console.print("[red]Please check your OPENAI_API_KEY[/red]")
                return

            test_image = "https://upload.wikimedia.org/wikipedia/commons/2/24/Blue_Tshirt.jpg"
            response = await client.analyze_image(
                test_image, "Describe this clothing item briefly.", max_tokens=200
            )
            console.print(f"Vision response: {response.text[:300]}...")
            console.print(f"[dim]Tokens used: {response.total_tokens}[/dim]")

    except ValueError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
    except VisionModelError as e:
        console.print(f"[red]Vision error (retryable={e.retryable}): {e}[/red]")


if __name__ == "__main__":
    asyncio.run(test_client())
