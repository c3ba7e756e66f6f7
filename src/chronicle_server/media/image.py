"""Image renderer backend.

POSTs ``{"prompt", "style_preset"}`` to the configured image service and
returns the raw image bytes.  The art style chosen for a scene is mapped to
one of the renderer's named style presets; unknown styles fall back to
``"cinematic"``.

This backend raises on every failure.  It is only ever called from the
media pipeline, which absorbs failures into a missing artifact.
"""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)

DEFAULT_STYLE_PRESET = "cinematic"

STYLE_PRESETS = {
    "Cinematic Realism": "cinematic",
    "Epic Fantasy Painting": "fantasy-art",
    "Gritty Anime Style": "anime",
    "Cyberpunk Concept Art": "digital-art",
    "Vintage Comic Book": "comic-book",
    "Dark Film Noir": "photographic",
}


def style_preset(art_style: str) -> str:
    """Map a scene art style to the renderer's style preset."""
    return STYLE_PRESETS.get(art_style.strip(), DEFAULT_STYLE_PRESET)


class ImageRenderer:
    """HTTP client for the image rendering service."""

    def __init__(self, *, url: str, api_key: str = "", timeout_seconds: float = 45.0) -> None:
        self._url = url
        self._api_key = api_key
        self._timeout = timeout_seconds

    async def render(self, prompt: str, *, art_style: str = "") -> bytes:
        """Render ``prompt`` and return the image bytes.

        Raises:
            httpx.HTTPError: Transport failure or non-2xx status.
            ValueError:      The service answered with an empty body.
        """
        headers = {"Accept": "image/*"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        payload = {"prompt": prompt, "style_preset": style_preset(art_style)}
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(self._url, json=payload, headers=headers)
            response.raise_for_status()

        if not response.content:
            raise ValueError("Image service returned an empty body.")
        logger.debug("Rendered image (%d bytes, preset=%s)", len(response.content), payload["style_preset"])
        return response.content
