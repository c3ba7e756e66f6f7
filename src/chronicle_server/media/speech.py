"""Speech synthesizer backend (OpenAI-compatible ``/v1/audio/speech``)."""

from __future__ import annotations

import re

import httpx

_TAG_RE = re.compile(r"<[^>]*>")


def strip_tags(text: str) -> str:
    """Remove HTML tags so markup is never read aloud."""
    return _TAG_RE.sub("", text).strip()


class SpeechSynthesizer:
    """Turn narration text into audio bytes.

    Raises on every failure; the media pipeline absorbs them.
    """

    def __init__(
        self,
        *,
        url: str,
        api_key: str = "",
        model: str = "tts-1-hd",
        timeout_seconds: float = 30.0,
    ) -> None:
        self._url = url
        self._api_key = api_key
        self._model = model
        self._timeout = timeout_seconds

    async def synthesize(self, text: str, *, voice: str) -> bytes:
        clean = strip_tags(text)
        if not clean:
            raise ValueError("Nothing to synthesize after stripping markup.")

        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
        payload = {"model": self._model, "voice": voice, "input": clean}
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(self._url, json=payload, headers=headers)
            response.raise_for_status()

        if not response.content:
            raise ValueError("Speech service returned an empty body.")
        return response.content
