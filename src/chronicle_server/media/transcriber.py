"""Speech transcriber backend (OpenAI-compatible ``/v1/audio/transcriptions``).

Unlike the output media backends, the transcriber sits on the *input* side
of a voice turn: without a transcript there is no action to resolve.  Every
failure is therefore raised as
:class:`~chronicle_server.game.errors.TranscriptionFailure` and aborts the
turn before the scene is touched.
"""

from __future__ import annotations

import logging

import httpx

from chronicle_server.game.errors import TranscriptionFailure

logger = logging.getLogger(__name__)


class Transcriber:
    """Transcribe recorded audio to text."""

    def __init__(
        self,
        *,
        url: str,
        api_key: str = "",
        model: str = "whisper-1",
        timeout_seconds: float = 30.0,
    ) -> None:
        self._url = url
        self._api_key = api_key
        self._model = model
        self._timeout = timeout_seconds

    @property
    def configured(self) -> bool:
        return bool(self._url)

    async def transcribe(self, audio: bytes, *, filename: str = "audio.webm") -> str:
        """Return the transcript of ``audio``.

        Raises:
            TranscriptionFailure: Unconfigured backend, empty audio, transport
                                  failure, unexpected reply, or empty text.
        """
        if not self.configured:
            raise TranscriptionFailure("No transcriber is configured.")
        if not audio:
            raise TranscriptionFailure("No audio was provided.")

        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    self._url,
                    data={"model": self._model},
                    files={"file": (filename, audio, "application/octet-stream")},
                    headers=headers,
                )
                response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            logger.warning("Transcription request failed: %s", exc)
            raise TranscriptionFailure(f"Transcription request failed: {exc}") from exc
        except ValueError as exc:
            raise TranscriptionFailure("Transcriber response is not JSON.") from exc

        text = data.get("text") if isinstance(data, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise TranscriptionFailure("Transcriber returned no text.")
        return text.strip()
