"""Media rendering: image and speech artifacts, and voice input transcription.

Public surface
--------------
- :class:`MediaPipeline`: concurrent image + audio rendering, fail-soft.
- :class:`StyleContext`: visual/vocal anchors for a scene.
- :class:`MediaArtifacts`: base64 artifacts, ``None`` when unavailable.
- :func:`build_media`: pipeline and transcriber from configuration.
"""

from __future__ import annotations

from chronicle_server.media.image import ImageRenderer
from chronicle_server.media.pipeline import MediaArtifacts, MediaPipeline, StyleContext
from chronicle_server.media.speech import SpeechSynthesizer
from chronicle_server.media.transcriber import Transcriber


def build_media(oracle, settings) -> tuple[MediaPipeline, Transcriber]:
    """Build the media pipeline and transcriber from ``MediaSettings``.

    A backend whose URL is empty is left out; its artifact is always ``None``.
    """
    image = (
        ImageRenderer(
            url=settings.image_url,
            api_key=settings.image_api_key,
            timeout_seconds=settings.image_timeout_seconds,
        )
        if settings.image_url
        else None
    )
    speech = (
        SpeechSynthesizer(
            url=settings.speech_url,
            api_key=settings.speech_api_key,
            model=settings.speech_model,
            timeout_seconds=settings.speech_timeout_seconds,
        )
        if settings.speech_url
        else None
    )
    pipeline = MediaPipeline(
        oracle,
        image_renderer=image,
        speech=speech,
        image_timeout=settings.image_timeout_seconds,
        speech_timeout=settings.speech_timeout_seconds,
    )
    transcriber = Transcriber(
        url=settings.transcriber_url,
        api_key=settings.transcriber_api_key,
        model=settings.transcriber_model,
        timeout_seconds=settings.transcriber_timeout_seconds,
    )
    return pipeline, transcriber


__all__ = [
    "ImageRenderer",
    "MediaArtifacts",
    "MediaPipeline",
    "SpeechSynthesizer",
    "StyleContext",
    "Transcriber",
    "build_media",
]
