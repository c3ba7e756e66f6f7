"""Media Pipeline: concurrent image + audio rendering for a narration.

Turns one finished narration into optional media artifacts:

Image branch
    1. Build the image prompt.  When the outcome already carries an image
       prompt, the scene's style anchors are prefixed to it; otherwise a
       dedicated oracle call converts the narration into a prompt with the
       anchors baked in.
    2. Call the image renderer.

Audio branch
    Call the speech synthesizer on the narration (HTML stripped) with the
    director persona's voice.

Both branches run concurrently under ``asyncio.gather``.  Each branch has
its own ``asyncio.wait_for`` timeout and absorbs its own failure, so one
slow or broken backend never delays the other's failure handling and never
fails the turn.  A missing artifact is ``None``; narration is always
delivered by the caller regardless of what this pipeline returns.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass

from chronicle_server.oracle import prompts
from chronicle_server.oracle.schemas import ImagePromptReply, decode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StyleContext:
    """Visual and vocal anchors for one scene.

    The visual strings are opaque: they are forwarded to the image prompt
    unchanged.
    """

    art_style: str = ""
    player_visuals: str = ""
    opponent_visuals: str = ""
    voice: str = "shimmer"

    @classmethod
    def for_scene(cls, scene, *, voice: str) -> StyleContext:
        return cls(
            art_style=scene.art_style,
            player_visuals=scene.player_visuals,
            opponent_visuals=scene.opponent_visuals,
            voice=voice,
        )

    def anchor_prefix(self) -> str:
        """Comma-joined non-empty anchors, used in front of a given prompt."""
        return ", ".join(a for a in (self.art_style, self.player_visuals, self.opponent_visuals) if a)


@dataclass
class MediaArtifacts:
    """Base64-encoded artifacts; ``None`` means unavailable."""

    image_b64: str | None = None
    audio_b64: str | None = None


def _b64(data: bytes | None) -> str | None:
    return base64.b64encode(data).decode("ascii") if data else None


class MediaPipeline:
    """Render image and audio artifacts for a narration.

    Args:
        oracle:          Oracle client used for narration → image prompt.
        image_renderer:  :class:`~chronicle_server.media.image.ImageRenderer`
                         or ``None`` when no image backend is configured.
        speech:          :class:`~chronicle_server.media.speech.SpeechSynthesizer`
                         or ``None`` when no speech backend is configured.
        image_timeout:   Budget for the whole image branch, in seconds.
        speech_timeout:  Budget for the audio branch, in seconds.
    """

    def __init__(
        self,
        oracle,
        *,
        image_renderer=None,
        speech=None,
        image_timeout: float = 45.0,
        speech_timeout: float = 30.0,
    ) -> None:
        self._oracle = oracle
        self._image = image_renderer
        self._speech = speech
        self._image_timeout = image_timeout
        self._speech_timeout = speech_timeout

    async def render(
        self,
        narration: str,
        style: StyleContext,
        *,
        image_prompt: str | None = None,
        model: str | None = None,
    ) -> MediaArtifacts:
        """Run both branches concurrently and collect whatever succeeded."""
        image, audio = await asyncio.gather(
            self._guard("image", self._image_branch(narration, style, image_prompt, model), self._image_timeout),
            self._guard("audio", self._audio_branch(narration, style), self._speech_timeout),
        )
        return MediaArtifacts(image_b64=_b64(image), audio_b64=_b64(audio))

    # ── Branches ──────────────────────────────────────────────────────────────

    async def _image_branch(
        self, narration: str, style: StyleContext, image_prompt: str | None, model: str | None
    ) -> bytes | None:
        if self._image is None:
            return None
        prompt = await self._image_prompt(narration, style, image_prompt, model)
        return await self._image.render(prompt, art_style=style.art_style)

    async def _audio_branch(self, narration: str, style: StyleContext) -> bytes | None:
        if self._speech is None:
            return None
        return await self._speech.synthesize(narration, voice=style.voice)

    async def _image_prompt(
        self, narration: str, style: StyleContext, image_prompt: str | None, model: str | None
    ) -> str:
        """Build the final image prompt with the style anchors applied."""
        if image_prompt and image_prompt.strip():
            prefix = style.anchor_prefix()
            return f"{prefix}, {image_prompt.strip()}" if prefix else image_prompt.strip()

        raw = await self._oracle.complete(
            system=prompts.IMAGE_PROMPT_SYSTEM,
            prompt=prompts.image_prompt_request(
                narration,
                art_style=style.art_style,
                player_visuals=style.player_visuals,
                opponent_visuals=style.opponent_visuals,
            ),
            model=model,
        )
        return decode(ImagePromptReply, raw).prompt

    @staticmethod
    async def _guard(name: str, branch, timeout: float) -> bytes | None:
        """Await one branch under its own timeout; failure becomes ``None``."""
        try:
            return await asyncio.wait_for(branch, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Media %s branch timed out after %.1fs; artifact omitted", name, timeout)
            return None
        except Exception:
            # Media is never authoritative; the turn completes without it.
            logger.warning("Media %s branch failed; artifact omitted", name, exc_info=True)
            return None
