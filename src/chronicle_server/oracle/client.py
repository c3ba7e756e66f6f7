"""Ollama HTTP client for the reasoning oracle.

``OracleClient`` is a thin, asynchronous wrapper around the Ollama
``/api/chat`` endpoint.  It is the only place in the oracle layer that makes
a network call; every prompt and schema decision lives elsewhere.

Async transport
---------------
Calls go through ``httpx.AsyncClient`` so that a turn can await the oracle
without blocking the event loop that also serves other scenes, and so that
the media pipeline can fan out concurrently.  A fresh client is opened per
call; the scene throughput is bounded by the oracle itself, not by
connection setup.

Failure contract
----------------
Unlike a best-effort renderer, the oracle's answer decides HP accounting,
so this client never returns ``None``.  Every transport-level failure
(timeout, connection refused, non-2xx status, a body that is not JSON) is
raised as :class:`~chronicle_server.game.errors.OracleFailure`.  Content
validation is handled by :mod:`chronicle_server.oracle.schemas`.

Tool calls
----------
When ``tools`` are passed, Ollama may answer with ``message.tool_calls``
instead of content.  :meth:`OracleClient.chat` returns the raw message dict
so that the caller (the opponent planner) can drive the tool loop.
"""

from __future__ import annotations

import logging

import httpx

from chronicle_server.game.errors import OracleFailure, OracleMalformed

logger = logging.getLogger(__name__)

# Temperature used when the caller does not override it.
_DEFAULT_TEMPERATURE = 0.8


class OracleClient:
    """Asynchronous client for the Ollama ``/api/chat`` endpoint.

    Attributes:
        _api_endpoint:  Full ``/api/chat`` URL.
        _model:         Default Ollama model tag; personas may override it.
        _timeout:       Per-request timeout in seconds.
        _temperature:   Sampling temperature.
    """

    def __init__(
        self,
        *,
        api_endpoint: str,
        model: str,
        timeout_seconds: float,
        temperature: float = _DEFAULT_TEMPERATURE,
    ) -> None:
        self._api_endpoint = api_endpoint
        self._model = model
        self._timeout = timeout_seconds
        self._temperature = temperature

    @classmethod
    def from_config(cls, settings) -> OracleClient:
        """Build a client from :class:`~chronicle_server.config.OracleSettings`."""
        return cls(
            api_endpoint=settings.api_endpoint,
            model=settings.model,
            timeout_seconds=settings.timeout_seconds,
            temperature=settings.temperature,
        )

    @property
    def model(self) -> str:
        return self._model

    # ── Primary call ──────────────────────────────────────────────────────────

    async def chat(
        self,
        messages: list[dict],
        *,
        model: str | None = None,
        tools: list[dict] | None = None,
        json_mode: bool = True,
    ) -> dict:
        """Send one chat request and return the reply message dict.

        Args:
            messages:  Full message list (system, history, user, tool turns).
            model:     Model override (persona-specific); defaults to the
                       configured model.
            tools:     Optional Ollama tool definitions.
            json_mode: Ask Ollama to constrain output to JSON.

        Returns:
            The ``message`` object from the Ollama reply, e.g.
            ``{"role": "assistant", "content": "...", "tool_calls": [...]}``.

        Raises:
            OracleFailure:   On timeout, connection failure or HTTP error.
            OracleMalformed: When the response body is not the expected
                             JSON envelope.
        """
        payload = self._build_payload(messages, model=model, tools=tools, json_mode=json_mode)

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._api_endpoint, json=payload)
                response.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.warning(
                "OracleClient: request timed out after %.1fs (endpoint=%s)",
                self._timeout,
                self._api_endpoint,
            )
            raise OracleFailure(f"Oracle timed out after {self._timeout:.1f}s.") from exc
        except httpx.ConnectError as exc:
            logger.warning("OracleClient: cannot connect to oracle at %s", self._api_endpoint)
            raise OracleFailure(f"Cannot connect to oracle at {self._api_endpoint}.") from exc
        except httpx.HTTPError as exc:
            logger.error("OracleClient: request failed: %s", exc)
            raise OracleFailure(f"Oracle request failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise OracleMalformed("Oracle response body is not JSON.", raw=response.text) from exc

        message = data.get("message") if isinstance(data, dict) else None
        if not isinstance(message, dict):
            raise OracleMalformed("Oracle response has no message object.", raw=response.text)
        return message

    async def complete(
        self,
        *,
        system: str,
        prompt: str,
        history: list[dict] | None = None,
        model: str | None = None,
    ) -> str:
        """Single-shot JSON completion: system + trailing history + prompt.

        Returns:
            The reply's ``content`` string (not yet schema-validated).

        Raises:
            OracleFailure:   Transport failure (see :meth:`chat`).
            OracleMalformed: Empty content.
        """
        messages = [{"role": "system", "content": system}]
        messages.extend(history or [])
        messages.append({"role": "user", "content": prompt})

        message = await self.chat(messages, model=model)
        content = (message.get("content") or "").strip()
        if not content:
            raise OracleMalformed("Oracle returned an empty reply.")
        return content

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _build_payload(
        self,
        messages: list[dict],
        *,
        model: str | None,
        tools: list[dict] | None,
        json_mode: bool,
    ) -> dict:
        """Construct the Ollama ``/api/chat`` request payload.

        ``stream`` is always ``False``; turns are request/response.
        """
        payload: dict = {
            "model": model or self._model,
            "stream": False,
            "messages": messages,
            "options": {"temperature": self._temperature},
        }
        if json_mode:
            payload["format"] = "json"
        if tools:
            payload["tools"] = tools
        return payload
