"""Speech-synthesis collaborator (OpenAI-compatible ``/audio/speech``)."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Optional

import requests

from ..domain.errors import CollaboratorFailure
from .chat_ai import build_session
from .narration import localize

logger = logging.getLogger("livehost.speech")

TTS_MODEL = os.getenv("LIVEHOST_TTS_MODEL", "gpt-4o-mini-tts")
TTS_BASE_URL = os.getenv("LIVEHOST_TTS_BASE_URL") or os.getenv("OPENAI_BASE_URL") or "https://api.openai.com/v1"
TTS_TIMEOUT = (3, 30)


class SpeechSynthesizer:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = TTS_BASE_URL,
        model: str = TTS_MODEL,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else os.getenv("OPENAI_API_KEY")
        self.base_url = base_url.rstrip("/")
        self.model = model
        self._session = session or build_session()

    def synthesize(self, text: str, voice: str) -> bytes:
        """Return MP3 bytes for ``text``.

        The line is localized here and only here.
        """
        if not self._api_key:
            raise CollaboratorFailure("speech", "OPENAI_API_KEY not configured")
        spoken = localize(text)
        try:
            resp = self._session.post(
                f"{self.base_url}/audio/speech",
                headers={"Authorization": f"Bearer {self._api_key}"},
                json={"model": self.model, "voice": voice, "input": spoken, "response_format": "mp3"},
                timeout=TTS_TIMEOUT,
            )
            resp.raise_for_status()
        except requests.exceptions.RequestException as exc:
            logger.warning("tts_request_failed", extra={"voice": voice, "err": str(exc)})
            raise CollaboratorFailure("speech", str(exc)) from exc
        return resp.content

    async def asynthesize(self, text: str, voice: str) -> bytes:
        return await asyncio.to_thread(self.synthesize, text, voice)
