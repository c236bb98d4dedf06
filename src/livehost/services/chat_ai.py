from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple
import asyncio
import logging
import os
import time

import requests
from langchain_openai import ChatOpenAI
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..domain.errors import CollaboratorFailure
from .model_router import ModelRouter


LOG = logging.getLogger("livehost.llm")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw)
        return value if value > 0 else default
    except ValueError:
        return default


BREAKER_THRESHOLD = int(_env_float("LIVEHOST_LLM_BREAKER_THRESHOLD", 3))
BREAKER_COOLDOWN = _env_float("LIVEHOST_LLM_BREAKER_COOLDOWN", 60.0)
COMPLETION_TIMEOUT = _env_float("LIVEHOST_LLM_TIMEOUT", 20.0)

DEFAULT_BASE_URLS = {
    "openai": "https://api.openai.com/v1",
    "xai": "https://api.x.ai/v1",
    "local": "http://127.0.0.1:11434",
}


class CircuitBreaker:
    """Stops calling a failing provider for ``cooldown`` seconds after ``threshold`` failures."""

    def __init__(
        self,
        threshold: int = BREAKER_THRESHOLD,
        cooldown: float = BREAKER_COOLDOWN,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.threshold = max(1, threshold)
        self.cooldown = cooldown
        self._clock = clock
        self.fails = 0
        self.opened_at = 0.0

    def is_open(self) -> bool:
        if self.opened_at == 0.0:
            return False
        if self._clock() - self.opened_at < self.cooldown:
            return True
        self.fails = 0
        self.opened_at = 0.0
        return False

    def record_fail(self) -> None:
        self.fails += 1
        if self.fails >= self.threshold and self.opened_at == 0.0:
            self.opened_at = self._clock() or 1e-9
            LOG.warning("llm_breaker_opened", extra={"fails": self.fails, "cooldown_s": self.cooldown})

    def record_success(self) -> None:
        if self.fails or self.opened_at:
            LOG.info("llm_breaker_closed")
        self.fails = 0
        self.opened_at = 0.0


def build_session(total_retries: int = 2) -> requests.Session:
    session = requests.Session()
    retry = Retry(
        total=total_retries,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset(["POST", "GET"]),
    )
    adapter = HTTPAdapter(max_retries=retry, pool_connections=10, pool_maxsize=10)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class LocalLLMClient:
    """OpenAI-compatible or Ollama host on the local network."""

    def __init__(self, base_url: str, model: str, max_tokens: int, timeout: float = COMPLETION_TIMEOUT) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.max_tokens = max_tokens
        self._timeout = (3, timeout)
        self._session = build_session()
        self.api_style = (os.getenv("LIVEHOST_LLM_LOCAL_API") or "auto").lower()

    def invoke(self, messages: List[Dict[str, str]]) -> str:
        if self.api_style == "ollama":
            return self._invoke_ollama(messages)
        if self.api_style == "openai":
            return self._invoke_openai(messages)
        try:
            return self._invoke_openai(messages)
        except requests.exceptions.RequestException as exc:
            LOG.warning(
                "local_llm_openai_failed_switching_to_ollama",
                extra={"base_url": self.base_url, "model": self.model, "err": str(exc)},
            )
            self.api_style = "ollama"
            return self._invoke_ollama(messages)

    def _invoke_openai(self, messages: List[Dict[str, str]]) -> str:
        LOG.debug("local_llm_invoke", extra={"model": self.model, "base_url": self.base_url})
        resp = self._session.post(
            f"{self.base_url}/v1/chat/completions",
            json={"model": self.model, "messages": messages, "max_tokens": self.max_tokens, "stream": False},
            timeout=self._timeout,
        )
        resp.raise_for_status()
        data = resp.json()
        choices = data.get("choices") or []
        if choices:
            message = choices[0].get("message") or {}
            content = message.get("content")
            if content:
                return content
        return data.get("response") or data.get("text") or ""

    def _invoke_ollama(self, messages: List[Dict[str, str]]) -> str:
        resp = self._session.post(
            f"{self.base_url}/api/generate",
            json={
                "model": self.model,
                "prompt": self._messages_to_prompt(messages),
                "stream": False,
                "options": {"num_predict": self.max_tokens},
            },
            timeout=self._timeout,
        )
        resp.raise_for_status()
        data = resp.json()
        return data.get("response") or data.get("text") or ""

    @staticmethod
    def _messages_to_prompt(messages: List[Dict[str, str]]) -> str:
        parts: List[str] = []
        for msg in messages:
            role = (msg.get("role") or "user").strip().upper()
            content = msg.get("content") or ""
            parts.append(f"{role}: {content}")
        parts.append("ASSISTANT:")
        return "\n".join(parts)


class ChatCompletionClient:
    """Chat-completion collaborator: one system persona, one user line, one reply.

    Raises :class:`CollaboratorFailure` on any provider error, timeout, missing
    configuration or while the circuit breaker is open. Callers decide the
    fallback.
    """

    def __init__(
        self,
        router: Optional[ModelRouter] = None,
        *,
        timeout: float = COMPLETION_TIMEOUT,
        breaker: Optional[CircuitBreaker] = None,
    ) -> None:
        self._router = router or ModelRouter()
        self._timeout = timeout
        self._breaker = breaker or CircuitBreaker()

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    def _get_llm(self, max_tokens: int) -> Tuple[Any, str, str]:
        selection = self._router.select_provider("live_reply")
        base_url = DEFAULT_BASE_URLS.get(selection.name) or selection.default_base_url or ""
        if selection.base_url_env:
            base_url = os.getenv(selection.base_url_env, base_url)

        if selection.name == "local":
            return (
                LocalLLMClient(base_url=base_url, model=selection.model, max_tokens=max_tokens, timeout=self._timeout),
                selection.name,
                selection.model,
            )

        api_key = os.getenv(selection.api_key_env) if selection.api_key_env else None
        if selection.requires_api_key and not api_key:
            raise RuntimeError("LLM not configured")
        LOG.debug(
            "Using remote LLM provider name=%s model=%s base_url=%s",
            selection.name,
            selection.model,
            base_url,
        )
        client = ChatOpenAI(
            api_key=api_key,
            base_url=base_url,
            model=selection.model,
            temperature=0.7,
            max_tokens=max_tokens,
        )
        return client, selection.name, selection.model

    async def _invoke(self, llm: Any, messages: List[Dict[str, str]]) -> str:
        if isinstance(llm, LocalLLMClient):
            return await asyncio.to_thread(llm.invoke, messages)
        res = await llm.ainvoke(messages)
        return res.content if hasattr(res, "content") else str(res)

    async def complete(self, system_persona: str, user_text: str, max_tokens: int) -> str:
        if self._breaker.is_open():
            LOG.info("llm_skipped_due_to_breaker", extra={"cooldown_s": self._breaker.cooldown})
            raise CollaboratorFailure("chat_completion", "circuit open")
        try:
            llm, provider, model = self._get_llm(max_tokens)
        except RuntimeError as exc:
            raise CollaboratorFailure("chat_completion", str(exc)) from exc

        messages = [
            {"role": "system", "content": system_persona},
            {"role": "user", "content": user_text},
        ]
        started = time.perf_counter()
        try:
            text = await asyncio.wait_for(self._invoke(llm, messages), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            self._breaker.record_fail()
            LOG.warning("llm_timeout", extra={"provider": provider, "model": model, "timeout_s": self._timeout})
            raise CollaboratorFailure("chat_completion", "timeout") from exc
        except Exception as exc:
            self._breaker.record_fail()
            LOG.warning("llm_error", extra={"provider": provider, "model": model, "err": str(exc)})
            raise CollaboratorFailure("chat_completion", str(exc)) from exc
        self._breaker.record_success()
        LOG.debug(
            "llm_reply",
            extra={"provider": provider, "model": model, "elapsed_s": round(time.perf_counter() - started, 3)},
        )
        return text or ""
