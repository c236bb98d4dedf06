"""What the AI host says.

Every line here is authored in plain form and goes on the bus unchanged;
:func:`localize` is applied once, later, by the speech synthesizer.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Optional, Protocol

from ..domain.errors import CollaboratorFailure
from ..domain.models import Product

logger = logging.getLogger("livehost.narration")

HOST_PERSONA = (
    "Kamu adalah host AI TikTok Live berbahasa Indonesia. Jawab dengan singkat, ramah, dan relevan. "
    "Jangan menyebut harga produk. Arahkan pertanyaan teknis ke link bio. Patuhi aturan TikTok Shop."
)

APOLOGY_REPLY = "Maaf, saya sedang bermasalah. Coba lagi ya."
EMPTY_REPLY = "Terima kasih!"
RECONNECTED_LINE = "Sinyal stabil, live kembali tersambung."
STARTUP_GREETING = "Selamat datang kembali di live. Sistem host AI sudah aktif."
DEFAULT_PRODUCT_NAME = "Produk bagus"

try:
    REPLY_MAX_TOKENS = max(1, int(os.getenv("LIVEHOST_LLM_MAX_TOKENS", "100")))
except ValueError:
    REPLY_MAX_TOKENS = 100


class CompletionClient(Protocol):
    async def complete(self, system_persona: str, user_text: str, max_tokens: int) -> str: ...


def greet(user_id: str) -> str:
    return f"Halo, selamat datang @{user_id} di live kita."


def chat_line(user_id: str, message: str, reply: str) -> str:
    return f"@{user_id} bilang: {message}. {reply}"


def promo_line(item: Product) -> str:
    name = (item.name or "").strip() or DEFAULT_PRODUCT_NAME
    return f"Produk nomor {item.id} ini lagi banyak dicari. {name}. Cek keranjang kuning ya!"


# Token substitutions spoken more naturally in Indonesian. Outputs never match
# any pattern again, which keeps localize() idempotent.
_SUBSTITUTIONS = (
    (re.compile(r"\bhi\b", re.IGNORECASE), "hai"),
    (re.compile(r"\bthanks\b", re.IGNORECASE), "terima kasih"),
    (re.compile(r"\bok\b", re.IGNORECASE), "oke"),
    (re.compile(r"\bplease\b", re.IGNORECASE), "tolong ya"),
    (re.compile(r"\bI\b"), "saya"),
    (re.compile(r"\byou\b"), "kamu"),
)

_SPACE_BEFORE_QUESTION = re.compile(r"\s+\?")
_BARE_QUESTION = re.compile(r"(?<!\bya)\?")
_TIGHT_PUNCTUATION = re.compile(r"([.,])(?=[^\s\d.,?!])")
_WHITESPACE = re.compile(r"\s+")


def localize(text: str) -> str:
    """Prepare a line for Indonesian speech synthesis.

    Normalizes punctuation spacing, turns questions into the softer "... ya?"
    form and swaps a few English tokens. Decimal and thousands separators
    ("Rp 150.000") are left alone.
    """
    out = _SPACE_BEFORE_QUESTION.sub("?", text or "")
    out = _BARE_QUESTION.sub(" ya?", out)
    out = _TIGHT_PUNCTUATION.sub(r"\1 ", out)
    for pattern, replacement in _SUBSTITUTIONS:
        out = pattern.sub(replacement, out)
    return _WHITESPACE.sub(" ", out).strip()


class NarrationPolicy:
    """Decides the host's reply to a chat message.

    Holds only the completion collaborator; failures never leave this class.
    """

    def __init__(self, completion: Optional[CompletionClient], max_tokens: int = REPLY_MAX_TOKENS) -> None:
        self._completion = completion
        self._max_tokens = max_tokens

    def greet(self, user_id: str) -> str:
        return greet(user_id)

    async def respond_to_chat(self, user_id: str, message: str) -> str:
        if self._completion is None:
            return APOLOGY_REPLY
        try:
            reply = await self._completion.complete(HOST_PERSONA, message, self._max_tokens)
        except CollaboratorFailure as exc:
            logger.warning("chat_reply_failed", extra={"user_id": user_id, "err": exc.detail})
            return APOLOGY_REPLY
        except Exception:
            logger.exception("chat_reply_crashed user=%s", user_id)
            return APOLOGY_REPLY
        reply = (reply or "").strip()
        return reply or EMPTY_REPLY
