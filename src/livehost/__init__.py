# LiveHost package init
import logging
import os

_FORMAT = "[LIVEHOST][%(levelname)s] %(message)s"


def _level(env_name: str, default: str) -> int:
    name = (os.getenv(env_name) or default).upper()
    return getattr(logging, name, logging.INFO)


def _configure_logging() -> None:
    root = logging.getLogger("livehost")
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(handler)
    root.setLevel(_level("LIVEHOST_LOG_LEVEL", "INFO"))

    # Chat-completion calls are chatty at DEBUG; tune them separately
    logging.getLogger("livehost.llm").setLevel(
        _level("LIVEHOST_LLM_LOG_LEVEL", os.getenv("LIVEHOST_LOG_LEVEL") or "INFO")
    )
    # The upstream live client logs every websocket frame
    logging.getLogger("TikTokLive").setLevel(_level("LIVEHOST_PROVIDER_LOG_LEVEL", "WARNING"))


_configure_logging()
