"""Error taxonomy for the live engine.

Only request-scoped failures (start/stop/product/config calls) reach the
caller; background failures are logged and turned into status log events.
"""

from __future__ import annotations


class LiveHostError(Exception):
    """Base class for engine errors."""


class InvalidArgument(LiveHostError, ValueError):
    """Malformed control request, e.g. a blank channel name."""


class UpstreamConnectFailure(LiveHostError):
    def __init__(self, channel: str, detail: str) -> None:
        super().__init__(f"Failed to connect to {channel}: {detail}")
        self.channel = channel
        self.detail = detail


class CollaboratorFailure(LiveHostError):
    """Speech synthesis or chat completion call failed."""

    def __init__(self, collaborator: str, detail: str) -> None:
        super().__init__(f"{collaborator} failed: {detail}")
        self.collaborator = collaborator
        self.detail = detail
