"""Event vocabulary of the live engine.

Upstream events are what a provider connection reports about the monitored
channel. Outbound events are what the bus fans out to dashboard streams; each
one knows its own wire shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union


class SessionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    ONLINE = "online"
    RECONNECTING = "reconnecting"
    ERROR = "error"


# Upstream -----------------------------------------------------------------


@dataclass(frozen=True)
class UpstreamConnected:
    pass


@dataclass(frozen=True)
class UpstreamDisconnected:
    pass


@dataclass(frozen=True)
class UpstreamError:
    detail: str = ""


@dataclass(frozen=True)
class MemberJoined:
    user_id: str


@dataclass(frozen=True)
class ChatReceived:
    user_id: str
    text: str


UpstreamEvent = Union[UpstreamConnected, UpstreamDisconnected, UpstreamError, MemberJoined, ChatReceived]


# Outbound -----------------------------------------------------------------


@dataclass(frozen=True)
class Narration:
    text: str

    def to_wire(self) -> Dict[str, Any]:
        return {"type": "say", "text": self.text}


@dataclass(frozen=True)
class StatusLog:
    text: str

    def to_wire(self) -> Dict[str, Any]:
        return {"type": "log", "text": self.text}


@dataclass(frozen=True)
class ChatEcho:
    user_id: str
    text: str

    def to_wire(self) -> Dict[str, Any]:
        return {"type": "chat", "username": self.user_id, "message": self.text}


@dataclass(frozen=True)
class StatusChanged:
    state: SessionState
    channel: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        return {"type": "status", "state": self.state.value, "channel": self.channel}


OutboundEvent = Union[Narration, StatusLog, ChatEcho, StatusChanged]

# Status log texts
LOG_CONNECTED = "connected"
LOG_DISCONNECTED = "disconnected"
LOG_ERROR = "error"
LOG_STOPPED = "stopped"


def event_type(event: OutboundEvent) -> str:
    return str(event.to_wire()["type"])
