from __future__ import annotations

from typing import Dict, FrozenSet

from ..domain.events import SessionState

# Adapter state transitions
SESSION_TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.CONNECTING}),
    SessionState.CONNECTING: frozenset({SessionState.ONLINE, SessionState.IDLE, SessionState.ERROR}),
    SessionState.ONLINE: frozenset(
        {SessionState.RECONNECTING, SessionState.ERROR, SessionState.IDLE, SessionState.CONNECTING}
    ),
    SessionState.RECONNECTING: frozenset(
        {SessionState.ONLINE, SessionState.ERROR, SessionState.IDLE, SessionState.CONNECTING}
    ),
    SessionState.ERROR: frozenset(
        {SessionState.CONNECTING, SessionState.IDLE, SessionState.ONLINE, SessionState.RECONNECTING}
    ),
}


def is_valid_transition(current: SessionState, target: SessionState) -> bool:
    return target in SESSION_TRANSITIONS.get(current, frozenset())
