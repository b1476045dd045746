from __future__ import annotations

from enum import Enum

from .models import ServerStatus


class Signal(str, Enum):
    CONNECTED = "connected"
    REGISTERED = "registered"
    RECONNECTING = "reconnecting"
    CLOSE = "close"
    CONNECT_REQUEST = "connect_request"
    USER_DISCONNECT = "user_disconnect"


_S = ServerStatus

# (current status, signal) -> next status; anything absent is a no-op/rejection
_TRANSITIONS: dict[tuple[ServerStatus, Signal], ServerStatus] = {
    (_S.CONNECTING, Signal.CONNECTED): _S.CONNECTED,
    (_S.CONNECTING, Signal.REGISTERED): _S.CONNECTED,
    (_S.CONNECTING, Signal.RECONNECTING): _S.RECONNECTING,
    (_S.CONNECTED, Signal.REGISTERED): _S.CONNECTED,
    (_S.CONNECTED, Signal.RECONNECTING): _S.RECONNECTING,
    (_S.RECONNECTING, Signal.CONNECTED): _S.CONNECTED,
    (_S.RECONNECTING, Signal.REGISTERED): _S.CONNECTED,
    (_S.DISCONNECTED, Signal.CONNECT_REQUEST): _S.CONNECTING,
}
for _st in (_S.CONNECTING, _S.CONNECTED, _S.RECONNECTING):
    _TRANSITIONS[(_st, Signal.CLOSE)] = _S.DISCONNECTED
    _TRANSITIONS[(_st, Signal.USER_DISCONNECT)] = _S.DISCONNECTED


def transition(status: ServerStatus, signal: Signal) -> ServerStatus | None:
    """Return the next status, or None when the signal does not apply in `status`."""
    return _TRANSITIONS.get((status, signal))


def can_connect(status: ServerStatus) -> bool:
    return transition(status, Signal.CONNECT_REQUEST) is not None
