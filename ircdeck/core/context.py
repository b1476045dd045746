"""Active server/channel bookkeeping.

All reassignment of `active_server_id` / `active_channel_id` goes through here so
that an active channel always exists under the active server.
"""

from __future__ import annotations

import logging

from .effects import Effect, Notify, Scope
from .models import Server
from .state import ClientState

logger = logging.getLogger("ircdeck.context")


def _first_channel(server: Server) -> str | None:
    return next(iter(server.channels), None)


def select_server(state: ClientState, server_id: str, effects: list[Effect]) -> bool:
    srv = state.server(server_id)
    if srv is None:
        return False
    state.active_server_id = srv.id
    last = srv.last_active_channel
    if last and last in srv.channels:
        state.active_channel_id = last
    else:
        state.active_channel_id = _first_channel(srv)
        if state.active_channel_id:
            srv.last_active_channel = state.active_channel_id
    effects.append(Notify(Scope.ACTIVE, srv.id, state.active_channel_id))
    return True


def select_channel(
    state: ClientState, server_id: str, channel_id: str, effects: list[Effect]
) -> bool:
    srv = state.server(server_id)
    if srv is None or channel_id not in srv.channels:
        return False
    state.active_server_id = srv.id
    state.active_channel_id = channel_id
    srv.last_active_channel = channel_id
    effects.append(Notify(Scope.ACTIVE, srv.id, channel_id))
    return True


def focus_new_channel(
    state: ClientState, server: Server, channel_id: str, effects: list[Effect]
) -> None:
    """Make a freshly opened channel the active one, switching servers if needed."""
    server.last_active_channel = channel_id
    select_channel(state, server.id, channel_id, effects)


def channel_removed(
    state: ClientState, server: Server, channel_id: str, effects: list[Effect]
) -> None:
    if server.last_active_channel == channel_id:
        server.last_active_channel = None
    if state.active_server_id != server.id or state.active_channel_id != channel_id:
        return
    nxt = _first_channel(server)
    if nxt is not None:
        select_channel(state, server.id, nxt, effects)
    else:
        state.active_channel_id = None
        effects.append(Notify(Scope.ACTIVE, server.id, None))


def delete_server(state: ClientState, server_id: str, effects: list[Effect]) -> Server | None:
    srv = state.servers.pop(server_id, None)
    if srv is None:
        return None
    effects.append(Notify(Scope.SERVERS))
    if state.active_server_id == server_id:
        state.active_server_id = None
        state.active_channel_id = None
        remaining = next(iter(state.servers), None)
        if remaining is not None:
            select_server(state, remaining, effects)
        else:
            effects.append(Notify(Scope.ACTIVE))
    logger.debug("deleted server %s", server_id)
    return srv


def check_invariant(state: ClientState) -> bool:
    if state.active_channel_id is None:
        return state.active_server_id is None or state.active_server_id in state.servers
    srv = state.active_server
    return srv is not None and state.active_channel_id in srv.channels
