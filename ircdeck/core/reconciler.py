"""Map inbound events onto ClientState.

`apply(state, event)` mutates `state` in one synchronous step and returns it
together with the effects the caller has to run (protocol actions, timers,
UI notifications). Events that mention a server, channel or user we do not
know about are dropped without complaint; protocol libraries replay and
duplicate freely.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from . import context
from .effects import (
    Action,
    Effect,
    Notify,
    PersistServers,
    RefreshDirectory,
    ScheduleDiscovery,
    Scope,
)
from .events import (
    AuthenticatedEvent,
    ChannelListEndEvent,
    ChannelListEvent,
    ChannelListRowEvent,
    CloseEvent,
    ConnectedEvent,
    DirectoryTimeout,
    DiscoveryDue,
    ErrorEvent,
    Event,
    JoinEvent,
    KickEvent,
    MessageEvent,
    NamesEvent,
    NickEvent,
    PartEvent,
    QuitEvent,
    ReconnectingEvent,
    RegisteredEvent,
    TopicEvent,
    UserlistEvent,
)
from .lifecycle import Signal, transition
from .models import DirectoryEntry, Server, ServerStatus, UserMode, parse_member
from .state import (
    ClientState,
    add_system_message,
    add_user_message,
    begin_directory_request,
    ensure_channel,
    ensure_pm_channel,
)

logger = logging.getLogger("ircdeck.reconciler")

NO_REASON = "No reason given"
NO_TOPIC = "No topic set"

Handler = Callable[[ClientState, Server, Any, list], None]
_HANDLERS: dict[type, Handler] = {}


def _handles(*event_types: type) -> Callable[[Handler], Handler]:
    def deco(fn: Handler) -> Handler:
        for et in event_types:
            _HANDLERS[et] = fn
        return fn

    return deco


def apply(state: ClientState, event: Event) -> tuple[ClientState, list[Effect]]:
    effects: list[Effect] = []
    server = state.server(event.server_id)
    if server is None:
        logger.debug("ignoring %s for unknown server %s", type(event).__name__, event.server_id)
        return state, effects
    handler = _HANDLERS.get(type(event))
    if handler is None:
        logger.warning("no handler for %s", type(event).__name__)
        return state, effects
    handler(state, server, event, effects)
    return state, effects


# ----- Lifecycle -----
def _advance(server: Server, signal: Signal, effects: list[Effect]) -> bool:
    nxt = transition(server.status, signal)
    if nxt is None:
        return False
    if nxt is not server.status:
        server.status = nxt
        effects.append(Notify(Scope.SERVERS, server.id))
    return True


@_handles(ConnectedEvent)
def _on_connected(state, server, ev, effects):
    _advance(server, Signal.CONNECTED, effects)


@_handles(RegisteredEvent)
def _on_registered(state, server, ev, effects):
    if not _advance(server, Signal.REGISTERED, effects):
        return
    if ev.nick and ev.nick != server.nickname:
        server.nickname = ev.nick
        effects.append(Notify(Scope.SERVERS, server.id))
    add_system_message(
        server, None, f"Connected to {server.host}:{server.port} as {server.nickname}", effects
    )
    effects.append(ScheduleDiscovery(server.id))
    effects.append(PersistServers())


@_handles(ReconnectingEvent)
def _on_reconnecting(state, server, ev, effects):
    if _advance(server, Signal.RECONNECTING, effects):
        add_system_message(server, None, "Reconnecting to server...", effects)


@_handles(CloseEvent)
def _on_close(state, server, ev, effects):
    if _advance(server, Signal.CLOSE, effects):
        server.directory_pending = False
        add_system_message(server, None, "Disconnected from server", effects)


@_handles(ErrorEvent)
def _on_error(state, server, ev, effects):
    add_system_message(server, None, f"Error: {ev.message or 'Unknown error'}", effects)


@_handles(AuthenticatedEvent)
def _on_authenticated(state, server, ev, effects):
    add_system_message(server, None, "Successfully authenticated with server", effects)


# ----- Messages -----
@_handles(MessageEvent)
def _on_message(state, server, ev, effects):
    if ev.target in server.channels:
        add_user_message(server, ev.target, ev.nick, ev.text, effects)
    elif ev.target == server.nickname:
        ch = ensure_pm_channel(server, ev.nick, effects)
        add_user_message(server, ch.id, ev.nick, ev.text, effects)


# ----- Membership -----
def _open_member_channel(state: ClientState, server: Server, channel: str, effects) -> None:
    ch, created = ensure_channel(server, channel, effects)
    if created and len(server.channels) == 1:
        context.focus_new_channel(state, server, ch.id, effects)


@_handles(JoinEvent)
def _on_join(state, server, ev, effects):
    if ev.nick == server.nickname:
        _open_member_channel(state, server, ev.channel, effects)
        add_system_message(server, ev.channel, f"You joined {ev.channel}", effects)
        return
    if ev.channel not in server.channels:
        return
    server.add_user(ev.channel, ev.nick, UserMode.NONE)
    effects.append(Notify(Scope.USERS, server.id, ev.channel))
    add_system_message(server, ev.channel, f"{ev.nick} joined the channel", effects)


def _leave_channel(state: ClientState, server: Server, channel: str, text: str, effects) -> None:
    add_system_message(server, channel, text, effects)
    server.remove_channel(channel)
    effects.append(Notify(Scope.CHANNELS, server.id))
    context.channel_removed(state, server, channel, effects)


@_handles(PartEvent)
def _on_part(state, server, ev, effects):
    if ev.channel not in server.channels:
        return
    if ev.nick == server.nickname:
        text = f"You left {ev.channel}" + (f" ({ev.reason})" if ev.reason else "")
        _leave_channel(state, server, ev.channel, text, effects)
        return
    if server.remove_user(ev.channel, ev.nick) is None:
        return
    effects.append(Notify(Scope.USERS, server.id, ev.channel))
    add_system_message(server, ev.channel, f"{ev.nick} left the channel", effects)


@_handles(KickEvent)
def _on_kick(state, server, ev, effects):
    if ev.channel not in server.channels:
        return
    reason = ev.reason or NO_REASON
    if ev.nick == server.nickname:
        text = f"You were kicked from {ev.channel} by {ev.by} ({reason})"
        _leave_channel(state, server, ev.channel, text, effects)
        return
    if server.remove_user(ev.channel, ev.nick) is None:
        return
    effects.append(Notify(Scope.USERS, server.id, ev.channel))
    add_system_message(server, ev.channel, f"{ev.nick} was kicked by {ev.by} ({reason})", effects)


@_handles(QuitEvent)
def _on_quit(state, server, ev, effects):
    for ch in server.channels_with(ev.nick):
        ch.remove_user(ev.nick)
        effects.append(Notify(Scope.USERS, server.id, ch.id))
        add_system_message(server, ch.id, f"{ev.nick} quit ({ev.reason or NO_REASON})", effects)


@_handles(NickEvent)
def _on_nick(state, server, ev, effects):
    for ch in server.channels_with(ev.nick):
        ch.rename_user(ev.nick, ev.new_nick)
        effects.append(Notify(Scope.USERS, server.id, ch.id))
        add_system_message(server, ch.id, f"{ev.nick} is now known as {ev.new_nick}", effects)
    if ev.nick == server.nickname:
        server.nickname = ev.new_nick
        effects.append(Notify(Scope.SERVERS, server.id))
        effects.append(PersistServers())


@_handles(TopicEvent)
def _on_topic(state, server, ev, effects):
    ch = server.get_channel(ev.channel)
    if ch is None:
        return
    ch.topic = ev.topic or None
    effects.append(Notify(Scope.TOPIC, server.id, ch.id))
    add_system_message(server, ch.id, f"Topic: {ev.topic or NO_TOPIC}", effects)


@_handles(UserlistEvent, NamesEvent)
def _on_names(state, server, ev, effects):
    if ev.channel not in server.channels:
        if not isinstance(ev, NamesEvent):
            return
        # NAMES for a channel we never saw a JOIN for: the server (or a bouncer)
        # already has us in it.
        logger.info("%s: adopting already-joined channel %s", server.id, ev.channel)
        _open_member_channel(state, server, ev.channel, effects)
    server.replace_users(ev.channel, (parse_member(raw) for raw in ev.users if raw))
    effects.append(Notify(Scope.USERS, server.id, ev.channel))


# ----- Channel directory -----
def _refresh_directory(server: Server, effects: list[Effect]) -> None:
    server.directory_pending = False
    effects.append(Notify(Scope.DIRECTORY, server.id))
    effects.append(RefreshDirectory(server.id))


@_handles(ChannelListEvent)
def _on_channel_list(state, server, ev, effects):
    server.directory = [
        DirectoryEntry(row.channel, row.num_users, row.topic or "") for row in ev.channels
    ]
    _refresh_directory(server, effects)


@_handles(ChannelListRowEvent)
def _on_channel_list_row(state, server, ev, effects):
    row = ev.row
    server.directory.append(DirectoryEntry(row.channel, row.num_users, row.topic or ""))


@_handles(ChannelListEndEvent)
def _on_channel_list_end(state, server, ev, effects):
    if server.directory_pending:
        _refresh_directory(server, effects)


@_handles(DirectoryTimeout)
def _on_directory_timeout(state, server, ev, effects):
    if server.directory_pending and ev.generation == server.directory_generation:
        logger.info("%s: channel list end never arrived; showing what we have", server.id)
        _refresh_directory(server, effects)


@_handles(DiscoveryDue)
def _on_discovery_due(state, server, ev, effects):
    if server.status is not ServerStatus.CONNECTED:
        return
    effects.append(Action(server.id, "raw", ("NAMES", "*")))
    begin_directory_request(server, effects)
