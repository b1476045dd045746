from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from .effects import Effect, MessageAppended, Notify, RequestDirectory, Scope
from .models import Channel, Message, Server, pm_channel_id

logger = logging.getLogger("ircdeck.state")

PM_TOPIC = "Private conversation with {nick}"


@dataclass
class ClientState:
    """Everything the client knows. Owned by one IRCManager, never global."""

    servers: dict[str, Server] = field(default_factory=dict)
    active_server_id: str | None = None
    active_channel_id: str | None = None

    def server(self, server_id: str | None) -> Server | None:
        if not server_id:
            return None
        return self.servers.get(server_id)

    @property
    def active_server(self) -> Server | None:
        return self.server(self.active_server_id)

    @property
    def active_channel(self) -> Channel | None:
        srv = self.active_server
        if srv is None:
            return None
        return srv.get_channel(self.active_channel_id)

    def add_server(self, server: Server) -> Server:
        if server.id in self.servers:
            raise ValueError(f"server id {server.id} already in use")
        self.servers[server.id] = server
        return server

    def saved_servers(self) -> dict[str, dict]:
        return {sid: srv.to_saved() for sid, srv in self.servers.items()}


def new_server_id() -> str:
    return f"server-{uuid.uuid4().hex[:12]}"


def add_system_message(
    server: Server, channel_id: str | None, text: str, effects: list[Effect]
) -> None:
    """Append a system message to a channel, or to the server log when channel_id is None.

    Server-level messages are copied into every open channel of the server so they
    are visible wherever the user is looking.
    """
    msg = Message.system(text)
    if channel_id is None:
        server.messages.append(msg)
        effects.append(MessageAppended(server.id, None, msg))
        effects.append(Notify(Scope.MESSAGES, server.id, None))
        for ch in server.channels.values():
            ch.append(msg)
            effects.append(Notify(Scope.MESSAGES, server.id, ch.id))
        return
    ch = server.get_channel(channel_id)
    if ch is None:
        logger.debug("%s: dropping system message for unknown channel %s", server.id, channel_id)
        return
    ch.append(msg)
    effects.append(MessageAppended(server.id, ch.id, msg))
    effects.append(Notify(Scope.MESSAGES, server.id, ch.id))


def add_user_message(
    server: Server, channel_id: str, nick: str, text: str, effects: list[Effect]
) -> None:
    ch = server.get_channel(channel_id)
    if ch is None:
        return
    msg = Message.user(nick, text)
    ch.append(msg)
    effects.append(MessageAppended(server.id, ch.id, msg))
    effects.append(Notify(Scope.MESSAGES, server.id, ch.id))


def ensure_channel(
    server: Server,
    channel_id: str,
    effects: list[Effect],
    name: str | None = None,
    topic: str | None = None,
) -> tuple[Channel, bool]:
    """Return (channel, created); creating the channel is idempotent."""
    ch = server.get_channel(channel_id)
    if ch is not None:
        return ch, False
    ch = server.add_channel(Channel(id=channel_id, name=name or channel_id, topic=topic))
    effects.append(Notify(Scope.CHANNELS, server.id))
    return ch, True


def ensure_pm_channel(server: Server, nick: str, effects: list[Effect]) -> Channel:
    ch, created = ensure_channel(
        server, pm_channel_id(nick), effects, name=nick, topic=PM_TOPIC.format(nick=nick)
    )
    if created:
        logger.debug("%s: opened private conversation with %s", server.id, nick)
    return ch


def begin_directory_request(server: Server, effects: list[Effect]) -> RequestDirectory:
    """Reset the directory cache and open a new request generation."""
    server.directory.clear()
    server.directory_generation += 1
    server.directory_pending = True
    req = RequestDirectory(server.id, server.directory_generation)
    effects.append(Notify(Scope.DIRECTORY, server.id))
    effects.append(req)
    return req
