"""Inbound events, one dataclass per kind.

`Event` is the union the reconciler dispatches on. Every event names the
server it belongs to; protocol events are produced by the protocol client
adapter, while `DiscoveryDue` and `DirectoryTimeout` are raised by the
session's own timers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union


@dataclass(frozen=True)
class MessageEvent:
    server_id: str
    nick: str
    target: str
    text: str


@dataclass(frozen=True)
class JoinEvent:
    server_id: str
    channel: str
    nick: str


@dataclass(frozen=True)
class PartEvent:
    server_id: str
    channel: str
    nick: str
    reason: str | None = None


@dataclass(frozen=True)
class KickEvent:
    server_id: str
    channel: str
    nick: str
    by: str
    reason: str | None = None


@dataclass(frozen=True)
class QuitEvent:
    server_id: str
    nick: str
    reason: str | None = None


@dataclass(frozen=True)
class NickEvent:
    server_id: str
    nick: str
    new_nick: str


@dataclass(frozen=True)
class TopicEvent:
    server_id: str
    channel: str
    topic: str | None = None
    nick: str | None = None


@dataclass(frozen=True)
class UserlistEvent:
    server_id: str
    channel: str
    users: tuple[str, ...] = ()


@dataclass(frozen=True)
class NamesEvent:
    server_id: str
    channel: str
    users: tuple[str, ...] = ()


@dataclass(frozen=True)
class ChannelListRow:
    channel: str
    num_users: int = 0
    topic: str = ""


@dataclass(frozen=True)
class ChannelListEvent:
    server_id: str
    channels: tuple[ChannelListRow, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ChannelListRowEvent:
    server_id: str
    row: ChannelListRow


@dataclass(frozen=True)
class ChannelListEndEvent:
    server_id: str


@dataclass(frozen=True)
class AuthenticatedEvent:
    server_id: str


@dataclass(frozen=True)
class ConnectedEvent:
    server_id: str


@dataclass(frozen=True)
class RegisteredEvent:
    server_id: str
    # Nick the server accepted, from the welcome numeric
    nick: str | None = None


@dataclass(frozen=True)
class ReconnectingEvent:
    server_id: str


@dataclass(frozen=True)
class CloseEvent:
    server_id: str


@dataclass(frozen=True)
class ErrorEvent:
    server_id: str
    message: str | None = None


@dataclass(frozen=True)
class DiscoveryDue:
    server_id: str


@dataclass(frozen=True)
class DirectoryTimeout:
    server_id: str
    generation: int


Event = Union[
    MessageEvent,
    JoinEvent,
    PartEvent,
    KickEvent,
    QuitEvent,
    NickEvent,
    TopicEvent,
    UserlistEvent,
    NamesEvent,
    ChannelListEvent,
    ChannelListRowEvent,
    ChannelListEndEvent,
    AuthenticatedEvent,
    ConnectedEvent,
    RegisteredEvent,
    ReconnectingEvent,
    CloseEvent,
    ErrorEvent,
    DiscoveryDue,
    DirectoryTimeout,
]
