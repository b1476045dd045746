from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from .models import Message


class Scope(str, Enum):
    SERVERS = "servers"
    CHANNELS = "channels"
    MESSAGES = "messages"
    USERS = "users"
    TOPIC = "topic"
    DIRECTORY = "directory"
    ACTIVE = "active"


@dataclass(frozen=True)
class Notify:
    """Something visible changed; the UI projection decides whether to redraw."""

    scope: Scope
    server_id: str | None = None
    channel_id: str | None = None


@dataclass(frozen=True)
class MessageAppended:
    server_id: str
    channel_id: str | None
    message: Message


@dataclass(frozen=True)
class Action:
    """A protocol action to issue through the server's Session.

    `name` is one of the Session pass-through methods (join, part, say, ...).
    """

    server_id: str
    name: str
    args: tuple = ()


@dataclass(frozen=True)
class ScheduleDiscovery:
    server_id: str


@dataclass(frozen=True)
class RequestDirectory:
    server_id: str
    generation: int


@dataclass(frozen=True)
class RefreshDirectory:
    server_id: str


@dataclass(frozen=True)
class Reconnect:
    server_id: str


@dataclass(frozen=True)
class PersistServers:
    pass


Effect = Union[
    Notify,
    MessageAppended,
    Action,
    ScheduleDiscovery,
    RequestDirectory,
    RefreshDirectory,
    Reconnect,
    PersistServers,
]
