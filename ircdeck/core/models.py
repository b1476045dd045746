from __future__ import annotations

import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

CHANNEL_SIGILS = ("#", "&")
PM_PREFIX = "pm-"


class ServerStatus(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    DISCONNECTED = "disconnected"


class UserMode(str, Enum):
    NONE = "none"
    VOICE = "voice"
    OPERATOR = "operator"


class MessageType(str, Enum):
    SYSTEM = "system"
    USER = "user"


class ModelError(Exception):
    """Raised when a mutation would break an entity invariant."""


class DuplicateChannelError(ModelError):
    pass


class UnknownChannelError(ModelError):
    pass


def is_group_channel(channel_id: str) -> bool:
    return bool(channel_id) and channel_id.startswith(CHANNEL_SIGILS)


def pm_channel_id(nick: str) -> str:
    return f"{PM_PREFIX}{nick}"


def parse_member(raw: str) -> User:
    """Decode a membership entry like '@alice' or '+bob' into a User.

    Leading '@' and '+' sigils are stripped; with multi-prefix entries
    ('@+alice') the highest privilege wins.
    """
    prefix_len = 0
    while prefix_len < len(raw) and raw[prefix_len] in "@+":
        prefix_len += 1
    sigils = raw[:prefix_len]
    if "@" in sigils:
        mode = UserMode.OPERATOR
    elif "+" in sigils:
        mode = UserMode.VOICE
    else:
        mode = UserMode.NONE
    return User(nick=raw[prefix_len:], mode=mode)


@dataclass(frozen=True)
class Message:
    type: MessageType
    text: str
    timestamp: float = field(default_factory=time.time)
    nick: str | None = None

    def __post_init__(self) -> None:
        if self.type is MessageType.USER and not self.nick:
            raise ValueError("user messages need an author nick")
        if self.type is MessageType.SYSTEM and self.nick is not None:
            raise ValueError("system messages have no author")

    @classmethod
    def system(cls, text: str) -> Message:
        return cls(MessageType.SYSTEM, text)

    @classmethod
    def user(cls, nick: str, text: str) -> Message:
        return cls(MessageType.USER, text, nick=nick)


@dataclass
class User:
    nick: str
    mode: UserMode = UserMode.NONE


@dataclass
class DirectoryEntry:
    channel: str
    num_users: int = 0
    topic: str = ""


@dataclass
class Channel:
    id: str
    name: str
    topic: str | None = None
    users: dict[str, User] = field(default_factory=dict)
    messages: list[Message] = field(default_factory=list)

    @property
    def is_group(self) -> bool:
        return is_group_channel(self.id)

    @property
    def is_pm(self) -> bool:
        return self.id.startswith(PM_PREFIX)

    def append(self, message: Message) -> None:
        self.messages.append(message)

    def add_user(self, nick: str, mode: UserMode = UserMode.NONE) -> User:
        user = User(nick=nick, mode=mode)
        self.users[nick] = user
        return user

    def remove_user(self, nick: str) -> User | None:
        return self.users.pop(nick, None)

    def rename_user(self, old: str, new: str) -> bool:
        user = self.users.pop(old, None)
        if user is None:
            return False
        user.nick = new
        self.users[new] = user
        return True

    def replace_users(self, users: Iterable[User]) -> None:
        self.users = {u.nick: u for u in users if u.nick}


@dataclass
class Server:
    id: str
    name: str
    host: str
    port: int
    nickname: str
    password: str | None = None
    tls: bool = True
    verify_tls: bool = False
    status: ServerStatus = ServerStatus.CONNECTING
    channels: dict[str, Channel] = field(default_factory=dict)
    directory: list[DirectoryEntry] = field(default_factory=list)
    last_active_channel: str | None = None
    # Server-level system messages (status log)
    messages: list[Message] = field(default_factory=list)
    # Transient directory request bookkeeping, never persisted
    directory_generation: int = 0
    directory_pending: bool = False

    def add_channel(self, channel: Channel) -> Channel:
        if channel.id in self.channels:
            raise DuplicateChannelError(f"{self.id}: channel {channel.id} already exists")
        self.channels[channel.id] = channel
        return channel

    def get_channel(self, channel_id: str | None) -> Channel | None:
        if not channel_id:
            return None
        return self.channels.get(channel_id)

    def require_channel(self, channel_id: str) -> Channel:
        ch = self.channels.get(channel_id)
        if ch is None:
            raise UnknownChannelError(f"{self.id}: no channel {channel_id}")
        return ch

    def remove_channel(self, channel_id: str) -> Channel | None:
        return self.channels.pop(channel_id, None)

    def channels_with(self, nick: str) -> list[Channel]:
        return [ch for ch in self.channels.values() if nick in ch.users]

    # ----- User mutation helpers (reject unknown channels) -----
    def add_user(self, channel_id: str, nick: str, mode: UserMode = UserMode.NONE) -> User:
        return self.require_channel(channel_id).add_user(nick, mode)

    def remove_user(self, channel_id: str, nick: str) -> User | None:
        return self.require_channel(channel_id).remove_user(nick)

    def replace_users(self, channel_id: str, users: Iterable[User]) -> None:
        self.require_channel(channel_id).replace_users(users)

    def to_saved(self) -> dict:
        return {
            "name": self.name,
            "host": self.host,
            "port": self.port,
            "nickname": self.nickname,
            "password": self.password,
            "tls": self.tls,
            "lastActiveChannel": self.last_active_channel,
        }
