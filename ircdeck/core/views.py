from __future__ import annotations

from .models import Channel, DirectoryEntry, Message, User, UserMode
from .state import ClientState

_MODE_RANK = {UserMode.OPERATOR: 0, UserMode.VOICE: 1, UserMode.NONE: 2}
_MODE_PREFIX = {UserMode.OPERATOR: "@", UserMode.VOICE: "+", UserMode.NONE: ""}


def sorted_users(channel: Channel) -> list[User]:
    """Operators first, then voiced users, then everyone else; alphabetical within a group."""
    return sorted(channel.users.values(), key=lambda u: (_MODE_RANK[u.mode], u.nick.lower()))


def display_nick(user: User) -> str:
    return _MODE_PREFIX[user.mode] + user.nick


def sorted_directory(entries: list[DirectoryEntry]) -> list[DirectoryEntry]:
    return sorted(entries, key=lambda e: e.num_users, reverse=True)


def search_directory(entries: list[DirectoryEntry], term: str) -> list[DirectoryEntry]:
    """Case-insensitive match on channel name or topic, biggest channels first."""
    needle = (term or "").strip().lower()
    if not needle:
        return sorted_directory(entries)
    return sorted_directory(
        [e for e in entries if needle in e.channel.lower() or needle in (e.topic or "").lower()]
    )


def channel_header(channel: Channel | None) -> tuple[str, str]:
    if channel is None:
        return "Not in any channels", ""
    return channel.name, channel.topic or "No topic set"


def visible_messages(state: ClientState) -> list[Message]:
    ch = state.active_channel
    return list(ch.messages) if ch is not None else []


def server_log(state: ClientState) -> list[Message]:
    srv = state.active_server
    return list(srv.messages) if srv is not None else []


def visible_users(state: ClientState) -> list[User]:
    ch = state.active_channel
    return sorted_users(ch) if ch is not None else []
