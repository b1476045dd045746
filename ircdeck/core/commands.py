"""Slash-command dispatch for the active server.

Each command is a small function registered under one or more names. Handlers
never talk to the network: they record `Action` effects for the Session and
make whatever local changes the command implies (PM channels, disconnected
status, system messages).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from . import context
from .effects import Action, Effect, Notify, Reconnect, Scope
from .lifecycle import Signal, can_connect, transition
from .models import Channel, Server, is_group_channel
from .reconciler import NO_REASON, NO_TOPIC
from .state import (
    ClientState,
    add_system_message,
    add_user_message,
    begin_directory_request,
    ensure_pm_channel,
)

logger = logging.getLogger("ircdeck.commands")

COMMAND_SIGIL = "/"
DEFAULT_QUIT_MESSAGE = "IRCDeck"
NOT_IN_CHANNEL = "You are not in a channel"


@dataclass
class CommandContext:
    state: ClientState
    server: Server
    args: list[str]
    effects: list[Effect]
    quit_message: str = DEFAULT_QUIT_MESSAGE

    @property
    def channel(self) -> Channel | None:
        if self.state.active_server_id != self.server.id:
            return None
        return self.server.get_channel(self.state.active_channel_id)

    def rest(self, start: int = 0) -> str:
        return " ".join(self.args[start:])

    def reply(self, text: str) -> None:
        ch = self.channel
        add_system_message(self.server, ch.id if ch else None, text, self.effects)

    def act(self, name: str, *args) -> None:
        self.effects.append(Action(self.server.id, name, args))

    def group_channel(self) -> Channel | None:
        ch = self.channel
        if ch is None or not ch.is_group:
            self.reply(NOT_IN_CHANNEL)
            return None
        return ch


CommandFn = Callable[[CommandContext], None]
COMMANDS: dict[str, CommandFn] = {}


def command(*names: str) -> Callable[[CommandFn], CommandFn]:
    def deco(fn: CommandFn) -> CommandFn:
        for n in names:
            COMMANDS[n.lower()] = fn
        return fn

    return deco


def message_target(channel: Channel) -> str:
    """Protocol target for a channel: the nick for PM channels, the id otherwise."""
    return channel.name if channel.is_pm else channel.id


def dispatch(
    state: ClientState, text: str, quit_message: str = DEFAULT_QUIT_MESSAGE
) -> list[Effect]:
    effects: list[Effect] = []
    server = state.active_server
    if server is None:
        logger.info("no active server, ignoring command %r", text)
        return effects
    parts = text.split()
    if not parts:
        return effects
    head = parts[0]
    if head.startswith(COMMAND_SIGIL):
        head = head[len(COMMAND_SIGIL) :]
    name = head.lower()
    ctx = CommandContext(state, server, parts[1:], effects, quit_message)
    ctx.reply(f"Executing command: /{name}")
    handler = COMMANDS.get(name)
    if handler is None:
        ctx.reply(f"Unknown command: /{name}")
        return effects
    handler(ctx)
    return effects


def send_text(state: ClientState, text: str) -> list[Effect]:
    """Send plain input to the active channel and echo it locally."""
    effects: list[Effect] = []
    server = state.active_server
    ch = state.active_channel
    if server is None or ch is None:
        return effects
    effects.append(Action(server.id, "say", (message_target(ch), text)))
    add_user_message(server, ch.id, server.nickname, text, effects)
    return effects


def submit(
    state: ClientState, text: str, quit_message: str = DEFAULT_QUIT_MESSAGE
) -> list[Effect]:
    text = text.strip()
    if not text:
        return []
    if text.startswith(COMMAND_SIGIL):
        return dispatch(state, text, quit_message)
    return send_text(state, text)


def _mark_disconnected(ctx: CommandContext, text: str) -> None:
    srv = ctx.server
    nxt = transition(srv.status, Signal.USER_DISCONNECT)
    if nxt is not None:
        srv.status = nxt
        srv.directory_pending = False
        ctx.effects.append(Notify(Scope.SERVERS, srv.id))
    add_system_message(srv, None, text, ctx.effects)


# ----- Channel commands -----
@command("join")
def _join(ctx: CommandContext) -> None:
    if not ctx.args:
        ctx.reply("Usage: /join #channel")
        return
    ch = ctx.args[0]
    if not is_group_channel(ch):
        ch = "#" + ch
    ctx.act("join", ch)


@command("part", "leave")
def _part(ctx: CommandContext) -> None:
    ch = ctx.group_channel()
    if ch is None:
        return
    ctx.act("part", ch.id, ctx.rest() or None)


@command("topic")
def _topic(ctx: CommandContext) -> None:
    ch = ctx.group_channel()
    if ch is None:
        return
    if ctx.args:
        ctx.act("set_topic", ch.id, ctx.rest())
    else:
        ctx.reply(f"Current topic: {ch.topic or NO_TOPIC}")


@command("kick")
def _kick(ctx: CommandContext) -> None:
    ch = ctx.group_channel()
    if ch is None:
        return
    if not ctx.args:
        ctx.reply("Usage: /kick nickname [reason]")
        return
    # The channel only changes once the server echoes the KICK back.
    ctx.act("kick", ch.id, ctx.args[0], ctx.rest(1) or NO_REASON)


def _ban_mode(ctx: CommandContext, mode: str, usage: str) -> None:
    ch = ctx.group_channel()
    if ch is None:
        return
    if not ctx.args:
        ctx.reply(usage)
        return
    ctx.act("mode", ch.id, mode, ctx.args[0])


@command("ban")
def _ban(ctx: CommandContext) -> None:
    _ban_mode(ctx, "+b", "Usage: /ban nickname")


@command("unban")
def _unban(ctx: CommandContext) -> None:
    _ban_mode(ctx, "-b", "Usage: /unban nickname")


@command("list")
def _list(ctx: CommandContext) -> None:
    begin_directory_request(ctx.server, ctx.effects)


# ----- User commands -----
@command("msg", "query")
def _msg(ctx: CommandContext) -> None:
    if len(ctx.args) < 2:
        ctx.reply("Usage: /msg nickname message")
        return
    target, text = ctx.args[0], ctx.rest(1)
    srv = ctx.server
    ctx.act("say", target, text)
    if is_group_channel(target):
        if target in srv.channels:
            add_user_message(srv, target, srv.nickname, text, ctx.effects)
        return
    pm = ensure_pm_channel(srv, target, ctx.effects)
    add_user_message(srv, pm.id, srv.nickname, text, ctx.effects)
    context.select_channel(ctx.state, srv.id, pm.id, ctx.effects)


@command("me")
def _me(ctx: CommandContext) -> None:
    ch = ctx.channel
    if ch is None:
        ctx.reply(NOT_IN_CHANNEL)
        return
    text = ctx.rest()
    if not text:
        ctx.reply("Usage: /me action")
        return
    ctx.act("action", message_target(ch), text)
    ctx.reply(f"* {ctx.server.nickname} {text}")


@command("nick")
def _nick(ctx: CommandContext) -> None:
    if not ctx.args:
        ctx.reply("Usage: /nick newnickname")
        return
    ctx.act("change_nick", ctx.args[0])


@command("whois")
def _whois(ctx: CommandContext) -> None:
    if not ctx.args:
        ctx.reply("Usage: /whois nickname")
        return
    ctx.act("whois", ctx.args[0])


# ----- Server commands -----
@command("disconnect")
def _disconnect(ctx: CommandContext) -> None:
    ctx.act("quit", "Disconnected by user")
    _mark_disconnected(ctx, "Disconnected from server")


@command("quit")
def _quit(ctx: CommandContext) -> None:
    msg = ctx.rest() or ctx.quit_message
    ctx.act("quit", msg)
    _mark_disconnected(ctx, f"Disconnected from server ({msg})")


@command("raw", "quote")
def _raw(ctx: CommandContext) -> None:
    if not ctx.args:
        ctx.reply("Usage: /raw IRC_COMMAND")
        return
    ctx.act("raw", ctx.rest())


@command("connect")
def _connect(ctx: CommandContext) -> None:
    srv = ctx.server
    if not can_connect(srv.status):
        ctx.reply("Already connected or connecting to server")
        return
    ctx.reply("Reconnecting to server...")
    srv.status = transition(srv.status, Signal.CONNECT_REQUEST)
    ctx.effects.append(Notify(Scope.SERVERS, srv.id))
    ctx.effects.append(Reconnect(srv.id))
