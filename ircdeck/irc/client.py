"""Protocol client contract and its miniirc implementation.

The core never parses IRC lines. A protocol client owns one connection, takes
fire-and-forget actions, and reports everything that happens as typed events
through the `emit` callback it was created with.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Protocol

import miniirc

from ..core.events import (
    AuthenticatedEvent,
    ChannelListEndEvent,
    ChannelListRow,
    ChannelListRowEvent,
    CloseEvent,
    ErrorEvent,
    Event,
    JoinEvent,
    KickEvent,
    MessageEvent,
    NamesEvent,
    NickEvent,
    PartEvent,
    QuitEvent,
    RegisteredEvent,
    TopicEvent,
)

logger = logging.getLogger("ircdeck.irc.client")

EventSink = Callable[[Event], None]

# Numerics surfaced to the user as errors
ERROR_NUMERICS = ("401", "403", "404", "405", "433", "442", "471", "473", "474", "475", "482")


class ProtocolClient(Protocol):
    def connect(
        self,
        host: str,
        port: int,
        nick: str,
        username: str,
        realname: str,
        tls: bool,
        verify_tls: bool,
        password: Optional[str] = None,
    ) -> None: ...

    def join(self, channel: str) -> None: ...

    def part(self, channel: str, reason: Optional[str] = None) -> None: ...

    def say(self, target: str, text: str) -> None: ...

    def action(self, target: str, text: str) -> None: ...

    def set_topic(self, channel: str, text: str) -> None: ...

    def whois(self, nick: str) -> None: ...

    def change_nick(self, nick: str) -> None: ...

    def raw(self, *parts: str) -> None: ...

    def quit(self, message: Optional[str] = None) -> None: ...


# (server_id, emit) -> client
ClientFactory = Callable[[str, EventSink], ProtocolClient]


class MiniIRCClient:
    """ProtocolClient backed by miniirc.

    miniirc calls handlers on its own threads; every event is handed back to the
    asyncio loop with call_soon_threadsafe so state is only touched there. A
    single-worker executor keeps handler calls in wire order.
    """

    def __init__(
        self,
        server_id: str,
        emit: EventSink,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.server_id = server_id
        self._emit = emit
        self._loop = loop or asyncio.get_event_loop()
        self._irc: miniirc.IRC | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._names: dict[str, list[str]] = {}
        self._authenticated = False
        self._closed = False

    # ----- Event plumbing -----
    def _post(self, event: Event) -> None:
        try:
            self._loop.call_soon_threadsafe(self._emit, event)
        except RuntimeError:
            # Loop already closed (app shutting down)
            logger.debug("%s: dropped %s after loop close", self.server_id, type(event).__name__)

    def _register(self, irc: miniirc.IRC) -> None:
        sid = self.server_id

        @irc.Handler("001", colon=False)
        def _welcome(irc, hostmask, args):
            self._post(RegisteredEvent(sid, args[0] if args else None))

        @irc.Handler("PRIVMSG", colon=False)
        def _privmsg(irc, hostmask, args):
            if len(args) < 2:
                return
            nick, text = hostmask[0], args[-1]
            if text.startswith("\x01"):
                body = text.strip("\x01")
                if not body.upper().startswith("ACTION "):
                    return
                text = f"* {nick} {body[7:]}"
            self._post(MessageEvent(sid, nick, args[0], text))

        @irc.Handler("JOIN", colon=False)
        def _join(irc, hostmask, args):
            if args:
                self._post(JoinEvent(sid, args[0], hostmask[0]))

        @irc.Handler("PART", colon=False)
        def _part(irc, hostmask, args):
            if args:
                reason = args[1] if len(args) > 1 else None
                self._post(PartEvent(sid, args[0], hostmask[0], reason))

        @irc.Handler("KICK", colon=False)
        def _kick(irc, hostmask, args):
            if len(args) >= 2:
                reason = args[2] if len(args) > 2 else None
                self._post(KickEvent(sid, args[0], args[1], hostmask[0], reason))

        @irc.Handler("QUIT", colon=False)
        def _quit(irc, hostmask, args):
            self._post(QuitEvent(sid, hostmask[0], args[0] if args else None))

        @irc.Handler("NICK", colon=False)
        def _nick(irc, hostmask, args):
            if args:
                self._post(NickEvent(sid, hostmask[0], args[0]))

        @irc.Handler("TOPIC", colon=False)
        def _topic(irc, hostmask, args):
            if args:
                topic = args[1] if len(args) > 1 else None
                self._post(TopicEvent(sid, args[0], topic, hostmask[0]))

        @irc.Handler("332", colon=False)
        def _topic_reply(irc, hostmask, args):
            # 332 <me> <chan> :<topic>
            if len(args) >= 3:
                self._post(TopicEvent(sid, args[1], args[2]))

        @irc.Handler("331", colon=False)
        def _no_topic(irc, hostmask, args):
            if len(args) >= 2:
                self._post(TopicEvent(sid, args[1], None))

        @irc.Handler("353", colon=False)
        def _names(irc, hostmask, args):
            # 353 <me> <type> <chan> :<names...>
            if len(args) >= 4:
                self._names.setdefault(args[2], []).extend(args[3].split())

        @irc.Handler("366", colon=False)
        def _names_end(irc, hostmask, args):
            if len(args) >= 2:
                names = self._names.pop(args[1], [])
                self._post(NamesEvent(sid, args[1], tuple(names)))

        @irc.Handler("322", colon=False)
        def _list_row(irc, hostmask, args):
            # 322 <me> <chan> <visible> :<topic>
            if len(args) < 3:
                return
            try:
                users = int(args[2])
            except ValueError:
                users = 0
            topic = args[3] if len(args) > 3 else ""
            self._post(ChannelListRowEvent(sid, ChannelListRow(args[1], users, topic)))

        @irc.Handler("323", colon=False)
        def _list_end(irc, hostmask, args):
            self._post(ChannelListEndEvent(sid))

        @irc.Handler("900", "903", colon=False)
        def _logged_in(irc, hostmask, args):
            if not self._authenticated:
                self._authenticated = True
                self._post(AuthenticatedEvent(sid))

        @irc.Handler("ERROR", colon=False)
        def _error(irc, hostmask, args):
            logger.info("%s: server ERROR %s", sid, args)
            self._post_close()

        @irc.Handler(*ERROR_NUMERICS, colon=False)
        def _error_numeric(irc, hostmask, args):
            self._post(ErrorEvent(sid, " ".join(args[1:]) or None))

    def _post_close(self) -> None:
        if not self._closed:
            self._closed = True
            self._post(CloseEvent(self.server_id))

    # ----- ProtocolClient -----
    def connect(
        self,
        host: str,
        port: int,
        nick: str,
        username: str,
        realname: str,
        tls: bool,
        verify_tls: bool,
        password: Optional[str] = None,
    ) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"irc-{self.server_id}"
        )
        self._irc = miniirc.IRC(
            host,
            port,
            nick,
            channels=(),
            ssl=tls,
            ident=username,
            realname=realname,
            persist=False,
            auto_connect=False,
            verify_ssl=verify_tls,
            server_password=password or None,
            executor=self._executor,
        )
        self._register(self._irc)
        logger.info("%s: connecting to %s:%s as %s (tls=%s)", self.server_id, host, port, nick, tls)
        # miniirc connects synchronously; keep the loop free while it does
        fut = self._loop.run_in_executor(None, self._irc.connect)
        fut.add_done_callback(self._connect_done)

    def _connect_done(self, fut: asyncio.Future) -> None:
        exc = fut.exception() if not fut.cancelled() else None
        if exc is None:
            # persist=False: once the read thread ends the connection is gone for good
            wait = self._loop.run_in_executor(None, self._irc.wait_until_disconnected)
            wait.add_done_callback(self._disconnected)
            return
        logger.warning("%s: connect failed: %s", self.server_id, exc)
        self._shutdown_executor()
        self._emit(ErrorEvent(self.server_id, f"Connect failed: {type(exc).__name__}: {exc}"))
        self._closed = True
        self._emit(CloseEvent(self.server_id))

    def _disconnected(self, fut: asyncio.Future) -> None:
        if not self._closed:
            logger.info("%s: connection dropped", self.server_id)
        self._shutdown_executor()
        self._post_close()

    def _shutdown_executor(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)

    def _quote(self, *parts: str) -> None:
        if self._irc is None:
            logger.debug("%s: not connected, dropping %s", self.server_id, parts[:1])
            return
        self._irc.quote(*parts)

    def join(self, channel: str) -> None:
        self._quote("JOIN", channel)

    def part(self, channel: str, reason: Optional[str] = None) -> None:
        if reason:
            self._quote("PART", channel, f":{reason}")
        else:
            self._quote("PART", channel)

    def say(self, target: str, text: str) -> None:
        if self._irc is not None:
            self._irc.msg(target, text)

    def action(self, target: str, text: str) -> None:
        if self._irc is not None:
            self._irc.me(target, text)

    def set_topic(self, channel: str, text: str) -> None:
        self._quote("TOPIC", channel, f":{text}")

    def whois(self, nick: str) -> None:
        self._quote("WHOIS", nick)

    def change_nick(self, nick: str) -> None:
        self._quote("NICK", nick)

    def raw(self, *parts: str) -> None:
        self._quote(*parts)

    def quit(self, message: Optional[str] = None) -> None:
        if self._irc is not None:
            try:
                self._irc.disconnect(message)
            finally:
                self._shutdown_executor()
        self._post_close()
