from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Optional

from ..core.events import DirectoryTimeout, DiscoveryDue, ErrorEvent, Event, ReconnectingEvent
from .client import ClientFactory, EventSink, ProtocolClient

logger = logging.getLogger("ircdeck.irc.session")

# Session methods an Action effect may name
ACTIONS = frozenset(
    {
        "join",
        "part",
        "say",
        "action",
        "set_topic",
        "whois",
        "change_nick",
        "raw",
        "quit",
        "kick",
        "mode",
    }
)


@dataclass(frozen=True)
class ConnectionConfig:
    host: str
    port: int
    nick: str
    username: str
    realname: str
    tls: bool = True
    verify_tls: bool = False
    password: Optional[str] = None


class Session:
    """One server's connection: the protocol client, its generation, and its timers.

    Every connect() starts a new generation with a fresh protocol client. Events
    are tagged with the generation that produced them, so anything arriving from
    an abandoned connection (or a timer armed for it) is dropped here before it
    can touch state.
    """

    def __init__(
        self,
        server_id: str,
        sink: EventSink,
        client_factory: ClientFactory,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.server_id = server_id
        self._sink = sink
        self._factory = client_factory
        self._loop = loop or asyncio.get_event_loop()
        self.generation = 0
        self.config: ConnectionConfig | None = None
        self.client: ProtocolClient | None = None
        self._user_closed: int | None = None
        self._discovery: asyncio.TimerHandle | None = None
        self._directory_timer: asyncio.TimerHandle | None = None

    # ----- Lifecycle -----
    def connect(self, config: ConnectionConfig) -> None:
        self.cancel_timers()
        self.generation += 1
        gen = self.generation
        self.config = config
        self.client = self._factory(self.server_id, lambda ev, _gen=gen: self._deliver(_gen, ev))
        logger.info(
            "%s: connect generation %d to %s:%s", self.server_id, gen, config.host, config.port
        )
        self._call(
            "connect",
            config.host,
            config.port,
            config.nick,
            config.username,
            config.realname,
            config.tls,
            config.verify_tls,
            config.password,
        )

    def reconnect(self, nick: str | None = None) -> None:
        if self.config is None:
            logger.warning("%s: reconnect requested before any connect", self.server_id)
            return
        self.connect(replace(self.config, nick=nick or self.config.nick))

    def disconnect(self, reason: str | None = None) -> None:
        self.quit(reason)

    @property
    def user_closed(self) -> bool:
        return self._user_closed == self.generation

    def _deliver(self, generation: int, event: Event) -> None:
        if generation != self.generation:
            logger.debug(
                "%s: dropping %s from stale generation %d",
                self.server_id,
                type(event).__name__,
                generation,
            )
            return
        if isinstance(event, ReconnectingEvent) and self.user_closed:
            logger.debug("%s: ignoring reconnect after user disconnect", self.server_id)
            return
        self._sink(event)

    def _call(self, name: str, *args) -> None:
        if self.client is None:
            logger.debug("%s: no client for %s", self.server_id, name)
            return
        try:
            getattr(self.client, name)(*args)
        except Exception as e:
            # Report instead of raising: actions are fire-and-forget
            logger.warning("%s: %s failed", self.server_id, name, exc_info=True)
            self._sink(ErrorEvent(self.server_id, f"{name} failed: {e}"))

    # ----- Protocol actions -----
    def join(self, channel: str) -> None:
        self._call("join", channel)

    def part(self, channel: str, reason: str | None = None) -> None:
        self._call("part", channel, reason)

    def say(self, target: str, text: str) -> None:
        self._call("say", target, text)

    def action(self, target: str, text: str) -> None:
        self._call("action", target, text)

    def set_topic(self, channel: str, text: str) -> None:
        self._call("set_topic", channel, text)

    def whois(self, nick: str) -> None:
        self._call("whois", nick)

    def change_nick(self, nick: str) -> None:
        self._call("change_nick", nick)

    def raw(self, *parts: str) -> None:
        self._call("raw", *parts)

    def kick(self, channel: str, nick: str, reason: str) -> None:
        self._call("raw", "KICK", channel, nick, f":{reason}")

    def mode(self, channel: str, mode: str, *params: str) -> None:
        self._call("raw", "MODE", channel, mode, *params)

    def quit(self, message: str | None = None) -> None:
        self._user_closed = self.generation
        self.cancel_timers()
        self._call("quit", message)

    def perform(self, name: str, args: tuple) -> None:
        if name not in ACTIONS:
            raise ValueError(f"unknown session action {name!r}")
        getattr(self, name)(*args)

    # ----- Timers -----
    def schedule_discovery(self, delay: float) -> None:
        if self._discovery is not None:
            self._discovery.cancel()
        self._discovery = self._loop.call_later(
            delay, self._deliver, self.generation, DiscoveryDue(self.server_id)
        )

    def arm_directory_timeout(self, request_generation: int, timeout: float) -> None:
        self.cancel_directory_timeout()
        self._directory_timer = self._loop.call_later(
            timeout,
            self._deliver,
            self.generation,
            DirectoryTimeout(self.server_id, request_generation),
        )

    def cancel_directory_timeout(self) -> None:
        if self._directory_timer is not None:
            self._directory_timer.cancel()
            self._directory_timer = None

    def cancel_timers(self) -> None:
        if self._discovery is not None:
            self._discovery.cancel()
            self._discovery = None
        self.cancel_directory_timeout()
