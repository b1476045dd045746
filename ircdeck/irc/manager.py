from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from ..core import commands, context, reconciler
from ..core.config import ServerStore, Settings
from ..core.effects import (
    Action,
    Effect,
    MessageAppended,
    Notify,
    PersistServers,
    Reconnect,
    RefreshDirectory,
    RequestDirectory,
    ScheduleDiscovery,
    Scope,
)
from ..core.events import Event
from ..core.models import Server, ServerStatus
from ..core.state import ClientState, add_system_message, new_server_id
from ..logging.log_writer import LogWriter
from .client import ClientFactory, EventSink, MiniIRCClient
from .session import ConnectionConfig, Session

logger = logging.getLogger("ircdeck.irc.manager")

Listener = Callable[[list[Notify]], None]


class IRCManager:
    """Owns the client state, one Session per server, and the server store.

    Events from every session funnel through handle_event(), which applies them
    one at a time and then runs the resulting effects. Events raised while
    effects are running (a failing client call, for instance) are queued and
    applied afterwards, never nested.
    """

    def __init__(
        self,
        state: ClientState | None = None,
        settings: Settings | None = None,
        store: ServerStore | None = None,
        client_factory: ClientFactory | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        log_writer: LogWriter | None = None,
    ) -> None:
        self.state = state or ClientState()
        self.settings = settings or Settings()
        self.store = store
        self.log_writer = log_writer
        self._loop = loop or asyncio.get_event_loop()
        self._factory = client_factory or self._default_factory
        self.sessions: dict[str, Session] = {}
        self._listeners: list[Listener] = []
        self._queue: deque[Event] = deque()
        self._draining = False
        self._saves: set[asyncio.Future] = set()
        # One writer thread so saves land on disk in the order they were made
        self._save_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ircdeck-save")

    def _default_factory(self, server_id: str, emit: EventSink) -> MiniIRCClient:
        return MiniIRCClient(server_id, emit, self._loop)

    def add_listener(self, cb: Listener) -> None:
        self._listeners.append(cb)

    # ----- Servers -----
    def connect(
        self,
        name: str,
        host: str,
        port: int,
        nickname: str,
        password: Optional[str] = None,
        tls: bool = True,
        server_id: str | None = None,
        last_active_channel: str | None = None,
    ) -> str:
        """Register a server, make it active and start connecting. Returns its id."""
        sid = server_id or new_server_id()
        server = self.state.add_server(
            Server(
                id=sid,
                name=name or host,
                host=host,
                port=int(port),
                nickname=nickname,
                password=password or None,
                tls=tls,
                verify_tls=self.settings.verify_tls,
                last_active_channel=last_active_channel,
            )
        )
        session = Session(sid, self.handle_event, self._factory, self._loop)
        self.sessions[sid] = session
        effects: list[Effect] = [Notify(Scope.SERVERS, sid)]
        suffix = " (SSL)" if tls else ""
        add_system_message(
            server, None, f"Connecting to {host}:{port} as {nickname}{suffix}...", effects
        )
        context.select_server(self.state, sid, effects)
        self._commit(effects)
        session.connect(self._connection_config(server))
        return sid

    def _connection_config(self, server: Server) -> ConnectionConfig:
        return ConnectionConfig(
            host=server.host,
            port=server.port,
            nick=server.nickname,
            username=server.nickname,
            realname=self.settings.realname,
            tls=server.tls,
            verify_tls=server.verify_tls,
            password=server.password,
        )

    def restore(self) -> list[str]:
        """Reconnect every saved server, keeping its stored id."""
        if self.store is None:
            return []
        restored = []
        for sid, saved in self.store.load().items():
            if sid in self.state.servers:
                continue
            host = saved.get("host") or saved.get("address")
            nickname = saved.get("nickname")
            if not host or not nickname:
                logger.warning("skipping saved server %s: missing host or nickname", sid)
                continue
            try:
                port = int(saved.get("port") or 6697)
            except (TypeError, ValueError):
                logger.warning("skipping saved server %s: bad port %r", sid, saved.get("port"))
                continue
            tls = saved.get("tls", saved.get("ssl", True))
            restored.append(
                self.connect(
                    saved.get("name") or host,
                    host,
                    port,
                    nickname,
                    password=saved.get("password"),
                    tls=bool(tls),
                    server_id=sid,
                    last_active_channel=saved.get("lastActiveChannel"),
                )
            )
        logger.info("restored %d saved server(s)", len(restored))
        return restored

    def delete_server(self, server_id: str) -> bool:
        server = self.state.server(server_id)
        if server is None:
            return False
        session = self.sessions.pop(server_id, None)
        if session is not None:
            if server.status is not ServerStatus.DISCONNECTED:
                session.disconnect("Server deleted by user")
            session.cancel_timers()
        effects: list[Effect] = []
        context.delete_server(self.state, server_id, effects)
        effects.append(PersistServers())
        self._commit(effects)
        return True

    # ----- Context -----
    def select_server(self, server_id: str) -> bool:
        effects: list[Effect] = []
        ok = context.select_server(self.state, server_id, effects)
        self._commit(effects)
        return ok

    def select_channel(self, server_id: str, channel_id: str) -> bool:
        effects: list[Effect] = []
        ok = context.select_channel(self.state, server_id, channel_id, effects)
        self._commit(effects)
        return ok

    # ----- Input -----
    def submit(self, text: str) -> None:
        self._commit(commands.submit(self.state, text, self.settings.quit_message))

    def handle_event(self, event: Event) -> None:
        self._queue.append(event)
        if not self._draining:
            self._commit([])

    def _commit(self, effects: list[Effect]) -> None:
        """Run effects, then apply any events they raised, in arrival order."""
        if self._draining:
            self._run_effects(effects)
            return
        self._draining = True
        try:
            self._run_effects(effects)
            while self._queue:
                _, more = reconciler.apply(self.state, self._queue.popleft())
                self._run_effects(more)
        finally:
            self._draining = False

    # ----- Effects -----
    def _run_effects(self, effects: list[Effect]) -> None:
        notes: list[Notify] = []
        persist = False
        for eff in effects:
            if isinstance(eff, Notify):
                if eff not in notes:
                    notes.append(eff)
            elif isinstance(eff, PersistServers):
                persist = True
            elif isinstance(eff, MessageAppended):
                self._write_transcript(eff)
            else:
                self._run_session_effect(eff)
        if persist:
            self._persist()
        if notes:
            self._notify(notes)

    def _run_session_effect(self, eff: Effect) -> None:
        session = self.sessions.get(eff.server_id)
        if session is None:
            logger.debug("no session for %s, dropping %s", eff.server_id, type(eff).__name__)
            return
        if isinstance(eff, Action):
            session.perform(eff.name, eff.args)
        elif isinstance(eff, ScheduleDiscovery):
            session.schedule_discovery(self.settings.discovery_delay)
        elif isinstance(eff, RequestDirectory):
            session.raw("LIST")
            session.arm_directory_timeout(eff.generation, self.settings.directory_timeout)
        elif isinstance(eff, RefreshDirectory):
            session.cancel_directory_timeout()
        elif isinstance(eff, Reconnect):
            server = self.state.server(eff.server_id)
            session.reconnect(server.nickname if server else None)

    def _notify(self, notes: list[Notify]) -> None:
        for cb in list(self._listeners):
            try:
                cb(notes)
            except Exception:
                logger.exception("listener %r failed", cb)

    def _write_transcript(self, eff: MessageAppended) -> None:
        if self.log_writer is None:
            return
        server = self.state.server(eff.server_id)
        if server is None:
            return
        try:
            self.log_writer.append_message(server.name, eff.channel_id, eff.message)
        except OSError:
            logger.warning("transcript write failed for %s", server.name, exc_info=True)

    # ----- Persistence -----
    def _persist(self) -> None:
        if self.store is None:
            return
        snapshot = self.state.saved_servers()
        fut = self._loop.run_in_executor(self._save_executor, self.store.save, snapshot)
        self._saves.add(fut)
        fut.add_done_callback(self._save_done)

    def _save_done(self, fut: asyncio.Future) -> None:
        self._saves.discard(fut)
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is not None:
            logger.warning("saving servers failed", exc_info=exc)

    async def flush_saves(self) -> None:
        if self._saves:
            await asyncio.gather(*list(self._saves), return_exceptions=True)

    async def shutdown(self, message: str | None = None) -> None:
        for sid, session in list(self.sessions.items()):
            server = self.state.server(sid)
            if server is not None and server.status is not ServerStatus.DISCONNECTED:
                session.quit(message or self.settings.quit_message)
            session.cancel_timers()
        await self.flush_saves()
        self._save_executor.shutdown(wait=False)

