from __future__ import annotations

from PyQt6.QtCore import QObject, pyqtSignal, pyqtSlot
from qasync import asyncSlot

from ..core import views
from ..core.effects import Notify, Scope
from ..core.models import Message
from ..irc.manager import IRCManager


def _line(m: Message) -> str:
    return m.text if m.nick is None else f"<{m.nick}> {m.text}"


class BridgeQt(QObject):
    """Qt face of an IRCManager.

    Change notifications from the manager become signals carrying ids; the UI
    pulls the current rows through the snapshot helpers (servers(), channels(),
    messageLines(), ...), which are plain lists of dicts and strings.
    """

    serversChanged = pyqtSignal(list)  # [{id, name, status}]
    channelsChanged = pyqtSignal(str, list)  # server id, [{id, name, topic}]
    messagesChanged = pyqtSignal(str, str)  # server id, channel id ("" = status log)
    usersChanged = pyqtSignal(str, str, list)  # server id, channel id, display nicks
    topicChanged = pyqtSignal(str, str, str)  # server id, channel id, header topic
    directoryChanged = pyqtSignal(str, list)  # server id, [{channel, numUsers, topic}]
    activeChanged = pyqtSignal(str, str)  # server id, channel id
    statusChanged = pyqtSignal(str)

    def __init__(self, manager: IRCManager):
        super().__init__()
        self.manager = manager
        self._search: dict[str, str] = {}
        manager.add_listener(self._on_notify)

    # ----- Snapshots -----
    def servers(self) -> list[dict]:
        return [
            {"id": s.id, "name": s.name, "status": s.status.value}
            for s in self.manager.state.servers.values()
        ]

    def channels(self, server_id: str) -> list[dict]:
        srv = self.manager.state.server(server_id)
        if srv is None:
            return []
        return [{"id": c.id, "name": c.name, "topic": c.topic or ""} for c in srv.channels.values()]

    def messageLines(self, server_id: str, channel_id: str) -> list[str]:
        srv = self.manager.state.server(server_id)
        if srv is None:
            return []
        if not channel_id:
            msgs = srv.messages
        else:
            ch = srv.get_channel(channel_id)
            msgs = ch.messages if ch is not None else []
        return [_line(m) for m in msgs]

    def activeLines(self) -> list[str]:
        return [_line(m) for m in views.visible_messages(self.manager.state)]

    def statusLines(self) -> list[str]:
        return [_line(m) for m in views.server_log(self.manager.state)]

    def users(self, server_id: str, channel_id: str) -> list[str]:
        srv = self.manager.state.server(server_id)
        ch = srv.get_channel(channel_id) if srv is not None else None
        if ch is None:
            return []
        return [views.display_nick(u) for u in views.sorted_users(ch)]

    def header(self, server_id: str, channel_id: str) -> tuple[str, str]:
        srv = self.manager.state.server(server_id)
        ch = srv.get_channel(channel_id) if srv is not None else None
        return views.channel_header(ch)

    def directory(self, server_id: str) -> list[dict]:
        srv = self.manager.state.server(server_id)
        if srv is None:
            return []
        entries = views.search_directory(srv.directory, self._search.get(server_id, ""))
        return [{"channel": e.channel, "numUsers": e.num_users, "topic": e.topic} for e in entries]

    # ----- Manager notifications -> signals -----
    def _on_notify(self, notes: list[Notify]) -> None:
        for n in notes:
            sid = n.server_id or ""
            cid = n.channel_id or ""
            if n.scope is Scope.SERVERS:
                self.serversChanged.emit(self.servers())
            elif n.scope is Scope.CHANNELS:
                self.channelsChanged.emit(sid, self.channels(sid))
            elif n.scope is Scope.MESSAGES:
                self.messagesChanged.emit(sid, cid)
            elif n.scope is Scope.USERS:
                self.usersChanged.emit(sid, cid, self.users(sid, cid))
            elif n.scope is Scope.TOPIC:
                self.topicChanged.emit(sid, cid, self.header(sid, cid)[1])
            elif n.scope is Scope.DIRECTORY:
                self.directoryChanged.emit(sid, self.directory(sid))
            elif n.scope is Scope.ACTIVE:
                st = self.manager.state
                self.activeChanged.emit(st.active_server_id or "", st.active_channel_id or "")

    # ----- Slots -----
    @pyqtSlot(str, str, int, str, str, bool, result=str)
    def connectHost(
        self,
        name: str,
        host: str,
        port: int = 6697,
        nick: str = "IRCDeckUser",
        password: str = "",
        tls: bool = True,
    ) -> str:
        if not host or not nick:
            self.statusChanged.emit("Host and nickname are required")
            return ""
        self.statusChanged.emit(f"Connecting to {host}:{port} (TLS={'on' if tls else 'off'})")
        return self.manager.connect(name or host, host, port, nick, password or None, tls)

    @pyqtSlot(str)
    def submitInput(self, text: str) -> None:
        self.manager.submit(text)

    @pyqtSlot(str)
    def selectServer(self, server_id: str) -> None:
        self.manager.select_server(server_id)

    @pyqtSlot(str, str)
    def selectChannel(self, server_id: str, channel_id: str) -> None:
        self.manager.select_channel(server_id, channel_id)

    @pyqtSlot(str)
    def deleteServer(self, server_id: str) -> None:
        if self.manager.delete_server(server_id):
            self._search.pop(server_id, None)

    @pyqtSlot(str, str)
    def searchDirectory(self, server_id: str, term: str) -> None:
        self._search[server_id] = term or ""
        self.directoryChanged.emit(server_id, self.directory(server_id))

    @asyncSlot()
    async def shutdown(self) -> None:
        self.statusChanged.emit("Disconnecting...")
        await self.manager.shutdown()
