import asyncio

import pytest

pytest.importorskip("PyQt6")
pytest.importorskip("qasync")

from PyQt6.QtCore import QCoreApplication  # noqa: E402

from ircdeck.core.events import (  # noqa: E402
    ChannelListEndEvent,
    ChannelListRow,
    ChannelListRowEvent,
    JoinEvent,
    NamesEvent,
    RegisteredEvent,
    TopicEvent,
)
from ircdeck.irc.manager import IRCManager  # noqa: E402
from ircdeck.ui_pyqt6.bridge import BridgeQt  # noqa: E402


@pytest.fixture(scope="module")
def qapp():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


def record(signal):
    out = []
    signal.connect(lambda *args: out.append(args))
    return out


@pytest.mark.asyncio
async def test_signals_follow_state_changes(qapp, fake_factory):
    manager = IRCManager(client_factory=fake_factory, loop=asyncio.get_running_loop())
    bridge = BridgeQt(manager)
    servers = record(bridge.serversChanged)
    channels = record(bridge.channelsChanged)
    users = record(bridge.usersChanged)
    topics = record(bridge.topicChanged)
    active = record(bridge.activeChanged)

    sid = bridge.connectHost("Example", "irc.example.org", 6697, "me", "", True)
    client = fake_factory.last
    client.emit(RegisteredEvent(sid))
    client.emit(JoinEvent(sid, "#general", "me"))
    client.emit(NamesEvent(sid, "#general", ("bob", "@alice", "+carol")))
    client.emit(TopicEvent(sid, "#general", "hello world"))

    assert servers[-1] == ([{"id": sid, "name": "Example", "status": "connected"}],)
    assert channels[-1] == (sid, [{"id": "#general", "name": "#general", "topic": ""}])
    assert users[-1] == (sid, "#general", ["@alice", "+carol", "bob"])
    assert topics[-1] == (sid, "#general", "hello world")
    assert active[-1] == (sid, "#general")
    assert bridge.activeLines()[-1] == "Topic: hello world"
    assert bridge.statusLines()[-1] == "Connected to irc.example.org:6697 as me"

    client.emit(JoinEvent(sid, "#second", "me"))
    bridge.selectChannel(sid, "#second")
    assert active[-1] == (sid, "#second")
    assert bridge.header(sid, "#second") == ("#second", "No topic set")


@pytest.mark.asyncio
async def test_input_and_directory_search(qapp, fake_factory):
    manager = IRCManager(client_factory=fake_factory, loop=asyncio.get_running_loop())
    bridge = BridgeQt(manager)
    directory = record(bridge.directoryChanged)
    sid = bridge.connectHost("Example", "irc.example.org", 6697, "me", "", True)
    client = fake_factory.last
    client.emit(JoinEvent(sid, "#general", "me"))

    bridge.submitInput("hi there")
    assert ("say", "#general", "hi there") in client.calls
    assert bridge.messageLines(sid, "#general")[-1] == "<me> hi there"

    bridge.submitInput("/list")
    client.emit(ChannelListRowEvent(sid, ChannelListRow("#small", 3, "tiny")))
    client.emit(ChannelListRowEvent(sid, ChannelListRow("#python", 900, "Python help")))
    client.emit(ChannelListEndEvent(sid))
    assert [r["channel"] for r in directory[-1][1]] == ["#python", "#small"]

    bridge.searchDirectory(sid, "help")
    assert directory[-1] == (sid, [{"channel": "#python", "numUsers": 900, "topic": "Python help"}])


@pytest.mark.asyncio
async def test_connect_requires_host_and_delete(qapp, fake_factory):
    manager = IRCManager(client_factory=fake_factory, loop=asyncio.get_running_loop())
    bridge = BridgeQt(manager)
    status = record(bridge.statusChanged)
    assert bridge.connectHost("", "", 6697, "me", "", True) == ""
    assert status[-1] == ("Host and nickname are required",)

    a = bridge.connectHost("A", "a.example.org", 6697, "me", "", False)
    b = bridge.connectHost("B", "b.example.org", 6697, "me", "", False)
    bridge.selectServer(a)
    assert manager.state.active_server_id == a
    bridge.deleteServer(a)
    assert manager.state.active_server_id == b
    assert [s["id"] for s in bridge.servers()] == [b]
