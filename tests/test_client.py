import asyncio
import threading

import pytest

from ircdeck.core.events import (
    AuthenticatedEvent,
    ChannelListEndEvent,
    ChannelListRow,
    ChannelListRowEvent,
    CloseEvent,
    ErrorEvent,
    JoinEvent,
    KickEvent,
    MessageEvent,
    NamesEvent,
    RegisteredEvent,
    TopicEvent,
)
from ircdeck.irc import client as client_mod
from ircdeck.irc.client import MiniIRCClient


class FakeIRC:
    """Records miniirc handler registrations and outgoing lines."""

    instances: list = []

    def __init__(self, ip, port, nick, **kwargs):
        self.ip, self.port, self.nick, self.kwargs = ip, port, nick, kwargs
        self.handlers = {}
        self.sent = []
        self.gone = threading.Event()
        FakeIRC.instances.append(self)

    def Handler(self, *events, colon=True):
        def deco(fn):
            for ev in events:
                self.handlers[ev] = fn
            return fn

        return deco

    def connect(self):
        pass

    def quote(self, *parts):
        self.sent.append(" ".join(parts))

    def msg(self, target, *text):
        self.sent.append(f"PRIVMSG {target} :{' '.join(text)}")

    def me(self, target, *text):
        self.sent.append(f"PRIVMSG {target} :\x01ACTION {' '.join(text)}\x01")

    def disconnect(self, msg=None):
        self.sent.append(f"QUIT :{msg}")
        self.gone.set()

    def wait_until_disconnected(self):
        self.gone.wait(timeout=2)

    def drop(self):
        """Lose the connection without a QUIT, as a reset socket would."""
        self.gone.set()

    def fire(self, event, hostmask, args):
        self.handlers[event](self, hostmask, args)


class RefusingIRC(FakeIRC):
    def connect(self):
        raise ConnectionRefusedError("refused")


@pytest.fixture
def fake_irc(monkeypatch):
    FakeIRC.instances = []
    monkeypatch.setattr(client_mod.miniirc, "IRC", FakeIRC)
    return FakeIRC


async def connected_client():
    received = []
    c = MiniIRCClient("s1", received.append, asyncio.get_running_loop())
    c.connect("irc.example.org", 6697, "me", "me", "IRCDeck", True, False, "secret")
    await asyncio.sleep(0.02)
    return c, FakeIRC.instances[-1], received


async def drain():
    await asyncio.sleep(0)
    await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_connect_passes_options(fake_irc):
    c, irc, _ = await connected_client()
    assert (irc.ip, irc.port, irc.nick) == ("irc.example.org", 6697, "me")
    assert irc.kwargs["ssl"] is True
    assert irc.kwargs["verify_ssl"] is False
    assert irc.kwargs["server_password"] == "secret"
    assert irc.kwargs["persist"] is False
    assert irc.kwargs["auto_connect"] is False
    c.quit("bye")


@pytest.mark.asyncio
async def test_protocol_lines_become_events(fake_irc):
    c, irc, received = await connected_client()
    mask = ("alice", "a", "host")
    irc.fire("001", ("server", "server", "server"), ["me", "Welcome"])
    irc.fire("PRIVMSG", mask, ["#py", "hello"])
    irc.fire("PRIVMSG", mask, ["me", "\x01ACTION waves\x01"])
    irc.fire("PRIVMSG", mask, ["me", "\x01VERSION\x01"])
    irc.fire("JOIN", mask, ["#py"])
    irc.fire("KICK", ("op", "o", "h"), ["#py", "alice"])
    irc.fire("332", ("srv", "srv", "srv"), ["me", "#py", "Python talk"])
    irc.fire("331", ("srv", "srv", "srv"), ["me", "#py", "No topic is set"])
    await drain()
    assert received == [
        RegisteredEvent("s1", "me"),
        MessageEvent("s1", "alice", "#py", "hello"),
        MessageEvent("s1", "alice", "me", "* alice waves"),
        JoinEvent("s1", "#py", "alice"),
        KickEvent("s1", "#py", "alice", "op", None),
        TopicEvent("s1", "#py", "Python talk"),
        TopicEvent("s1", "#py", None),
    ]
    c.quit()


@pytest.mark.asyncio
async def test_names_are_buffered_until_end(fake_irc):
    c, irc, received = await connected_client()
    srv = ("srv", "srv", "srv")
    irc.fire("353", srv, ["me", "=", "#py", "@alice +bob"])
    irc.fire("353", srv, ["me", "=", "#py", "carol"])
    await drain()
    assert received == []
    irc.fire("366", srv, ["me", "#py", "End of /NAMES list."])
    await drain()
    assert received == [NamesEvent("s1", "#py", ("@alice", "+bob", "carol"))]
    c.quit()


@pytest.mark.asyncio
async def test_list_auth_and_errors(fake_irc):
    c, irc, received = await connected_client()
    srv = ("srv", "srv", "srv")
    irc.fire("322", srv, ["me", "#py", "42", "Python"])
    irc.fire("322", srv, ["me", "#odd", "many"])
    irc.fire("323", srv, ["me", "End of /LIST"])
    irc.fire("900", srv, ["me", "me!me@host", "me", "You are now logged in"])
    irc.fire("903", srv, ["me", "SASL authentication successful"])
    irc.fire("433", srv, ["*", "me", "Nickname is already in use"])
    await drain()
    assert received == [
        ChannelListRowEvent("s1", ChannelListRow("#py", 42, "Python")),
        ChannelListRowEvent("s1", ChannelListRow("#odd", 0, "")),
        ChannelListEndEvent("s1"),
        AuthenticatedEvent("s1"),
        ErrorEvent("s1", "me Nickname is already in use"),
    ]
    c.quit()


@pytest.mark.asyncio
async def test_actions_and_quit_emit_close_once(fake_irc):
    c, irc, received = await connected_client()
    c.join("#py")
    c.part("#py", "later")
    c.say("#py", "hi")
    c.set_topic("#py", "new topic")
    c.raw("NAMES", "*")
    c.quit("bye")
    irc.fire("ERROR", ("srv", "srv", "srv"), ["Closing link"])
    await drain()
    assert irc.sent == [
        "JOIN #py",
        "PART #py :later",
        "PRIVMSG #py :hi",
        "TOPIC #py :new topic",
        "NAMES *",
        "QUIT :bye",
    ]
    assert received == [CloseEvent("s1")]


@pytest.mark.asyncio
async def test_failed_connect_reports_error_and_close(monkeypatch):
    monkeypatch.setattr(client_mod.miniirc, "IRC", RefusingIRC)
    received = []
    c = MiniIRCClient("s1", received.append, asyncio.get_running_loop())
    c.connect("irc.example.org", 6697, "me", "me", "IRCDeck", True, False)
    await asyncio.sleep(0.05)
    assert isinstance(received[0], ErrorEvent)
    assert "refused" in received[0].message
    assert received[1] == CloseEvent("s1")
    assert c._executor._shutdown


@pytest.mark.asyncio
async def test_dropped_connection_emits_close(fake_irc):
    c, irc, received = await connected_client()
    irc.drop()
    for _ in range(50):
        if received:
            break
        await asyncio.sleep(0.01)
    assert received == [CloseEvent("s1")]
    assert c._executor._shutdown
    # a later quit does not report a second close
    c.quit()
    await drain()
    assert received == [CloseEvent("s1")]


@pytest.mark.asyncio
async def test_welcome_reports_accepted_nick(fake_irc):
    c, irc, received = await connected_client()
    irc.fire("001", ("srv", "srv", "srv"), ["me_", "Welcome to the network"])
    await drain()
    assert received == [RegisteredEvent("s1", "me_")]
    c.quit()
