from __future__ import annotations

import pytest

from ircdeck.core.events import CloseEvent
from ircdeck.core.models import Server, ServerStatus
from ircdeck.core.state import ClientState


class FakeClient:
    """ProtocolClient stand-in that records every call instead of touching a socket."""

    def __init__(self, server_id, emit):
        self.server_id = server_id
        self.emit = emit
        self.calls: list[tuple] = []

    def connect(self, host, port, nick, username, realname, tls, verify_tls, password=None):
        self.calls.append(
            ("connect", host, port, nick, username, realname, tls, verify_tls, password)
        )

    def join(self, channel):
        self.calls.append(("join", channel))

    def part(self, channel, reason=None):
        self.calls.append(("part", channel, reason))

    def say(self, target, text):
        self.calls.append(("say", target, text))

    def action(self, target, text):
        self.calls.append(("action", target, text))

    def set_topic(self, channel, text):
        self.calls.append(("set_topic", channel, text))

    def whois(self, nick):
        self.calls.append(("whois", nick))

    def change_nick(self, nick):
        self.calls.append(("change_nick", nick))

    def raw(self, *parts):
        self.calls.append(("raw",) + parts)

    def quit(self, message=None):
        self.calls.append(("quit", message))
        # The real adapter reports close after a local quit as well
        self.emit(CloseEvent(self.server_id))


class FakeFactory:
    def __init__(self):
        self.clients: list[FakeClient] = []

    def __call__(self, server_id, emit):
        client = FakeClient(server_id, emit)
        self.clients.append(client)
        return client

    @property
    def last(self) -> FakeClient:
        return self.clients[-1]


@pytest.fixture
def fake_factory() -> FakeFactory:
    return FakeFactory()


@pytest.fixture
def state() -> ClientState:
    st = ClientState()
    st.add_server(
        Server(
            id="s1",
            name="Example",
            host="irc.example.org",
            port=6697,
            nickname="me",
            status=ServerStatus.CONNECTED,
        )
    )
    st.active_server_id = "s1"
    return st


@pytest.fixture
def server(state) -> Server:
    return state.servers["s1"]
