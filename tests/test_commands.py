from ircdeck.core import commands, reconciler
from ircdeck.core.effects import Action, Reconnect, RequestDirectory
from ircdeck.core.events import JoinEvent
from ircdeck.core.models import ServerStatus
from ircdeck.core.state import ClientState


def joined(state, *channels):
    for ch in channels:
        reconciler.apply(state, JoinEvent("s1", ch, "me"))


def actions(effects):
    return [(e.name, e.args) for e in effects if isinstance(e, Action)]


def last_text(channel):
    return channel.messages[-1].text


def test_no_active_server_does_nothing():
    assert commands.dispatch(ClientState(), "/join #a") == []


def test_join_announces_and_prefixes_hash(state, server):
    effects = commands.dispatch(state, "/JOIN python")
    assert actions(effects) == [("join", ("#python",))]
    # no channel active yet, so the echo lands in the server log
    assert server.messages[-1].text == "Executing command: /join"
    assert server.channels == {}


def test_missing_argument_and_unknown_command(state, server):
    joined(state, "#a")
    ch = server.channels["#a"]
    assert actions(commands.dispatch(state, "/join")) == []
    assert last_text(ch) == "Usage: /join #channel"
    assert actions(commands.dispatch(state, "/frobnicate now")) == []
    assert last_text(ch) == "Unknown command: /frobnicate"


def test_channel_commands_need_a_group_channel(state, server):
    for text in ("/part", "/topic", "/kick bob", "/ban bob"):
        assert actions(commands.dispatch(state, text)) == []
        assert server.messages[-1].text == "You are not in a channel"


def test_kick_issues_protocol_kick_without_local_change(state, server):
    joined(state, "#general")
    reconciler.apply(state, JoinEvent("s1", "#general", "mallory"))
    effects = commands.dispatch(state, "/kick mallory spamming")
    assert actions(effects) == [("kick", ("#general", "mallory", "spamming"))]
    assert "mallory" in server.channels["#general"].users

    effects = commands.dispatch(state, "/kick mallory")
    assert actions(effects) == [("kick", ("#general", "mallory", "No reason given"))]


def test_ban_and_unban(state):
    joined(state, "#a")
    assert actions(commands.dispatch(state, "/ban troll")) == [("mode", ("#a", "+b", "troll"))]
    assert actions(commands.dispatch(state, "/unban troll")) == [("mode", ("#a", "-b", "troll"))]


def test_part_and_topic(state, server):
    joined(state, "#a")
    assert actions(commands.dispatch(state, "/leave see  you")) == [("part", ("#a", "see you"))]
    assert actions(commands.dispatch(state, "/topic new   topic")) == [
        ("set_topic", ("#a", "new topic"))
    ]
    commands.dispatch(state, "/topic")
    assert last_text(server.channels["#a"]) == "Current topic: No topic set"


def test_msg_opens_and_selects_pm(state, server):
    joined(state, "#a")
    effects = commands.dispatch(state, "/msg alice hello there")
    assert actions(effects) == [("say", ("alice", "hello there"))]
    pm = server.channels["pm-alice"]
    assert pm.messages[-1].nick == "me"
    assert pm.messages[-1].text == "hello there"
    assert state.active_channel_id == "pm-alice"

    commands.dispatch(state, "/query alice again")
    assert len([c for c in server.channels.values() if c.is_pm]) == 1


def test_msg_to_channel_does_not_open_pm(state, server):
    joined(state, "#a")
    commands.dispatch(state, "/msg #a hi all")
    assert "pm-#a" not in server.channels
    assert server.channels["#a"].messages[-1].nick == "me"


def test_me_echoes_locally(state, server):
    joined(state, "#a")
    effects = commands.dispatch(state, "/me waves")
    assert actions(effects) == [("action", ("#a", "waves"))]
    assert last_text(server.channels["#a"]) == "* me waves"


def test_quit_and_disconnect_mark_server_down(state, server):
    joined(state, "#a")
    effects = commands.dispatch(state, "/quit", quit_message="bye all")
    assert actions(effects) == [("quit", ("bye all",))]
    assert server.status is ServerStatus.DISCONNECTED
    assert server.messages[-1].text == "Disconnected from server (bye all)"

    server.status = ServerStatus.CONNECTED
    effects = commands.dispatch(state, "/disconnect")
    assert actions(effects) == [("quit", ("Disconnected by user",))]
    assert server.messages[-1].text == "Disconnected from server"


def test_connect_only_when_disconnected(state, server):
    commands.dispatch(state, "/connect")
    assert server.messages[-1].text == "Already connected or connecting to server"

    server.status = ServerStatus.DISCONNECTED
    effects = commands.dispatch(state, "/connect")
    assert Reconnect("s1") in effects
    assert server.status is ServerStatus.CONNECTING
    assert server.messages[-1].text == "Reconnecting to server..."


def test_list_raw_nick_whois(state, server):
    server.directory_generation = 1
    effects = commands.dispatch(state, "/list")
    assert RequestDirectory("s1", 2) in effects
    assert actions(commands.dispatch(state, "/raw PRIVMSG #x :hi")) == [
        ("raw", ("PRIVMSG #x :hi",))
    ]
    assert actions(commands.dispatch(state, "/nick me2")) == [("change_nick", ("me2",))]
    assert actions(commands.dispatch(state, "/whois bob")) == [("whois", ("bob",))]


def test_submit_routes_plain_text(state, server):
    joined(state, "#a")
    effects = commands.submit(state, "  hello world ")
    assert actions(effects) == [("say", ("#a", "hello world"))]
    assert server.channels["#a"].messages[-1].nick == "me"
    assert commands.submit(state, "   ") == []

    commands.dispatch(state, "/msg alice hey")
    assert actions(commands.submit(state, "you there?")) == [("say", ("alice", "you there?"))]
