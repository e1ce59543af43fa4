# pylint: disable=missing-module-docstring,redefined-outer-name
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import socket
import threading

import pytest

from pkienv import credentials
from pkienv.channel import Channel
from pkienv.channel import Frame
from pkienv.cipher import CipherEngine
from pkienv.cipher import Mode
from pkienv.errors import ChannelClosed
from pkienv.errors import ChannelError
from pkienv.errors import ProtocolDesync
from pkienv.keys import KeyMaterial
from pkienv.session import AUTH_LABEL
from pkienv.session import AUTH_NOTICE
from pkienv.session import MessageSession
from pkienv.session import Role
from pkienv.session import SetupAction
from pkienv.session import State

pytestmark = pytest.mark.filterwarnings("ignore::RuntimeWarning")


class ScriptedConsole:
    """Answers prompts from prepared lists and records everything shown."""

    def __init__(self, actions=(), filenames=(), modes=(), messages=()):
        self.actions = list(actions)
        self.filenames = list(filenames)
        self.modes = list(modes)
        self.messages = list(messages)
        self.shown: list[str] = []

    def choose_setup_action(self):
        return self.actions.pop(0)

    def ask_filename(self, own):
        return self.filenames.pop(0)

    def choose_mode(self):
        return self.modes.pop(0)

    def read_message(self):
        return self.messages.pop(0)

    def show(self, text):
        self.shown.append(text)

    def saw(self, fragment: str) -> bool:
        return any(fragment in line for line in self.shown)


@pytest.fixture
def channel(mocker):
    return mocker.create_autospec(Channel, instance=True)


@pytest.fixture
def own_key(rsa_dict) -> KeyMaterial:
    return KeyMaterial(*rsa_dict[512], 65537)


def test_credential_setup(own_key, rsa_dict, channel, tmp_path):
    peer = KeyMaterial(*rsa_dict[1024], 65537)
    credentials.write_credentials(peer, tmp_path / "bob")
    (tmp_path / "taken.key").write_text("keep\n", encoding="ascii")
    (tmp_path / "broken.key").write_text("1\n2\n", encoding="ascii")
    console = ScriptedConsole(
        actions=[SetupAction.GENERATE, SetupAction.GENERATE, SetupAction.IMPORT, SetupAction.IMPORT,
                 SetupAction.IMPORT, SetupAction.PROCEED],
        filenames=[str(tmp_path / "taken"), str(tmp_path / "alice"), str(tmp_path / "nobody"),
                   str(tmp_path / "broken"), str(tmp_path / "bob")],
    )
    session = MessageSession(own_key, channel, Role.INITIATOR, console)
    session.credential_setup()

    assert session.state is State.MODE_NEGOTIATION
    assert console.saw("already exists")
    assert (tmp_path / "taken.key").read_text(encoding="ascii") == "keep\n"
    assert credentials.read_credentials(tmp_path / "alice") == own_key.credential()
    assert console.saw("does not exist")
    assert console.saw("expected 3")
    assert own_key.peer == peer.credential()
    channel.send_mode.assert_not_called()
    channel.recv_mode.assert_not_called()


def test_refuses_mode_without_peer(own_key, channel):
    channel.recv_mode.return_value = Mode.QUIT
    console = ScriptedConsole(modes=[Mode.CONFIDENTIALITY, Mode.BOTH, Mode.AUTHENTICATION])
    session = MessageSession(own_key, channel, Role.INITIATOR, console)
    session.state = State.MODE_NEGOTIATION
    session.run()

    assert console.saw("without a peer credential")
    channel.send_mode.assert_called_once_with(Mode.AUTHENTICATION)
    assert console.saw("The peer ended the session.")
    assert session.state is State.CLOSED
    channel.close.assert_called_once()


def test_own_quit(own_key, channel):
    channel.recv_mode.return_value = Mode.BOTH
    console = ScriptedConsole(modes=[Mode.QUIT])
    session = MessageSession(own_key, channel, Role.ACCEPTOR, console)
    session.state = State.MODE_NEGOTIATION
    session.run()

    channel.send_mode.assert_called_once_with(Mode.QUIT)
    channel.recv_frame.assert_not_called()
    channel.send_frame.assert_not_called()
    assert not console.saw("The peer ended the session.")
    channel.close.assert_called_once()


def test_round_failure_continues(key_pair, channel):
    small, large = key_pair
    channel.recv_mode.side_effect = [Mode.CONFIDENTIALITY, Mode.CONFIDENTIALITY, Mode.QUIT]
    good = Frame(CipherEngine(large).encrypt(Mode.CONFIDENTIALITY, b"second"), 6)
    channel.recv_frame.side_effect = [ProtocolDesync("garbage"), good]
    console = ScriptedConsole(modes=[Mode.CONFIDENTIALITY] * 3, messages=["first", "again"])
    session = MessageSession(small, channel, Role.INITIATOR, console)
    session.state = State.MODE_NEGOTIATION
    session.run()

    assert console.saw("Error sending or receiving message. Try again!")
    assert "second" in console.shown
    assert channel.send_frame.call_count == 2
    assert session.state is State.CLOSED
    channel.close.assert_called_once()


def test_quit_reaches_closed_even_if_peer_gone(own_key):
    left, right = socket.socketpair()
    right.close()
    console = ScriptedConsole(modes=[Mode.QUIT])
    session = MessageSession(own_key, Channel.from_socket(left), Role.INITIATOR, console)
    session.state = State.MODE_NEGOTIATION
    session.run_round()

    assert session.state is State.CLOSED
    assert not console.saw("Try again!")
    session.close()
    assert left.fileno() == -1


def test_quit_reaches_closed_on_send_failure(own_key, channel):
    channel.send_mode.side_effect = ChannelError("refused")
    console = ScriptedConsole(modes=[Mode.QUIT])
    session = MessageSession(own_key, channel, Role.ACCEPTOR, console)
    session.state = State.MODE_NEGOTIATION
    session.run()

    assert session.state is State.CLOSED
    assert not console.modes
    channel.close.assert_called_once()


def test_blank_credential_names_return_to_menu(own_key, channel, tmp_path):
    console = ScriptedConsole(
        actions=[SetupAction.GENERATE, SetupAction.GENERATE, SetupAction.IMPORT, SetupAction.PROCEED],
        filenames=["", ".", str(tmp_path / "..")],
    )
    session = MessageSession(own_key, channel, Role.INITIATOR, console)
    session.credential_setup()

    assert session.state is State.MODE_NEGOTIATION
    assert sum("not a usable" in line for line in console.shown) == 3
    assert own_key.peer is None


def test_connection_lost_ends(own_key, channel):
    channel.recv_mode.side_effect = ChannelClosed("gone")
    console = ScriptedConsole(modes=[Mode.AUTHENTICATION, Mode.AUTHENTICATION])
    session = MessageSession(own_key, channel, Role.INITIATOR, console)
    session.state = State.MODE_NEGOTIATION
    session.run()

    assert console.saw("The peer closed the connection.")
    assert len(console.modes) == 1
    channel.close.assert_called_once()


def test_undecryptable_message_skipped(own_key, channel):
    # The peer announces Authentication, but its credential was never imported.
    channel.recv_mode.side_effect = [Mode.AUTHENTICATION, Mode.QUIT]
    channel.recv_frame.return_value = Frame(b"\x01\x02", 2)
    console = ScriptedConsole(modes=[Mode.AUTHENTICATION, Mode.AUTHENTICATION], messages=["mine"])
    session = MessageSession(own_key, channel, Role.ACCEPTOR, console)
    session.state = State.MODE_NEGOTIATION
    session.run()

    assert console.saw("Message discarded.")
    channel.recv_frame.assert_called_once()
    channel.send_frame.assert_called_once()


def test_too_long_message_reprompts(key_pair, channel):
    small, large = key_pair
    channel.recv_mode.side_effect = [Mode.CONFIDENTIALITY, Mode.QUIT]
    channel.recv_frame.return_value = Frame(CipherEngine(large).encrypt(Mode.CONFIDENTIALITY, b"hi"), 2)
    console = ScriptedConsole(modes=[Mode.CONFIDENTIALITY, Mode.CONFIDENTIALITY], messages=["x" * 1000, "short"])
    session = MessageSession(small, channel, Role.INITIATOR, console)
    session.state = State.MODE_NEGOTIATION
    session.run()

    assert console.saw("Message too long")
    channel.send_frame.assert_called_once()
    frame = channel.send_frame.call_args.args[0]
    assert CipherEngine(large).decrypt(Mode.CONFIDENTIALITY, frame.ciphertext, frame.length) == b"short"


def test_closes_on_unexpected_exit(own_key, channel):

    def interrupted():
        raise KeyboardInterrupt

    console = ScriptedConsole()
    console.choose_setup_action = interrupted
    session = MessageSession(own_key, channel, Role.INITIATOR, console)
    with pytest.raises(KeyboardInterrupt):
        session.run()
    channel.close.assert_called_once()
    assert session.state is State.CLOSED


def test_close_idempotent(own_key, channel):
    console = ScriptedConsole()
    with MessageSession(own_key, channel, Role.INITIATOR, console) as session:
        session.close()
    channel.close.assert_called_once()
    assert console.shown.count("Closing connection") == 1


def test_two_parties(key_pair, tmp_path):
    alice, bob = key_pair
    # Start with no credentials, they are exchanged through files during setup.
    alice.peer = None
    bob.peer = None
    credentials.write_credentials(alice, tmp_path / "a")
    credentials.write_credentials(bob, tmp_path / "b")
    alice_console = ScriptedConsole(
        actions=[SetupAction.IMPORT, SetupAction.PROCEED],
        filenames=[str(tmp_path / "b")],
        modes=[Mode.AUTHENTICATION, Mode.CONFIDENTIALITY, Mode.BOTH, Mode.QUIT],
        messages=["hello", "secret", ""],
    )
    bob_console = ScriptedConsole(
        actions=[SetupAction.IMPORT, SetupAction.PROCEED],
        filenames=[str(tmp_path / "a.key")],
        modes=[Mode.CONFIDENTIALITY, Mode.BOTH, Mode.AUTHENTICATION, Mode.CONFIDENTIALITY],
        messages=["reply", "both ways", "\x00zero"],
    )
    left, right = socket.socketpair()
    alice_session = MessageSession(alice, Channel.from_socket(left), Role.INITIATOR, alice_console)
    bob_session = MessageSession(bob, Channel.from_socket(right), Role.ACCEPTOR, bob_console)
    errors = []

    def run_bob():
        try:
            bob_session.run()
        except Exception as exc:  # pylint: disable=broad-except
            errors.append(exc)

    worker = threading.Thread(target=run_bob, daemon=True)
    worker.start()
    alice_session.run()
    worker.join(timeout=30)

    assert not worker.is_alive()
    assert not errors
    assert AUTH_LABEL + "hello" in bob_console.shown
    assert bob_console.shown.count(AUTH_NOTICE) == 1
    assert alice_console.shown.count(AUTH_NOTICE) == 1
    assert "secret" in bob_console.shown
    assert AUTH_LABEL in bob_console.shown
    assert "reply" in alice_console.shown
    assert AUTH_LABEL + "both ways" in alice_console.shown
    assert AUTH_LABEL + "\x00zero" in alice_console.shown
    assert bob_console.saw("The peer ended the session.")
    assert alice_session.state is State.CLOSED
    assert bob_session.state is State.CLOSED
    assert left.fileno() == -1
    assert right.fileno() == -1
