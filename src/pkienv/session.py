"""The messaging session between the two parties.

A session first lets the user create and import credential files, then runs rounds. In every round both sides pick
the mode of their own outgoing message and announce it to each other, so each knows how to decrypt what it receives.
The initiator sends before it receives, the acceptor receives before it sends. Quitting on either side ends the
session.

Typical usage example:

    with transport.connect("127.0.0.1", 5000) as sock:
        with MessageSession(keys, Channel.from_socket(sock), Role.INITIATOR, TerminalConsole()) as session:
            session.run()
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import enum
import logging
import typing

from pkienv import credentials
from pkienv.channel import Channel
from pkienv.channel import Frame
from pkienv.cipher import CipherEngine
from pkienv.cipher import Mode
from pkienv.errors import ChannelClosed
from pkienv.errors import ChannelError
from pkienv.errors import CredentialError
from pkienv.errors import MissingKeyMaterial
from pkienv.keys import KeyMaterial

AUTH_LABEL = "Authentication Message!: "
AUTH_NOTICE = "Note: authentication mode provides no confidentiality, anyone could read this message."

log = logging.getLogger(__name__)


class Role(enum.Enum):
    INITIATOR = "initiator"
    ACCEPTOR = "acceptor"


class State(enum.Enum):
    CREDENTIAL_SETUP = enum.auto()
    MODE_NEGOTIATION = enum.auto()
    EXCHANGE = enum.auto()
    CLOSED = enum.auto()


class SetupAction(enum.Enum):
    GENERATE = "A"
    IMPORT = "B"
    PROCEED = "C"


class Console(typing.Protocol):
    """What the session needs from the user interface."""

    def choose_setup_action(self) -> SetupAction:
        ...

    def ask_filename(self, own: bool) -> str:
        ...

    def choose_mode(self) -> Mode:
        ...

    def read_message(self) -> str:
        ...

    def show(self, text: str) -> None:
        ...


class MessageSession:
    """One party's side of a messaging session.

    Owns its key material and channel; the channel is closed whenever the session ends, however it ends.

    Attributes:
        keys: The local key material, shared with `engine`.
        engine: Cipher engine working on `keys`.
        channel: The channel to the peer.
        role: Whether this side initiated the connection.
        console: User interface for choices, file names and message text.
        state: Current protocol state.
    """

    def __init__(self, keys: KeyMaterial, channel: Channel, role: Role, console: Console) -> None:
        self.keys = keys
        self.engine = CipherEngine(keys)
        self.channel: Channel | None = channel
        self.role = role
        self.console = console
        self.state = State.CREDENTIAL_SETUP

    def run(self) -> None:
        """Run credential setup and then rounds until either side quits or the connection drops."""
        try:
            if self.state is State.CREDENTIAL_SETUP:
                self.credential_setup()
            while self.state is not State.CLOSED:
                self.run_round()
        finally:
            self.close()

    def credential_setup(self) -> None:
        """Create or import credential files until the user proceeds to messaging."""
        while True:
            match self.console.choose_setup_action():
                case SetupAction.GENERATE:
                    name = self.console.ask_filename(own=True)
                    try:
                        path = credentials.write_credentials(self.keys, name)
                    except (CredentialError, OSError) as exc:
                        log.warning("Credential export failed: %s", exc)
                        self.console.show(f"{exc}\n")
                        continue
                    self.console.show(f"Credentials written to {path}.\n")
                case SetupAction.IMPORT:
                    name = self.console.ask_filename(own=False)
                    try:
                        credentials.import_peer_file(self.keys, name)
                    except (CredentialError, OSError) as exc:
                        log.warning("Credential import failed: %s", exc)
                        self.console.show(f"{exc}\n")
                        continue
                    self.console.show("Remote user credentials imported.\n")
                case SetupAction.PROCEED:
                    first = "You" if self.role is Role.INITIATOR else "The peer"
                    self.console.show(f"Starting encrypted messaging. {first} may send a message first.")
                    self.state = State.MODE_NEGOTIATION
                    return

    def select_mode(self) -> Mode:
        """Ask for an outgoing mode until one is picked that the loaded key material supports."""
        while True:
            mode = self.console.choose_mode()
            try:
                self.engine.check_ready(mode, sending=True)
            except MissingKeyMaterial as exc:
                log.error("%s", exc)
                self.console.show(f"{exc} Import a remote user credential file first.")
                continue
            return mode

    def negotiate(self, own: Mode) -> Mode:
        """Announce the own mode and learn the peer's."""
        self.state = State.MODE_NEGOTIATION
        self.channel.send_mode(own)
        return self.channel.recv_mode()

    def run_round(self) -> None:
        """Run one round: pick a mode, announce, then exchange one message in each direction.

        A failure inside the round is reported and the round abandoned; only quitting or a closed connection ends the
        session.
        """
        own = self.select_mode()
        try:
            peer = self.negotiate(own)
            if Mode.QUIT in (own, peer):
                if own is not Mode.QUIT:
                    self.console.show("The peer ended the session.")
                self.state = State.CLOSED
                return
            self.state = State.EXCHANGE
            if self.role is Role.INITIATOR:
                self.send_message(own)
                self.receive_message(peer)
            else:
                self.receive_message(peer)
                self.send_message(own)
        except ChannelClosed as exc:
            if own is Mode.QUIT:
                log.info("Peer already gone while quitting: %s", exc)
                self.state = State.CLOSED
                return
            log.error("Connection lost: %s", exc)
            self.console.show("The peer closed the connection.")
            self.state = State.CLOSED
            return
        except ChannelError as exc:
            if own is Mode.QUIT:
                log.warning("Could not announce quitting: %s", exc)
                self.state = State.CLOSED
                return
            log.warning("Round abandoned: %s", exc)
            self.console.show("Error sending or receiving message. Try again!")
        self.state = State.MODE_NEGOTIATION

    def send_message(self, mode: Mode) -> None:
        """Read a message from the user, encrypt it in `mode` and send it.

        Messages too large for the keys are refused and the user is asked again, so every round sends a frame.
        """
        while True:
            payload = self.console.read_message().encode("utf-8")
            try:
                ciphertext = self.engine.encrypt(mode, payload)
            except ValueError as exc:
                log.info("Refused outgoing message: %s", exc)
                self.console.show("Message too long for the current keys, please enter a shorter one.")
                continue
            break
        self.channel.send_frame(Frame(ciphertext, len(payload)))

    def receive_message(self, mode: Mode) -> None:
        """Receive a message the peer encrypted in `mode`, decrypt and show it."""
        frame = self.channel.recv_frame()
        try:
            payload = self.engine.decrypt(mode, frame.ciphertext, frame.length)
        except MissingKeyMaterial as exc:
            log.error("Cannot read the peer's message: %s", exc)
            self.console.show(f"{exc} Message discarded.")
            return
        except ValueError as exc:
            log.warning("Decryption failed: %s", exc)
            self.console.show("Could not decrypt the peer's message.")
            return
        text = payload.decode("utf-8", errors="replace")
        if mode is Mode.CONFIDENTIALITY:
            self.console.show(text)
        else:
            self.console.show(AUTH_LABEL + text)
        if mode is Mode.AUTHENTICATION:
            self.console.show(AUTH_NOTICE)

    def close(self) -> None:
        """Close the channel. Safe to call repeatedly."""
        self.state = State.CLOSED
        if self.channel is None:
            return
        channel, self.channel = self.channel, None
        self.console.show("Closing connection")
        channel.close()

    def __enter__(self) -> "MessageSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
