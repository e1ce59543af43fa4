"""Wire framing between the two parties.

Each round carries two kinds of items. A mode token is a 16-bit unsigned big-endian length followed by UTF-8 text.
A message frame is a signed 32-bit big-endian ciphertext length, exactly that many ciphertext bytes, and a signed 32-bit
big-endian length of the plaintext.
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import logging
import socket
import struct
import typing

from pkienv.cipher import Mode
from pkienv.errors import ChannelClosed
from pkienv.errors import ChannelError
from pkienv.errors import ProtocolDesync

_TOKEN_LEN = struct.Struct(">H")
_FRAME_LEN = struct.Struct(">i")

log = logging.getLogger(__name__)


class Frame(typing.NamedTuple):
    """One encrypted message and the byte length of its plaintext."""
    ciphertext: bytes
    length: int


class Channel:
    """Blocking, ordered byte channel to the peer.

    Attributes:
        stream: Buffered binary stream used for reading and writing.
        sock: The socket under `stream`, if any. Closed together with the stream.
    """

    def __init__(self, stream: typing.BinaryIO, sock: socket.socket | None = None) -> None:
        self.stream = stream
        self.sock = sock

    @classmethod
    def from_socket(cls, sock: socket.socket) -> "Channel":
        return cls(sock.makefile("rwb"), sock)

    def _write(self, data: bytes) -> None:
        try:
            self.stream.write(data)
            self.stream.flush()
        except ConnectionError as exc:
            raise ChannelClosed(f"Peer is gone: {exc}") from exc
        except (OSError, ValueError) as exc:
            raise ChannelError(f"Could not send to peer: {exc}") from exc

    def _read_exactly(self, size: int) -> bytes:
        try:
            data = self.stream.read(size)
        except ConnectionError as exc:
            raise ChannelClosed(f"Peer is gone: {exc}") from exc
        except (OSError, ValueError) as exc:
            raise ChannelError(f"Could not receive from peer: {exc}") from exc
        if data is None or len(data) < size:
            raise ChannelClosed("Peer closed the connection.")
        return data

    def send_mode(self, mode: Mode) -> None:
        token = mode.value.encode("utf-8")
        self._write(_TOKEN_LEN.pack(len(token)) + token)
        log.debug("Sent mode token %s.", mode.value)

    def recv_mode(self) -> Mode:
        """Receive the mode token of the peer.

        Raises:
            ProtocolDesync: If the token is not UTF-8 or names no mode.
        """
        (size,) = _TOKEN_LEN.unpack(self._read_exactly(_TOKEN_LEN.size))
        raw = self._read_exactly(size)
        try:
            mode = Mode.parse(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise ProtocolDesync(f"Received an unknown mode token {raw!r}.") from exc
        log.debug("Received mode token %s.", mode.value)
        return mode

    def send_frame(self, frame: Frame) -> None:
        self._write(_FRAME_LEN.pack(len(frame.ciphertext)) + frame.ciphertext + _FRAME_LEN.pack(frame.length))
        log.debug("Sent %d ciphertext bytes.", len(frame.ciphertext))

    def recv_frame(self) -> Frame:
        """Receive one message frame, blocking until it is complete.

        Raises:
            ProtocolDesync: If either announced length is negative.
        """
        (size,) = _FRAME_LEN.unpack(self._read_exactly(_FRAME_LEN.size))
        if size < 0:
            raise ProtocolDesync(f"Received a negative ciphertext length {size}.")
        ciphertext = self._read_exactly(size)
        (length,) = _FRAME_LEN.unpack(self._read_exactly(_FRAME_LEN.size))
        if length < 0:
            raise ProtocolDesync(f"Received a negative plaintext length {length}.")
        log.debug("Received %d ciphertext bytes.", size)
        return Frame(ciphertext, length)

    def close(self) -> None:
        """Close the stream and the socket under it. Safe to call repeatedly."""
        try:
            self.stream.close()
        except ConnectionError as exc:
            log.debug("Unsent data dropped on close: %s", exc)
        finally:
            if self.sock is not None:
                self.sock.close()

    def __enter__(self) -> "Channel":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
