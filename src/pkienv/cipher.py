"""Textbook RSA transforms for the three message modes.

Confidentiality encrypts with the peer's public exponent, Authentication with the own private exponent and Both
applies the two in an order decided by comparing the moduli. There is no padding: the numeric engine is textbook RSA,
weaknesses included.

Typical usage example:

    engine = CipherEngine(keys)
    c = engine.encrypt(Mode.BOTH, b"Hi there!")
    r = peer_engine.decrypt(Mode.BOTH, c, length=9)
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import enum
import logging
import warnings

from pkienv.errors import MissingKeyMaterial
from pkienv.keys import Credential
from pkienv.keys import KeyMaterial

log = logging.getLogger(__name__)


class Mode(enum.Enum):
    """Per-message mode, with the single letter token sent on the wire."""
    CONFIDENTIALITY = "C"
    AUTHENTICATION = "A"
    BOTH = "B"
    QUIT = "Q"

    @classmethod
    def parse(cls, token: str) -> "Mode":
        """Parse a mode token, in either case.

        Raises:
            ValueError: If the token names no mode.
        """
        try:
            return cls(token.strip().upper())
        except ValueError:
            raise ValueError(f"Unknown mode token {token!r}.") from None

    def needs_peer(self, sending: bool) -> bool:
        """Whether the peer credential is required to encrypt (`sending`) or decrypt in this mode."""
        match self:
            case Mode.CONFIDENTIALITY:
                return sending
            case Mode.AUTHENTICATION:
                return not sending
            case Mode.BOTH:
                return True
            case Mode.QUIT:
                return False


def bytes_to_integer(msg: bytes) -> int:
    """Converts a byte string to an unsigned big-endian integer. The empty string is 0."""
    return int.from_bytes(msg, byteorder="big", signed=False)


def integer_to_bytes(msg: int, fixedlen: int | None = None) -> bytes:
    """Converts an integer to an unsigned big-endian byte string.

    Args:
        msg: The integer to unmarshal.
        fixedlen: The target length of the byte string. Minimal length if not provided, so 0 becomes b"".

    Returns:
        The representative bytes.

    Raises:
        ValueError: If `msg` does not fit into `fixedlen` bytes.
    """
    if fixedlen is None:
        fixedlen = (msg.bit_length() + 7) // 8
    try:
        return msg.to_bytes(fixedlen, byteorder="big", signed=False)
    except OverflowError as exc:
        raise ValueError(f"Value does not fit into {fixedlen} bytes.") from exc


def c_rsa(message: int, expo: int, mod: int) -> int:
    """Performs core RSA operation. (Encrypt/Decrypt)

    Args:
        message: The int-marshalled message.
        expo: The exponent, whether private or public.
        mod: The modulus.

    Returns:
        `message ** expo mod mod`.

    Raises:
        ValueError: If the message is out of range for the modulus.
    """
    if not 0 <= message < mod:
        raise ValueError("Message representative must be in range [0, mod-1]")
    return pow(message, expo, mod)


class CipherEngine:
    """Encryption and decryption in every mode for the owner of `keys`.

    Every output is the minimal big-endian encoding of the numeric result. Decryption takes the original message
    length, when known, to restore leading zero bytes.

    Attributes:
        keys: The key material of the local party.
    """

    def __init__(self, keys: KeyMaterial) -> None:
        self.keys = keys

    def check_ready(self, mode: Mode, sending: bool) -> None:
        """Ensure all key material needed by `mode` is present.

        Raises:
            MissingKeyMaterial: If the mode requires a peer credential and none was imported.
        """
        if mode.needs_peer(sending) and self.keys.peer is None:
            action = "encrypt" if sending else "decrypt"
            raise MissingKeyMaterial(f"Cannot {action} in {mode.name.lower()} mode without a peer credential.")

    def _peer(self) -> Credential:
        if self.keys.peer is None:
            raise MissingKeyMaterial("No peer credential imported.")
        return self.keys.peer

    def _private(self, value: int) -> int:
        return c_rsa(value, self.keys.priv_exp, self.keys.mod)

    def _public(self, value: int, peer: Credential) -> int:
        return c_rsa(value, peer.pub_exp, peer.mod)

    def encrypt_confidentiality(self, message: bytes) -> bytes:
        """Encrypt with the peer's public key, only the peer can read it."""
        peer = self._peer()
        return integer_to_bytes(self._public(bytes_to_integer(message), peer))

    def encrypt_authentication(self, message: bytes) -> bytes:
        """Encrypt with the own private key.

        Binds the message to the sender, but anyone holding the sender's credential can read it.
        """
        warnings.warn("Authentication mode provides no confidentiality!", RuntimeWarning)
        return integer_to_bytes(self._private(bytes_to_integer(message)))

    def encrypt_both(self, message: bytes) -> bytes:
        """Encrypt with the own private key and the peer's public key.

        The smaller modulus is applied first, so the intermediate value always fits the second modulus.
        """
        peer = self._peer()
        value = bytes_to_integer(message)
        if self.keys.mod < peer.mod:
            value = self._public(self._private(value), peer)
        else:
            value = self._private(self._public(value, peer))
        return integer_to_bytes(value)

    def decrypt_confidentiality(self, ciphertext: bytes, length: int | None = None) -> bytes:
        """Decrypt a message sent to us in confidentiality mode."""
        return integer_to_bytes(self._private(bytes_to_integer(ciphertext)), length)

    def decrypt_authentication(self, ciphertext: bytes, length: int | None = None) -> bytes:
        """Decrypt and thereby authenticate a message the peer encrypted with its private key."""
        peer = self._peer()
        return integer_to_bytes(self._public(bytes_to_integer(ciphertext), peer), length)

    def decrypt_both(self, ciphertext: bytes, length: int | None = None) -> bytes:
        """Undo `encrypt_both` of the peer, last applied transform first."""
        peer = self._peer()
        value = bytes_to_integer(ciphertext)
        if self.keys.mod < peer.mod:
            value = self._private(self._public(value, peer))
        else:
            value = self._public(self._private(value), peer)
        return integer_to_bytes(value, length)

    def encrypt(self, mode: Mode, message: bytes) -> bytes:
        """Encrypt `message` in `mode`.

        Raises:
            MissingKeyMaterial: If the mode needs a peer credential that is not loaded.
            ValueError: If the message does not fit the modulus, or `mode` is QUIT.
        """
        self.check_ready(mode, sending=True)
        match mode:
            case Mode.CONFIDENTIALITY:
                return self.encrypt_confidentiality(message)
            case Mode.AUTHENTICATION:
                return self.encrypt_authentication(message)
            case Mode.BOTH:
                return self.encrypt_both(message)
            case Mode.QUIT:
                raise ValueError("Quit carries no message.")

    def decrypt(self, mode: Mode, ciphertext: bytes, length: int | None = None) -> bytes:
        """Decrypt `ciphertext` that the peer encrypted in `mode`.

        Raises:
            MissingKeyMaterial: If the mode needs a peer credential that is not loaded.
            ValueError: If the ciphertext does not fit the modulus, the result does not fit `length`, or `mode` is
                QUIT.
        """
        self.check_ready(mode, sending=False)
        match mode:
            case Mode.CONFIDENTIALITY:
                return self.decrypt_confidentiality(ciphertext, length)
            case Mode.AUTHENTICATION:
                return self.decrypt_authentication(ciphertext, length)
            case Mode.BOTH:
                return self.decrypt_both(ciphertext, length)
            case Mode.QUIT:
                raise ValueError("Quit carries no message.")
