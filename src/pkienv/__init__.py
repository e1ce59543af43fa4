"""A minimal PKI messaging environment on textbook RSA.

Two peers exchange credential files out-of-band, then send each other messages encrypted for Confidentiality,
Authentication or Both over a single connection. The numeric engine is unpadded RSA and is not meant for real
secrets.

Typical usage example:

    keys = KeyMaterial.generate(2048)
    write_credentials(keys, "alice")
    import_peer_file(keys, "bob.key")
    c = CipherEngine(keys).encrypt(Mode.BOTH, b"Hi there!")
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
from pkienv.channel import Channel
from pkienv.channel import Frame
from pkienv.cipher import CipherEngine
from pkienv.cipher import Mode
from pkienv.credentials import import_peer_file
from pkienv.credentials import read_credentials
from pkienv.credentials import write_credentials
from pkienv.errors import AlreadyExists
from pkienv.errors import ChannelClosed
from pkienv.errors import ChannelError
from pkienv.errors import FormatError
from pkienv.errors import MissingKeyMaterial
from pkienv.errors import NotFound
from pkienv.errors import PKIError
from pkienv.errors import ProtocolDesync
from pkienv.keys import Credential
from pkienv.keys import KeyMaterial
from pkienv.session import MessageSession
from pkienv.session import Role

__version__ = "0.0.1"
__all__ = [
    "AlreadyExists",
    "Channel",
    "ChannelClosed",
    "ChannelError",
    "CipherEngine",
    "Credential",
    "FormatError",
    "Frame",
    "KeyMaterial",
    "MessageSession",
    "MissingKeyMaterial",
    "Mode",
    "NotFound",
    "PKIError",
    "ProtocolDesync",
    "Role",
    "import_peer_file",
    "read_credentials",
    "write_credentials",
]
