"""Exceptions raised across the PKI Environment.

Every exception derives from `PKIError` as well as the closest builtin, so callers may catch either the precise
failure or the general family (`OSError`, `ValueError`, ...).
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0


class PKIError(Exception):
    """Base class for all PKI Environment errors."""


class MissingKeyMaterial(PKIError, RuntimeError):
    """An operation needs key material (usually the peer credential) that has not been loaded."""


class CredentialError(PKIError):
    """Base class for credential file failures."""


class AlreadyExists(CredentialError, FileExistsError):
    """The credential file already exists and will not be overwritten."""


class NotFound(CredentialError, FileNotFoundError):
    """The credential file does not exist."""


class FormatError(CredentialError, ValueError):
    """The credential file does not hold three non-negative decimal integers."""


class ChannelError(PKIError, ConnectionError):
    """Reading from or writing to the peer failed."""


class ChannelClosed(ChannelError):
    """The peer closed the connection."""


class ProtocolDesync(ChannelError):
    """The received data does not parse as the expected token or frame."""
