"""Credential file reading and writing.

A credential file holds the three decimal integers `p`, `q` and the public exponent, one per line and in exactly that
order. The format is positional, so the order on read must match the order on write.

Typical usage example:

    write_credentials(keys, "alice")
    cred = read_credentials("alice.key")
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import logging
import os
import pathlib
import re

from pkienv.errors import AlreadyExists
from pkienv.errors import FormatError
from pkienv.errors import NotFound
from pkienv.keys import Credential
from pkienv.keys import KeyMaterial

EXTENSION = ".key"
_DECIMAL = re.compile(r"[0-9]+")

log = logging.getLogger(__name__)


def resolve_path(name: str | os.PathLike) -> pathlib.Path:
    """Append the credential extension unless already present.

    Raises:
        FormatError: If the name does not end in a file name, as with a blank name or ".".
    """
    path = pathlib.Path(name)
    if not path.name or path.name == "..":
        raise FormatError(f"{str(name)!r} is not a usable credentials file name.")
    if path.name.endswith(EXTENSION):
        return path
    return path.with_name(path.name + EXTENSION)


def write_credentials(source: KeyMaterial | Credential, name: str | os.PathLike) -> pathlib.Path:
    """Write a credential file, never overwriting.

    Args:
        source: The key material (or its credential) to export.
        name: Target file name, `.key` is appended if missing.

    Returns:
        The path that was written.

    Raises:
        AlreadyExists: If the target file exists. The file is left untouched.
    """
    cred = source.credential() if isinstance(source, KeyMaterial) else source
    text = f"{cred.p}\n{cred.q}\n{cred.pub_exp}\n"
    path = resolve_path(name)
    try:
        with open(path, "x", encoding="ascii") as f:
            f.write(text)
    except FileExistsError as exc:
        raise AlreadyExists(f"Credentials file {path} already exists.") from exc
    log.info("Wrote credentials to %s.", path)
    return path


def read_credentials(name: str | os.PathLike) -> Credential:
    """Read a credential file.

    Args:
        name: Source file name, `.key` is appended if missing.

    Returns:
        The credential held by the file.

    Raises:
        NotFound: If the file does not exist.
        FormatError: If the file holds fewer than three lines or a line is not a non-negative decimal integer.
    """
    path = resolve_path(name)
    try:
        with open(path, "r", encoding="ascii") as f:
            lines = f.read().splitlines()
    except FileNotFoundError as exc:
        raise NotFound(f"Credentials file {path} does not exist or cannot be found.") from exc
    except UnicodeDecodeError as exc:
        raise FormatError(f"Credentials file {path} is not plain text.") from exc
    if len(lines) < 3:
        raise FormatError(f"Credentials file {path} holds {len(lines)} lines, expected 3.")
    fields = []
    for no, line in enumerate(lines[:3], start=1):
        line = line.strip()
        if not _DECIMAL.fullmatch(line):
            raise FormatError(f"Line {no} of {path} is not a non-negative decimal integer.")
        fields.append(int(line))
    return Credential(*fields)


def import_peer_file(keys: KeyMaterial, name: str | os.PathLike) -> Credential:
    """Read a credential file and import it as the peer credential of `keys`."""
    cred = read_credentials(name)
    return keys.import_peer(*cred)
