"""TCP bootstrap for the two parties: one listens and accepts a single peer, the other connects."""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import contextlib
import logging
import socket
import typing

DEFAULT_PORT = 5000
DEFAULT_LISTEN_HOST = "0.0.0.0"
DEFAULT_CONNECT_HOST = "127.0.0.1"

log = logging.getLogger(__name__)


@contextlib.contextmanager
def listen(host: str = DEFAULT_LISTEN_HOST, port: int = DEFAULT_PORT) -> typing.Iterator[socket.socket]:
    """Accept exactly one peer and yield its connection. Both sockets are closed on exit."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
        server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        server.bind((host, port))
        server.listen(1)
        log.info("Waiting for a peer on %s:%d.", host, port)
        conn, info = server.accept()
    log.info("Accepted the connection from %s:%d.", info[0], info[1])
    with conn:
        yield conn


@contextlib.contextmanager
def connect(host: str = DEFAULT_CONNECT_HOST, port: int = DEFAULT_PORT) -> typing.Iterator[socket.socket]:
    """Connect to a listening peer and yield the connection, closed on exit."""
    conn = socket.create_connection((host, port))
    log.info("Connected to %s:%d.", host, port)
    with conn:
        yield conn
