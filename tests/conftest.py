"""
Pytest configuration and fixtures for relay tests.

Provides fake-socket client handles for unit tests and a factory that runs a
real RelayServer on an ephemeral loopback port for end-to-end tests.
"""

import logging
import socket
import threading

import pytest

from chatrelay.node import Broadcaster, ClientHandle, RelayServer
from chatrelay.registry import ClientRegistry
from tests.mocks.socket_mocks import FakeSocket, recv_until


@pytest.fixture
def registry():
    """Empty registry with room for a handful of clients."""
    return ClientRegistry(capacity=10)


@pytest.fixture
def broadcaster(registry):
    return Broadcaster(registry)


@pytest.fixture
def make_handle(registry):
    """
    Factory for registered handles backed by FakeSocket.

    Usage:
        handle = make_handle([b"alice", b"hi"], name=b"alice")
    """

    def _make(chunks=(), name=None, register=True, port=40000, **socket_kwargs):
        handle = ClientHandle(FakeSocket(chunks, **socket_kwargs), ("127.0.0.1", port))
        handle.name = name
        if register:
            handle.slot_id = registry.add(handle)
        return handle

    return _make


@pytest.fixture
def relay_server():
    """
    Factory that starts RelayServer instances on 127.0.0.1:0.

    Every server started through it is closed at teardown. Client sockets
    opened with `connect` are closed too.
    """
    servers = []
    clients = []

    def _start(**kwargs):
        kwargs.setdefault("host", "127.0.0.1")
        kwargs.setdefault("port", 0)
        server = RelayServer(**kwargs)
        server.start()
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        servers.append((server, thread))
        return server

    def _connect(server, name=None, terminator=b""):
        sock = socket.create_connection(server.address, timeout=3.0)
        clients.append(sock)
        if name is not None:
            sock.sendall(name + terminator)
            recv_until(sock, b"*** %s has connected ***\n" % name)
        return sock

    _start.connect = _connect
    yield _start

    for sock in clients:
        sock.close()
    for server, thread in servers:
        server.close()
        thread.join(timeout=3.0)


@pytest.fixture
def restore_logging():
    """Put the root logger back the way it was after a test reconfigures it."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
