import enum
import logging
import socket
import threading
from typing import Any, Optional, Tuple

from chatrelay import messages as m
from chatrelay.errors import CapacityExceeded, DispatchError, ListenerError, TransportSetupError
from chatrelay.filtering import ContentFilter
from chatrelay.framing import FRAMINGS, RAW, encode_chat_line, make_reader
from chatrelay.logs import clear_log_context, set_log_context
from chatrelay.registry import ClientRegistry
from chatrelay.settings import Settings

"""
node.py — the relay server: client handles, broadcast, per-connection
handlers and the listener loop.

Flow:
  listener accepts -> ClientHandle -> registry.add -> handler thread
  handler: read name -> join notice -> {read -> filter -> broadcast}* -> leave
  notice -> registry.remove -> close

Threads:
- One listener thread (whoever calls serve_forever) and one daemon thread per
  client. There is no server-wide shutdown; a handler ends when its own read
  returns nothing or fails.
- Each handle's socket is read only by its own handler. Writes come from any
  handler's broadcast, but always with the registry lock held, so two threads
  never write to the same socket at once.
"""

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8080
MAX_NAME_LENGTH = 31
MAX_MESSAGE_LENGTH = 256
ACCEPT_POLL_INTERVAL = 0.5  # seconds; how often a blocked accept notices close()


class ClientHandle:
    """
    One connected participant: owns the socket, remembers the display name.

    The socket is closed exactly once, by close() (or leaving a `with` block),
    which only the handler that serves this client calls.
    """

    def __init__(self, sock: socket.socket, address: Any = None) -> None:
        self.sock = sock
        self.address = address
        self.name: Optional[bytes] = None
        self.slot_id: Optional[int] = None
        self._closed = False
        self._close_lock = threading.Lock()

    def peer(self) -> str:
        """host:port of the remote end, for logs."""
        if isinstance(self.address, tuple) and len(self.address) >= 2:
            return f"{self.address[0]}:{self.address[1]}"
        return str(self.address) if self.address is not None else "?"

    def display_name(self) -> str:
        if self.name is None:
            return "<unnamed>"
        return self.name.decode("utf-8", errors="replace")

    @property
    def closed(self) -> bool:
        return self._closed

    def recv(self, bufsize: int) -> bytes:
        return self.sock.recv(bufsize)

    def send(self, data: bytes) -> None:
        self.sock.sendall(data)

    def close(self) -> None:
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Already disconnected; close() below still releases the fd.
            pass
        self.sock.close()

    def __enter__(self) -> "ClientHandle":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<ClientHandle slot={self.slot_id} peer={self.peer()} name={self.display_name()!r}>"


class Broadcaster:
    """Fan-out of one message to every registered client except one."""

    def __init__(self, registry: ClientRegistry) -> None:
        self.registry = registry

    def broadcast(self, message: bytes, exclude: Optional[ClientHandle] = None) -> None:
        """
        Best-effort write of message to all members except `exclude`.

        A failed write is logged and skipped. The failing client stays
        registered; its own handler retires it when its next read fails.
        """
        with self.registry.locked_members() as members:
            for handle in members:
                if handle is exclude:
                    continue
                try:
                    handle.send(message)
                except OSError as exc:
                    logger.warning(f"Send to {handle.peer()} ({handle.display_name()}) failed: {exc}")


class HandlerState(enum.Enum):
    AWAITING_NAME = "awaiting_name"
    ACTIVE = "active"
    CLOSED = "closed"


class ConnectionHandler:
    """
    Drives one client from first byte to close:

        AWAITING_NAME --name--> ACTIVE --EOF/error--> CLOSED
        AWAITING_NAME --EOF/error----------------->  CLOSED  (no notices)

    Leaving CLOSED always removes the handle from the registry and closes it,
    whatever path got us there.
    """

    def __init__(
        self,
        handle: ClientHandle,
        registry: ClientRegistry,
        broadcaster: Broadcaster,
        content_filter: ContentFilter,
        max_name_length: int = MAX_NAME_LENGTH,
        max_message_length: int = MAX_MESSAGE_LENGTH,
        framing: str = RAW,
    ) -> None:
        self.handle = handle
        self.registry = registry
        self.broadcaster = broadcaster
        self.content_filter = content_filter
        self.max_name_length = max_name_length
        self.max_message_length = max_message_length
        self.framing = framing
        self.reader = make_reader(handle, framing)
        self.state = HandlerState.AWAITING_NAME

    def run(self) -> None:
        """Thread target. Never raises; problems are logged."""
        set_log_context(peer=self.handle.peer())
        try:
            with self.handle:
                try:
                    self._serve()
                finally:
                    self._retire()
        except Exception:
            logger.exception("Connection handler crashed")
        finally:
            clear_log_context()

    def _serve(self) -> None:
        name = self._read(self.max_name_length)
        if not name:
            logger.info("Connection closed before a name was sent")
            return

        self.handle.name = name
        self.state = HandlerState.ACTIVE
        set_log_context(name=self.handle.display_name())
        logger.info(f"{self.handle.display_name()} has connected")
        self.broadcaster.broadcast(m.join_notice(name))

        while True:
            data = self._read(self.max_message_length)
            if not data:
                break
            line = m.chat_line(name, self.content_filter.filter(data))
            logger.info(line.decode("utf-8", errors="replace"))
            self.broadcaster.broadcast(encode_chat_line(line, self.framing), exclude=self.handle)

    def _read(self, limit: int) -> bytes:
        try:
            return self.reader.read(limit)
        except OSError as exc:
            logger.warning(f"Read from {self.handle.peer()} failed: {exc}")
            return b""

    def _retire(self) -> None:
        was_active = self.state is HandlerState.ACTIVE
        self.state = HandlerState.CLOSED
        try:
            if was_active:
                self.broadcaster.broadcast(m.leave_notice(self.handle.name))
        finally:
            self.registry.remove(self.handle)
        logger.info(f"Client {self.handle.display_name()} disconnected")


class RelayServer:
    """
    Accepts TCP connections and runs a ConnectionHandler thread for each.

    Call start() to bind (or let serve_forever() do it), then serve_forever()
    from the thread that should own the listener loop.
    """

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = DEFAULT_PORT,
        registry: Optional[ClientRegistry] = None,
        content_filter: Optional[ContentFilter] = None,
        max_name_length: int = MAX_NAME_LENGTH,
        max_message_length: int = MAX_MESSAGE_LENGTH,
        framing: str = RAW,
        backlog: int = 100,
    ) -> None:
        self.host = host
        self.port = port
        self.registry = registry if registry is not None else ClientRegistry()
        self.content_filter = content_filter if content_filter is not None else ContentFilter()
        self.broadcaster = Broadcaster(self.registry)
        self.max_name_length = max_name_length
        self.max_message_length = max_message_length
        self.framing = framing
        self.backlog = backlog
        if framing not in FRAMINGS:
            raise ValueError(f"Unknown framing: {framing!r} (expected one of {FRAMINGS})")
        self._sock: Optional[socket.socket] = None
        self._closing = threading.Event()

    @classmethod
    def from_settings(cls, settings: Settings) -> "RelayServer":
        return cls(
            host=settings.HOST,
            port=settings.PORT,
            registry=ClientRegistry(settings.MAX_CLIENTS),
            content_filter=ContentFilter(settings.BANNED_WORDS),
            max_name_length=settings.MAX_NAME_LENGTH,
            max_message_length=settings.MAX_MESSAGE_LENGTH,
            framing=settings.FRAMING,
            backlog=settings.LISTEN_BACKLOG,
        )

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port when constructed with port 0."""
        if self._sock is None:
            raise RuntimeError("Server is not started")
        host, port = self._sock.getsockname()[:2]
        return host, port

    def start(self) -> socket.socket:
        """Bind and listen; return the listening socket. Raises TransportSetupError on failure."""
        if self._sock is not None:
            return self._sock
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
            sock.listen(self.backlog)
            sock.settimeout(ACCEPT_POLL_INTERVAL)
        except OSError as exc:
            sock.close()
            logger.error(f"Could not listen on {self.host}:{self.port}: {exc}")
            raise TransportSetupError(f"Could not listen on {self.host}:{self.port}: {exc}") from exc
        self._sock = sock
        host, port = self.address
        logger.info(f"Relay listening on {host}:{port}")
        return sock

    def serve_forever(self) -> None:
        """
        Accept connections until close() is called.

        Raises:
            TransportSetupError: bind/listen failed.
            ListenerError: accept failed for any other reason.
        """
        sock = self.start()
        while not self._closing.is_set():
            try:
                conn, addr = sock.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if self._closing.is_set():
                    break
                logger.error(f"Accept failed: {exc}")
                raise ListenerError(f"Accept failed: {exc}") from exc
            conn.settimeout(None)
            self._admit(conn, addr)
        logger.info("Listener stopped")

    def close(self) -> None:
        """Stop accepting new connections. Connected clients are left alone."""
        self._closing.set()
        if self._sock is not None:
            self._sock.close()

    def broadcast(self, message: bytes, exclude: Optional[ClientHandle] = None) -> None:
        self.broadcaster.broadcast(message, exclude=exclude)

    def _admit(self, conn: socket.socket, addr: Any) -> None:
        handle = ClientHandle(conn, addr)
        logger.info(f"New connection from {handle.peer()}")
        try:
            handle.slot_id = self.registry.add(handle)
        except CapacityExceeded as exc:
            logger.warning(f"Rejected {handle.peer()}: {exc}")
            handle.close()
            return

        handler = ConnectionHandler(
            handle,
            self.registry,
            self.broadcaster,
            self.content_filter,
            max_name_length=self.max_name_length,
            max_message_length=self.max_message_length,
            framing=self.framing,
        )
        try:
            self._dispatch(handler)
        except DispatchError as exc:
            logger.error(f"Dropping {handle.peer()}: {exc}")
            self.registry.remove(handle)
            handle.close()

    def _dispatch(self, handler: ConnectionHandler) -> None:
        thread = threading.Thread(
            target=handler.run,
            name=f"client-{handler.handle.slot_id}",
            daemon=True,
        )
        try:
            thread.start()
        except RuntimeError as exc:
            raise DispatchError(f"Could not start handler thread: {exc}") from exc
