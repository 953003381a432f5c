from typing import Optional, Protocol

"""
framing.py — how bytes on a client stream become chat messages and back.

Two framings:
- "raw" (default, wire-compatible with plain TCP chat clients): every receive
  is one message. No headers, no terminators on outbound chat lines. Fragile if
  the network splits or merges writes, but it's what existing clients speak.
- "line": newline-delimited messages. Inbound is split on b"\\n" (a trailing
  b"\\r" is dropped), over-long lines are cut at the size bound, blank lines are
  skipped. Outbound chat lines get a b"\\n".

Readers return b"" exactly once the peer has closed the stream; socket errors
propagate to the caller as OSError.
"""

RAW = "raw"
LINE = "line"
FRAMINGS = (RAW, LINE)

NEWLINE = b"\n"
RECV_CHUNK = 4096  # line mode reads this much at a time and buffers the rest


class Stream(Protocol):
    """The part of a socket the framing layer uses."""

    def recv(self, bufsize: int) -> bytes: ...

    def sendall(self, data: bytes) -> None: ...


class RawReader:
    """One recv() call = one message, at most `limit` bytes."""

    def __init__(self, stream: Stream) -> None:
        self.stream = stream

    def read(self, limit: int) -> bytes:
        return self.stream.recv(limit)


class LineReader:
    """Newline-delimited messages, each cut to at most `limit` bytes."""

    def __init__(self, stream: Stream) -> None:
        self.stream = stream
        self._buffer = bytearray()
        self._eof = False

    def read(self, limit: int) -> bytes:
        while True:
            line = self._next_line(limit)
            if line is None:
                if self._eof:
                    # Partial last line goes out once, then b"" for good.
                    rest = bytes(self._buffer).rstrip(b"\r")
                    self._buffer.clear()
                    return rest
                chunk = self.stream.recv(RECV_CHUNK)
                if not chunk:
                    self._eof = True
                else:
                    self._buffer.extend(chunk)
                continue
            if line:
                return line
            # Blank line; keep going.

    def _next_line(self, limit: int) -> Optional[bytes]:
        idx = self._buffer.find(NEWLINE, 0, limit + 1)
        if idx == -1:
            if len(self._buffer) >= limit:
                line = bytes(self._buffer[:limit])
                del self._buffer[:limit]
                return line
            return None
        line = bytes(self._buffer[:idx])
        del self._buffer[: idx + 1]
        return line.rstrip(b"\r")


def make_reader(stream: Stream, framing: str = RAW):
    """Return the reader for the given framing name."""
    if framing == RAW:
        return RawReader(stream)
    if framing == LINE:
        return LineReader(stream)
    raise ValueError(f"Unknown framing: {framing!r} (expected one of {FRAMINGS})")


def encode_chat_line(payload: bytes, framing: str = RAW) -> bytes:
    """Terminate an outbound chat line according to the framing."""
    if framing == LINE and not payload.endswith(NEWLINE):
        return payload + NEWLINE
    return payload
