"""
messages.py — the handful of byte strings the relay ever sends.

- Chat line:  b"<name>: <filtered text>" (terminator depends on framing)
- Notices:    b"*** <name> has connected ***\\n"
              b"*** <name> has disconnected ***\\n"

Names and text stay bytes end to end; the relay never re-encodes what a
client sent.
"""

CONNECTED = "connected"
DISCONNECTED = "disconnected"

NOTICE_TEMPLATE = b"*** %s has %s ***\n"
CHAT_SEPARATOR = b": "


def status_notice(name: bytes, status: str) -> bytes:
    """System notice announcing that name connected or disconnected."""
    if status not in (CONNECTED, DISCONNECTED):
        raise ValueError(f"Unknown status: {status!r}")
    return NOTICE_TEMPLATE % (name, status.encode("ascii"))


def join_notice(name: bytes) -> bytes:
    return status_notice(name, CONNECTED)


def leave_notice(name: bytes) -> bytes:
    return status_notice(name, DISCONNECTED)


def chat_line(name: bytes, text: bytes) -> bytes:
    """Format one relayed message as b"<name>: <text>"."""
    return name + CHAT_SEPARATOR + text
