import argparse
import logging
import socket
import sys
import threading
from typing import Optional, Sequence

from pydantic import ValidationError

from chatrelay.errors import ChatRelayError
from chatrelay.framing import FRAMINGS, LINE, RAW
from chatrelay.logs import setup_logging
from chatrelay.node import RelayServer
from chatrelay.settings import Settings

"""
run_node.py — single entry point for the relay.

Modes:
- server:  bind, listen and relay forever (Ctrl-C to stop)
- client:  a small terminal client; sends --name first, then one message per
           stdin line, and prints whatever the relay sends back

"""

logger = logging.getLogger("chatrelay")


# -------------------------
# Process runners
# -------------------------

def run_server(settings: Settings) -> None:
    """Serve forever with the given settings."""
    server = RelayServer.from_settings(settings)
    try:
        server.serve_forever()
    finally:
        server.close()


def run_client(host: str, port: int, name: str, framing: str = RAW, stdin=None, stdout=None) -> None:
    """
    Connect, register `name`, then pump stdin lines to the relay while a
    background thread prints everything received. In line framing every
    outbound message (the name included) is newline-terminated.
    """
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout

    sock = socket.create_connection((host, port))
    with sock:
        terminator = b"\n" if framing == LINE else b""
        sock.sendall(name.encode("utf-8") + terminator)

        def receiver() -> None:
            try:
                while True:
                    data = sock.recv(4096)
                    if not data:
                        break
                    stdout.write(data.decode("utf-8", errors="replace"))
                    stdout.flush()
            except OSError as exc:
                logger.debug(f"Receiver stopped: {exc}")
            stdout.write("[connection closed]\n")
            stdout.flush()

        thread = threading.Thread(target=receiver, name="receiver", daemon=True)
        thread.start()

        for line in stdin:
            text = line.rstrip("\r\n")
            if not text:
                continue
            try:
                sock.sendall(text.encode("utf-8") + terminator)
            except OSError as exc:
                logger.error(f"Send failed: {exc}")
                break

        try:
            sock.shutdown(socket.SHUT_WR)
        except OSError:
            # Server already went away; the receiver has noticed too.
            pass
        thread.join(timeout=2.0)


# -------------------------
# Argument parsing
# -------------------------

def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Quick examples:
      Server:  python -m chatrelay.run_node --mode server --port 8080
      Client:  python -m chatrelay.run_node --mode client --host 127.0.0.1 --port 8080 --name alice
    """
    p = argparse.ArgumentParser(prog="chatrelay")
    p.add_argument("--mode", choices=["server", "client"], default="server")
    p.add_argument("--host")
    p.add_argument("--port", type=int)
    p.add_argument("--name", help="display name (client mode)")
    p.add_argument("--max-clients", type=int)
    p.add_argument("--framing", choices=FRAMINGS)
    p.add_argument("--log-level")
    return p.parse_args(argv)


def build_settings(args: argparse.Namespace, base: Optional[Settings] = None) -> Settings:
    """Environment-backed settings with command-line flags layered on top."""
    base = base or Settings()
    overrides = {
        "HOST": args.host,
        "PORT": args.port,
        "MAX_CLIENTS": args.max_clients,
        "FRAMING": args.framing,
        "LOG_LEVEL": args.log_level,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    return Settings(**{**base.model_dump(), **overrides})


# -------------------------
# Main entrypoint
# -------------------------

def main(argv: Optional[Sequence[str]] = None) -> None:
    """Dispatch into the chosen mode; keep top-level code very small."""
    args = parse_args(argv)
    try:
        settings = build_settings(args)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise SystemExit(f"chatrelay: invalid configuration: {problems}")
    setup_logging(settings)

    if args.mode == "server":
        try:
            run_server(settings)
        except ChatRelayError as exc:
            raise SystemExit(f"chatrelay: {exc}")
        except KeyboardInterrupt:
            logger.info("Interrupted, exiting")

    elif args.mode == "client":
        if not args.name:
            raise SystemExit("--name is required for client mode")
        host = args.host or "127.0.0.1"
        try:
            run_client(host, settings.PORT, args.name, framing=settings.FRAMING)
        except OSError as exc:
            raise SystemExit(f"chatrelay: could not connect to {host}:{settings.PORT}: {exc}")
        except KeyboardInterrupt:
            pass


if __name__ == "__main__":
    main()
