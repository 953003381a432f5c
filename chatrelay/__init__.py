"""
chatrelay — multi-client text chat relay over TCP.

Clients connect, send a display name as their first bytes, then every message
they send is masked for banned words and relayed to all other connected
clients as b"<name>: <text>". Joins and leaves are announced to everyone.

Configure through CHATRELAY_* environment variables (see settings.py) or the
flags of run_node.
"""
__all__ = ["errors", "filtering", "framing", "logs", "messages", "node", "registry", "run_node", "settings"]
