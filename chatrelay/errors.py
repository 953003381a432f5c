"""
Exception classes for the relay.

Only listener-level problems are raised out of the server. Errors that belong
to a single connection are logged by its handler and never leave it.
"""


class ChatRelayError(Exception):
    """Base class for relay errors."""

    pass


class TransportSetupError(ChatRelayError):
    """
    Binding or listening on the configured address failed.

    Fatal: the server cannot start.
    """

    pass


class ListenerError(ChatRelayError):
    """
    Accepting a connection failed.

    Ends the listener loop; raised out of serve_forever().
    """

    pass


class CapacityExceeded(ChatRelayError):
    """
    The client registry is full.

    The new connection is rejected and closed; the listener keeps going.
    """

    def __init__(self, capacity: int) -> None:
        super().__init__(f"Client registry is full ({capacity} clients)")
        self.capacity = capacity


class DispatchError(ChatRelayError):
    """
    A connection handler could not be started.

    The accepted connection is discarded; the listener keeps going.
    """

    pass
