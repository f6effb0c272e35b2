"""Errors surfaced to callers of the stream transport."""


class ConnectError(ConnectionError):
    """Host resolution failed or the connection was refused or timed out."""


class SendError(ConnectionError):
    """An outbound frame could not be written to the stream."""
