"""Transport layer: TCP stream connection and frame dispatch."""

from .errors import ConnectError, SendError
from .tcp_stream import ConnectionState, FramedStream
