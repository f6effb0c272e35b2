"""MCP server entry point for an Aseba/Dashel stream endpoint.

Exposes the framed TCP stream as tools and resources via the Model
Context Protocol using the official Python MCP SDK with stdio transport.
The server owns the polling loop: ``receive_messages`` steps the stream
and drains frames collected by the message callback.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from typing import Any

from mcp.server.fastmcp import FastMCP

from .protocol.framing import Frame
from .transport.errors import ConnectError, SendError
from .transport.tcp_stream import DEFAULT_PORT, FramedStream

logger = logging.getLogger(__name__)

INBOX_SIZE = 256

mcp = FastMCP(
    "aseba-stream",
    instructions="MCP server for Aseba/Dashel length-prefixed TCP streams",
)

# Global connection state
_stream: FramedStream | None = None
_inbox: deque[Frame] = deque(maxlen=INBOX_SIZE)
_disconnection_detected = False


def _on_message(frame: Frame) -> None:
    if len(_inbox) == _inbox.maxlen:
        logger.warning("Inbox full, dropping oldest message")
    _inbox.append(frame)


def _on_disconnection() -> None:
    global _disconnection_detected
    _disconnection_detected = True
    logger.info("Remote endpoint closed the connection")


def _get_stream() -> FramedStream:
    """Get the active stream, raising if not connected."""
    if _stream is None or not _stream.connected:
        raise RuntimeError(
            "Not connected to an endpoint. Use the 'connect' tool first."
        )
    return _stream


def _frame_to_dict(frame: Frame) -> dict[str, Any]:
    result: dict[str, Any] = {
        "source": frame.source,
        "type": frame.msg_type,
        "length": frame.length,
        "payload": list(frame.payload),
    }
    if frame.length % 2 == 0:
        result["words"] = frame.words()
    return result


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(host: str = "", port: int = DEFAULT_PORT) -> dict[str, Any]:
    """Open a TCP connection to an Aseba endpoint.

    Args:
        host: Host name or address. Empty uses the local hostname.
        port: TCP port (default 33333).
    """
    global _stream, _disconnection_detected
    if _stream is not None and _stream.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "endpoint": _stream.endpoint,
        }

    stream = FramedStream(
        message_callback=_on_message,
        disconnection_callback=_on_disconnection,
    )
    try:
        stream.connect(host, port)
    except ConnectError as e:
        return {"connected": False, "error": str(e)}

    _stream = stream
    _inbox.clear()
    _disconnection_detected = False
    return {"connected": True, "endpoint": stream.endpoint}


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the connection to the endpoint."""
    global _stream
    if _stream is None:
        return {"disconnected": True}
    _stream.disconnect()
    _stream = None
    return {"disconnected": True}


@mcp.tool()
def get_status() -> dict[str, Any]:
    """Report connection state and how many messages are waiting."""
    connected = _stream is not None and _stream.connected
    return {
        "connected": connected,
        "endpoint": _stream.endpoint if connected else "",
        "pending_messages": len(_inbox),
        "disconnection_detected": _disconnection_detected,
    }


# ─── MESSAGE TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def send_message(
    source: int,
    msg_type: int,
    payload: list[int] | None = None,
) -> dict[str, Any]:
    """Send one message built from 16-bit words.

    Args:
        source: Sender identifier (0-65535).
        msg_type: Message type (0-65535).
        payload: 16-bit words, each 0-65535.
    """
    words = payload or []
    stream = _get_stream()
    try:
        stream.send(source, msg_type, words)
    except (SendError, ValueError) as e:
        return {"sent": False, "error": str(e)}
    return {"sent": True, "length": len(words) * 2}


@mcp.tool()
def receive_messages(max_messages: int = 32, steps: int = 64) -> dict[str, Any]:
    """Poll the stream and return received messages.

    Args:
        max_messages: Maximum number of messages to return.
        steps: Number of non-blocking polls to perform first.
    """
    if _stream is not None:
        for _ in range(steps):
            if not _stream.connected:
                break
            _stream.step()

    messages = []
    while _inbox and len(messages) < max_messages:
        messages.append(_frame_to_dict(_inbox.popleft()))

    return {
        "messages": messages,
        "remaining": len(_inbox),
        "connected": _stream is not None and _stream.connected,
    }


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("aseba://connection/status")
def resource_status() -> str:
    """Current connection status."""
    return json.dumps(get_status())


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
