"""Message frame builder and parser for the Aseba/Dashel stream protocol.

Frame layout::

    +----------------+----------------+----------------+------------------+
    | Length         | Source         | Type           | Payload          |
    | 2 bytes        | 2 bytes        | 2 bytes        | Length bytes     |
    +----------------+----------------+----------------+------------------+

- Length: little-endian byte count of the payload (no padding)
- Source: little-endian sender identifier
- Type: little-endian message kind identifier
- Payload: raw bytes; outbound messages are built from 16-bit
  little-endian words, so their length is always even
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

HEADER_SIZE = 6
FIELD_SIZE = 2
U16_MAX = 0xFFFF
MAX_PAYLOAD_SIZE = U16_MAX


def encode_u16(value: int) -> bytes:
    """Encode an unsigned 16-bit value as two little-endian bytes."""
    if not 0 <= value <= U16_MAX:
        raise ValueError(f"Value must be 0-{U16_MAX}, got {value}")
    return value.to_bytes(FIELD_SIZE, "little")


def decode_u16(data: bytes) -> int:
    """Decode two little-endian bytes into an unsigned 16-bit value."""
    if len(data) != FIELD_SIZE:
        raise ValueError(f"Expected {FIELD_SIZE} bytes, got {len(data)}")
    return int.from_bytes(data, "little")


@dataclass
class Frame:
    """A complete protocol frame."""

    source: int
    msg_type: int
    payload: bytes

    @property
    def length(self) -> int:
        return len(self.payload)

    def words(self) -> list[int]:
        """Decode the payload as a sequence of little-endian 16-bit words."""
        if self.length % FIELD_SIZE:
            raise ValueError(
                f"Payload of {self.length} bytes is not a whole number of words"
            )
        return [
            decode_u16(self.payload[i : i + FIELD_SIZE])
            for i in range(0, self.length, FIELD_SIZE)
        ]

    def __repr__(self) -> str:
        return (
            f"Frame(source={self.source}, type=0x{self.msg_type:04X}, "
            f"length={self.length}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'})"
        )


def build_raw_frame(source: int, msg_type: int, payload: bytes = b"") -> bytes:
    """Build a frame around an already encoded payload.

    Args:
        source: 16-bit sender identifier.
        msg_type: 16-bit message type.
        payload: Payload bytes, at most 65535 of them.

    Returns:
        Header followed by the payload, ready to write to the stream.
    """
    if len(payload) > MAX_PAYLOAD_SIZE:
        raise ValueError(
            f"Payload must be at most {MAX_PAYLOAD_SIZE} bytes, got {len(payload)}"
        )
    header = encode_u16(len(payload)) + encode_u16(source) + encode_u16(msg_type)
    return header + bytes(payload)


def build_frame(source: int, msg_type: int, words: Iterable[int] = ()) -> bytes:
    """Build a frame whose payload is a sequence of 16-bit words.

    Each word is written little-endian, so the declared length is twice
    the word count.
    """
    payload = b"".join(encode_u16(word) for word in words)
    return build_raw_frame(source, msg_type, payload)


def parse_header(data: bytes) -> tuple[int, int, int]:
    """Split a 6-byte header into ``(length, source, msg_type)``."""
    if len(data) != HEADER_SIZE:
        raise ValueError(f"Header must be {HEADER_SIZE} bytes, got {len(data)}")
    return (
        decode_u16(data[0:2]),
        decode_u16(data[2:4]),
        decode_u16(data[4:6]),
    )


def parse_frame(data: bytes) -> Frame | None:
    """Parse one complete frame from a buffer.

    Args:
        data: Bytes holding exactly one frame.

    Returns:
        A ``Frame``, or ``None`` if the buffer is shorter or longer than
        the length declared in its header.
    """
    if len(data) < HEADER_SIZE:
        return None

    length, source, msg_type = parse_header(data[:HEADER_SIZE])
    if len(data) != HEADER_SIZE + length:
        return None

    return Frame(source=source, msg_type=msg_type, payload=bytes(data[HEADER_SIZE:]))
