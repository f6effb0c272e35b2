"""Tests for message frame building and parsing."""

import random

import pytest

from aseba_stream_mcp.protocol.framing import (
    HEADER_SIZE,
    Frame,
    build_frame,
    build_raw_frame,
    decode_u16,
    encode_u16,
    parse_frame,
    parse_header,
)


def test_encode_u16_little_endian():
    """0x1234 must be written low byte first."""
    assert encode_u16(0x1234) == bytes([0x34, 0x12])


def test_decode_u16_little_endian():
    assert decode_u16(bytes([0x34, 0x12])) == 0x1234


def test_encode_u16_bounds():
    """Values outside 0-65535 should raise."""
    with pytest.raises(ValueError):
        encode_u16(0x10000)
    with pytest.raises(ValueError):
        encode_u16(-1)


def test_build_frame_layout():
    """Verify byte layout for source=7, type=0x0042, words [1, 2, 3].

    Structure: [len_lo len_hi] [src_lo src_hi] [type_lo type_hi] [payload]
    """
    frame = build_frame(7, 0x0042, [1, 2, 3])
    assert frame == bytes([
        0x06, 0x00,  # length: 6 bytes
        0x07, 0x00,  # source
        0x42, 0x00,  # type
        0x01, 0x00, 0x02, 0x00, 0x03, 0x00,
    ])


def test_build_frame_length_is_twice_word_count():
    frame = build_frame(1, 2, [0xFFFF] * 10)
    length, _, _ = parse_header(frame[:HEADER_SIZE])
    assert length == 20
    assert len(frame) == HEADER_SIZE + 20


def test_build_frame_empty_payload():
    """A message with no words is just the header."""
    assert build_frame(0x1234, 0xABCD) == bytes([0, 0, 0x34, 0x12, 0xCD, 0xAB])


def test_build_frame_rejects_large_word():
    with pytest.raises(ValueError):
        build_frame(1, 1, [0x10000])


def test_build_raw_frame_rejects_oversized_payload():
    with pytest.raises(ValueError):
        build_raw_frame(1, 1, bytes(0x10000))


def test_build_raw_frame_allows_odd_length():
    frame = build_raw_frame(3, 4, b"\x01\x02\x03")
    assert frame[:2] == bytes([3, 0])
    assert frame[HEADER_SIZE:] == b"\x01\x02\x03"


def test_roundtrip_parse():
    """Build a frame and parse it back."""
    words = [0, 1, 0x1234, 0xFFFF]
    parsed = parse_frame(build_frame(9, 0xA001, words))

    assert parsed is not None
    assert parsed.source == 9
    assert parsed.msg_type == 0xA001
    assert parsed.length == 2 * len(words)
    assert parsed.words() == words


_rng = random.Random(0x5EED)
ROUND_TRIP_CASES = [
    (0, 0, []),
    (0xFFFF, 0xFFFF, [0xFFFF]),
    (0, 0xFFFF, [0, 0xFFFF, 0x1234]),
    (0xFFFF, 0, [0x8000] * 32767),
] + [
    (
        _rng.randrange(0x10000),
        _rng.randrange(0x10000),
        [_rng.randrange(0x10000) for _ in range(_rng.randrange(64))],
    )
    for _ in range(20)
]


@pytest.mark.parametrize("source, msg_type, words", ROUND_TRIP_CASES)
def test_roundtrip_boundary_and_random(source, msg_type, words):
    """Any valid source, type and word sequence survives build then parse."""
    parsed = parse_frame(build_frame(source, msg_type, words))

    assert parsed is not None
    assert (parsed.length, parsed.source, parsed.msg_type, parsed.words()) == (
        2 * len(words), source, msg_type, words,
    )


def test_parse_truncated_payload():
    """A buffer shorter than its declared length is not a frame."""
    data = build_frame(1, 2, [3, 4])
    assert parse_frame(data[:-1]) is None


def test_parse_trailing_bytes():
    data = build_frame(1, 2, [3]) + b"\x00"
    assert parse_frame(data) is None


def test_parse_short_header():
    assert parse_frame(b"\x00\x00\x01") is None


def test_frame_words_odd_length():
    frame = Frame(source=1, msg_type=2, payload=b"\x01\x02\x03")
    with pytest.raises(ValueError):
        frame.words()


def test_frame_repr():
    """Frame repr should be readable."""
    r = repr(Frame(source=7, msg_type=0x42, payload=b"\x01\x00"))
    assert "0x0042" in r
    assert "01 00" in r
