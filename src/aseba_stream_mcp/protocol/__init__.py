"""Protocol layer: length-prefixed message framing."""

from .framing import Frame, build_frame, build_raw_frame, parse_frame
