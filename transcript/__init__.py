"""Transcript reading: markup stripping, line classification and lookahead scanners."""

from .line_classifier import Channel, EventKind, LineEvent, classify_line, strip_markup
from .scanners import RoomBlock, scan_room_block, scan_look_text

__all__ = [
    "Channel",
    "EventKind",
    "LineEvent",
    "classify_line",
    "strip_markup",
    "RoomBlock",
    "scan_room_block",
    "scan_look_text",
]
