# ABOUTME: Test fixtures module for transcript parsing tests
# ABOUTME: Provides HTML transcript line builders and sample room texts

from .transcripts import (
    CLEARING,
    CORRIDOR,
    TEMPLE,
    TEMPLE_SQUARE,
    bind_attempt,
    body,
    command,
    exit_list,
    item,
    npc,
    portal_result,
    prompt,
    room,
    title,
    transcript,
    zone_banner,
)

__all__ = [
    "CLEARING",
    "CORRIDOR",
    "TEMPLE",
    "TEMPLE_SQUARE",
    "bind_attempt",
    "body",
    "command",
    "exit_list",
    "item",
    "npc",
    "portal_result",
    "prompt",
    "room",
    "title",
    "transcript",
    "zone_banner",
]
