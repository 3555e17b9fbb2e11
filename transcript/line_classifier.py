"""
Line classification for MUD session transcripts.

Transcript lines are terminal output captured by an HTML-logging MUD client.
Each line carries a color marker that acts as a fixed semantic tag (room
title, exit list, body text, item, NPC) and literal prompt delimiters. This
module strips the markup and maps a line to at most one LineEvent by
evaluating EVENT_RULES top to bottom; the first rule that matches wins, so
the order of EVENT_RULES is part of the parser's contract.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

from map_graph import expand_direction

TITLE_COLOR = 'color="#00FFFF"'
EXITS_COLOR = 'color="#008080"'
BODY_COLOR = 'color="#C0C0C0"'
ITEM_COLOR = 'color="#008000"'
NPC_COLOR = 'color="#808000"'

DIRECTION_WORDS = (
    r"(north|south|east|west|up|down|northeast|northwest|southeast|southwest"
    r"|ne|nw|se|sw|n|s|e|w|u|d)"
)

_TAG_RE = re.compile(r"<[^>]*>")
_TITLE_TEXT_RE = re.compile(r'color="#00FFFF"[^>]*>([^<]*)', re.IGNORECASE)

PORTAL_RESULT_RE = re.compile(r"'([a-z]{6,})' briefly appears as a portal shimmers into view")
PORTAL_PERMANENT_FAILURES = (
    "Something prevents you from binding the portal",
    "Your magic fizzles out and dies",
)
PORTAL_TRANSIENT_FAILURE = "You lost your concentration!"
PORTAL_ATTEMPTS = ("cast 'bind portal minor'", "cast 'bind portal major'")

LOOK_DIRECTION_RE = re.compile(rf"^look\s+{DIRECTION_WORDS}$", re.IGNORECASE)
ZONE_BANNER_RE = re.compile(r"\[Current Zone:\s*([^\]]+)\]", re.IGNORECASE)
ALT_ZONE_BANNER_RE = re.compile(r"^Current zone[:\s]+(.+)$", re.IGNORECASE)
DEATH_RE = re.compile(r"^(You are dead!|You have been KILLED)", re.IGNORECASE)
RESPAWN_RE = re.compile(
    r"^(You awaken in|You have been resurrected|You are reborn)", re.IGNORECASE
)
PLAIN_LOOK_RE = re.compile(r"^(look|l)$", re.IGNORECASE)
MOVEMENT_RE = re.compile(rf"^{DIRECTION_WORDS}$", re.IGNORECASE)
FLEE_RE = re.compile(rf"^flee\s+{DIRECTION_WORDS}$", re.IGNORECASE)

INVALID_DIRECTION_PHRASES = (
    "Alas, you cannot go that way",
    "You cannot go that way",
    "You can't go that way",
)
DOOR_BARRIER_RE = re.compile(
    r"^The (.+?) (?:is|seems to be) (closed|locked)", re.IGNORECASE
)
BUMP_BARRIER_RE = re.compile(r"^You bump into (.+?)[.!]*$", re.IGNORECASE)

STATUS_LINE_RE = re.compile(r"\d+[HX]")


class Channel(Enum):
    TITLE = "title"
    EXITS = "exits"
    BODY = "body"
    ITEM = "item"
    NPC = "npc"
    PROMPT = "prompt"
    OTHER = "other"  # Colored with a color outside the vocabulary
    PLAIN = "plain"  # No color marker at all


class EventKind(Enum):
    PORTAL_RESULT = "portal_result"
    PORTAL_FAILURE = "portal_failure"
    PORTAL_LOST_CONCENTRATION = "portal_lost_concentration"
    PORTAL_ATTEMPT = "portal_attempt"
    LOOK_DIRECTION = "look_direction"
    ZONE_BANNER = "zone_banner"
    DEATH = "death"
    RESPAWN = "respawn"
    LOOK = "look"
    MOVEMENT = "movement"
    FLEE = "flee"
    BLOCKED_MOVEMENT = "blocked_movement"
    ROOM_TITLE = "room_title"


@dataclass
class LineEvent:
    kind: EventKind
    text: str
    direction: Optional[str] = None
    portal_key: Optional[str] = None
    zone_name: Optional[str] = None
    title: Optional[str] = None
    is_barrier: bool = False
    door_name: Optional[str] = None
    is_locked: bool = False


def strip_markup(raw_line: str) -> str:
    """Remove markup tags and decode the entities the client escapes."""
    text = _TAG_RE.sub("", raw_line)
    return text.replace("&lt;", "<").replace("&gt;", ">").replace("&amp;", "&")


def is_prompt(raw_line: str) -> bool:
    return "&lt;" in raw_line and "&gt;" in raw_line


def line_channel(raw_line: str) -> Channel:
    if is_prompt(raw_line):
        return Channel.PROMPT
    if TITLE_COLOR in raw_line:
        return Channel.TITLE
    if EXITS_COLOR in raw_line:
        return Channel.EXITS
    if BODY_COLOR in raw_line:
        return Channel.BODY
    if ITEM_COLOR in raw_line:
        return Channel.ITEM
    if NPC_COLOR in raw_line:
        return Channel.NPC
    if "color=" in raw_line:
        return Channel.OTHER
    return Channel.PLAIN


def extract_title(raw_line: str) -> Optional[str]:
    """Room name from a cyan line, or None if it fails title validation."""
    match = _TITLE_TEXT_RE.search(raw_line)
    title = match.group(1).strip() if match else strip_markup(raw_line).strip()
    if len(title) < 2 or title.startswith("<") or STATUS_LINE_RE.search(title):
        return None
    return title


def _match_portal_result(raw: str, clean: str) -> Optional[LineEvent]:
    match = PORTAL_RESULT_RE.search(clean)
    if match:
        return LineEvent(EventKind.PORTAL_RESULT, clean, portal_key=match.group(1))
    return None


def _match_portal_failure(raw: str, clean: str) -> Optional[LineEvent]:
    if any(phrase in clean for phrase in PORTAL_PERMANENT_FAILURES):
        return LineEvent(EventKind.PORTAL_FAILURE, clean)
    return None


def _match_lost_concentration(raw: str, clean: str) -> Optional[LineEvent]:
    if PORTAL_TRANSIENT_FAILURE in clean:
        return LineEvent(EventKind.PORTAL_LOST_CONCENTRATION, clean)
    return None


def _match_portal_attempt(raw: str, clean: str) -> Optional[LineEvent]:
    if any(phrase in clean for phrase in PORTAL_ATTEMPTS):
        return LineEvent(EventKind.PORTAL_ATTEMPT, clean)
    return None


def _match_look_direction(raw: str, clean: str) -> Optional[LineEvent]:
    match = LOOK_DIRECTION_RE.match(clean)
    if match:
        return LineEvent(
            EventKind.LOOK_DIRECTION, clean, direction=expand_direction(match.group(1))
        )
    return None


def _match_zone_banner(raw: str, clean: str) -> Optional[LineEvent]:
    match = ZONE_BANNER_RE.search(clean) or ALT_ZONE_BANNER_RE.match(clean)
    if match:
        return LineEvent(EventKind.ZONE_BANNER, clean, zone_name=match.group(1).strip())
    return None


def _match_death(raw: str, clean: str) -> Optional[LineEvent]:
    if DEATH_RE.match(clean):
        return LineEvent(EventKind.DEATH, clean)
    return None


def _match_respawn(raw: str, clean: str) -> Optional[LineEvent]:
    if RESPAWN_RE.match(clean):
        return LineEvent(EventKind.RESPAWN, clean)
    return None


def _match_plain_look(raw: str, clean: str) -> Optional[LineEvent]:
    if PLAIN_LOOK_RE.match(clean):
        return LineEvent(EventKind.LOOK, clean)
    return None


def _match_movement(raw: str, clean: str) -> Optional[LineEvent]:
    match = MOVEMENT_RE.match(clean)
    if match:
        return LineEvent(
            EventKind.MOVEMENT, clean, direction=expand_direction(match.group(1))
        )
    return None


def _match_flee(raw: str, clean: str) -> Optional[LineEvent]:
    match = FLEE_RE.match(clean)
    if match:
        return LineEvent(EventKind.FLEE, clean, direction=expand_direction(match.group(1)))
    return None


def _match_blocked_movement(raw: str, clean: str) -> Optional[LineEvent]:
    if any(clean.startswith(phrase) for phrase in INVALID_DIRECTION_PHRASES):
        return LineEvent(EventKind.BLOCKED_MOVEMENT, clean, is_barrier=False)

    door = DOOR_BARRIER_RE.match(clean)
    if door:
        return LineEvent(
            EventKind.BLOCKED_MOVEMENT,
            clean,
            is_barrier=True,
            door_name=door.group(1).strip(),
            is_locked=door.group(2).lower() == "locked",
        )

    if BUMP_BARRIER_RE.match(clean):
        return LineEvent(EventKind.BLOCKED_MOVEMENT, clean, is_barrier=True)
    return None


def _match_room_title(raw: str, clean: str) -> Optional[LineEvent]:
    if TITLE_COLOR not in raw:
        return None
    title = extract_title(raw)
    if title is None:
        return None
    return LineEvent(EventKind.ROOM_TITLE, clean, title=title)


EVENT_RULES: Tuple[Tuple[EventKind, Callable[[str, str], Optional[LineEvent]]], ...] = (
    (EventKind.PORTAL_RESULT, _match_portal_result),
    (EventKind.PORTAL_FAILURE, _match_portal_failure),
    (EventKind.PORTAL_LOST_CONCENTRATION, _match_lost_concentration),
    (EventKind.PORTAL_ATTEMPT, _match_portal_attempt),
    (EventKind.LOOK_DIRECTION, _match_look_direction),
    (EventKind.ZONE_BANNER, _match_zone_banner),
    (EventKind.DEATH, _match_death),
    (EventKind.RESPAWN, _match_respawn),
    (EventKind.LOOK, _match_plain_look),
    (EventKind.MOVEMENT, _match_movement),
    (EventKind.FLEE, _match_flee),
    (EventKind.BLOCKED_MOVEMENT, _match_blocked_movement),
    (EventKind.ROOM_TITLE, _match_room_title),
)


def classify_line(raw_line: str) -> Optional[LineEvent]:
    """
    Map a raw transcript line to at most one event.

    Returns:
        The event of the first matching rule, or None for lines the parser
        ignores (blank lines, body text, prompts, chatter).
    """
    if not raw_line or not raw_line.strip():
        return None

    clean = strip_markup(raw_line).strip()
    if not clean:
        return None

    for _kind, matcher in EVENT_RULES:
        event = matcher(raw_line, clean)
        if event is not None:
            return event
    return None
