"""
Bounded lookahead scanners.

Several events need the lines that follow them: a room title is followed by
its description, exit list and the NPCs/items present; a "look <direction>"
command is followed by the text describing that exit. Each scanner reads
forward from a start index, never further than its named cap, and returns
(lines_consumed, value) so the caller can advance its cursor.
"""

import re
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from map_graph import expand_direction
from transcript.line_classifier import (
    BODY_COLOR,
    EXITS_COLOR,
    ITEM_COLOR,
    NPC_COLOR,
    PORTAL_RESULT_RE,
    TITLE_COLOR,
    is_prompt,
    strip_markup,
)

# Lookahead caps, in lines
DESCRIPTION_LOOKAHEAD = 50
EXIT_LIST_LOOKAHEAD = 30
ENTITY_LOOKAHEAD = 20
LOOK_TEXT_LOOKAHEAD = 25
LOOK_TEXT_MAX_LINES = 10

EXIT_LIST_RE = re.compile(r"^\[EXITS:\s*(.+?)\s*\]", re.IGNORECASE)

# Commands and chatter echoed between description lines
COMMAND_ECHO_RE = re.compile(
    r"^(look|exits|cast|who|The last remnants|Lightning begins|arrives from|leaves|says|orates)",
    re.IGNORECASE,
)
SYSTEM_MESSAGE_RE = re.compile(
    r"^(Room scan complete|Found exits|You see|You look|Stairs lead)", re.IGNORECASE
)
VITALS_PROMPT_RE = re.compile(r"^\d+H \d+M \d+V", re.IGNORECASE)
ZONE_INFO_RE = re.compile(r"^\[Current Zone:", re.IGNORECASE)

# Dynamic presence lines that are not part of a room's fixed description
RECURRING_NPC_RE = re.compile(
    r"^(The prostitute|The bartender|A receptionist|A Guard|A guard|The guard)",
    re.IGNORECASE,
)
NPC_PRESENCE_RE = re.compile(
    r"^(A|An|The)\s+\w+\s+(is|are|stands|sits|sleeps)\s+here", re.IGNORECASE
)
ITEM_PRESENCE_RE = re.compile(
    r"^(A|An|The)\s+\w+\s+(lies|floats|hangs)\s+here", re.IGNORECASE
)
NPC_HERE_RE = re.compile(r"is here|stands here|sitting here|sleeping here", re.IGNORECASE)


@dataclass
class RoomBlock:
    description: str = ""
    exits: List[str] = field(default_factory=list)
    npcs: List[str] = field(default_factory=list)
    items: List[str] = field(default_factory=list)


def _is_dynamic_line(clean: str) -> bool:
    return bool(
        COMMAND_ECHO_RE.match(clean)
        or SYSTEM_MESSAGE_RE.match(clean)
        or VITALS_PROMPT_RE.match(clean)
        or RECURRING_NPC_RE.match(clean)
        or NPC_PRESENCE_RE.match(clean)
        or ITEM_PRESENCE_RE.match(clean)
    )


def scan_description(lines: Sequence[str], start: int) -> Tuple[int, str]:
    """
    Collect the gray description block that follows a room title.

    Starts at `start` (the line after the title) and stops at the exit list,
    a prompt, a portal result, colored text once the description has begun,
    or after DESCRIPTION_LOOKAHEAD lines.

    Returns:
        (lines consumed, description text); the text is empty if no gray
        body line was found
    """
    parts: List[str] = []
    in_description = False
    index = start

    while index < len(lines) and index - start < DESCRIPTION_LOOKAHEAD:
        raw = lines[index]
        clean = strip_markup(raw).strip()

        if EXITS_COLOR in raw or is_prompt(raw):
            break
        if in_description and "color=" in raw and BODY_COLOR not in raw:
            break
        if PORTAL_RESULT_RE.search(clean):
            break

        if BODY_COLOR in raw:
            in_description = True

        if in_description and clean and not _is_dynamic_line(clean):
            parts.append(clean)

        index += 1

    return index - start, " ".join(parts).strip()


def scan_exit_list(lines: Sequence[str], start: int) -> Tuple[int, List[str]]:
    """
    Find the "[EXITS: n e s]" line within EXIT_LIST_LOOKAHEAD lines.

    Returns:
        (lines consumed up to and including the exit line, expanded
        directions), or (0, []) when no exit list is found
    """
    end = min(start + EXIT_LIST_LOOKAHEAD, len(lines))
    for index in range(start, end):
        clean = strip_markup(lines[index]).strip()
        match = EXIT_LIST_RE.match(clean)
        if match:
            directions = [expand_direction(token) for token in match.group(1).split()]
            return index - start + 1, directions
    return 0, []


def scan_entities(
    lines: Sequence[str], start: int, description_end: int
) -> Tuple[int, Tuple[List[str], List[str]]]:
    """
    Collect NPCs (olive lines, or gray "is here" lines) and items (green
    lines) from the title line through ENTITY_LOOKAHEAD lines past the end
    of the description, stopping at the first prompt.

    Returns:
        (lines scanned, (npcs, items))
    """
    npcs: List[str] = []
    items: List[str] = []
    end = min(description_end + ENTITY_LOOKAHEAD, len(lines))
    index = start

    while index < end:
        raw = lines[index]
        if is_prompt(raw):
            break
        clean = strip_markup(raw).strip()
        if clean:
            if ITEM_COLOR in raw:
                items.append(clean)
            elif NPC_COLOR in raw:
                npcs.append(clean)
            elif BODY_COLOR in raw and NPC_HERE_RE.search(clean):
                npcs.append(clean)
        index += 1

    return index - start, (npcs, items)


def scan_room_block(lines: Sequence[str], title_index: int) -> Tuple[int, RoomBlock]:
    """
    Read everything that belongs to the room whose title is at title_index.

    Returns:
        (lines consumed after the title by the description, RoomBlock). The
        count stops at the exit list so the caller resumes there, matching
        how the description scan terminates.
    """
    consumed, description = scan_description(lines, title_index + 1)
    description_end = title_index + 1 + consumed
    _, exits = scan_exit_list(lines, description_end)
    _, (npcs, items) = scan_entities(lines, title_index, description_end)
    return consumed, RoomBlock(description=description, exits=exits, npcs=npcs, items=items)


def scan_look_text(lines: Sequence[str], start: int) -> Tuple[int, str]:
    """
    Collect the text shown after a "look <direction>" command.

    Stops at a room title, exit list, prompt, command echo or zone banner;
    reads at most LOOK_TEXT_MAX_LINES text lines within LOOK_TEXT_LOOKAHEAD
    lines.

    Returns:
        (lines consumed, look text)
    """
    parts: List[str] = []
    index = start

    while index < len(lines):
        raw = lines[index]
        clean = strip_markup(raw).strip()

        if (
            TITLE_COLOR in raw
            or EXITS_COLOR in raw
            or is_prompt(raw)
            or COMMAND_ECHO_RE.match(clean)
            or EXIT_LIST_RE.match(clean)
            or ZONE_INFO_RE.match(clean)
        ):
            break

        if (BODY_COLOR in raw or ITEM_COLOR in raw or NPC_COLOR in raw) and clean:
            if not (
                SYSTEM_MESSAGE_RE.match(clean)
                or RECURRING_NPC_RE.match(clean)
                or VITALS_PROMPT_RE.match(clean)
            ):
                parts.append(clean)

        index += 1
        if len(parts) >= LOOK_TEXT_MAX_LINES or index - start >= LOOK_TEXT_LOOKAHEAD:
            break

    return index - start, " ".join(parts).strip()
