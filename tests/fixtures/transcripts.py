# ABOUTME: Builders for HTML-logged MUD transcript lines used across the test suite
# ABOUTME: Produces colored title/body/exit/entity lines, prompts and command echoes

"""
Transcript builders.

The MUD client logs each line of terminal output as HTML with a font color
marking what the line is. These helpers produce such lines so tests can
describe a session as a readable list of rooms and commands.
"""

from typing import Iterable, List, Sequence

TITLE = "#00FFFF"
EXITS = "#008080"
BODY = "#C0C0C0"
ITEM = "#008000"
NPC = "#808000"


def colored(color: str, text: str) -> str:
    return f'<font color="{color}">{text}</font>'


def title(name: str) -> str:
    return colored(TITLE, name)


def body(text: str) -> str:
    return colored(BODY, text)


def exit_list(*directions: str) -> str:
    return colored(EXITS, f"[EXITS: {' '.join(directions)}]")


def item(text: str) -> str:
    return colored(ITEM, text)


def npc(text: str) -> str:
    return colored(NPC, text)


def prompt(hp: int = 100, mana: int = 120, moves: int = 80) -> str:
    return colored(BODY, f"&lt;{hp}H {mana}M {moves}V&gt;")


def command(text: str) -> str:
    """A command echoed by the client, as plain text."""
    return text


def zone_banner(zone_name: str) -> str:
    return f"[Current Zone: {zone_name}]"


def bind_attempt(kind: str = "minor") -> str:
    return f"cast 'bind portal {kind}'"


def portal_result(portal_key: str) -> str:
    return f"'{portal_key}' briefly appears as a portal shimmers into view."


def room(
    name: str,
    description: Sequence[str] | str,
    exits: Iterable[str] = (),
    npcs: Iterable[str] = (),
    items: Iterable[str] = (),
) -> List[str]:
    """All lines shown on entering a room, ending with a prompt."""
    if isinstance(description, str):
        description = [description]
    lines = [title(name)]
    lines.extend(body(text) for text in description)
    lines.append(exit_list(*exits))
    lines.extend(npc(text) for text in npcs)
    lines.extend(item(text) for text in items)
    lines.append(prompt())
    return lines


def transcript(*parts) -> List[str]:
    """Flatten rooms (lists of lines) and single lines into one transcript."""
    lines: List[str] = []
    for part in parts:
        if isinstance(part, str):
            lines.append(part)
        else:
            lines.extend(part)
    return lines


CORRIDOR = "A long stone corridor stretches to the north and south."
CLEARING = "A quiet clearing surrounded by tall pine trees and ferns."
TEMPLE = "The temple is vast, with marble pillars rising into darkness above."
TEMPLE_SQUARE = "A wide square paved with white stone lies before the temple steps."
