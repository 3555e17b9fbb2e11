"""
ExitManager for the transcript parser.

Builds the exit graph from confirmed movement:
- forward exit for every transition between two different rooms
- inferred reverse exit, unless the destination already has an exit in the
  opposite direction (an observed exit is never replaced by an assumed one,
  while a later observed move re-points an inferred exit)
- blocked exits for movement stopped by a real barrier
- descriptive detail from "look <direction>" attached to recorded exits
"""

import re
from typing import Optional

from map_graph import Exit, get_opposite_direction
from managers.base_manager import BaseManager
from transcript.line_classifier import LineEvent

DOOR_NAME_RE = re.compile(
    r"\b(?:a|an|the)\s+([^.!]*?\b(?:door|gate|portal|entrance|hatch|archway|opening))\b",
    re.IGNORECASE,
)
BARRIER_WORDS_RE = re.compile(r"locked|closed|barred|sealed|blocked|guarded", re.IGNORECASE)
LOCKED_WORDS_RE = re.compile(r"locked|barred|sealed", re.IGNORECASE)


class ExitManager(BaseManager):
    """
    Records exits between rooms.

    Responsibilities:
    - Forward exits with conflict detection against observed exits
    - Reverse-exit inference
    - Blocked (impassable) exits
    - Look descriptions, door names and locked flags
    """

    def __init__(self, logger, config, state, graph):
        super().__init__(logger, config, state, graph, "exit_manager")
        self.reset()

    def reset(self) -> None:
        self.forward_recorded = 0
        self.reverse_inferred = 0
        self.reverse_skipped = 0
        self.inferred_corrected = 0
        self.verified = 0
        self.blocked_recorded = 0
        self.look_details_attached = 0

    def record_transition(self, from_key: str, direction: str, to_key: str) -> Optional[Exit]:
        """
        Record movement from one room to another.

        Args:
            from_key: Room the player left
            direction: Canonical direction moved
            to_key: Room the player arrived in

        Returns:
            The forward exit (new or already recorded), or None when the
            movement contradicts an observed exit or stays in the same room
        """
        if from_key == to_key:
            return None

        self.state.last_transition = (from_key, direction, to_key)
        forward = self._record_forward(from_key, direction, to_key)
        if forward is not None:
            self._record_reverse(from_key, direction, to_key)
        return forward

    def _record_forward(self, from_key: str, direction: str, to_key: str) -> Optional[Exit]:
        destination = self.graph.get_room(to_key)
        destination_portal = destination.portal_key if destination else None
        existing = self.graph.get_exits_from(from_key, direction)

        for exit_ in existing:
            if exit_.to_room_key == to_key:
                exit_.is_inferred = False
                count = self.graph.verify_exit(from_key, direction)
                self.verified += 1
                self.log_debug(
                    f"Exit verified: {self.room_label(from_key)} --[{direction}]--> {self.room_label(to_key)}",
                    event_type="exit_verified",
                    verifications=count,
                )
                return exit_

        for exit_ in existing:
            if exit_.to_room_key is None:
                # Known exit with unknown (or previously blocked) destination
                exit_.to_room_key = to_key
                exit_.is_blocked = False
                exit_.portal_key = exit_.portal_key or destination_portal
                self.log_info(
                    f"{self.room_label(from_key)} --[{direction}]--> {self.room_label(to_key)} (destination resolved)",
                    event_type="exit_recorded",
                    from_room_key=from_key,
                    to_room_key=to_key,
                    direction=direction,
                )
                return exit_

        for exit_ in existing:
            if exit_.is_inferred:
                # Observed movement replaces a guessed reverse
                previous_key = exit_.to_room_key
                exit_.to_room_key = to_key
                exit_.is_inferred = False
                exit_.portal_key = destination_portal
                self.inferred_corrected += 1
                self.log_info(
                    f"{self.room_label(from_key)} --[{direction}]--> {self.room_label(to_key)} "
                    f"(replaces inferred exit to {self.room_label(previous_key)})",
                    event_type="inferred_exit_corrected",
                    from_room_key=from_key,
                    to_room_key=to_key,
                    previous_to_room_key=previous_key,
                    direction=direction,
                )
                return exit_

        if existing:
            self.graph.record_conflict(existing[0], to_key)
            return None

        exit_ = self.graph.add_exit(
            Exit(
                from_room_key=from_key,
                direction=direction,
                to_room_key=to_key,
                portal_key=destination_portal,
            )
        )
        self.forward_recorded += 1
        self.log_info(
            f"{self.room_label(from_key)} --[{direction}]--> {self.room_label(to_key)}",
            event_type="exit_recorded",
            from_room_key=from_key,
            to_room_key=to_key,
            direction=direction,
        )
        return exit_

    def _record_reverse(self, from_key: str, direction: str, to_key: str) -> Optional[Exit]:
        opposite = get_opposite_direction(direction)
        if opposite is None:
            return None

        if self.graph.has_exit(to_key, opposite):
            self.reverse_skipped += 1
            self.log_debug(
                f"Reverse exit not inferred: {self.room_label(to_key)} already has a recorded {opposite} exit",
                event_type="reverse_exit_skipped",
                room_key=to_key,
                direction=opposite,
            )
            return None

        origin = self.graph.get_room(from_key)
        exit_ = self.graph.add_exit(
            Exit(
                from_room_key=to_key,
                direction=opposite,
                to_room_key=from_key,
                portal_key=origin.portal_key if origin else None,
                is_inferred=True,
            )
        )
        self.reverse_inferred += 1
        self.log_debug(
            f"Reverse exit inferred: {self.room_label(to_key)} --[{opposite}]--> {self.room_label(from_key)}",
            event_type="reverse_exit_inferred",
        )
        return exit_

    def record_blocked(self, room_key: str, direction: str, event: LineEvent) -> Optional[Exit]:
        """
        Record an exit that exists but could not be traversed.

        An already-recorded exit in that direction is left pointing where it
        points; only door details are added to it.
        """
        existing = self.graph.get_exit(room_key, direction)
        if existing is not None:
            existing.is_door = existing.is_door or event.door_name is not None
            existing.door_name = existing.door_name or event.door_name
            existing.is_locked = existing.is_locked or event.is_locked
            return existing

        exit_ = self.graph.add_exit(
            Exit(
                from_room_key=room_key,
                direction=direction,
                to_room_key=None,
                description=event.text,
                is_door=True,
                door_name=event.door_name,
                is_locked=event.is_locked,
                is_blocked=True,
            )
        )
        self.blocked_recorded += 1
        self.log_info(
            f"{self.room_label(room_key)} --[{direction}]--| {event.text}",
            event_type="exit_blocked",
            room_key=room_key,
            direction=direction,
            door_name=event.door_name,
            locked=event.is_locked,
        )
        return exit_

    def attach_look_details(self, room_key: str, direction: str, look_text: str) -> Optional[Exit]:
        """
        Attach "look <direction>" text to the most recent matching exit.

        Only exits without a look description yet are considered. Door name,
        door flag and locked flag are inferred from the text.

        Returns:
            The updated exit, or None if no recorded exit matched
        """
        if not look_text:
            return None

        candidates = [
            exit_
            for exit_ in self.graph.get_exits_from(room_key, direction)
            if not exit_.look_description
        ]
        if not candidates:
            self.log_debug(
                f"No recorded {direction} exit from {self.room_label(room_key)} for look text",
                event_type="look_detail_unmatched",
            )
            return None

        exit_ = candidates[-1]
        exit_.look_description = look_text

        door_match = DOOR_NAME_RE.search(look_text)
        if door_match:
            exit_.is_door = True
            exit_.door_name = exit_.door_name or door_match.group(1).strip()
        if BARRIER_WORDS_RE.search(look_text):
            exit_.is_door = True
        if LOCKED_WORDS_RE.search(look_text):
            exit_.is_locked = True

        self.look_details_attached += 1
        self.log_debug(
            f"Exit description [{direction}]: {look_text[:60]}",
            event_type="look_detail_attached",
            room_key=room_key,
            direction=direction,
            door_name=exit_.door_name,
        )
        return exit_

    def get_status(self):
        status = super().get_status()
        status.update(
            {
                "forward_recorded": self.forward_recorded,
                "reverse_inferred": self.reverse_inferred,
                "reverse_skipped": self.reverse_skipped,
                "inferred_corrected": self.inferred_corrected,
                "verified": self.verified,
                "blocked_recorded": self.blocked_recorded,
                "look_details_attached": self.look_details_attached,
                "conflicts": len(self.graph.exit_conflicts),
            }
        )
        return status
