"""
ParserState dataclass for transcript parsing.

This module defines the single mutable working set of one parse: the
current-position pointer, pending movement and portal-binding records, zone
observations and the permanent record of issued room keys. One instance is
created per transcript; managers read and modify it directly while the map
itself lives in MapGraph.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Set, Optional, Tuple, Any
from collections import Counter


@dataclass
class ParserState:
    """
    Session state for a single transcript pass.

    Owns every piece of state that has to survive between lines. Managers
    access this state directly but keep their logic to themselves.
    """

    # Position
    line_number: int = 0
    current_room_key: Optional[str] = None
    pending_direction: Optional[str] = None  # Movement awaiting a room title
    last_transition: Optional[Tuple[str, str, str]] = None  # (from_key, direction, to_key)

    # Zones
    current_zone_name: Optional[str] = None
    default_zone_name: Optional[str] = None
    zone_mapping: Dict[str, str] = field(default_factory=dict)  # room key -> zone name

    # Portal binding
    binding_attempt_room_key: Optional[str] = None
    no_magic_rooms: Set[str] = field(default_factory=set)
    portal_retry_counts: Dict[str, int] = field(default_factory=dict)

    # Identity bookkeeping. Issued composite keys are never reused.
    issued_room_keys: Set[str] = field(default_factory=set)
    room_key_counters: Dict[str, int] = field(default_factory=dict)
    ambiguities: List[Dict[str, Any]] = field(default_factory=list)

    # Statistics
    death_count: int = 0
    event_counts: Counter = field(default_factory=Counter)

    def rewrite_room_key(self, old_key: str, new_key: str) -> None:
        """
        Point every key-holding field at new_key after a rename or merge.

        The current-position pointer moves only if it still equals old_key.
        """
        if self.current_room_key == old_key:
            self.current_room_key = new_key
        if self.binding_attempt_room_key == old_key:
            self.binding_attempt_room_key = new_key

        if old_key in self.zone_mapping:
            zone_name = self.zone_mapping.pop(old_key)
            self.zone_mapping.setdefault(new_key, zone_name)

        if old_key in self.no_magic_rooms:
            self.no_magic_rooms.discard(old_key)
            self.no_magic_rooms.add(new_key)

        if old_key in self.portal_retry_counts:
            count = self.portal_retry_counts.pop(old_key)
            self.portal_retry_counts[new_key] = max(
                count, self.portal_retry_counts.get(new_key, 0)
            )

        if self.last_transition:
            from_key, direction, to_key = self.last_transition
            self.last_transition = (
                new_key if from_key == old_key else from_key,
                direction,
                new_key if to_key == old_key else to_key,
            )

    def reset(self) -> None:
        """Clear all state so the instance can parse a fresh transcript."""
        self.line_number = 0
        self.current_room_key = None
        self.pending_direction = None
        self.last_transition = None
        self.current_zone_name = None
        self.default_zone_name = None
        self.zone_mapping.clear()
        self.binding_attempt_room_key = None
        self.no_magic_rooms.clear()
        self.portal_retry_counts.clear()
        self.issued_room_keys.clear()
        self.room_key_counters.clear()
        self.ambiguities.clear()
        self.death_count = 0
        self.event_counts.clear()

    def get_export_data(self) -> Dict[str, Any]:
        """
        Get a dictionary summary of the parse for export statistics.

        Returns:
            Dictionary suitable for JSON serialization
        """
        return {
            "linesProcessed": self.line_number,
            "defaultZone": self.default_zone_name,
            "zoneMappings": len(self.zone_mapping),
            "noMagicRooms": len(self.no_magic_rooms),
            "ambiguities": len(self.ambiguities),
            "deaths": self.death_count,
            "events": dict(self.event_counts),
        }
