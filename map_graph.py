from dataclasses import dataclass, field, asdict
from typing import List, Dict, Tuple, Optional, Any, Callable
import json
import os
from datetime import datetime, timezone

DIRECTION_MAPPING = {
    "n": "north",
    "north": "north",
    "s": "south",
    "south": "south",
    "e": "east",
    "east": "east",
    "w": "west",
    "west": "west",
    "u": "up",
    "up": "up",
    "d": "down",
    "down": "down",
    "ne": "northeast",
    "northeast": "northeast",
    "nw": "northwest",
    "northwest": "northwest",
    "se": "southeast",
    "southeast": "southeast",
    "sw": "southwest",
    "southwest": "southwest",
}

CANONICAL_DIRECTIONS = {
    "north",
    "south",
    "east",
    "west",
    "up",
    "down",
    "northeast",
    "northwest",
    "southeast",
    "southwest",
}

OPPOSITE_DIRECTIONS = {
    "north": "south",
    "south": "north",
    "east": "west",
    "west": "east",
    "up": "down",
    "down": "up",
    "northeast": "southwest",
    "southwest": "northeast",
    "northwest": "southeast",
    "southeast": "northwest",
}

NAMEDESC_PREFIX = "namedesc:"
PORTAL_PREFIX = "portal:"


def normalize_direction(token: str) -> str | None:
    """
    Normalizes a direction token ("n", "North", "sw") to its canonical name.
    Returns None if the token is not a recognized direction.
    """
    if not token:
        return None
    return DIRECTION_MAPPING.get(token.lower().strip())


def expand_direction(token: str) -> str:
    """Like normalize_direction, but passes unknown tokens through lowercased."""
    return normalize_direction(token) or token.lower().strip()


def get_opposite_direction(direction: str) -> str | None:
    return OPPOSITE_DIRECTIONS.get(expand_direction(direction))


def make_namedesc_key(name: str, description: str) -> str:
    return f"{NAMEDESC_PREFIX}{name}|||{description}"


def make_portal_key(portal_key: str) -> str:
    return f"{PORTAL_PREFIX}{portal_key}"


def is_namedesc_key(room_key: str) -> bool:
    return room_key.startswith(NAMEDESC_PREFIX)


def _union(existing: List[str], incoming: List[str]) -> List[str]:
    # Keeps first-seen order so exports stay stable between runs
    merged = list(existing)
    for value in incoming:
        if value not in merged:
            merged.append(value)
    return merged


@dataclass
class Room:
    key: str
    name: str
    description: str
    exits: List[str] = field(default_factory=list)  # Declared directions, not graph edges
    npcs: List[str] = field(default_factory=list)
    items: List[str] = field(default_factory=list)
    zone_id: Optional[int] = None
    zone_name: Optional[str] = None
    portal_key: Optional[str] = None
    zone_exit: bool = False
    terrain: str = "inside"
    flags: str = ""

    def merge_observation(
        self, exits: List[str], npcs: List[str], items: List[str]
    ) -> None:
        """Union newly observed details into the room. Never shrinks."""
        self.exits = _union(self.exits, exits)
        self.npcs = _union(self.npcs, npcs)
        self.items = _union(self.items, items)

    def exit_signature(self) -> frozenset:
        return frozenset(self.exits)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def __repr__(self) -> str:
        return f"Room(key='{self.key[:60]}', name='{self.name}', exits={self.exits})"


@dataclass
class Exit:
    from_room_key: str
    direction: str
    to_room_key: Optional[str] = None  # None: destination unknown (or blocked)
    description: str = ""
    look_description: Optional[str] = None
    is_door: bool = False
    door_name: Optional[str] = None
    is_locked: bool = False
    is_blocked: bool = False
    is_zone_exit: bool = False
    portal_key: Optional[str] = None  # Destination fingerprint if known at creation
    is_inferred: bool = False  # Reverse of an observed move, never traversed itself

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def absorb(self, other: "Exit") -> None:
        """Fold another record of the same edge into this one."""
        if self.to_room_key is None and other.to_room_key is not None:
            self.to_room_key = other.to_room_key
            self.is_blocked = False
        self.is_inferred = self.is_inferred and other.is_inferred
        self.description = self.description or other.description
        self.look_description = self.look_description or other.look_description
        self.is_door = self.is_door or other.is_door
        self.door_name = self.door_name or other.door_name
        self.is_locked = self.is_locked or other.is_locked
        self.is_zone_exit = self.is_zone_exit or other.is_zone_exit
        self.portal_key = self.portal_key or other.portal_key


class MapGraph:
    def __init__(self, logger=None):
        self.logger = logger
        # Keyed by composite "namedesc:" or fingerprint "portal:" keys
        self.rooms: Dict[str, Room] = {}
        self.exits: List[Exit] = []
        # Track how many times each recorded exit has been re-traversed
        self.exit_verifications: Dict[Tuple[str, str], int] = {}
        # Traversals that contradicted an already-recorded exit
        self.exit_conflicts: List[Dict[str, Any]] = []

    def clear(self) -> None:
        self.rooms.clear()
        self.exits.clear()
        self.exit_verifications.clear()
        self.exit_conflicts.clear()

    def add_room(self, room: Room) -> Room:
        """
        Add a room to the map under its own key.

        Returns:
            The stored room (the existing one if the key is already taken)
        """
        if room.key not in self.rooms:
            self.rooms[room.key] = room
        return self.rooms[room.key]

    def get_room(self, room_key: Optional[str]) -> Optional[Room]:
        if room_key is None:
            return None
        return self.rooms.get(room_key)

    def find_room_by_portal_key(self, portal_key: str) -> Optional[Room]:
        for room in self.rooms.values():
            if room.portal_key == portal_key:
                return room
        return None

    def find_rooms_by_name_and_description(
        self, name: str, description: str
    ) -> List[Room]:
        return [
            room
            for room in self.rooms.values()
            if room.name == name and room.description == description
        ]

    def get_exits_from(
        self, room_key: str, direction: Optional[str] = None
    ) -> List[Exit]:
        return [
            exit_
            for exit_ in self.exits
            if exit_.from_room_key == room_key
            and (direction is None or exit_.direction == direction)
        ]

    def get_exit(self, room_key: str, direction: str) -> Optional[Exit]:
        """First recorded exit from a room in a direction, if any."""
        for exit_ in self.exits:
            if exit_.from_room_key == room_key and exit_.direction == direction:
                return exit_
        return None

    def has_exit(self, room_key: str, direction: str) -> bool:
        return self.get_exit(room_key, direction) is not None

    def add_exit(self, exit_: Exit) -> Exit:
        if exit_.is_blocked and exit_.to_room_key is not None:
            raise ValueError(
                f"Blocked exit {exit_.from_room_key} -> {exit_.direction} cannot have a destination"
            )
        self.exits.append(exit_)
        return exit_

    def remove_exits(self, predicate: Callable[[Exit], bool]) -> List[Exit]:
        """Remove and return every exit matching the predicate."""
        removed = [exit_ for exit_ in self.exits if predicate(exit_)]
        if removed:
            self.exits = [exit_ for exit_ in self.exits if not predicate(exit_)]
        return removed

    def verify_exit(self, room_key: str, direction: str) -> int:
        verification_key = (room_key, direction)
        self.exit_verifications[verification_key] = (
            self.exit_verifications.get(verification_key, 0) + 1
        )
        return self.exit_verifications[verification_key]

    def record_conflict(
        self, existing: Exit, attempted_to_key: str, reason: str = "destination"
    ) -> Dict[str, Any]:
        from_room = self.get_room(existing.from_room_key)
        conflict = {
            "from_room_key": existing.from_room_key,
            "from_room": from_room.name if from_room else None,
            "direction": existing.direction,
            "existing_destination_key": existing.to_room_key,
            "new_destination_key": attempted_to_key,
            "reason": reason,
        }
        self.exit_conflicts.append(conflict)
        if self.logger:
            self.logger.warning(
                f"Exit conflict: {conflict['from_room']} -> {existing.direction} already leads elsewhere",
                extra={"event_type": "exit_conflict", **conflict},
            )
        return conflict

    def rename_room_key(self, old_key: str, new_key: str) -> int:
        """
        Move a room to a new key, rewriting every exit that references it.

        When new_key is already occupied the old room is merged into the
        existing one (declared exits, NPCs and items unioned) and deleted.
        Exits without a destination keep None; they are never turned into
        references to either key.

        Returns:
            Number of exit endpoints rewritten
        """
        if old_key == new_key or old_key not in self.rooms:
            return 0

        old_room = self.rooms.pop(old_key)
        if new_key in self.rooms:
            survivor = self.rooms[new_key]
            survivor.merge_observation(old_room.exits, old_room.npcs, old_room.items)
            merging = True
        else:
            old_room.key = new_key
            self.rooms[new_key] = old_room
            merging = False

        rewritten = 0
        for exit_ in self.exits:
            if exit_.from_room_key == old_key:
                exit_.from_room_key = new_key
                rewritten += 1
            if exit_.to_room_key is not None and exit_.to_room_key == old_key:
                exit_.to_room_key = new_key
                rewritten += 1

        for verification_key in list(self.exit_verifications):
            if verification_key[0] == old_key:
                count = self.exit_verifications.pop(verification_key)
                moved_key = (new_key, verification_key[1])
                self.exit_verifications[moved_key] = (
                    self.exit_verifications.get(moved_key, 0) + count
                )

        if merging:
            self._fold_duplicate_exits(new_key)

        if self.logger:
            self.logger.debug(
                f"Room key rewritten ({'merge' if merging else 'rename'}): {old_key[:60]} -> {new_key[:60]}",
                extra={
                    "event_type": "room_key_rewrite",
                    "old_key": old_key,
                    "new_key": new_key,
                    "merged": merging,
                    "exits_rewritten": rewritten,
                },
            )
        return rewritten

    def _fold_duplicate_exits(self, room_key: str) -> None:
        # After a merge two records may describe the same edge. Records that
        # disagree on a known destination are both kept.
        kept: Dict[Tuple[str, str], List[Exit]] = {}
        result: List[Exit] = []
        for exit_ in self.exits:
            if room_key not in (exit_.from_room_key, exit_.to_room_key):
                result.append(exit_)
                continue
            edge = (exit_.from_room_key, exit_.direction)
            twin = next(
                (
                    candidate
                    for candidate in kept.get(edge, [])
                    if candidate.to_room_key is None
                    or exit_.to_room_key is None
                    or candidate.to_room_key == exit_.to_room_key
                ),
                None,
            )
            if twin is not None:
                twin.absorb(exit_)
                continue
            kept.setdefault(edge, []).append(exit_)
            result.append(exit_)
        self.exits = result

    def get_stats(self) -> Dict[str, Any]:
        return {
            "totalRooms": len(self.rooms),
            "totalExits": len(self.exits),
            "fingerprintedRooms": sum(
                1 for room in self.rooms.values() if room.portal_key
            ),
            "zoneExitRooms": sum(1 for room in self.rooms.values() if room.zone_exit),
            "zoneExits": sum(1 for exit_ in self.exits if exit_.is_zone_exit),
            "blockedExits": sum(1 for exit_ in self.exits if exit_.is_blocked),
            "unknownDestinations": sum(
                1
                for exit_ in self.exits
                if exit_.to_room_key is None and not exit_.is_blocked
            ),
            "conflicts": len(self.exit_conflicts),
        }

    def to_dict(self, extra_stats: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Serialize the graph for JSON export.

        Args:
            extra_stats: Additional session statistics merged into "stats"

        Returns:
            {"rooms": [...], "exits": [...], "stats": {...}}
        """
        stats = self.get_stats()
        stats.update(extra_stats or {})
        stats["timestamp"] = datetime.now(timezone.utc).isoformat()
        return {
            "rooms": [room.to_dict() for room in self.rooms.values()],
            "exits": [exit_.to_dict() for exit_ in self.exits],
            "stats": stats,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], logger=None) -> "MapGraph":
        """
        Restore a MapGraph from an exported document.

        Raises:
            KeyError: If required sections are missing
            ValueError: If rooms or exits are structurally invalid
        """
        instance = cls(logger=logger)

        for required in ("rooms", "exits"):
            if required not in data:
                raise KeyError(f"Missing required field: {required}")

        for room_data in data["rooms"]:
            if "key" not in room_data or "name" not in room_data:
                raise ValueError(f"Room entry without key or name: {room_data}")
            room = Room(**room_data)
            if not all(isinstance(e, str) for e in room.exits):
                raise ValueError(f"Room {room.key} has non-string exits: {room.exits}")
            if room.key in instance.rooms:
                raise ValueError(f"Duplicate room key: {room.key}")
            instance.rooms[room.key] = room

        for exit_data in data["exits"]:
            exit_ = Exit(**exit_data)
            if exit_.from_room_key not in instance.rooms:
                raise ValueError(
                    f"Exit source room {exit_.from_room_key} does not exist"
                )
            if exit_.to_room_key is not None and exit_.to_room_key not in instance.rooms:
                raise ValueError(
                    f"Exit destination room {exit_.to_room_key} does not exist "
                    f"(from {exit_.from_room_key} via '{exit_.direction}')"
                )
            instance.add_exit(exit_)

        if logger:
            logger.info(
                f"Map restored: {len(instance.rooms)} rooms, {len(instance.exits)} exits",
                extra={
                    "event_type": "map_restoration",
                    "rooms": len(instance.rooms),
                    "exits": len(instance.exits),
                },
            )
        return instance

    def save_to_json(
        self, filepath: str, extra_stats: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Export the graph to a JSON file.

        Returns:
            True if the export succeeded, False otherwise
        """
        try:
            data = self.to_dict(extra_stats)
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)

            if self.logger:
                self.logger.info(
                    f"Exported map to {filepath}",
                    extra={
                        "event_type": "map_export",
                        "filepath": filepath,
                        "rooms": len(self.rooms),
                        "exits": len(self.exits),
                    },
                )
            return True

        except (OSError, TypeError) as e:
            if self.logger:
                self.logger.error(
                    f"Failed to export map: {e}",
                    extra={
                        "event_type": "map_export_error",
                        "filepath": filepath,
                        "error": str(e),
                    },
                )
            return False

    @classmethod
    def load_from_json(cls, filepath: str, logger=None) -> Optional["MapGraph"]:
        """
        Load an exported graph.

        Returns:
            MapGraph instance, or None if the file is missing or invalid
        """
        if not os.path.exists(filepath):
            if logger:
                logger.debug(
                    f"Map export not found: {filepath}",
                    extra={"event_type": "map_load_skip", "filepath": filepath},
                )
            return None

        try:
            with open(filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            if logger:
                logger.error(
                    f"Corrupted map export (invalid JSON): {filepath}",
                    extra={
                        "event_type": "map_load_error",
                        "filepath": filepath,
                        "error": str(e),
                        "error_type": "json_decode",
                    },
                )
            return None
        except (IOError, OSError) as e:
            if logger:
                logger.error(
                    f"Failed to read map export: {filepath}",
                    extra={
                        "event_type": "map_load_error",
                        "filepath": filepath,
                        "error": str(e),
                        "error_type": "file_read",
                    },
                )
            return None

        try:
            return cls.from_dict(data, logger=logger)
        except (KeyError, ValueError, TypeError) as e:
            if logger:
                logger.error(
                    f"Invalid map export structure: {filepath}",
                    extra={
                        "event_type": "map_load_error",
                        "filepath": filepath,
                        "error": str(e),
                        "error_type": "invalid_structure",
                    },
                )
            return None
