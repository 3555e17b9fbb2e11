"""
PersistenceManager for the transcript parser.

Flushes the finished map to the storage service: every room first, building
a room key -> stored id map, then every exit with its endpoints translated
through that map. Failures are per item; one rejected room or exit never
aborts the rest of the flush.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from api_client import BackendError
from map_graph import Exit, Room
from managers.base_manager import BaseManager


@dataclass
class PersistenceResult:
    rooms_saved: int = 0
    rooms_failed: int = 0
    exits_saved: int = 0
    exits_failed: int = 0
    exits_skipped: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class PersistenceManager(BaseManager):
    """
    Saves rooms and exits through a BackendClient.

    Responsibilities:
    - Room payloads, with the default zone for rooms without one
    - Exit payloads with stored ids for both endpoints; an exit whose known
      destination was not saved is skipped
    - Per-item failure accounting
    """

    def __init__(self, logger, config, state, graph):
        super().__init__(logger, config, state, graph, "persistence_manager")
        self.reset()

    def reset(self) -> None:
        self.room_ids: Dict[str, Any] = {}
        self.last_result: Optional[PersistenceResult] = None

    def save(self, client, default_zone_id: Optional[int] = None) -> PersistenceResult:
        """
        Save the whole map.

        Args:
            client: BackendClient (or anything with create_room/create_exit)
            default_zone_id: Zone for rooms the zone pass left without one

        Returns:
            PersistenceResult with saved/failed/skipped counts
        """
        result = PersistenceResult()
        self.room_ids = {}

        for room in self.graph.rooms.values():
            try:
                created = client.create_room(self._room_payload(room, default_zone_id))
            except BackendError as e:
                result.rooms_failed += 1
                self.log_error(
                    f"Failed to save room {room.name}: {e}",
                    event_type="room_save_failed",
                    room_key=room.key,
                )
                continue
            self.room_ids[room.key] = created["id"]
            result.rooms_saved += 1

        for exit_ in self.graph.exits:
            from_id = self.room_ids.get(exit_.from_room_key)
            if from_id is None:
                result.exits_skipped += 1
                self.log_warning(
                    f"Skipping {exit_.direction} exit: source room was not saved",
                    event_type="exit_save_skipped",
                    from_room_key=exit_.from_room_key,
                )
                continue

            to_id = None
            if exit_.to_room_key is not None:
                to_id = self.room_ids.get(exit_.to_room_key)
                if to_id is None:
                    # A known destination must not be stored as an unknown one
                    result.exits_skipped += 1
                    self.log_warning(
                        f"Skipping {exit_.direction} exit from {self.room_label(exit_.from_room_key)}: "
                        f"destination room was not saved",
                        event_type="exit_save_skipped",
                        from_room_key=exit_.from_room_key,
                        to_room_key=exit_.to_room_key,
                    )
                    continue

            try:
                client.create_exit(self._exit_payload(exit_, from_id, to_id))
            except BackendError as e:
                result.exits_failed += 1
                self.log_error(
                    f"Failed to save {exit_.direction} exit from {self.room_label(exit_.from_room_key)}: {e}",
                    event_type="exit_save_failed",
                    from_room_key=exit_.from_room_key,
                    direction=exit_.direction,
                )
                continue
            result.exits_saved += 1

        self.last_result = result
        self.log_info(
            f"Saved {result.rooms_saved} rooms ({result.rooms_failed} failed), "
            f"{result.exits_saved} exits ({result.exits_failed} failed, {result.exits_skipped} skipped)",
            event_type="persistence_summary",
            **result.to_dict(),
        )
        return result

    def _room_payload(self, room: Room, default_zone_id: Optional[int]) -> Dict[str, Any]:
        return {
            "name": room.name,
            "description": room.description,
            "zone_id": room.zone_id if room.zone_id is not None else default_zone_id,
            "zone_exit": 1 if room.zone_exit else 0,
            "terrain": room.terrain or self.config.default_terrain,
            "flags": room.flags or "",
            "portal_key": room.portal_key,
        }

    @staticmethod
    def _exit_payload(exit_: Exit, from_id, to_id) -> Dict[str, Any]:
        return {
            "from_room_id": from_id,
            "to_room_id": to_id,
            "direction": exit_.direction,
            "description": exit_.description or None,
            "look_description": exit_.look_description,
            "is_door": 1 if exit_.is_door else 0,
            "door_name": exit_.door_name,
            "is_locked": 1 if exit_.is_locked else 0,
            "is_blocked": 1 if exit_.is_blocked else 0,
            "is_zone_exit": 1 if exit_.is_zone_exit else 0,
        }

    def get_status(self):
        status = super().get_status()
        status["saved_rooms"] = len(self.room_ids)
        if self.last_result is not None:
            status["last_result"] = self.last_result.to_dict()
        return status
