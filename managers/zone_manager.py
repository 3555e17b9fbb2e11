"""
ZoneManager for the transcript parser.

Tracks zone banners while parsing and, once the transcript is finished,
assigns every room a zone and marks the rooms and exits that sit on a zone
boundary.
"""

from typing import Any, Dict, List, Optional

from map_graph import Room
from managers.base_manager import BaseManager


def build_zone_directory(zones: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """
    Index zones by lowercased name and aliases.

    Accepts both an ``aliases`` list and a single ``alias`` string per zone.
    """
    directory = {}
    for zone in zones:
        names = [zone.get("name")]
        names.extend(zone.get("aliases") or [])
        if zone.get("alias"):
            names.append(zone["alias"])
        for name in names:
            if name:
                directory.setdefault(name.strip().lower(), zone)
    return directory


class ZoneManager(BaseManager):
    """
    Manages zone observations and the post-parse zone resolution pass.

    Responsibilities:
    - Default zone from the first banner
    - Mapping rooms to the zone named by a banner seen in them
    - Zone id lookup in the zone directory (by name or alias)
    - Zone-boundary marking on rooms and exits
    """

    def __init__(self, logger, config, state, graph):
        super().__init__(logger, config, state, graph, "zone_manager")
        self.reset()

    def reset(self) -> None:
        self.banners_seen = 0
        self.zone_changes = 0
        self.unresolved_zones = set()

    def handle_banner(self, zone_name: str) -> None:
        self.banners_seen += 1

        if self.state.default_zone_name is None:
            self.state.default_zone_name = zone_name
            self.log_debug(f"Default zone: {zone_name}", event_type="default_zone")

        if zone_name != self.state.current_zone_name:
            self.zone_changes += 1
            self.log_info(
                f"Zone: {self.state.current_zone_name or 'unknown'} -> {zone_name}",
                event_type="zone_change",
                zone_name=zone_name,
            )
        self.state.current_zone_name = zone_name

        if self.state.current_room_key is not None:
            self.state.zone_mapping[self.state.current_room_key] = zone_name

    def resolve_zones(
        self,
        zones: Optional[List[Dict[str, Any]]] = None,
        default_zone_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Assign zones to all rooms and mark zone boundaries.

        Args:
            zones: Zone directory from the storage service, or None when it is
                unavailable (zone identity then falls back to the zone name)
            default_zone_id: Explicit default zone, overriding the first banner

        Returns:
            Summary of the pass
        """
        directory = build_zone_directory(zones) if zones else None
        default_id, default_name = self._resolve_default_zone(directory, default_zone_id)

        for room in self.graph.rooms.values():
            room.zone_id, room.zone_name = self._zone_for_room(
                room, directory, default_id, default_name
            )

        default_identity = default_id if default_id is not None else default_name
        boundary_rooms = 0
        for room in self.graph.rooms.values():
            if self._zone_identity(room) != default_identity:
                room.zone_exit = True
                boundary_rooms += 1

        boundary_exits = 0
        for exit_ in self.graph.exits:
            source = self.graph.get_room(exit_.from_room_key)
            destination = self.graph.get_room(exit_.to_room_key)
            if source is None or destination is None:
                continue
            if self._zone_identity(source) != self._zone_identity(destination):
                exit_.is_zone_exit = True
                source.zone_exit = True
                destination.zone_exit = True
                boundary_exits += 1

        summary = {
            "defaultZoneId": default_id,
            "defaultZoneName": default_name,
            "directoryAvailable": directory is not None,
            "zoneExitRooms": sum(1 for room in self.graph.rooms.values() if room.zone_exit),
            "zoneExits": boundary_exits,
            "unresolvedZones": sorted(self.unresolved_zones),
        }
        self.log_info(
            f"Zones resolved: default {default_name or 'unknown'} (id {default_id}), "
            f"{boundary_rooms} rooms outside default zone, {boundary_exits} zone exits",
            event_type="zones_resolved",
            **summary,
        )
        return summary

    def _resolve_default_zone(self, directory, default_zone_id):
        default_name = self.state.default_zone_name

        if default_zone_id is not None:
            if directory:
                for zone in directory.values():
                    if zone.get("id") == default_zone_id:
                        return default_zone_id, zone.get("name")
            return default_zone_id, default_name

        if directory is not None and default_name:
            zone = directory.get(default_name.strip().lower())
            if zone is not None:
                return zone.get("id"), zone.get("name")
            self._warn_unresolved(default_name)
        return None, default_name

    def _zone_for_room(self, room: Room, directory, default_id, default_name):
        mapped = self.state.zone_mapping.get(room.key)
        if not mapped or mapped == self.state.default_zone_name:
            return default_id, default_name

        if directory is None:
            return None, mapped

        zone = directory.get(mapped.strip().lower())
        if zone is None:
            self._warn_unresolved(mapped)
            return default_id, default_name
        return zone.get("id"), zone.get("name")

    def _warn_unresolved(self, zone_name: str) -> None:
        if zone_name in self.unresolved_zones:
            return
        self.unresolved_zones.add(zone_name)
        self.log_warning(
            f"Zone not found in directory: {zone_name}; using default zone",
            event_type="zone_not_found",
            zone_name=zone_name,
        )

    @staticmethod
    def _zone_identity(room: Room):
        return room.zone_id if room.zone_id is not None else room.zone_name

    def get_status(self):
        status = super().get_status()
        status.update(
            {
                "banners_seen": self.banners_seen,
                "zone_changes": self.zone_changes,
                "default_zone": self.state.default_zone_name,
                "mapped_rooms": len(self.state.zone_mapping),
            }
        )
        return status
