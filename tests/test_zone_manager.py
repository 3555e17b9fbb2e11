# ABOUTME: Tests for zone banner tracking and the post-parse zone resolution pass
# ABOUTME: Directory lookups by name and alias, name fallback without a directory, boundary marking

import logging

import pytest

from managers.zone_manager import build_zone_directory
from map_graph import Exit, Room

SQUARE = "namedesc:Square|||A wide square."
GATE = "namedesc:Gate|||The city gate."
ROAD = "namedesc:Road|||A forest road."

ZONES = [
    {"id": 1, "name": "Midgaard", "aliases": ["The City"]},
    {"id": 2, "name": "Haon-Dor", "alias": "Forest"},
]


@pytest.fixture
def walked_map(map_graph, parser_state, zone_manager):
    """Square and Gate in the first banner's zone, Road in the next one."""
    for key in (SQUARE, GATE, ROAD):
        name, description = key[len("namedesc:"):].split("|||")
        map_graph.add_room(Room(key=key, name=name, description=description))
    map_graph.add_exit(Exit(SQUARE, "north", GATE))
    map_graph.add_exit(Exit(GATE, "south", SQUARE))
    map_graph.add_exit(Exit(GATE, "north", ROAD))
    map_graph.add_exit(Exit(ROAD, "south", GATE))
    map_graph.add_exit(Exit(ROAD, "west", None))

    parser_state.current_room_key = SQUARE
    zone_manager.handle_banner("Midgaard")
    parser_state.current_room_key = ROAD
    zone_manager.handle_banner("Haon-Dor")
    return map_graph


def test_directory_indexes_names_and_aliases():
    directory = build_zone_directory(ZONES)
    assert directory["midgaard"]["id"] == 1
    assert directory["the city"]["id"] == 1
    assert directory["forest"]["id"] == 2
    assert directory["haon-dor"]["id"] == 2


class TestBanners:
    def test_first_banner_is_default(self, zone_manager, parser_state):
        zone_manager.handle_banner("Midgaard")
        zone_manager.handle_banner("Haon-Dor")

        assert parser_state.default_zone_name == "Midgaard"
        assert parser_state.current_zone_name == "Haon-Dor"
        assert zone_manager.zone_changes == 2

    def test_banner_maps_current_room(self, zone_manager, parser_state):
        parser_state.current_room_key = ROAD
        zone_manager.handle_banner("Haon-Dor")
        assert parser_state.zone_mapping == {ROAD: "Haon-Dor"}

    def test_banner_without_room_maps_nothing(self, zone_manager, parser_state):
        zone_manager.handle_banner("Midgaard")
        assert parser_state.zone_mapping == {}


class TestResolution:
    def test_with_directory(self, zone_manager, walked_map):
        summary = zone_manager.resolve_zones(ZONES)

        assert summary["defaultZoneId"] == 1
        assert summary["directoryAvailable"] is True
        assert walked_map.rooms[SQUARE].zone_id == 1
        assert walked_map.rooms[GATE].zone_id == 1
        assert walked_map.rooms[ROAD].zone_id == 2
        assert walked_map.rooms[SQUARE].zone_exit is False
        assert walked_map.rooms[GATE].zone_exit is True
        assert walked_map.rooms[ROAD].zone_exit is True
        assert walked_map.get_exit(GATE, "north").is_zone_exit
        assert walked_map.get_exit(ROAD, "south").is_zone_exit
        assert not walked_map.get_exit(SQUARE, "north").is_zone_exit
        assert not walked_map.get_exit(ROAD, "west").is_zone_exit
        assert summary["zoneExits"] == 2
        assert summary["zoneExitRooms"] == 2

    def test_alias_lookup(self, zone_manager, walked_map, parser_state):
        parser_state.zone_mapping[ROAD] = "forest"
        zone_manager.resolve_zones(ZONES)
        assert walked_map.rooms[ROAD].zone_id == 2
        assert walked_map.rooms[ROAD].zone_name == "Haon-Dor"

    def test_without_directory_falls_back_to_names(self, zone_manager, walked_map):
        summary = zone_manager.resolve_zones(None)

        assert summary["directoryAvailable"] is False
        assert summary["defaultZoneId"] is None
        assert walked_map.rooms[SQUARE].zone_name == "Midgaard"
        assert walked_map.rooms[ROAD].zone_name == "Haon-Dor"
        assert walked_map.rooms[ROAD].zone_id is None
        assert walked_map.get_exit(GATE, "north").is_zone_exit
        assert summary["zoneExits"] == 2

    def test_unknown_zone_uses_default(self, zone_manager, walked_map, caplog):
        caplog.set_level(logging.WARNING, logger="tests.mudlogmap")
        summary = zone_manager.resolve_zones([{"id": 1, "name": "Midgaard"}])

        assert walked_map.rooms[ROAD].zone_id == 1
        assert summary["unresolvedZones"] == ["Haon-Dor"]
        assert summary["zoneExits"] == 0
        assert any(getattr(r, "event_type", None) == "zone_not_found" for r in caplog.records)

    def test_explicit_default_zone_id(self, zone_manager, walked_map):
        summary = zone_manager.resolve_zones(ZONES, default_zone_id=2)

        assert summary["defaultZoneId"] == 2
        assert summary["defaultZoneName"] == "Haon-Dor"
        # Rooms seen under the first banner take the explicit default
        assert walked_map.rooms[SQUARE].zone_id == 2
        assert walked_map.rooms[ROAD].zone_id == 2
        assert summary["zoneExits"] == 0

    def test_no_banners_at_all(self, zone_manager, map_graph):
        map_graph.add_room(Room(key=SQUARE, name="Square", description="A wide square."))
        summary = zone_manager.resolve_zones(ZONES)

        assert summary["defaultZoneName"] is None
        assert map_graph.rooms[SQUARE].zone_exit is False
