import unittest
from map_graph import (
    Exit,
    MapGraph,
    Room,
    expand_direction,
    get_opposite_direction,
    is_namedesc_key,
    make_namedesc_key,
    make_portal_key,
    normalize_direction,
)


class TestNormalizeDirection(unittest.TestCase):
    def test_normalize_simple_directions(self):
        self.assertEqual(normalize_direction("n"), "north")
        self.assertEqual(normalize_direction("S"), "south")
        self.assertEqual(normalize_direction("east"), "east")
        self.assertEqual(normalize_direction("U"), "up")
        self.assertEqual(normalize_direction("NE"), "northeast")
        self.assertEqual(normalize_direction("NorthWest"), "northwest")
        self.assertEqual(normalize_direction("se"), "southeast")
        self.assertEqual(normalize_direction("sW"), "southwest")

    def test_normalize_invalid_directions(self):
        self.assertIsNone(normalize_direction("look"))
        self.assertIsNone(normalize_direction("go north"))
        self.assertIsNone(normalize_direction(""))
        self.assertIsNone(normalize_direction("  "))

    def test_expand_passes_unknown_tokens_through(self):
        self.assertEqual(expand_direction("D"), "down")
        self.assertEqual(expand_direction("Portal"), "portal")

    def test_opposites(self):
        self.assertEqual(get_opposite_direction("north"), "south")
        self.assertEqual(get_opposite_direction("ne"), "southwest")
        self.assertEqual(get_opposite_direction("up"), "down")
        self.assertIsNone(get_opposite_direction("portal"))


class TestRoomKeys(unittest.TestCase):
    def test_key_forms(self):
        key = make_namedesc_key("Inn", "A cozy inn.")
        self.assertEqual(key, "namedesc:Inn|||A cozy inn.")
        self.assertTrue(is_namedesc_key(key))
        self.assertTrue(is_namedesc_key(key + "#2"))
        self.assertEqual(make_portal_key("abcdefg"), "portal:abcdefg")
        self.assertFalse(is_namedesc_key("portal:abcdefg"))


class TestRoom(unittest.TestCase):
    def test_merge_observation_unions_and_never_shrinks(self):
        room = Room(key="k", name="Inn", description="A cozy inn.", exits=["north"], npcs=["A cat"])
        room.merge_observation(["south"], [], ["A mug"])
        room.merge_observation([], [], [])
        self.assertEqual(room.exits, ["north", "south"])
        self.assertEqual(room.npcs, ["A cat"])
        self.assertEqual(room.items, ["A mug"])

    def test_exit_signature_is_order_independent(self):
        first = Room(key="a", name="X", description="d", exits=["north", "east"])
        second = Room(key="b", name="X", description="d", exits=["east", "north"])
        self.assertEqual(first.exit_signature(), second.exit_signature())


class TestMapGraph(unittest.TestCase):
    def setUp(self):
        self.map = MapGraph()
        self.inn = self.map.add_room(Room(key="namedesc:Inn|||A cozy inn.", name="Inn", description="A cozy inn."))
        self.road = self.map.add_room(Room(key="namedesc:Road|||A dusty road.", name="Road", description="A dusty road."))

    def test_add_room_keeps_existing(self):
        duplicate = Room(key=self.inn.key, name="Other", description="Other")
        stored = self.map.add_room(duplicate)
        self.assertIs(stored, self.inn)
        self.assertEqual(len(self.map.rooms), 2)

    def test_lookups(self):
        self.inn.portal_key = "abcdefg"
        self.assertIs(self.map.find_room_by_portal_key("abcdefg"), self.inn)
        self.assertIsNone(self.map.find_room_by_portal_key("zzzzzzz"))
        self.assertEqual(self.map.find_rooms_by_name_and_description("Road", "A dusty road."), [self.road])
        self.assertIsNone(self.map.get_room(None))

    def test_exit_queries(self):
        self.map.add_exit(Exit(self.inn.key, "south", self.road.key))
        self.assertTrue(self.map.has_exit(self.inn.key, "south"))
        self.assertFalse(self.map.has_exit(self.inn.key, "north"))
        self.assertEqual(self.map.get_exit(self.inn.key, "south").to_room_key, self.road.key)
        self.assertEqual(len(self.map.get_exits_from(self.inn.key)), 1)

    def test_blocked_exit_cannot_have_destination(self):
        with self.assertRaises(ValueError):
            self.map.add_exit(Exit(self.inn.key, "north", self.road.key, is_blocked=True))

    def test_verify_exit_counts(self):
        self.assertEqual(self.map.verify_exit(self.inn.key, "south"), 1)
        self.assertEqual(self.map.verify_exit(self.inn.key, "south"), 2)

    def test_record_conflict(self):
        existing = self.map.add_exit(Exit(self.inn.key, "south", self.road.key))
        conflict = self.map.record_conflict(existing, "namedesc:Elsewhere|||x")
        self.assertEqual(conflict["existing_destination_key"], self.road.key)
        self.assertEqual(conflict["new_destination_key"], "namedesc:Elsewhere|||x")
        self.assertEqual(len(self.map.exit_conflicts), 1)

    def test_remove_exits(self):
        self.map.add_exit(Exit(self.inn.key, "south", self.road.key))
        self.map.add_exit(Exit(self.road.key, "north", self.inn.key))
        removed = self.map.remove_exits(lambda e: e.from_room_key == self.inn.key)
        self.assertEqual(len(removed), 1)
        self.assertEqual(len(self.map.exits), 1)

    def test_rename_rewrites_references(self):
        self.map.add_exit(Exit(self.inn.key, "south", self.road.key))
        self.map.add_exit(Exit(self.road.key, "north", self.inn.key))
        self.map.verify_exit(self.inn.key, "south")
        old_key = self.inn.key

        rewritten = self.map.rename_room_key(old_key, "portal:abcdefg")

        self.assertEqual(rewritten, 2)
        self.assertNotIn(old_key, self.map.rooms)
        self.assertIs(self.map.rooms["portal:abcdefg"], self.inn)
        self.assertEqual(self.inn.key, "portal:abcdefg")
        self.assertEqual(self.map.get_exit("portal:abcdefg", "south").to_room_key, self.road.key)
        self.assertEqual(self.map.get_exit(self.road.key, "north").to_room_key, "portal:abcdefg")
        self.assertEqual(self.map.exit_verifications[("portal:abcdefg", "south")], 1)

    def test_rename_never_fills_unknown_destinations(self):
        self.map.add_exit(Exit(self.inn.key, "north", None, is_blocked=True))
        self.map.add_exit(Exit(self.inn.key, "east", None))
        self.map.rename_room_key(self.inn.key, "portal:abcdefg")
        for exit_ in self.map.exits:
            self.assertIsNone(exit_.to_room_key)

    def test_rename_into_existing_room_merges(self):
        twin = self.map.add_room(
            Room(key=self.inn.key + "#2", name="Inn", description="A cozy inn.", exits=["west"], items=["A mug"])
        )
        self.inn.exits = ["south"]
        self.map.add_exit(Exit(twin.key, "west", self.road.key))
        self.map.add_exit(Exit(self.road.key, "east", twin.key))

        self.map.rename_room_key(twin.key, self.inn.key)

        self.assertNotIn(twin.key, self.map.rooms)
        self.assertEqual(self.inn.exits, ["south", "west"])
        self.assertEqual(self.inn.items, ["A mug"])
        self.assertEqual(self.map.get_exit(self.inn.key, "west").to_room_key, self.road.key)
        self.assertEqual(self.map.get_exit(self.road.key, "east").to_room_key, self.inn.key)

    def test_merge_folds_duplicate_exits(self):
        twin = self.map.add_room(Room(key=self.inn.key + "#2", name="Inn", description="A cozy inn."))
        self.map.add_exit(Exit(self.inn.key, "south", self.road.key))
        self.map.add_exit(Exit(twin.key, "south", self.road.key, look_description="A dusty road."))
        self.map.add_exit(Exit(twin.key, "north", None, is_blocked=True, is_door=True, door_name="door"))
        self.map.add_exit(Exit(self.inn.key, "north", self.road.key))

        self.map.rename_room_key(twin.key, self.inn.key)

        south = self.map.get_exits_from(self.inn.key, "south")
        north = self.map.get_exits_from(self.inn.key, "north")
        self.assertEqual(len(south), 1)
        self.assertEqual(south[0].look_description, "A dusty road.")
        self.assertEqual(len(north), 1)
        self.assertEqual(north[0].to_room_key, self.road.key)
        self.assertFalse(north[0].is_blocked)
        self.assertEqual(north[0].door_name, "door")

    def test_merge_keeps_contradicting_exits(self):
        hall = self.map.add_room(Room(key="namedesc:Hall|||A hall.", name="Hall", description="A hall."))
        twin = self.map.add_room(Room(key=self.inn.key + "#2", name="Inn", description="A cozy inn."))
        self.map.add_exit(Exit(self.inn.key, "south", self.road.key))
        self.map.add_exit(Exit(twin.key, "south", hall.key))

        self.map.rename_room_key(twin.key, self.inn.key)

        self.assertEqual(len(self.map.get_exits_from(self.inn.key, "south")), 2)

    def test_stats(self):
        self.inn.portal_key = "abcdefg"
        self.map.add_exit(Exit(self.inn.key, "south", self.road.key))
        self.map.add_exit(Exit(self.inn.key, "north", None, is_blocked=True))
        self.map.add_exit(Exit(self.road.key, "west", None))
        stats = self.map.get_stats()
        self.assertEqual(stats["totalRooms"], 2)
        self.assertEqual(stats["totalExits"], 3)
        self.assertEqual(stats["fingerprintedRooms"], 1)
        self.assertEqual(stats["blockedExits"], 1)
        self.assertEqual(stats["unknownDestinations"], 1)

    def test_clear(self):
        self.map.add_exit(Exit(self.inn.key, "south", self.road.key))
        self.map.clear()
        self.assertEqual(self.map.rooms, {})
        self.assertEqual(self.map.exits, [])


if __name__ == "__main__":
    unittest.main()
