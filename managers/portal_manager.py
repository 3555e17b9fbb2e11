"""
PortalManager for the transcript parser.

Handles the two-phase fingerprint protocol. Casting a portal-binding spell
records which room the attempt was made in; the result line, which can
arrive many lines later, carries the room's portal key. Confirming a key may
retroactively change room identities established by RoomIdentityManager:

- key already bound to the attempt room: nothing to do
- key bound to a look-alike room: the attempt room was a duplicate and is
  merged into it
- key bound to an unrelated room, or the attempt room already holds another
  key: the room was misidentified and the recovery procedure runs
- key unbound: attached to the attempt room, whose composite key is promoted
  to a portal key

Failures mark rooms as no-magic, immediately or after repeated lost
concentration.
"""

from typing import Optional

from api_client import BackendError
from map_graph import (
    Exit,
    Room,
    get_opposite_direction,
    is_namedesc_key,
    make_portal_key,
)
from managers.base_manager import BaseManager


class PortalManager(BaseManager):
    """
    Manages portal-binding attempts, results and failures.

    Responsibilities:
    - Remembering the bind-attempt room until a result or failure consumes it
    - Promotion of composite keys to portal keys
    - Duplicate merges and misidentification recovery
    - No-magic room tracking with retry escalation
    - Bootstrapping the first room from the storage service
    """

    def __init__(self, logger, config, state, graph, identity_manager, exit_manager, room_lookup=None):
        super().__init__(logger, config, state, graph, "portal_manager")
        self.identity_manager = identity_manager
        self.exit_manager = exit_manager
        self.room_lookup = room_lookup
        self.reset()

    def reset(self) -> None:
        self.bound = 0
        self.confirmed = 0
        self.merged = 0
        self.recovered = 0
        self.ignored = 0

    def handle_attempt(self) -> None:
        """Record the room a binding spell was cast in."""
        current_key = self.state.current_room_key
        if current_key is not None and current_key in self.state.no_magic_rooms:
            self.log_debug(
                f"Ignoring portal binding in known no-magic room: {self.room_label(current_key)}",
                event_type="portal_attempt_skipped",
            )
            self.state.binding_attempt_room_key = None
            return

        self.state.binding_attempt_room_key = current_key
        self.log_debug(
            f"Portal binding attempted in {self.room_label(current_key)}",
            event_type="portal_attempt",
            room_key=current_key,
        )

    def handle_permanent_failure(self) -> None:
        """Binding can never succeed in the current room."""
        self.state.binding_attempt_room_key = None
        room_key = self.state.current_room_key
        if room_key is None:
            return
        self.state.portal_retry_counts.pop(room_key, None)
        self._mark_no_magic(room_key, "binding prevented")

    def handle_lost_concentration(self) -> None:
        """Transient failure; escalates to no-magic after repeated failures in one room."""
        room_key = self.state.binding_attempt_room_key or self.state.current_room_key
        self.state.binding_attempt_room_key = None
        if room_key is None:
            return

        failures = self.state.portal_retry_counts.get(room_key, 0) + 1
        limit = self.config.transient_failure_limit
        if failures >= limit:
            self.state.portal_retry_counts.pop(room_key, None)
            self._mark_no_magic(room_key, f"{failures} concentration failures")
        else:
            self.state.portal_retry_counts[room_key] = failures
            self.log_debug(
                f"Portal binding lost concentration in {self.room_label(room_key)} ({failures}/{limit})",
                event_type="portal_retry",
                room_key=room_key,
                failures=failures,
            )

    def _mark_no_magic(self, room_key: str, reason: str) -> None:
        self.state.no_magic_rooms.add(room_key)
        self.log_info(
            f"Marked {self.room_label(room_key)} as no-magic ({reason})",
            event_type="no_magic_room",
            room_key=room_key,
        )

    def handle_result(self, portal_key: str) -> Optional[str]:
        """
        Apply a confirmed portal key.

        Args:
            portal_key: Key reported by the binding result

        Returns:
            Key of the room that now holds the portal key, or None if the
            result could not be attributed
        """
        attempt_key = self.state.binding_attempt_room_key
        self.state.binding_attempt_room_key = None

        if attempt_key is None or attempt_key not in self.graph.rooms:
            return self._bootstrap(portal_key)

        self.state.portal_retry_counts.pop(attempt_key, None)
        attempt_room = self.graph.rooms[attempt_key]
        owner = self.graph.find_room_by_portal_key(portal_key)

        if owner is not None:
            if owner.key == attempt_key:
                self.confirmed += 1
                self.log_debug(
                    f"Portal key {portal_key} re-confirmed for {attempt_room.name}",
                    event_type="portal_confirmed",
                )
                return attempt_key

            same_text = (
                owner.name == attempt_room.name
                and owner.description == attempt_room.description
            )
            if same_text and not attempt_room.portal_key:
                return self._merge_duplicate(attempt_key, owner.key)
            if same_text:
                # The attempt room is a different fingerprinted look-alike
                return self._recover_misidentification(attempt_key, portal_key, true_room=owner)
            return self._recover_misidentification(attempt_key, portal_key, stale_owner=owner)

        if attempt_room.portal_key and attempt_room.portal_key != portal_key:
            return self._recover_misidentification(attempt_key, portal_key)

        return self._bind(attempt_key, portal_key)

    def _bind(self, room_key: str, portal_key: str) -> str:
        room = self.graph.rooms[room_key]
        room.portal_key = portal_key
        self.bound += 1

        new_key = room_key
        if is_namedesc_key(room_key):
            new_key = make_portal_key(portal_key)
            self.graph.rename_room_key(room_key, new_key)
            self.state.rewrite_room_key(room_key, new_key)

        for exit_ in self.graph.exits:
            if exit_.to_room_key == new_key and not exit_.portal_key:
                exit_.portal_key = portal_key

        self.log_info(
            f"Portal key {portal_key} bound to {room.name}",
            event_type="portal_promoted" if new_key != room_key else "portal_bound",
            room_key=new_key,
            previous_key=room_key,
            portal_key=portal_key,
        )
        return new_key

    def _merge_duplicate(self, duplicate_key: str, survivor_key: str) -> str:
        survivor = self.graph.rooms[survivor_key]
        rewritten = self.graph.rename_room_key(duplicate_key, survivor_key)
        self.state.rewrite_room_key(duplicate_key, survivor_key)
        self.merged += 1
        self.log_info(
            f"Merged duplicate {survivor.name} into portal room {survivor.portal_key} ({rewritten} exit references rewritten)",
            event_type="rooms_merged",
            duplicate_key=duplicate_key,
            survivor_key=survivor_key,
        )
        return survivor_key

    def _recover_misidentification(
        self,
        misidentified_key: str,
        portal_key: str,
        stale_owner: Optional[Room] = None,
        true_room: Optional[Room] = None,
    ) -> str:
        """
        Undo, as far as a heuristic can, an identity guessed wrong.

        Exits between the misidentified room and rooms without a portal key
        are removed, the player's position moves to the true room (a new one
        built from what was observed, unless a known look-alike holds the
        key), and the transition that led into the wrong room is replayed.
        """
        misidentified = self.graph.rooms[misidentified_key]
        removed = self._remove_suspect_exits(misidentified_key)

        if true_room is not None:
            target_key = true_room.key
        else:
            if stale_owner is not None:
                self._revoke_portal_key(stale_owner)
            target_key = make_portal_key(portal_key)
            self.graph.add_room(
                Room(
                    key=target_key,
                    name=misidentified.name,
                    description=misidentified.description,
                    exits=list(misidentified.exits),
                    npcs=list(misidentified.npcs),
                    items=list(misidentified.items),
                    portal_key=portal_key,
                    terrain=misidentified.terrain,
                    flags=misidentified.flags,
                )
            )

        self.state.current_room_key = target_key
        self._replay_last_transition(misidentified_key, target_key)

        self.recovered += 1
        self.log_info(
            f"Misidentified {misidentified.name}: portal key {portal_key} belongs to "
            f"{'known room' if true_room is not None else 'a new room'}; removed {len(removed)} exits",
            event_type="misidentification_recovered",
            misidentified_key=misidentified_key,
            room_key=target_key,
            portal_key=portal_key,
            removed_exits=len(removed),
        )
        return target_key

    def _remove_suspect_exits(self, room_key: str) -> list:
        def neighbor_unfingerprinted(exit_: Exit) -> bool:
            if exit_.from_room_key == room_key and exit_.to_room_key is not None:
                neighbor = self.graph.get_room(exit_.to_room_key)
            elif exit_.to_room_key == room_key:
                neighbor = self.graph.get_room(exit_.from_room_key)
            else:
                return False
            return neighbor is not None and not neighbor.portal_key

        suspects = self.graph.remove_exits(neighbor_unfingerprinted)

        transition = self.state.last_transition
        if transition and transition[2] == room_key:
            from_key, direction, _ = transition
            opposite = get_opposite_direction(direction)
            suspects += self.graph.remove_exits(
                lambda exit_: (
                    exit_.from_room_key == from_key
                    and exit_.direction == direction
                    and exit_.to_room_key == room_key
                )
                or (
                    exit_.from_room_key == room_key
                    and exit_.direction == opposite
                    and exit_.to_room_key == from_key
                )
            )
        return suspects

    def _replay_last_transition(self, misidentified_key: str, target_key: str) -> None:
        transition = self.state.last_transition
        if not transition or transition[2] != misidentified_key:
            return
        from_key, direction, _ = transition
        if from_key in self.graph.rooms and from_key != misidentified_key:
            self.exit_manager.record_transition(from_key, direction, target_key)

    def _revoke_portal_key(self, room: Room) -> None:
        old_key = room.key
        revoked = room.portal_key
        room.portal_key = None
        for exit_ in self.graph.exits:
            if exit_.to_room_key == old_key and exit_.portal_key == revoked:
                exit_.portal_key = None

        new_key = self.identity_manager.allocate_room_key(room.name, room.description)
        self.graph.rename_room_key(old_key, new_key)
        self.state.rewrite_room_key(old_key, new_key)
        self.log_warning(
            f"Revoked portal key {revoked} from {room.name}; its earlier binding was misattributed",
            event_type="portal_revoked",
            room_key=new_key,
            previous_key=old_key,
            portal_key=revoked,
        )

    def _bootstrap(self, portal_key: str) -> Optional[str]:
        current_key = self.state.current_room_key
        current = self.graph.get_room(current_key)

        if (
            self.room_lookup is None
            or current is None
            or current.portal_key
            or self.graph.find_room_by_portal_key(portal_key) is not None
        ):
            self.ignored += 1
            self.log_warning(
                f"Portal key {portal_key} has no binding attempt to attribute it to; ignored",
                event_type="portal_unattributed",
                portal_key=portal_key,
            )
            return None

        try:
            stored_rooms = self.room_lookup.find_rooms_by_portal_key(portal_key)
        except BackendError as e:
            self.ignored += 1
            self.log_warning(
                f"Portal key lookup failed for {portal_key}: {e}",
                event_type="portal_lookup_failed",
                portal_key=portal_key,
            )
            return None

        if any(stored.get("name") == current.name for stored in stored_rooms):
            return self._bind(current_key, portal_key)

        self.ignored += 1
        self.log_warning(
            f"Portal key {portal_key} is not stored for {current.name}; ignored",
            event_type="portal_unattributed",
            portal_key=portal_key,
        )
        return None

    def get_status(self):
        status = super().get_status()
        status.update(
            {
                "bound": self.bound,
                "confirmed": self.confirmed,
                "merged": self.merged,
                "recovered": self.recovered,
                "ignored": self.ignored,
                "no_magic_rooms": len(self.state.no_magic_rooms),
            }
        )
        return status
