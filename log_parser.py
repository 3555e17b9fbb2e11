"""
MudLogParser: builds a room/exit map from a MUD session transcript.

A single sequential pass classifies each line and dispatches the event to
the manager that owns it. Room titles and "look <direction>" commands read
ahead through bounded scanners and report how many lines they consumed so
the cursor skips them. After the pass, the zone resolution pass runs once
and the map can be saved to the storage service or exported as JSON.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from api_client import BackendError
from logger import LOGGER_NAME
from map_graph import MapGraph
from managers import (
    ExitManager,
    PersistenceManager,
    PortalManager,
    RoomIdentityManager,
    ZoneManager,
)
from managers.persistence_manager import PersistenceResult
from session.parser_configuration import ParserConfiguration
from session.parser_state import ParserState
from transcript import EventKind, LineEvent, classify_line, scan_look_text, scan_room_block


class MudLogParser:
    """
    Orchestrator that coordinates the parsing managers.

    This class is responsible for:
    - The line loop and event dispatch
    - Manager initialization and lifecycle
    - Movement bookkeeping between room titles
    - Running the zone pass, persistence and export

    Room identity, exits, portal binding and zones are delegated to managers.
    """

    def __init__(
        self,
        config: Optional[ParserConfiguration] = None,
        logger: Optional[logging.Logger] = None,
        backend=None,
    ):
        """
        Args:
            config: Parser configuration (defaults if omitted)
            logger: Logger to use (the "mudlogmap" logger if omitted)
            backend: BackendClient for zone lookup, portal bootstrap and saving;
                None disables all three
        """
        self.config = config or ParserConfiguration()
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self.backend = backend

        self.state = ParserState()
        self.graph = MapGraph(logger=self.logger)

        shared = (self.logger, self.config, self.state, self.graph)
        self.identity_manager = RoomIdentityManager(*shared)
        self.exit_manager = ExitManager(*shared)
        self.portal_manager = PortalManager(
            *shared,
            identity_manager=self.identity_manager,
            exit_manager=self.exit_manager,
            room_lookup=backend,
        )
        self.zone_manager = ZoneManager(*shared)
        self.persistence_manager = PersistenceManager(*shared)
        self.managers = [
            self.identity_manager,
            self.exit_manager,
            self.portal_manager,
            self.zone_manager,
            self.persistence_manager,
        ]

        self.handlers: Dict[EventKind, Callable[[LineEvent, List[str], int], int]] = {
            EventKind.PORTAL_RESULT: self._handle_portal_result,
            EventKind.PORTAL_FAILURE: self._handle_portal_failure,
            EventKind.PORTAL_LOST_CONCENTRATION: self._handle_lost_concentration,
            EventKind.PORTAL_ATTEMPT: self._handle_portal_attempt,
            EventKind.LOOK_DIRECTION: self._handle_look_direction,
            EventKind.ZONE_BANNER: self._handle_zone_banner,
            EventKind.DEATH: self._handle_death,
            EventKind.RESPAWN: self._handle_respawn,
            EventKind.LOOK: self._handle_look,
            EventKind.MOVEMENT: self._handle_movement,
            EventKind.FLEE: self._handle_movement,
            EventKind.BLOCKED_MOVEMENT: self._handle_blocked_movement,
            EventKind.ROOM_TITLE: self._handle_room_title,
        }

        self.zone_summary: Optional[Dict[str, Any]] = None
        self.heuristic_reuses = 0
        self.skipped_titles = 0

    def reset(self) -> None:
        """Forget everything so the parser can take a fresh transcript."""
        self.state.reset()
        self.graph.clear()
        for manager in self.managers:
            manager.reset()
        self.zone_summary = None
        self.heuristic_reuses = 0
        self.skipped_titles = 0

    def _log(self, level: int, message: str, event_type: str, **kwargs) -> None:
        self.logger.log(
            level,
            message,
            extra={
                "event_type": event_type,
                "component": "log_parser",
                "line": self.state.line_number,
                **kwargs,
            },
        )

    # Parsing

    def parse_file(self, log_file: str) -> MapGraph:
        """
        Parse a transcript file.

        Raises:
            OSError: If the file cannot be read
        """
        with open(log_file, "r", encoding="utf-8", errors="replace") as f:
            lines = f.read().splitlines()
        self._log(
            logging.INFO,
            f"Parsing {log_file} ({len(lines)} lines)",
            "parse_started",
            log_file=log_file,
            total_lines=len(lines),
        )
        return self.parse_lines(lines)

    def parse_lines(self, lines: Iterable[str]) -> MapGraph:
        """
        Run the line loop over a transcript.

        Returns:
            The map graph built so far (parsing is incremental; calling again
            continues the same session)
        """
        lines = [line.rstrip("\r\n") for line in lines]
        offset = self.state.line_number
        index = 0

        while index < len(lines):
            self.state.line_number = offset + index + 1
            event = classify_line(lines[index])
            consumed = 1
            if event is not None:
                self.state.event_counts[event.kind.value] += 1
                consumed = self.handlers[event.kind](event, lines, index)
            index += max(1, consumed)

        self.state.line_number = offset + len(lines)
        stats = self.graph.get_stats()
        self._log(
            logging.INFO,
            f"Parse complete: {stats['totalRooms']} rooms, {stats['totalExits']} exits, "
            f"{stats['fingerprintedRooms']} with portal keys, {stats['conflicts']} conflicts",
            "parse_completed",
            heuristic_reuses=self.heuristic_reuses,
            skipped_titles=self.skipped_titles,
            **stats,
        )
        return self.graph

    # Event handlers. Each returns the number of lines it consumed.

    def _handle_room_title(self, event: LineEvent, lines: List[str], index: int) -> int:
        consumed, block = scan_room_block(lines, index)
        if len(block.description) < self.config.min_description_length:
            self.skipped_titles += 1
            self._log(
                logging.DEBUG,
                f"Ignoring title without description: {event.title}",
                "title_skipped",
                title=event.title,
            )
            return 1

        resolution = self.identity_manager.resolve(event.title, block)
        if resolution.is_heuristic:
            self.heuristic_reuses += 1

        previous_key = self.state.current_room_key
        direction = self.state.pending_direction
        if direction and previous_key in self.graph.rooms:
            self.exit_manager.record_transition(previous_key, direction, resolution.room_key)

        self.state.current_room_key = resolution.room_key
        self.state.pending_direction = None
        return 1 + consumed

    def _handle_movement(self, event: LineEvent, lines: List[str], index: int) -> int:
        self.state.pending_direction = event.direction
        return 1

    def _handle_blocked_movement(self, event: LineEvent, lines: List[str], index: int) -> int:
        direction = self.state.pending_direction
        self.state.pending_direction = None

        if not event.is_barrier:
            self._log(
                logging.DEBUG,
                f"No exit {direction or '?'}: {event.text}",
                "invalid_direction",
                direction=direction,
            )
            return 1

        current_key = self.state.current_room_key
        if direction and current_key in self.graph.rooms:
            self.exit_manager.record_blocked(current_key, direction, event)
        return 1

    def _handle_look(self, event: LineEvent, lines: List[str], index: int) -> int:
        self.state.pending_direction = None
        return 1

    def _handle_look_direction(self, event: LineEvent, lines: List[str], index: int) -> int:
        consumed, look_text = scan_look_text(lines, index + 1)
        current_key = self.state.current_room_key
        if look_text and current_key in self.graph.rooms:
            self.exit_manager.attach_look_details(current_key, event.direction, look_text)
        return 1 + consumed

    def _handle_zone_banner(self, event: LineEvent, lines: List[str], index: int) -> int:
        self.zone_manager.handle_banner(event.zone_name)
        return 1

    def _handle_death(self, event: LineEvent, lines: List[str], index: int) -> int:
        self.state.death_count += 1
        self.state.pending_direction = None
        self._log(logging.INFO, "Character died", "death", deaths=self.state.death_count)
        return 1

    def _handle_respawn(self, event: LineEvent, lines: List[str], index: int) -> int:
        self.state.pending_direction = None
        return 1

    def _handle_portal_attempt(self, event: LineEvent, lines: List[str], index: int) -> int:
        self.portal_manager.handle_attempt()
        return 1

    def _handle_portal_result(self, event: LineEvent, lines: List[str], index: int) -> int:
        self.portal_manager.handle_result(event.portal_key)
        return 1

    def _handle_portal_failure(self, event: LineEvent, lines: List[str], index: int) -> int:
        self.portal_manager.handle_permanent_failure()
        return 1

    def _handle_lost_concentration(self, event: LineEvent, lines: List[str], index: int) -> int:
        self.portal_manager.handle_lost_concentration()
        return 1

    # Post-parse passes

    def resolve_zones(self, default_zone_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Run the zone resolution pass.

        The zone directory comes from the backend when one is configured;
        without it, or when the lookup fails, zones are told apart by name.
        """
        zones = None
        if self.backend is not None:
            try:
                zones = self.backend.get_zones()
            except BackendError as e:
                self._log(
                    logging.WARNING,
                    f"Zone lookup failed, resolving zones by name: {e}",
                    "zone_lookup_failed",
                )

        self.zone_summary = self.zone_manager.resolve_zones(zones, default_zone_id)
        return self.zone_summary

    def save(self) -> PersistenceResult:
        """
        Save the map through the backend.

        Raises:
            ValueError: If the parser was created without a backend
        """
        if self.backend is None:
            raise ValueError("No backend configured; cannot save the map")
        default_zone_id = self.zone_summary["defaultZoneId"] if self.zone_summary else None
        return self.persistence_manager.save(self.backend, default_zone_id=default_zone_id)

    def export_to_json(self, filepath: str) -> bool:
        """Write the map, with session statistics, as a JSON document."""
        return self.graph.save_to_json(filepath, extra_stats=self.get_export_stats())

    def get_export_stats(self) -> Dict[str, Any]:
        stats = self.state.get_export_data()
        stats["heuristicReuses"] = self.heuristic_reuses
        stats["skippedTitles"] = self.skipped_titles
        return stats

    def get_status(self) -> Dict[str, Any]:
        return {manager.component_name: manager.get_status() for manager in self.managers}
