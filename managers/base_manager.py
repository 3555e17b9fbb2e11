"""
Base manager interface for the transcript parser.

Every stage of the parse (room identity, exits, portal binding, zones,
persistence) is a manager sharing the same logger, configuration, session
state and map graph.
"""

from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable, Any, Dict
import logging

from map_graph import MapGraph
from session.parser_state import ParserState
from session.parser_configuration import ParserConfiguration


@runtime_checkable
class ManagerProtocol(Protocol):
    """Interface the parser relies on when it treats managers uniformly."""

    def reset(self) -> None:
        """Reset manager statistics for a new transcript."""
        ...

    def get_status(self) -> Dict[str, Any]:
        """Report manager statistics."""
        ...


class BaseManager(ABC):
    """
    Abstract base class providing common functionality for all managers.

    Holds the shared dependencies and structured logging helpers that stamp
    every record with the component name and current transcript line.
    """

    def __init__(
        self,
        logger: logging.Logger,
        config: ParserConfiguration,
        state: ParserState,
        graph: MapGraph,
        component_name: str,
    ):
        """
        Initialize base manager with common dependencies.

        Args:
            logger: Shared logger instance for structured logging
            config: Parser configuration object
            state: Shared session state for the transcript being parsed
            graph: Shared room/exit graph
            component_name: Name for logging component field (e.g., "portal_manager")
        """
        self.logger = logger
        self.config = config
        self.state = state
        self.graph = graph
        self.component_name = component_name

    def _extra(self, event_type: str, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "event_type": event_type,
            "component": self.component_name,
            "line": self.state.line_number,
            **kwargs,
        }

    def log_info(self, message: str, event_type: str = "info", **kwargs) -> None:
        """Log an info message with structured fields."""
        if self.logger:
            self.logger.info(message, extra=self._extra(event_type, kwargs))

    def log_debug(self, message: str, event_type: str = "debug", **kwargs) -> None:
        """Log a debug message with structured fields."""
        if self.logger:
            self.logger.debug(message, extra=self._extra(event_type, kwargs))

    def log_warning(self, message: str, event_type: str = "warning", **kwargs) -> None:
        """Log a warning message with structured fields."""
        if self.logger:
            self.logger.warning(message, extra=self._extra(event_type, kwargs))

    def log_error(self, message: str, event_type: str = "error", **kwargs) -> None:
        """Log an error message with structured fields."""
        if self.logger:
            self.logger.error(message, extra=self._extra(event_type, kwargs))

    def room_label(self, room_key) -> str:
        room = self.graph.get_room(room_key)
        if room is None:
            return "unknown room" if room_key is None else f"<{room_key[:40]}>"
        return room.name

    @abstractmethod
    def reset(self) -> None:
        """
        Reset manager statistics for a new transcript.

        Shared state lives in ParserState and MapGraph; this only clears
        what the manager keeps for itself.
        """
        pass

    def get_status(self) -> Dict[str, Any]:
        """
        Get current manager status for debugging and monitoring.

        Returns:
            Dictionary with manager status information
        """
        return {
            "component": self.component_name,
            "line": self.state.line_number,
        }
