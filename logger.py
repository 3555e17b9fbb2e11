import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

LOGGER_NAME = "mudlogmap"

# Attributes every LogRecord carries; anything else came in through extra={}
STANDARD_RECORD_ATTRS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "message",
    "exc_info",
    "exc_text",
    "stack_info",
}


class JSONFormatter(logging.Formatter):
    """Custom formatter that outputs log records as JSON objects."""

    def format(self, record):
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for attr_name, attr_value in record.__dict__.items():
            if attr_name not in STANDARD_RECORD_ATTRS and not attr_name.startswith("_"):
                log_data[attr_name] = attr_value

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Console formatter that shows only the events a person watching a parse cares about."""

    def format(self, record):
        message = record.getMessage()

        if record.levelname in ["ERROR", "WARNING", "CRITICAL"]:
            return f"{record.levelname}: {message}"

        if record.levelname == "DEBUG":
            return None

        event_type = getattr(record, "event_type", None)
        line = getattr(record, "line", None)
        prefix = f"[{line:>6}] " if isinstance(line, int) and line > 0 else ""

        if event_type == "room_created":
            return f"{prefix}📦 Room: {message}"
        elif event_type in ("exit_recorded", "inferred_exit_corrected"):
            return f"{prefix}    🚪 {message}"
        elif event_type == "exit_blocked":
            return f"{prefix}    🔒 {message}"
        elif event_type in ("portal_bound", "portal_promoted"):
            return f"{prefix}  🔑 {message}"
        elif event_type == "rooms_merged":
            return f"{prefix}  🔗 {message}"
        elif event_type == "misidentification_recovered":
            return f"{prefix}  ♻️  {message}"
        elif event_type == "no_magic_room":
            return f"{prefix}  🚫 {message}"
        elif event_type == "zone_change":
            return f"{prefix}  🗺️  {message}"
        elif event_type in (
            "parse_started",
            "parse_completed",
            "zones_resolved",
            "persistence_summary",
            "map_export",
        ):
            return message

        # Routine progress stays in the JSON log only
        return None


class _FilteringMixin:
    """Skip records the formatter turned into None."""

    def emit(self, record):
        try:
            msg = self.format(record)
            if msg is None:
                return
            if getattr(self, "stream", None) is None and hasattr(self, "_open"):
                self.stream = self._open()
            self.stream.write(msg + self.terminator)
            self.flush()
        except Exception:
            self.handleError(record)


class FilteringStreamHandler(_FilteringMixin, logging.StreamHandler):
    pass


class FilteringFileHandler(_FilteringMixin, logging.FileHandler):
    pass


def setup_logging(
    log_file: Optional[str] = None,
    json_log_file: Optional[str] = None,
    log_level: int = logging.INFO,
    stream=None,
) -> logging.Logger:
    """
    Set up the "mudlogmap" logger.

    Args:
        log_file: Optional path for a human-readable log file
        json_log_file: Optional path for a JSON-lines log file
        log_level: Logging level (default: INFO)
        stream: Console stream (default: stderr)

    Returns:
        The configured logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = False

    console_handler = FilteringStreamHandler(stream)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(HumanReadableFormatter())
    logger.addHandler(console_handler)

    if log_file:
        file_handler = FilteringFileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(HumanReadableFormatter())
        logger.addHandler(file_handler)

    if json_log_file:
        json_handler = logging.FileHandler(json_log_file, mode="a", encoding="utf-8")
        json_handler.setLevel(log_level)
        json_handler.setFormatter(JSONFormatter())
        logger.addHandler(json_handler)

    return logger


def parse_json_logs(json_log_file: str) -> List[Dict[str, Any]]:
    """Parse a JSON log file into a list of log entries."""
    logs = []
    with open(json_log_file, "r", encoding="utf-8") as f:
        for line in f:
            try:
                logs.append(json.loads(line.strip()))
            except json.JSONDecodeError:
                continue
    return logs
