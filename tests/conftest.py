# ABOUTME: Global pytest configuration for all tests
# ABOUTME: Isolates tests from MUDLOGMAP_* settings and provides shared parser fixtures

import logging
import os

import pytest

from log_parser import MudLogParser
from managers import ExitManager, PortalManager, RoomIdentityManager, ZoneManager
from map_graph import MapGraph
from session.parser_configuration import ParserConfiguration
from session.parser_state import ParserState

# Not under "mudlogmap" so setup_logging (propagate=False) never hides records from caplog
TEST_LOGGER_NAME = "tests.mudlogmap"


@pytest.fixture(autouse=True)
def isolate_mudlogmap_environment(monkeypatch):
    """
    Remove MUDLOGMAP_* environment variables for every test.

    Tests that exercise environment overrides set their own values with
    monkeypatch.setenv.
    """
    for name in list(os.environ):
        if name.upper().startswith("MUDLOGMAP_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def test_config():
    """Default ParserConfiguration, independent of any pyproject.toml."""
    return ParserConfiguration()


@pytest.fixture
def test_logger():
    logger = logging.getLogger(TEST_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    return logger


@pytest.fixture
def parser_state():
    return ParserState()


@pytest.fixture
def map_graph(test_logger):
    return MapGraph(logger=test_logger)


@pytest.fixture
def identity_manager(test_logger, test_config, parser_state, map_graph):
    return RoomIdentityManager(test_logger, test_config, parser_state, map_graph)


@pytest.fixture
def exit_manager(test_logger, test_config, parser_state, map_graph):
    return ExitManager(test_logger, test_config, parser_state, map_graph)


@pytest.fixture
def portal_manager(test_logger, test_config, parser_state, map_graph, identity_manager, exit_manager):
    return PortalManager(
        test_logger,
        test_config,
        parser_state,
        map_graph,
        identity_manager=identity_manager,
        exit_manager=exit_manager,
    )


@pytest.fixture
def zone_manager(test_logger, test_config, parser_state, map_graph):
    return ZoneManager(test_logger, test_config, parser_state, map_graph)


@pytest.fixture
def log_parser(test_logger, test_config):
    """Parser without a backend, as with --no-save."""
    return MudLogParser(config=test_config, logger=test_logger)
