"""Manager classes package for the transcript parser."""

from .base_manager import BaseManager, ManagerProtocol
from .room_identity_manager import RoomIdentityManager
from .exit_manager import ExitManager
from .portal_manager import PortalManager
from .zone_manager import ZoneManager
from .persistence_manager import PersistenceManager

__all__ = [
    "BaseManager",
    "ManagerProtocol",
    "RoomIdentityManager",
    "ExitManager",
    "PortalManager",
    "ZoneManager",
    "PersistenceManager",
]
