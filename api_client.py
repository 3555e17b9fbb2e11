"""
REST API client for the map storage service.
Rooms, exits and zones are stored through the service's generic entity
endpoints (/zones, /rooms, /room_exits).
"""

import requests
from typing import Any, Dict, List
import logging


logger = logging.getLogger("mudlogmap.api_client")


class BackendError(Exception):
    """A request to the storage service failed."""


class BackendClient:
    """Client for the map storage service REST API."""

    def __init__(self, base_url: str = "http://localhost:3002/api", timeout: float = 10.0):
        """Initialize the storage client.

        Args:
            base_url: Base URL of the API, including the /api prefix
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = requests.Session()

    def __enter__(self):
        """Support for context manager protocol."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Clean up when exiting the context manager."""
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self.session.request(
                method,
                f"{self.base_url}{path}",
                timeout=self.timeout,
                **kwargs
            )
            response.raise_for_status()
            return response.json()

        except requests.RequestException as e:
            logger.debug(f"{method} {path} failed: {e}")
            raise BackendError(f"{method} {path} failed: {e}") from e
        except ValueError as e:
            raise BackendError(f"{method} {path} returned invalid JSON: {e}") from e

    def get_zones(self) -> List[Dict[str, Any]]:
        """Get the zone directory.

        Returns:
            List of zones with id, name and aliases
        """
        zones = self._request("GET", "/zones")
        if not isinstance(zones, list):
            raise BackendError("GET /zones did not return a list")

        directory = []
        for zone in zones:
            aliases = zone.get("aliases") or []
            if isinstance(aliases, str):
                aliases = [alias.strip() for alias in aliases.split(",") if alias.strip()]
            if zone.get("alias"):
                aliases.append(zone["alias"])
            directory.append({"id": zone.get("id"), "name": zone.get("name"), "aliases": aliases})
        return directory

    def create_room(self, room: Dict[str, Any]) -> Dict[str, Any]:
        """Create a room.

        Args:
            room: name, description, zone_id, zone_exit, terrain, flags, portal_key

        Returns:
            Created room, including its id
        """
        created = self._request("POST", "/rooms", json=room)
        if not isinstance(created, dict) or created.get("id") is None:
            raise BackendError(f"POST /rooms returned no id for {room.get('name')}")
        return created

    def create_exit(self, exit_data: Dict[str, Any]) -> Dict[str, Any]:
        """Create an exit. to_room_id may be None for an unknown destination."""
        return self._request("POST", "/room_exits", json=exit_data)

    def find_rooms_by_portal_key(self, portal_key: str) -> List[Dict[str, Any]]:
        """Get stored rooms holding a portal key.

        Args:
            portal_key: Portal key to look up

        Returns:
            Matching rooms (empty if none)
        """
        rooms = self._request("GET", "/rooms", params={"portal_key": portal_key})
        if not isinstance(rooms, list):
            return []
        return [room for room in rooms if room.get("portal_key") == portal_key]

    def close(self):
        """Close the underlying HTTP session."""
        self.session.close()
