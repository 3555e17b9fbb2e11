# ABOUTME: Tests for the storage service REST client
# ABOUTME: Verifies endpoints, payloads, alias normalization and error wrapping with a mocked session

import pytest
import requests
from unittest.mock import Mock, patch

from api_client import BackendClient, BackendError


def json_response(data):
    response = Mock()
    response.raise_for_status.return_value = None
    response.json.return_value = data
    return response


@pytest.fixture
def client():
    backend = BackendClient(base_url="http://test.local/api/", timeout=2.5)
    yield backend
    backend.close()


class TestRequests:
    def test_create_room_posts_payload(self, client):
        with patch.object(client.session, "request", return_value=json_response({"id": 42})) as request:
            created = client.create_room({"name": "Inn"})

        assert created == {"id": 42}
        request.assert_called_once_with(
            "POST", "http://test.local/api/rooms", timeout=2.5, json={"name": "Inn"}
        )

    def test_create_room_without_id_fails(self, client):
        with patch.object(client.session, "request", return_value=json_response({"ok": True})):
            with pytest.raises(BackendError):
                client.create_room({"name": "Inn"})

    def test_create_exit(self, client):
        with patch.object(client.session, "request", return_value=json_response({"id": 7})) as request:
            client.create_exit({"from_room_id": 1, "to_room_id": None, "direction": "north"})

        assert request.call_args[0] == ("POST", "http://test.local/api/room_exits")

    def test_find_rooms_by_portal_key_filters_results(self, client):
        rooms = [{"id": 1, "portal_key": "abcdefg"}, {"id": 2, "portal_key": "zzzzzzz"}]
        with patch.object(client.session, "request", return_value=json_response(rooms)) as request:
            found = client.find_rooms_by_portal_key("abcdefg")

        assert found == [{"id": 1, "portal_key": "abcdefg"}]
        assert request.call_args[1]["params"] == {"portal_key": "abcdefg"}

    def test_get_zones_normalizes_aliases(self, client):
        zones = [
            {"id": 1, "name": "Midgaard", "aliases": "The City, Capital"},
            {"id": 2, "name": "Haon-Dor", "alias": "Forest"},
            {"id": 3, "name": "Moria", "aliases": ["Mines"]},
        ]
        with patch.object(client.session, "request", return_value=json_response(zones)):
            directory = client.get_zones()

        assert directory[0]["aliases"] == ["The City", "Capital"]
        assert directory[1]["aliases"] == ["Forest"]
        assert directory[2]["aliases"] == ["Mines"]

    def test_get_zones_rejects_non_list(self, client):
        with patch.object(client.session, "request", return_value=json_response({"error": "nope"})):
            with pytest.raises(BackendError):
                client.get_zones()


class TestErrors:
    def test_http_error_is_wrapped(self, client):
        response = json_response({})
        response.raise_for_status.side_effect = requests.HTTPError("500 Server Error")
        with patch.object(client.session, "request", return_value=response):
            with pytest.raises(BackendError, match="POST /rooms failed"):
                client.create_room({"name": "Inn"})

    def test_connection_error_is_wrapped(self, client):
        with patch.object(client.session, "request", side_effect=requests.ConnectionError("refused")):
            with pytest.raises(BackendError):
                client.get_zones()

    def test_invalid_json_is_wrapped(self, client):
        response = json_response(None)
        response.json.side_effect = ValueError("Expecting value")
        with patch.object(client.session, "request", return_value=response):
            with pytest.raises(BackendError, match="invalid JSON"):
                client.create_exit({})

    def test_context_manager_closes_session(self):
        backend = BackendClient()
        with patch.object(backend.session, "close") as close:
            with backend:
                pass
            close.assert_called_once()
