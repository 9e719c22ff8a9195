"""
Tests for the backend API client and its cached facade.

The HTTP layer is mocked; no network access is needed.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest
import requests

from app.api_client import ApiClient, ApiError
from app.cached_api import CachedApi


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def client():
    """ApiClient double with awaitable endpoint methods."""
    mock = MagicMock(spec=ApiClient)
    mock.get_users = AsyncMock(return_value=[{"id": 1, "name": "Alice"}])
    mock.get_pending_staff_approvals = AsyncMock(return_value=[{"id": 2}])
    mock.get_locations = AsyncMock(return_value=[{"id": 10, "name": "HQ"}])
    mock.get_pending_explanations = AsyncMock(return_value={"pending": 3})
    mock.create_user = AsyncMock(return_value={"id": 3})
    mock.update_user = AsyncMock(return_value={"id": 1})
    mock.delete_user = AsyncMock(return_value=None)
    mock.approve_staff = AsyncMock(return_value={"id": 2})
    mock.reject_staff = AsyncMock(return_value={"id": 2})
    mock.deactivate_user = AsyncMock(return_value={"id": 1})
    mock.reactivate_user = AsyncMock(return_value={"id": 1})
    mock.create_location = AsyncMock(return_value={"id": 11})
    mock.update_location = AsyncMock(return_value={"id": 10})
    mock.delete_location = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def api(client, manager):
    return CachedApi(client=client, cache=manager)


def make_response(status_code=200, body=b'{"ok": true}'):
    response = requests.Response()
    response.status_code = status_code
    response._content = body
    response.url = "http://test/api"
    return response


# =============================================================================
# Cached reads
# =============================================================================

class TestCachedReads:
    """Read paths go through the cache."""

    @pytest.mark.asyncio
    async def test_get_users_cached_per_params(self, api, client, manager, clock):
        """Test that identical params hit the cache and durations apply."""
        first = await api.get_users({"page": 1})
        second = await api.get_users({"page": 1})
        assert first == second
        assert client.get_users.await_count == 1

        key = 'users:list:{"page":1}'
        assert manager.has(key)
        assert manager.store.expires_at(key) == clock.now + 300

        await api.get_users({"page": 2})
        assert client.get_users.await_count == 2

    @pytest.mark.asyncio
    async def test_force_refetches(self, api, client):
        """Test that force=True calls the backend again."""
        await api.get_locations()
        await api.get_locations(force=True)
        assert client.get_locations.await_count == 2

    @pytest.mark.asyncio
    async def test_wifi_uses_short_duration(self, api, manager, clock):
        """Test the WiFi resource duration."""
        assert await api.wifi_pending_explanations() == {"pending": 3}
        assert manager.store.expires_at("wifi:pending-explanations") == clock.now + 60

    @pytest.mark.asyncio
    async def test_backend_failure_serves_expired(self, api, client, clock):
        """Test fallback to expired data when the backend fails."""
        await api.get_locations()
        clock.advance(601)
        client.get_locations.side_effect = ApiError("GET /locations failed")
        assert await api.get_locations() == [{"id": 10, "name": "HQ"}]

    @pytest.mark.asyncio
    async def test_backend_failure_without_cache_raises(self, api, client):
        """Test that failures propagate when nothing is cached."""
        client.get_pending_staff_approvals.side_effect = ApiError("down", 503)
        with pytest.raises(ApiError):
            await api.pending_staff_approvals()


# =============================================================================
# Mutations
# =============================================================================

class TestMutations:
    """Mutations invalidate their resource after success."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method,args", [
        ("create_user", ({"name": "Bob"},)),
        ("update_user", ("1", {"name": "Bobby"})),
        ("delete_user", ("1", "DELETE")),
        ("deactivate_user", ("1",)),
        ("reactivate_user", ("1",)),
        ("approve_staff", ("2",)),
        ("reject_staff", ("2", "incomplete")),
    ])
    async def test_user_mutations_invalidate_users(self, api, manager, method, args):
        """Test that every user mutation clears users: keys only."""
        await api.get_users({"page": 1})
        await api.pending_staff_approvals()
        await api.get_locations()

        await getattr(api, method)(*args)

        assert not manager.has('users:list:{"page":1}')
        assert not manager.has("users:pending-approvals")
        assert manager.has("locations:list:{}")

    @pytest.mark.asyncio
    async def test_location_mutation_invalidates_locations(self, api, manager):
        """Test location mutations."""
        await api.get_locations()
        await api.get_users()
        await api.update_location("10", {"name": "Head Office"})
        assert not manager.has("locations:list:{}")
        assert manager.has("users:list:{}")

    @pytest.mark.asyncio
    async def test_failed_mutation_keeps_cache(self, api, client, manager):
        """Test that a failed mutation invalidates nothing."""
        await api.get_users()
        client.create_user.side_effect = ApiError("POST /users returned 400", 400)
        with pytest.raises(ApiError):
            await api.create_user({"name": ""})
        assert manager.has("users:list:{}")


# =============================================================================
# ApiClient
# =============================================================================

class TestApiClient:
    """Tests for the requests-based client."""

    @pytest.mark.asyncio
    async def test_get_users_builds_request(self):
        """Test URL, auth header and params."""
        session = MagicMock(spec=requests.Session)
        session.request.return_value = make_response(body=b'[{"id": 1}]')
        client = ApiClient(base_url="http://test/api/", token="secret", timeout=5, session=session)

        assert await client.get_users({"page": 1}) == [{"id": 1}]

        args, kwargs = session.request.call_args
        assert args == ("GET", "http://test/api/users")
        assert kwargs["params"] == {"page": 1}
        assert kwargs["headers"]["Authorization"] == "Bearer secret"
        assert kwargs["timeout"] == 5

    @pytest.mark.asyncio
    async def test_http_error_becomes_api_error(self):
        """Test that error statuses raise ApiError with the status code."""
        session = MagicMock(spec=requests.Session)
        session.request.return_value = make_response(404, b'{"message": "not found"}')
        client = ApiClient(base_url="http://test/api", token="", session=session)

        with pytest.raises(ApiError) as exc_info:
            await client.update_user("99", {"name": "x"})
        assert exc_info.value.status_code == 404
        assert exc_info.value.payload == {"message": "not found"}

    @pytest.mark.asyncio
    async def test_connection_error_becomes_api_error(self):
        """Test that transport failures raise ApiError."""
        session = MagicMock(spec=requests.Session)
        session.request.side_effect = requests.ConnectionError("refused")
        client = ApiClient(base_url="http://test/api", session=session)

        with pytest.raises(ApiError) as exc_info:
            await client.get_locations()
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_empty_body_returns_none(self):
        """Test 204-style responses."""
        session = MagicMock(spec=requests.Session)
        session.request.return_value = make_response(204, b"")
        client = ApiClient(base_url="http://test/api", session=session)
        assert await client.delete_location("1") is None

    def test_no_token_no_auth_header(self):
        """Test headers without a token."""
        client = ApiClient(base_url="http://test/api", token="", session=MagicMock())
        assert "Authorization" not in client._get_headers()
