"""
HTTP client for the staff time-tracking backend.

Requests are made with `requests` on a worker thread so the event loop
never blocks; every call is awaitable and can be used as a cache producer.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

import requests
from dotenv import load_dotenv

from config.settings import settings

load_dotenv()

logger = logging.getLogger("api_client")


class ApiError(Exception):
    """The backend answered with an error status or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class ApiClient:
    """
    Thin wrapper over a requests.Session.

    Usage:
        client = ApiClient()
        users = await client.get_users({"page": 1})
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.token = token if token is not None else settings.api_token
        self.timeout = timeout if timeout is not None else settings.api_timeout_seconds
        self._session = session or requests.Session()

    def _get_headers(self) -> dict:
        """Get API authentication headers."""
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _make_request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Make a blocking API request.

        Returns:
            Decoded JSON body (None for empty responses)

        Raises:
            ApiError: On connection failure or non-2xx status
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self._session.request(
                method,
                url,
                headers=self._get_headers(),
                params=params,
                json=json,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            payload = None
            if e.response is not None:
                try:
                    payload = e.response.json()
                except ValueError:
                    payload = e.response.text
            logger.warning(f"{method} {path} failed with status {status}")
            raise ApiError(f"{method} {path} returned {status}", status, payload) from e
        except requests.RequestException as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise ApiError(f"{method} {path} failed: {e}") from e

        if not response.content:
            return None
        return response.json()

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        return await asyncio.to_thread(self._make_request, method, path, params, json)

    def close(self) -> None:
        self._session.close()

    # Users

    async def get_users(self, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", "/users", params=params)

    async def get_pending_staff_approvals(self) -> Any:
        return await self.request("GET", "/users/pending-approvals")

    async def create_user(self, user_data: Dict[str, Any]) -> Any:
        return await self.request("POST", "/users", json=user_data)

    async def update_user(self, user_id: str, user_data: Dict[str, Any]) -> Any:
        return await self.request("PUT", f"/users/{user_id}", json=user_data)

    async def delete_user(self, user_id: str, confirm_text: str) -> Any:
        return await self.request("DELETE", f"/users/{user_id}", json={"confirmText": confirm_text})

    async def deactivate_user(self, user_id: str) -> Any:
        return await self.request("POST", f"/users/{user_id}/deactivate")

    async def reactivate_user(self, user_id: str) -> Any:
        return await self.request("POST", f"/users/{user_id}/reactivate")

    async def approve_staff(self, user_id: str) -> Any:
        return await self.request("POST", f"/users/{user_id}/approve")

    async def reject_staff(self, user_id: str, reason: Optional[str] = None) -> Any:
        return await self.request("POST", f"/users/{user_id}/reject", json={"reason": reason})

    # Locations

    async def get_locations(self, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", "/locations", params=params)

    async def create_location(self, location_data: Dict[str, Any]) -> Any:
        return await self.request("POST", "/locations", json=location_data)

    async def update_location(self, location_id: str, location_data: Dict[str, Any]) -> Any:
        return await self.request("PUT", f"/locations/{location_id}", json=location_data)

    async def delete_location(self, location_id: str) -> Any:
        return await self.request("DELETE", f"/locations/{location_id}")

    # WiFi tracking

    async def get_pending_explanations(self) -> Any:
        return await self.request("GET", "/wifi-tracking/pending-explanations")
