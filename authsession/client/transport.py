"""
HTTP transport used by the client session controller.

Wraps an ``httpx.AsyncClient`` with a mandatory timeout. Transport faults
(timeouts, connection errors, non-JSON bodies) are reported as failure
payloads rather than raised, so the controller only ever sees
``{"success": bool, "message": str, ...}`` dictionaries.
"""

import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

REGISTER_PATH = "/auth/register"
LOGIN_PATH = "/auth/login"
LOGOUT_PATH = "/auth/logout"
REFRESH_PATH = "/auth/refresh-token"
PROFILE_PATH = "/protected/user-profile"


class SessionTransport:
    """
    Calls the session endpoints of a remote service.

    Args:
        base_url: Service base URL
        timeout: Seconds allowed for each request
        transport: Optional httpx transport (e.g. ``httpx.ASGITransport`` to
            talk to an in-process app)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if timeout is None or timeout <= 0:
            raise ValueError("A positive timeout is required")
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def register(self, name: str, email: str, password: str) -> Dict[str, Any]:
        return await self._post(REGISTER_PATH, {"name": name, "email": email, "password": password})

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        return await self._post(LOGIN_PATH, {"email": email, "password": password})

    async def logout(self, refresh_token: str) -> Dict[str, Any]:
        return await self._post(LOGOUT_PATH, {"refreshToken": refresh_token})

    async def refresh(self, refresh_token: str) -> Dict[str, Any]:
        return await self._post(REFRESH_PATH, {"refreshToken": refresh_token})

    async def get_profile(self, authorization: str) -> Dict[str, Any]:
        return await self._request("GET", PROFILE_PATH, headers={"Authorization": authorization})

    async def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", path, json=body)

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException:
            logger.warning(f"Request timed out: {method} {path}")
            return {"success": False, "message": "Request timed out"}
        except httpx.HTTPError as e:
            logger.warning(f"Network error on {method} {path}: {type(e).__name__}")
            return {"success": False, "message": "Network error"}

        try:
            data = response.json()
        except ValueError:
            logger.warning(
                f"Non-JSON response from {path}",
                extra={"status_code": response.status_code},
            )
            return {"success": False, "message": "Unexpected response from server"}

        if not isinstance(data, dict):
            return {"success": False, "message": "Unexpected response from server"}

        if not response.is_success:
            data["success"] = False
        data.setdefault("success", False)
        data.setdefault("message", "")
        return data


__all__ = ["SessionTransport"]
