# coffeeshop/database/auth_client.py
import asyncio
import logging
from typing import Any, Dict, Optional
import aiohttp
from ..config import Config
from ..exceptions import AuthenticationError, NetworkFailure

class RemoteAuthClient:
    """Email OTP authentication against the hosted auth service"""

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None):
        self.base_url = (base_url or Config.AUTH_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else Config.API_KEY
        self.session_token: Optional[str] = None
        self.logger = logging.getLogger(__name__)

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {}
        if self.api_key:
            headers["X-Api-Key"] = self.api_key
        if self.session_token:
            headers["Authorization"] = f"Bearer {self.session_token}"
        timeout = aiohttp.ClientTimeout(total=Config.REQUEST_TIMEOUT)
        try:
            async with aiohttp.ClientSession(headers=headers, timeout=timeout) as session:
                async with session.post(f"{self.base_url}{path}", json=payload) as response:
                    if response.status in (400, 401, 403):
                        raise AuthenticationError(await response.text())
                    if response.status >= 400:
                        raise NetworkFailure(f"POST {path} failed with {response.status}")
                    if response.content_type == "application/json":
                        return await response.json()
                    return {}
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(f"Auth request {path} failed: {e}")
            raise NetworkFailure(f"POST {path} failed: {e}") from e

    async def send_otp(self, email: str) -> None:
        await self._post("/auth/otp/send", {"email": email})

    async def verify_otp(self, email: str, code: str) -> Dict[str, Any]:
        """Verify a code and return the authenticated user identity"""
        data = await self._post("/auth/otp/verify", {"email": email, "code": code})
        if "user" not in data:
            raise AuthenticationError("Verification response carried no user")
        self.session_token = data.get("session_token")
        return data["user"]

    async def logout(self) -> None:
        try:
            await self._post("/auth/logout", {})
        finally:
            self.session_token = None
