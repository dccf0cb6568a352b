# coffeeshop/database/table_store.py
import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol
import aiohttp
from ..config import Config
from ..exceptions import NetworkFailure

class TableStore(Protocol):
    """Hosted key/document table API used for all persistence"""

    async def get_items(self, table_id: str, query: Optional[Dict[str, Any]] = None,
                        sort: Optional[str] = None, order: Optional[str] = None,
                        limit: Optional[int] = None) -> List[Dict[str, Any]]: ...

    async def add_item(self, table_id: str, record: Dict[str, Any]) -> Dict[str, Any]: ...

    async def update_item(self, table_id: str, record: Dict[str, Any]) -> None: ...

class RemoteTableStore:
    """HTTP client for the hosted table store"""

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None,
                 timeout: Optional[float] = None):
        self.base_url = (base_url or Config.TABLE_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else Config.API_KEY
        self.timeout = aiohttp.ClientTimeout(total=timeout or Config.REQUEST_TIMEOUT)
        self.session: Optional[aiohttp.ClientSession] = None
        self.logger = logging.getLogger(__name__)

    async def connect(self):
        if self.session is None or self.session.closed:
            headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
            self.session = aiohttp.ClientSession(headers=headers, timeout=self.timeout)

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    async def _request(self, method: str, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        await self.connect()
        url = f"{self.base_url}{path}"
        try:
            async with self.session.request(method, url, json=payload) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise NetworkFailure(f"{method} {path} failed with {response.status}: {body}")
                if response.content_type == "application/json":
                    return await response.json()
                return {}
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(f"Table store request {method} {path} failed: {e}")
            raise NetworkFailure(f"{method} {path} failed: {e}") from e

    async def get_items(self, table_id: str, query: Optional[Dict[str, Any]] = None,
                        sort: Optional[str] = None, order: Optional[str] = None,
                        limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Query rows of a table"""
        payload: Dict[str, Any] = {"query": query or {}}
        if sort:
            payload["sort"] = sort
        if order:
            payload["order"] = order
        if limit:
            payload["limit"] = limit
        data = await self._request("POST", f"/tables/{table_id}/items/query", payload)
        return data.get("items", [])

    async def add_item(self, table_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a row, returning it with its assigned identity"""
        data = await self._request("POST", f"/tables/{table_id}/items", record)
        return {**record, **data}

    async def update_item(self, table_id: str, record: Dict[str, Any]) -> None:
        """Overwrite the given fields of the row identified by _uid/_id"""
        if "_id" not in record:
            raise ValueError("update_item requires an _id")
        await self._request("PUT", f"/tables/{table_id}/items", record)
