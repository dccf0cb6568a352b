# coffeeshop/utils/storage.py
import json
import logging
from pathlib import Path
from typing import Any, Optional
import aiofiles
import aiofiles.os

class JsonStorage:
    """Client-side persisted state kept as a JSON file"""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.logger = logging.getLogger(__name__)

    async def load(self) -> Optional[Any]:
        """Read the stored value, or None when nothing usable is stored"""
        if not await aiofiles.os.path.exists(self.path):
            return None
        try:
            async with aiofiles.open(self.path, "r") as f:
                return json.loads(await f.read())
        except (OSError, ValueError) as e:
            self.logger.error(f"Failed to read {self.path}: {e}")
            return None

    async def save(self, value: Any) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        async with aiofiles.open(tmp_path, "w") as f:
            await f.write(json.dumps(value, indent=2))
        await aiofiles.os.replace(tmp_path, self.path)

    async def clear(self) -> None:
        if await aiofiles.os.path.exists(self.path):
            await aiofiles.os.remove(self.path)

class CartStorage(JsonStorage):
    """Persisted cart lines (reservation tokens are never stored)"""

class SessionStorage(JsonStorage):
    """Persisted authenticated user"""
