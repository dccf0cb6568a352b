# coffeeshop/models/base.py
from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field

class TableRecord(BaseModel):
    """Base model for rows stored in the hosted table store"""
    id: str = Field(default="", alias="_id")
    uid: Optional[str] = Field(default=None, alias="_uid")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    def to_record(self) -> Dict[str, Any]:
        """Serialize to the field names the table store expects"""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)

class TimeStampedModel(TableRecord):
    """Table record with timestamp fields"""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
