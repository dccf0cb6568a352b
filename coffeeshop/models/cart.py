# coffeeshop/models/cart.py
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field
from .product import ProductWithInventory

class LineState(str, Enum):
    PENDING = "pending"
    HELD = "held"
    RELEASED = "released"
    COMMITTED = "committed"

class Reservation(BaseModel):
    """A hold of units against one product's reserved stock"""
    token: str
    product_id: str
    quantity: int = Field(gt=0)
    created_at: datetime
    expires_at: datetime

class CartLineItem(BaseModel):
    """Single product line in the cart"""
    product: ProductWithInventory
    quantity: int = Field(gt=0)
    reservation_id: Optional[str] = None
    reserved_at: datetime
    state: LineState = LineState.PENDING

    model_config = ConfigDict(validate_assignment=True)

    @property
    def product_id(self) -> str:
        return self.product.product_id

    @property
    def unit_price(self) -> int:
        return self.product.product.price

    @property
    def total_price(self) -> int:
        return self.unit_price * self.quantity

    @property
    def is_held(self) -> bool:
        return self.state == LineState.HELD and self.reservation_id is not None

    def snapshot(self) -> Dict[str, Any]:
        """Serializable form for local storage, without the live reservation"""
        return self.model_dump(mode="json", by_alias=True, exclude={"reservation_id", "state"})
