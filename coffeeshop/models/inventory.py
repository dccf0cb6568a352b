# coffeeshop/models/inventory.py
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field
from .base import TableRecord

class StockStatus(str, Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    DISCONTINUED = "discontinued"

class MovementType(str, Enum):
    IN = "in"
    OUT = "out"
    RESERVED = "reserved"
    UNRESERVED = "unreserved"

class AlertType(str, Enum):
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    EXPIRING_SOON = "expiring_soon"

def derive_stock_status(stock: int, reorder_level: int) -> StockStatus:
    """Stock status for a physical stock level"""
    if stock <= 0:
        return StockStatus.OUT_OF_STOCK
    if stock <= reorder_level:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK

class InventoryRecord(TableRecord):
    """Stock counters for a single product"""
    product_id: str
    current_stock: int = Field(default=0, ge=0)
    reserved_stock: int = Field(default=0, ge=0)
    reorder_level: int = 20
    reorder_quantity: int = 100
    stock_status: StockStatus = StockStatus.IN_STOCK
    total_sold: int = 0
    warehouse_location: Optional[str] = None
    batch_number: Optional[str] = None
    last_restock_date: Optional[datetime] = None
    last_restock_quantity: Optional[int] = None
    expiry_date: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 0

    @property
    def available_stock(self) -> int:
        return max(0, self.current_stock - self.reserved_stock)

    @property
    def needs_reorder(self) -> bool:
        return self.current_stock <= self.reorder_level

class StockMovement(BaseModel):
    """Audit entry for a change to a product's stock counters"""
    product_id: str
    movement_type: MovementType
    quantity: int
    reason: str
    timestamp: datetime

class InventoryAlert(BaseModel):
    product_id: str
    product_name: str
    alert_type: AlertType
    current_stock: int
    reorder_level: int
    expiry_date: Optional[datetime] = None
    message: str

class InventoryStats(BaseModel):
    """Aggregate figures for the admin dashboard"""
    total_products: int = 0
    in_stock: int = 0
    low_stock: int = 0
    out_of_stock: int = 0
    total_value: int = 0  # cents of available stock
    needs_reorder: int = 0

