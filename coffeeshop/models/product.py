# coffeeshop/models/product.py
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field
from .base import TimeStampedModel
from .inventory import InventoryRecord, StockStatus

class RoastLevel(str, Enum):
    LIGHT = "light"
    MEDIUM = "medium"
    MEDIUM_DARK = "medium-dark"
    DARK = "dark"
    EXTRA_DARK = "extra-dark"

class ProcessingMethod(str, Enum):
    WASHED = "washed"
    NATURAL = "natural"
    HONEY = "honey"
    SEMI_WASHED = "semi-washed"

class ProductStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SEASONAL = "seasonal"

class CoffeeProduct(TimeStampedModel):
    """Coffee product as listed in the catalog"""
    name: str
    origin: str
    roast_level: RoastLevel
    flavor_profile: str = ""
    intensity: int = Field(ge=1, le=10)
    price: int = Field(ge=0)  # cents
    description: str = ""
    processing_method: ProcessingMethod = ProcessingMethod.WASHED
    altitude: str = ""
    variety: str = ""
    farm_info: str = ""
    image_url: Optional[str] = None
    is_active: ProductStatus = ProductStatus.ACTIVE

class ProductWithInventory(BaseModel):
    """Product joined with its inventory record"""
    product: CoffeeProduct
    inventory: Optional[InventoryRecord] = None

    @property
    def product_id(self) -> str:
        return self.product.id

    @property
    def available_stock(self) -> int:
        return self.inventory.available_stock if self.inventory else 0

    @property
    def stock_status(self) -> StockStatus:
        return self.inventory.stock_status if self.inventory else StockStatus.OUT_OF_STOCK
