# coffeeshop/services/catalog_service.py
import logging
from typing import Dict, List, Optional
from pydantic import ValidationError
from ..config import Config
from ..exceptions import NotFound, ShopError
from ..models.inventory import InventoryRecord, StockStatus
from ..models.product import CoffeeProduct, ProductStatus, ProductWithInventory, RoastLevel
from ..utils.formatters import utc_now
from .sample_data import SAMPLE_PRODUCTS, sample_inventory

class CatalogService:
    """Read side of the product catalog"""

    def __init__(self, store, inventory):
        self.store = store
        self.inventory = inventory
        self.table_id = Config.TABLES["products"]
        self.logger = logging.getLogger(__name__)

    def _parse(self, items) -> List[CoffeeProduct]:
        products = []
        for item in items:
            try:
                products.append(CoffeeProduct.model_validate(item))
            except ValidationError as e:
                self.logger.warning(f"Skipping malformed product {item.get('_id')}: {e}")
        return products

    async def get_all_products(self) -> List[CoffeeProduct]:
        """Active products, mildest first"""
        try:
            items = await self.store.get_items(
                self.table_id,
                query={"is_active": ProductStatus.ACTIVE.value},
                sort="intensity",
                order="asc",
                limit=50
            )
        except ShopError as e:
            self.logger.error(f"Failed to fetch products: {e}")
            return []
        return self._parse(items)

    async def get_products_by_roast_level(self, roast_level: RoastLevel) -> List[CoffeeProduct]:
        try:
            items = await self.store.get_items(
                self.table_id,
                query={"roast_level": RoastLevel(roast_level).value, "is_active": ProductStatus.ACTIVE.value},
                sort="intensity",
                order="asc"
            )
        except ShopError as e:
            self.logger.error(f"Failed to fetch products by roast level: {e}")
            return []
        return self._parse(items)

    async def get_products_by_intensity_range(self, min_intensity: int, max_intensity: int) -> List[CoffeeProduct]:
        products = await self.get_all_products()
        return [p for p in products if min_intensity <= p.intensity <= max_intensity]

    async def get_inventory_for_product(self, product_id: str) -> Optional[InventoryRecord]:
        try:
            return await self.inventory.get(product_id)
        except NotFound:
            return None
        except ShopError as e:
            self.logger.error(f"Failed to fetch inventory for {product_id}: {e}")
            return None

    async def get_products_with_inventory(self) -> List[ProductWithInventory]:
        """Active products joined with stock, most available first"""
        products = await self.get_all_products()
        try:
            records = await self.inventory.list_all()
        except ShopError as e:
            self.logger.error(f"Failed to fetch inventory: {e}")
            records = []
        by_product: Dict[str, InventoryRecord] = {r.product_id: r for r in records}

        joined = [ProductWithInventory(product=p, inventory=by_product.get(p.id)) for p in products]
        joined.sort(key=lambda item: item.available_stock, reverse=True)
        return joined

    async def get_product(self, product_id: str) -> Optional[ProductWithInventory]:
        items = await self.store.get_items(self.table_id, query={"_id": product_id}, limit=1)
        if not items:
            return None
        product = CoffeeProduct.model_validate(items[0])
        return ProductWithInventory(product=product, inventory=await self.get_inventory_for_product(product_id))

    async def check_product_availability(self, product_id: str, quantity: int = 1) -> bool:
        record = await self.get_inventory_for_product(product_id)
        return record is not None and record.available_stock >= quantity

    async def get_featured_products(self, limit: int = 6) -> List[ProductWithInventory]:
        """Best sellers that are not out of stock"""
        products = await self.get_products_with_inventory()
        featured = [p for p in products if p.stock_status != StockStatus.OUT_OF_STOCK]
        featured.sort(key=lambda p: p.inventory.total_sold if p.inventory else 0, reverse=True)
        return featured[:limit]

    async def get_recommended_products(self, intensity: int, roast_levels: List[str],
                                       limit: int = 6) -> List[CoffeeProduct]:
        """Products closest to a preferred intensity, optionally limited to roast levels"""
        products = await self.get_all_products()
        if roast_levels:
            products = [p for p in products if p.roast_level.value in roast_levels]
        products.sort(key=lambda p: abs(p.intensity - intensity))
        return products[:limit]

    async def initialize_sample_data(self) -> int:
        """Seed products and stock when the catalog is empty"""
        existing = await self.store.get_items(self.table_id, limit=1)
        if existing:
            return 0

        now = utc_now()
        created = 0
        for data in SAMPLE_PRODUCTS:
            product = CoffeeProduct(**data, created_at=now, updated_at=now)
            record = product.to_record()
            record.pop("_id", None)
            stored = await self.store.add_item(self.table_id, record)
            await self.inventory.create(sample_inventory(stored["_id"], now))
            created += 1

        self.logger.info(f"Seeded {created} sample products")
        return created
