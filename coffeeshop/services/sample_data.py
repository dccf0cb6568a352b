# coffeeshop/services/sample_data.py
from datetime import datetime, timedelta
from typing import Any, Dict, List
from ..models.inventory import InventoryRecord, derive_stock_status

SAMPLE_PRODUCTS: List[Dict[str, Any]] = [
    {
        "name": "Ethiopian Yirgacheffe",
        "origin": "Yirgacheffe, Ethiopia",
        "roast_level": "light",
        "flavor_profile": "floral, citrus, tea-like, bergamot",
        "intensity": 3,
        "price": 1899,
        "description": "Bright and floral with wine-like acidity and delicate tea notes.",
        "processing_method": "washed",
        "altitude": "1900-2200m",
        "variety": "Heirloom Ethiopian",
        "farm_info": "Konga Cooperative",
    },
    {
        "name": "Colombian Supremo",
        "origin": "Huila, Colombia",
        "roast_level": "medium",
        "flavor_profile": "chocolate, caramel, nutty, vanilla",
        "intensity": 5,
        "price": 1699,
        "description": "Well-balanced with rich chocolate notes and a smooth caramel finish.",
        "processing_method": "washed",
        "altitude": "1500-1800m",
        "variety": "Caturra, Castillo",
        "farm_info": "Huila Cooperative",
    },
    {
        "name": "Costa Rican Tarrazu",
        "origin": "Tarrazu, Costa Rica",
        "roast_level": "medium",
        "flavor_profile": "bright, fruity, clean, orange",
        "intensity": 4,
        "price": 1999,
        "description": "Clean and bright with complex fruit notes and vibrant acidity.",
        "processing_method": "honey",
        "altitude": "1200-1700m",
        "variety": "Caturra, Catuai",
        "farm_info": "Tarrazu Estate",
    },
    {
        "name": "Guatemalan Antigua",
        "origin": "Antigua, Guatemala",
        "roast_level": "medium-dark",
        "flavor_profile": "smoky, spicy, full-bodied, dark chocolate",
        "intensity": 6,
        "price": 1799,
        "description": "Full-bodied with smoky undertones and spicy complexity.",
        "processing_method": "washed",
        "altitude": "1500-1700m",
        "variety": "Bourbon, Typica",
        "farm_info": "Antigua Valley Farms",
    },
    {
        "name": "Brazilian Santos",
        "origin": "Sao Paulo, Brazil",
        "roast_level": "dark",
        "flavor_profile": "bold, earthy, rich, cocoa",
        "intensity": 8,
        "price": 1599,
        "description": "Bold and rich with earthy undertones and low acidity.",
        "processing_method": "natural",
        "altitude": "800-1200m",
        "variety": "Bourbon, Mundo Novo",
        "farm_info": "Santos Region Farms",
    },
    {
        "name": "Italian Espresso Roast",
        "origin": "Minas Gerais, Brazil",
        "roast_level": "extra-dark",
        "flavor_profile": "bittersweet, smoky, intense",
        "intensity": 10,
        "price": 1499,
        "description": "An intense roast for espresso with a bittersweet, smoky finish.",
        "processing_method": "natural",
        "altitude": "900-1200m",
        "variety": "Bourbon",
        "farm_info": "Cerrado Cooperatives",
    },
]

REORDER_LEVEL = 15

def sample_inventory(product_id: str, now: datetime, current_stock: int = 60) -> InventoryRecord:
    """Starting stock row for a seeded product"""
    return InventoryRecord(
        product_id=product_id,
        current_stock=current_stock,
        reserved_stock=0,
        reorder_level=REORDER_LEVEL,
        reorder_quantity=50,
        stock_status=derive_stock_status(current_stock, REORDER_LEVEL),
        last_restock_date=now,
        last_restock_quantity=current_stock,
        expiry_date=now + timedelta(days=365),
        batch_number=f"BATCH-{now:%Y%m%d}-{product_id[-4:]}",
        updated_at=now
    )
