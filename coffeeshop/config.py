# coffeeshop/config.py
import os
import logging
from decimal import Decimal
from pathlib import Path
from dotenv import load_dotenv
from typing import Dict

# Load environment variables
load_dotenv()

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent.parent

class Config:
    """Configuration settings for the storefront"""

    # Hosted backend settings
    TABLE_API_URL: str = os.getenv("TABLE_API_URL", "")
    AUTH_API_URL: str = os.getenv("AUTH_API_URL", "")
    API_KEY: str = os.getenv("API_KEY", "")
    REQUEST_TIMEOUT: float = float(os.getenv("REQUEST_TIMEOUT", "10"))

    # Table ids in the hosted table store
    TABLES: Dict[str, str] = {
        "products": os.getenv("PRODUCTS_TABLE", "evmzzktorxts"),
        "inventory": os.getenv("INVENTORY_TABLE", "evn000r9yk8w"),
        "subscriptions": os.getenv("SUBSCRIPTIONS_TABLE", "evn00i73xszk"),
        "orders": os.getenv("ORDERS_TABLE", "evn0gqq0jvuo"),
        "users": os.getenv("USERS_TABLE", "evn0fugm9g5c"),
    }

    # Optional Postgres inventory backend
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")
    INVENTORY_BACKEND: str = os.getenv("INVENTORY_BACKEND", "table")

    # Cart settings
    RESERVATION_TTL_MINUTES: int = int(os.getenv("RESERVATION_TTL_MINUTES", "15"))

    # Checkout settings (amounts in cents)
    SHIPPING_FLAT_FEE: int = int(os.getenv("SHIPPING_FLAT_FEE", "500"))
    FREE_SHIPPING_THRESHOLD: int = int(os.getenv("FREE_SHIPPING_THRESHOLD", "5000"))
    TAX_RATE: Decimal = Decimal(os.getenv("TAX_RATE", "0.08"))
    CHECKOUT_MAX_RETRIES: int = int(os.getenv("CHECKOUT_MAX_RETRIES", "3"))

    # Other settings
    TIMEZONE: str = os.getenv("TZ", "America/New_York")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Paths
    DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))
    LOG_DIR = BASE_DIR / "logs"

    @classmethod
    def validate(cls):
        """Check required settings before the shop starts"""
        if not cls.TABLE_API_URL:
            raise ValueError("No TABLE_API_URL set in environment")
        if not cls.AUTH_API_URL:
            raise ValueError("No AUTH_API_URL set in environment")
        if cls.INVENTORY_BACKEND == "postgres" and not cls.DATABASE_URL:
            raise ValueError("No DATABASE_URL set in environment")

def setup_logging():
    """Configure logging settings"""
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    Config.LOG_DIR.mkdir(exist_ok=True)
    log_file = Config.LOG_DIR / "coffeeshop.log"

    logging.basicConfig(
        level=getattr(logging, Config.LOG_LEVEL),
        format=log_format,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )
