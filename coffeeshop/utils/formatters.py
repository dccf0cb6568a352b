# coffeeshop/utils/formatters.py
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
import pytz
from ..config import Config

def format_price(cents: int) -> str:
    """Format an amount in cents as dollars"""
    return f"${Decimal(cents) / 100:,.2f}"

def format_datetime(dt: datetime) -> str:
    """Format a timestamp in the shop's timezone"""
    shop_tz = pytz.timezone(Config.TIMEZONE)
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    local_time = dt.astimezone(shop_tz)
    return local_time.strftime("%Y-%m-%d %H:%M:%S")

def percent_of(cents: int, rate: Decimal) -> int:
    """Percentage of an amount in cents, rounded half up to a whole cent"""
    return int((Decimal(cents) * rate).quantize(Decimal(1), rounding=ROUND_HALF_UP))

def utc_now() -> datetime:
    return datetime.now(pytz.utc)
