# coffeeshop/utils/security.py
import secrets
import string
import time

_ALPHABET = string.ascii_lowercase + string.digits

def _random_suffix(length: int = 9) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))

def generate_reservation_token() -> str:
    """Opaque token identifying a stock reservation"""
    return f"res_{int(time.time() * 1000)}_{_random_suffix()}"

def generate_order_number() -> str:
    """Customer-facing order number: AC, the last 8 digits of the ms clock, 4 random characters"""
    return f"AC{str(int(time.time() * 1000))[-8:]}{_random_suffix(4).upper()}"

def generate_address_id() -> str:
    return f"addr_{int(time.time() * 1000)}_{_random_suffix()}"

def mask_card_number(card_number: str) -> str:
    """Keep only the last four digits of a card number"""
    digits = "".join(ch for ch in card_number if ch.isdigit())
    if len(digits) < 4:
        return "*" * len(digits)
    return "**** **** **** " + digits[-4:]
