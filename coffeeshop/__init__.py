"""Coffee storefront core: catalog, reserved cart, checkout and subscriptions."""

__version__ = "0.1.0"
