# main.py
import asyncio
import logging
from coffeeshop.config import Config, setup_logging
from coffeeshop.shop import CoffeeShop
from coffeeshop.utils.formatters import format_price

async def main():
    # Setup logging
    setup_logging()
    logger = logging.getLogger(__name__)

    Config.validate()
    shop = CoffeeShop()
    try:
        await shop.start()
        await shop.catalog.initialize_sample_data()
        for item in await shop.catalog.get_products_with_inventory():
            logger.info(
                f"{item.product.name} ({item.product.roast_level.value}) "
                f"{format_price(item.product.price)} - {item.available_stock} available"
            )
    except Exception as e:
        logger.error(f"Error starting storefront: {e}", exc_info=True)
        raise
    finally:
        await shop.stop()

if __name__ == "__main__":
    asyncio.run(main())
