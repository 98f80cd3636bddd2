from __future__ import annotations

import asyncio
import logging

from paper_node.feeds import RollingPriceFeed
from paper_node.node import PaperNode, build_node
from paper_node.services.interfaces.price_feed import PriceFeed
from paper_node.services.predictions import PredictionLifecycleService


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        force=True,
    )


def build_service(node: PaperNode | None = None) -> PredictionLifecycleService:
    node = node or build_node()
    return node.prediction_service(node.open_ledger_store())


async def prime_prices(price_feed: PriceFeed) -> None:
    """Fetch live quotes once so the first sweep never judges against the built-in defaults."""
    if isinstance(price_feed, RollingPriceFeed):
        await asyncio.to_thread(price_feed.refresh)


async def run_worker(node: PaperNode, service: PredictionLifecycleService) -> None:
    await prime_prices(node.price_feed)

    # The price-direction oracle judges against live quotes, so keep them fresh here too.
    tasks = [service.run()]
    if isinstance(node.price_feed, RollingPriceFeed):
        tasks.append(node.price_feed.run(node.settings.price_poll_interval_seconds))
    await asyncio.gather(*tasks)


async def main() -> None:
    configure_logging()
    logger = logging.getLogger(__name__)
    logger.info("resolution worker bootstrap")

    node = build_node()
    service = build_service(node)
    try:
        await run_worker(node, service)
    finally:
        service.ledger_store.close()


if __name__ == "__main__":
    asyncio.run(main())
