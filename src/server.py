"""Background engine for PickHouse.

Only needed with asynchronous event processing (PROTEAN_ENV=production).
The engine publishes outbox events to Redis and feeds the projections
(order status, missing-items dashboard, batch tracking) and the batch
ledger handler from the picking streams.

Usage:
    PROTEAN_ENV=production python src/server.py
"""

import asyncio

import structlog
from protean.server.engine import Engine

logger = structlog.get_logger(__name__)


async def run() -> None:
    from picking.domain import picking

    picking.init()
    logger.info("Starting picking engine", domain=picking.name)
    await Engine(picking).run()


if __name__ == "__main__":
    asyncio.run(run())
