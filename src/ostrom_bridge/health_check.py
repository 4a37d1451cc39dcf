"""
Health check module for Docker health checks and monitoring.
Verifies meter store connectivity and that the Ostrom credentials are accepted.
"""

import asyncio
import sys

from ostrom_bridge.client import authenticator, rate_limiter
from ostrom_bridge.database import meter_store
from ostrom_bridge.exceptions import AuthenticationError
from ostrom_bridge.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


async def health_check() -> bool:
    """
    Perform health check of the service dependencies.
    """
    try:
        store_healthy = await meter_store.health_check()

        await authenticator.ensure_fresh()

        return store_healthy

    except AuthenticationError as e:
        logger.error("Ostrom credentials rejected", error=str(e))
        return False
    except Exception as e:
        logger.error("Health check failed", error=str(e))
        return False
    finally:
        await rate_limiter.close()
        await meter_store.close()


async def main():
    """
    Main health check entry point for command line usage.
    """
    setup_logging()
    is_healthy = await health_check()

    if is_healthy:
        logger.info("Health check passed")
        sys.exit(0)
    else:
        logger.error("Health check failed")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
