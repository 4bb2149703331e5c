"""Background revocation sweep shared by the API lifespan."""

import asyncio
import logging

from taskauth.auth.revocation import RevocationStore

logger = logging.getLogger(__name__)


async def revocation_sweep_loop(store: RevocationStore, interval_seconds: float) -> None:
    """Periodically drop deny-list entries whose tokens have expired."""
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            removed = store.sweep()
            if removed > 0:
                logger.debug("Revocation sweep: removed %d expired entries", removed)
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.warning("Revocation sweep error: %s", e)
