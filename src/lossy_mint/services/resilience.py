"""Deadlines and bounded retries for calls to external services."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from lossy_mint.errors import MintingAppError, UpstreamFailure, UpstreamTimeout

T = TypeVar("T")

logger = logging.getLogger(__name__)


async def call_upstream(
    service: str,
    factory: Callable[[], Awaitable[T]],
    *,
    timeout: float,
    retries: int = 0,
    min_wait: float = 0.25,
    max_wait: float = 2.0,
) -> T:
    """Run ``factory()`` with a deadline, mapping failures to typed errors.

    ``retries`` must stay 0 for anything that broadcasts a transaction;
    only idempotent reads may be retried.
    """
    attempt = 0
    while True:
        try:
            return await asyncio.wait_for(factory(), timeout=timeout)
        except MintingAppError as exc:
            if not exc.retryable or attempt >= retries:
                raise
            error: MintingAppError = exc
        except TimeoutError as exc:
            error = UpstreamTimeout(service, timeout)
            if attempt >= retries:
                raise error from exc
        except Exception as exc:  # noqa: BLE001
            error = UpstreamFailure(service, str(exc) or type(exc).__name__)
            if attempt >= retries:
                raise error from exc
        attempt += 1
        wait_time = min(min_wait * (2 ** (attempt - 1)), max_wait)
        logger.warning(
            "Retrying %s call (%s/%s) after %.2fs: %s",
            service,
            attempt,
            retries,
            wait_time,
            error.message,
        )
        await asyncio.sleep(wait_time)
