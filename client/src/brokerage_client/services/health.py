"""
Backend health probe.

``check_health`` performs one request against ``/health``.
``wait_until_healthy`` polls it with exponential backoff until the
backend reports ``UP``; it is an explicit operator action (for example
before running a script against a freshly started backend) and is never
applied to domain calls.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from tenacity import AsyncRetrying, RetryError, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..clients.brokerage_api import BrokerageApi
from ..errors import BrokerageError

logger = logging.getLogger(__name__)

HEALTHY_STATUS = "UP"


class BackendUnavailable(BrokerageError):
    """The backend did not report itself healthy."""


async def check_health(api: BrokerageApi) -> Dict[str, Any]:
    status = await api.get_health()
    if str(status.get("status", "")).upper() != HEALTHY_STATUS:
        raise BackendUnavailable(f"Backend status is {status.get('status')!r}")
    return status


async def wait_until_healthy(
    api: BrokerageApi, attempts: int = 5, min_wait: float = 1.0, max_wait: float = 8.0
) -> Dict[str, Any]:
    """Poll ``/health`` until it reports ``UP`` or ``attempts`` run out."""
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max(1, attempts)),
            wait=wait_exponential(min=min_wait, max=max_wait),
            retry=retry_if_exception_type(BrokerageError),
        ):
            with attempt:
                number = attempt.retry_state.attempt_number
                logger.debug("Health check attempt %s/%s", number, attempts)
                return await check_health(api)
    except RetryError as exc:
        last = exc.last_attempt.exception()
        raise BackendUnavailable(f"Backend not healthy after {attempts} attempts: {last}") from last
    raise BackendUnavailable("Backend health was not checked")  # pragma: no cover
