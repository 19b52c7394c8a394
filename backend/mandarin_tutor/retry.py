from __future__ import annotations
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RATE_LIMIT_MARKERS = ("429", "quota", "RESOURCE_EXHAUSTED")


def is_rate_limit_error(exc: BaseException) -> bool:
	if isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code == 429:
		return True
	message = str(exc)
	return any(marker in message for marker in _RATE_LIMIT_MARKERS)


async def call_with_retry(
	fn: Callable[[], Awaitable[T]],
	*,
	retries: int = 3,
	delay: float = 2.0,
	sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
	"""Await ``fn()``, retrying rate-limit failures with doubling delays.

	Any other error is raised immediately.
	"""
	attempt = 0
	while True:
		try:
			return await fn()
		except Exception as exc:
			if attempt >= retries or not is_rate_limit_error(exc):
				raise
			attempt += 1
			logger.warning("Rate limit hit (%s). Retrying in %.1fs (%d/%d)", exc, delay, attempt, retries)
			await sleep(delay)
			delay *= 2
