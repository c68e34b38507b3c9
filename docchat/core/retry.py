"""
Bounded exponential-backoff retry around awaitable operations.

The delay before attempt ``i + 1`` is ``initial_delay * 2 ** (i - 1)``. The
last failure is re-raised unchanged so callers can still tell timeouts,
validation problems and service errors apart.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

import httpx
from loguru import logger
from tenacity import (
	AsyncRetrying,
	RetryCallState,
	retry_if_exception,
	retry_if_exception_type,
	stop_after_attempt,
	stop_after_delay,
	wait_exponential,
)

from docchat.core.metrics import RETRY_ATTEMPTS
from docchat.errors import UpstreamError

T = TypeVar("T")

TRANSIENT_STATUS = {408, 425, 429}


def is_transient_status(status: int) -> bool:
	return status in TRANSIENT_STATUS or status >= 500


def is_transient(exc: BaseException) -> bool:
	if isinstance(exc, UpstreamError):
		return exc.transient
	return isinstance(exc, httpx.TransportError)


async def with_retry(
	operation: Callable[[], Awaitable[T]],
	max_attempts: int = 3,
	initial_delay: float = 2.0,
	*,
	deadline: float | None = None,
	retry_on: Callable[[BaseException], bool] | None = None,
	sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
	name: str = "operation",
) -> T:
	if max_attempts < 1:
		raise ValueError("max_attempts must be >= 1")
	if initial_delay <= 0:
		raise ValueError("initial_delay must be > 0")

	stop = stop_after_attempt(max_attempts)
	if deadline is not None:
		stop = stop | stop_after_delay(deadline)

	def _before_sleep(state: RetryCallState) -> None:
		RETRY_ATTEMPTS.labels(name).inc()
		exc = state.outcome.exception() if state.outcome else None
		delay = state.next_action.sleep if state.next_action else 0.0
		logger.warning(
			f"{name} failed on attempt {state.attempt_number}/{max_attempts} "
			f"({type(exc).__name__}: {exc}); retrying in {delay:.2f}s"
		)

	retrying = AsyncRetrying(
		stop=stop,
		wait=wait_exponential(multiplier=initial_delay, exp_base=2),
		retry=(
			retry_if_exception(retry_on)
			if retry_on is not None
			else retry_if_exception_type()
		),
		sleep=sleep,
		before_sleep=_before_sleep,
		reraise=True,
	)

	# tenacity only awaits coroutine functions, not lambdas returning coroutines
	async def _call() -> T:
		return await operation()

	return await retrying(_call)


@dataclass
class RetryPolicy:
	max_attempts: int = 3
	initial_delay: float = 2.0
	deadline: float | None = None
	sleep: Callable[[float], Awaitable[Any]] = field(default=asyncio.sleep)
	retry_on: Callable[[BaseException], bool] = field(default=is_transient)

	async def run(self, operation: Callable[[], Awaitable[T]], name: str) -> T:
		return await with_retry(
			operation,
			self.max_attempts,
			self.initial_delay,
			deadline=self.deadline,
			retry_on=self.retry_on,
			sleep=self.sleep,
			name=name,
		)
