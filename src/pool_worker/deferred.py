"""Settle-once future controller used to represent in-flight results."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from pool_worker.errors import CancellationError, TaskTimeoutError

logger = logging.getLogger(__name__)


class Deferred:
	"""Owns an asyncio.Future and settles it at most once.

	``resolve``/``reject`` on an already settled future are no-ops, which lets
	several parties (responses, forced termination, backend failure) race to
	settle the same task.
	"""

	def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
		self.loop = loop or asyncio.get_running_loop()
		self.future: asyncio.Future[Any] = self.loop.create_future()
		self._timer: asyncio.TimerHandle | None = None
		self.error: BaseException | None = None
		self.future.add_done_callback(self._clear_timer)

	@property
	def pending(self) -> bool:
		return not self.future.done()

	def resolve(self, value: Any = None) -> None:
		if not self.future.done():
			self.future.set_result(value)

	def reject(self, error: BaseException) -> None:
		if not self.future.done():
			self.error = error
			self.future.set_exception(error)

	def cancel(self) -> None:
		"""Reject with a CancellationError."""
		self.reject(CancellationError("Promise cancelled"))

	def timeout(self, delay: float) -> None:
		"""Reject with a TaskTimeoutError unless settled within ``delay`` seconds."""
		if self._timer is not None:
			self._timer.cancel()
		if self.future.done():
			return
		self._timer = self.loop.call_later(
			delay, self.reject, TaskTimeoutError(f"Promise timed out after {delay * 1000:g} ms"),
		)

	def _clear_timer(self, _future: asyncio.Future[Any]) -> None:
		if self._timer is not None:
			self._timer.cancel()
			self._timer = None


def is_cancellation(deferred: Deferred) -> bool:
	"""True when the future settled through a cancellation or a timeout.

	Reads the rejection recorded by the Deferred, so the future's exception is
	not marked as retrieved and asyncio still reports it if nobody awaits it.
	"""
	if deferred.future.cancelled():
		return True
	return isinstance(deferred.error, (CancellationError, TimeoutError))
