"""Abstract base class for worker execution backends."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

EVENTS = ("message", "error", "exit")

MessageHandler = Callable[[Any], None]
ErrorHandler = Callable[[BaseException], None]
ExitHandler = Callable[[int | None, str | None], None]


class WorkerBackend(ABC):
	"""One execution primitive normalized to send/receive/stop.

	Subclasses start listening to their primitive inside ``__init__``. Events
	emitted before a handler is attached are kept and replayed on attach, so a
	caller that subscribes right after construction never misses one.
	"""

	kind: str = ""

	def __init__(self, script: str) -> None:
		self.script = script
		self._handlers: dict[str, Callable[..., None] | None] = dict.fromkeys(EVENTS)
		self._backlog: list[tuple[str, tuple[Any, ...]]] = []

	def on_message(self, handler: MessageHandler) -> None:
		self._subscribe("message", handler)

	def on_error(self, handler: ErrorHandler) -> None:
		self._subscribe("error", handler)

	def on_exit(self, handler: ExitHandler) -> None:
		self._subscribe("exit", handler)

	def _subscribe(self, event: str, handler: Callable[..., None]) -> None:
		self._handlers[event] = handler
		replay = [args for name, args in self._backlog if name == event]
		self._backlog = [item for item in self._backlog if item[0] != event]
		for args in replay:
			handler(*args)

	def _emit(self, event: str, *args: Any) -> None:
		handler = self._handlers[event]
		if handler is None:
			self._backlog.append((event, args))
			return
		handler(*args)

	def _emit_threadsafe(self, loop: asyncio.AbstractEventLoop, event: str, *args: Any) -> None:
		"""Hand an event from a backend thread to the handler's event loop."""
		try:
			loop.call_soon_threadsafe(self._emit, event, *args)
		except RuntimeError:
			logger.debug("Dropping %s event from %s backend: event loop is closed", event, self.kind)

	@abstractmethod
	def send(self, message: Any) -> None:
		"""Deliver a message to the worker."""

	@abstractmethod
	def terminate_forcibly(self) -> None:
		"""Stop the worker immediately."""

	def terminate_gracefully(self) -> None:
		"""Stop the worker, letting it close its channel first where the primitive allows."""
		self.terminate_forcibly()

	def describe(self) -> dict[str, Any]:
		"""Identity details for diagnostics."""
		return {"kind": self.kind, "script": self.script}
