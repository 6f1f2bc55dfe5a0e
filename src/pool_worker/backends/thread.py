"""Thread backend -- runs the worker script on a daemon thread in this interpreter."""

from __future__ import annotations

import asyncio
import importlib.machinery
import importlib.util
import itertools
import json
import logging
import queue
import threading
from types import ModuleType
from typing import Any

from pool_worker.backends.base import WorkerBackend
from pool_worker.errors import WorkerSetupError

logger = logging.getLogger(__name__)

_thread_ids = itertools.count(1)


def load_worker_script(path: str) -> ModuleType:
	"""Execute a worker script as ``__main__`` without touching ``sys.modules`` or ``sys.argv``.

	``runpy.run_path`` swaps both for as long as the script runs, which for a
	worker is the life of the thread and would leak into the host program.
	"""
	loader = importlib.machinery.SourceFileLoader("__main__", path)
	spec = importlib.util.spec_from_file_location("__main__", path, loader=loader)
	if spec is None:
		raise WorkerSetupError(f"Cannot load worker script {path}")
	module = importlib.util.module_from_spec(spec)
	loader.exec_module(module)
	return module


class ThreadChannel:
	"""Worker-side end of a thread backend's message queue.

	Messages travel as JSON text in both directions, so a thread worker sees
	exactly what a process worker would.
	"""

	def __init__(self, backend: ThreadBackend) -> None:
		self._backend = backend
		self._inbound: queue.Queue[str | None] = queue.Queue()

	def receive(self) -> Any | None:
		"""Block for the next message; None once the channel is closed."""
		raw = self._inbound.get()
		if raw is None:
			return None
		return json.loads(raw)

	def send(self, message: Any) -> None:
		self._backend._post(json.dumps(message))

	def _deliver(self, raw: str) -> None:
		self._inbound.put(raw)

	def close(self) -> None:
		self._inbound.put(None)


class WorkerThread(threading.Thread):
	"""Thread that exposes its channel to the worker runtime running on it."""

	def __init__(self, backend: ThreadBackend, channel: ThreadChannel) -> None:
		super().__init__(name=f"pool-worker-{next(_thread_ids)}", daemon=True)
		self.backend = backend
		self.channel = channel

	def run(self) -> None:
		self.backend._run()


class ThreadBackend(WorkerBackend):
	"""Execute a worker script on a thread, talking to it over an in-memory channel.

	Python threads cannot be interrupted, so stopping closes the channel: the
	worker's request loop ends once the request it is executing returns, and
	anything it sends after the stop is dropped.
	"""

	kind = "thread"

	def __init__(self, script: str, loop: asyncio.AbstractEventLoop) -> None:
		super().__init__(script)
		self._loop = loop
		self._stopped = False
		self.channel = ThreadChannel(self)
		self._thread = WorkerThread(self, self.channel)
		self._thread.start()
		logger.debug("Started thread worker %s for %s", self._thread.name, script)

	def _run(self) -> None:
		exit_code = 0
		try:
			load_worker_script(self.script)
		except SystemExit as exc:
			if isinstance(exc.code, int):
				exit_code = exc.code
			elif exc.code is not None:
				exit_code = 1
		except BaseException as exc:  # noqa: BLE001
			exit_code = 1
			self._emit_threadsafe(self._loop, "error", exc)
		finally:
			self._emit_threadsafe(self._loop, "exit", exit_code, None)

	def _post(self, raw: str) -> None:
		if self._stopped:
			return
		self._emit_threadsafe(self._loop, "message", json.loads(raw))

	def send(self, message: Any) -> None:
		if self._stopped:
			return
		self.channel._deliver(json.dumps(message))

	def terminate_forcibly(self) -> None:
		self._stopped = True
		self.channel.close()

	@property
	def alive(self) -> bool:
		return self._thread.is_alive()

	def describe(self) -> dict[str, Any]:
		info = super().describe()
		info["thread"] = self._thread.name
		return info
