"""WorkerHandler -- controls a single worker over one execution backend.

The handler owns the backend, correlates requests and responses by task id,
holds requests back until the worker reports it is ready, and drives the
termination state machine:

	ACTIVE -> TERMINATING (draining in-flight tasks) -> TERMINATED

A backend error or exit rejects every outstanding task, so no caller is left
waiting on a worker that will never answer.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pool_worker.backends import WorkerBackend, create_backend, default_script
from pool_worker.config import WorkerOptions
from pool_worker.deferred import Deferred, is_cancellation
from pool_worker.environment import Capabilities, detect_capabilities
from pool_worker.errors import WorkerError, WorkerExitError, WorkerTerminatedError, decode_error
from pool_worker.protocol import METHODS, Request, is_ready_signal, parse_response

logger = logging.getLogger(__name__)

TerminationHandler = Callable[["WorkerHandler"], Any]


class WorkerState(Enum):
	ACTIVE = "active"
	TERMINATING = "terminating"
	TERMINATED = "terminated"


@dataclass
class Task:
	id: int
	resolver: Deferred


class TaskTable:
	"""Outstanding tasks keyed by id. Each entry is removed exactly once."""

	def __init__(self) -> None:
		self._tasks: dict[int, Task] = {}

	def insert(self, task: Task) -> None:
		self._tasks[task.id] = task

	def take(self, task_id: int) -> Task | None:
		return self._tasks.pop(task_id, None)

	def drain(self) -> list[Task]:
		tasks = list(self._tasks.values())
		self._tasks.clear()
		return tasks

	def ids(self) -> list[int]:
		return list(self._tasks)

	def __len__(self) -> int:
		return len(self._tasks)

	def __contains__(self, task_id: object) -> bool:
		return task_id in self._tasks


class WorkerHandler:
	"""Controls a single worker: a thread, a child process or a Web Worker.

	Args:
		script: Worker script path (object URL in a browser). Without one the
			default worker is started and treated as ready immediately.
		options: Backend selection and launch options.
		capabilities: Runtime capabilities; detected when omitted.
		loop: Event loop that receives backend events. Defaults to the
			running loop.
	"""

	def __init__(
		self,
		script: str | None = None,
		options: WorkerOptions | None = None,
		*,
		capabilities: Capabilities | None = None,
		loop: asyncio.AbstractEventLoop | None = None,
	) -> None:
		self.options = options or WorkerOptions()
		self.capabilities = capabilities or detect_capabilities()
		self.loop = loop or asyncio.get_running_loop()
		self.script = script or default_script(self.capabilities)
		self.debug_port = self.options.debug_port

		self.worker: WorkerBackend | None = create_backend(
			self.script, self.options, self.loop, self.capabilities,
		)
		# Only a registered worker script sends the ready signal
		self.ready = not script
		self.request_queue: list[dict[str, Any]] = []
		self.processing = TaskTable()
		self.terminating = False
		self.terminated = False
		self.termination_handler: TerminationHandler | None = None
		self.last_id = 0
		self.terminated_future: asyncio.Future[WorkerHandler] = self.loop.create_future()

		backend = self.worker
		backend.on_message(self._on_message)
		backend.on_error(self._on_error)
		backend.on_exit(functools.partial(self._on_exit, backend))

	@property
	def state(self) -> WorkerState:
		if self.terminated:
			return WorkerState.TERMINATED
		if self.terminating:
			return WorkerState.TERMINATING
		return WorkerState.ACTIVE

	def methods(self) -> asyncio.Future[Any]:
		"""List the methods available on the worker."""
		return self.exec(METHODS)

	def exec(
		self,
		method: str,
		params: list[Any] | None = None,
		resolver: Deferred | None = None,
	) -> asyncio.Future[Any]:
		"""Execute a method with the given parameters on the worker.

		Cancelling the returned future, or letting it time out, terminates the
		whole worker: the backend has no way to abort a single call.
		"""
		if resolver is None:
			resolver = Deferred(self.loop)

		self.last_id += 1
		task_id = self.last_id
		self.processing.insert(Task(id=task_id, resolver=resolver))

		request = Request(id=task_id, method=method, params=params).model_dump()

		if self.terminated or self.worker is None:
			resolver.reject(WorkerTerminatedError("Worker is terminated"))
		elif self.ready:
			logger.debug("Sending task %d (%s) to worker", task_id, method)
			self.worker.send(request)
		else:
			logger.debug("Queueing task %d (%s) until worker is ready", task_id, method)
			self.request_queue.append(request)

		resolver.future.add_done_callback(functools.partial(self._on_task_settled, task_id, resolver))
		return resolver.future

	def _on_task_settled(self, task_id: int, resolver: Deferred, _future: asyncio.Future[Any]) -> None:
		if not is_cancellation(resolver):
			return
		# Already settled; a late response for this id must be ignored
		self.processing.take(task_id)
		logger.info("Task %d cancelled or timed out; terminating worker", task_id)
		self.terminate(force=True)

	def busy(self) -> bool:
		"""True while any task is outstanding."""
		return len(self.processing) > 0

	def _dispatch_queued_requests(self) -> None:
		queued, self.request_queue = self.request_queue, []
		if self.worker is None:
			return
		if queued:
			logger.debug("Worker ready; flushing %d queued request(s)", len(queued))
		for request in queued:
			self.worker.send(request)

	def _on_message(self, message: Any) -> None:
		if is_ready_signal(message):
			self.ready = True
			self._dispatch_queued_requests()
			return

		response = parse_response(message)
		if response is None:
			logger.warning("Ignoring malformed worker message: %r", message)
			return

		if response.id not in self.processing:
			logger.debug("Ignoring response for unknown task %d", response.id)
			return
		# Decode before the task leaves the table
		error = decode_error(response.error) if response.failed else None
		task = self.processing.take(response.id)

		if self.terminating and not self.busy():
			self.terminate()

		if error is not None:
			task.resolver.reject(error)
		else:
			task.resolver.resolve(response.result)

	def _on_error(self, error: BaseException) -> None:
		if self.terminated:
			logger.debug("Worker event after termination: %s", error)
		else:
			logger.warning("Worker failed: %s", error)
		self.terminated = True
		if self.terminating and self.termination_handler is not None:
			self.termination_handler(self)
		self.terminating = False
		self._resolve_terminated()

		for task in self.processing.drain():
			task.resolver.reject(error)

	def _on_exit(self, backend: WorkerBackend, exit_code: int | None, signal: str | None) -> None:
		details = backend.describe()
		message = "Workerpool Worker terminated Unexpectedly\n"
		message += f"    exitCode: `{exit_code}`\n"
		message += f"    signalCode: `{signal}`\n"
		message += f"    workerpool.script: `{self.script}`\n"
		message += f"    spawnArgs: `{details.get('spawnargs')}`\n"
		message += f"    spawnfile: `{details.get('spawnfile')}`\n"
		message += f"    stdout: `{details.get('stdout')}`\n"
		message += f"    stderr: `{details.get('stderr')}`\n"
		self._on_error(WorkerExitError(
			message,
			exit_code=exit_code,
			signal=signal,
			script=self.script,
			backend=details,
		))

	def _resolve_terminated(self) -> None:
		if not self.terminated_future.done():
			self.terminated_future.set_result(self)

	def terminate(self, force: bool = False, callback: TerminationHandler | None = None) -> None:
		"""Terminate the worker.

		Args:
			force: If False (default), the worker is stopped once all tasks in
				progress have finished. If True, outstanding tasks are rejected
				and the worker is stopped immediately.
			callback: Called with this handler when termination completes.
				Replaces any callback registered by an earlier call.
		"""
		if force:
			for task in self.processing.drain():
				task.resolver.reject(WorkerTerminatedError("Worker terminated"))

		if callable(callback):
			self.termination_handler = callback

		if self.busy():
			# Still tasks in flight; the last response completes termination
			self.terminating = True
			return

		if self.worker is not None:
			stop = getattr(self.worker, "terminate_gracefully", None) or getattr(
				self.worker, "terminate_forcibly", None,
			)
			if stop is None:
				raise WorkerError("Failed to terminate worker")
			stop()
			self.worker = None
		self.terminating = False
		self.terminated = True
		logger.info("Worker terminated (script=%s)", self.script)
		self._resolve_terminated()
		if self.termination_handler is not None:
			self.termination_handler(self)

	def terminate_and_notify(self, force: bool = False, timeout: float | None = None) -> asyncio.Future[Any]:
		"""Terminate the worker and return a future resolved with this handler once done.

		Args:
			force: See :meth:`terminate`.
			timeout: If given and non-zero, the future is rejected with a
				TaskTimeoutError when termination has not completed in time.
		"""
		resolver = Deferred(self.loop)
		if timeout:
			resolver.timeout(timeout)
		self.terminate(force, resolver.resolve)
		return resolver.future
