"""Worker execution backends for pool-worker."""

from __future__ import annotations

import asyncio

from pool_worker import worker as default_worker
from pool_worker.backends.base import WorkerBackend
from pool_worker.backends.browser import (
	BrowserBackend,
	BrowserRuntime,
	default_browser_script,
	load_browser_runtime,
)
from pool_worker.backends.process import ProcessBackend
from pool_worker.backends.thread import ThreadBackend
from pool_worker.config import WorkerOptions
from pool_worker.environment import Capabilities
from pool_worker.errors import WorkerSetupError
from pool_worker.fork_options import resolve_fork_options


def ensure_threads(capabilities: Capabilities) -> None:
	if not capabilities.threads.available:
		raise WorkerSetupError(
			"WorkerPool: worker_type = thread is not supported "
			f"({capabilities.threads.reason})"
		)


def default_script(capabilities: Capabilities) -> str:
	"""The worker script used when a handler is given none."""
	if capabilities.is_browser:
		return default_browser_script(load_browser_runtime())
	return str(default_worker.__file__)


def create_backend(
	script: str,
	options: WorkerOptions,
	loop: asyncio.AbstractEventLoop,
	capabilities: Capabilities,
) -> WorkerBackend:
	"""Pick and start the backend for this runtime and options.

	A browser always gets a Web Worker. Otherwise ``thread`` demands a thread
	(failing fast without one), ``auto`` takes a thread when available, and
	everything else runs a child process.
	"""
	if capabilities.is_browser:
		if not capabilities.web_workers.available:
			raise WorkerSetupError("WorkerPool: Web workers not supported by the browser")
		return BrowserBackend(script)

	if options.worker_type == "thread":
		ensure_threads(capabilities)
		return ThreadBackend(script, loop)
	if options.worker_type == "auto" and capabilities.threads.available:
		return ThreadBackend(script, loop)
	return ProcessBackend(script, resolve_fork_options(options), loop)


__all__ = [
	"BrowserBackend",
	"BrowserRuntime",
	"ProcessBackend",
	"ThreadBackend",
	"WorkerBackend",
	"create_backend",
	"default_script",
	"ensure_threads",
]
