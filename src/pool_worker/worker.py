"""Worker-side runtime: answers requests sent by a WorkerHandler.

Run directly, this module is the default worker: it offers ``run`` and
``methods`` and does not send the ready signal. A custom worker script
registers its own functions and starts serving::

	from pool_worker import worker

	def add(a, b):
		return a + b

	worker.register({"add": add})

Inside a thread backend the channel is the queue pair attached to the current
thread; anywhere else it is JSON lines over stdin/stdout.
"""

from __future__ import annotations

import asyncio
import importlib
import inspect
import json
import sys
import threading
from collections.abc import Callable
from typing import Any

from pool_worker.errors import serialize_error
from pool_worker.protocol import METHODS, READY


class StdioChannel:
	"""JSON-lines channel over the process's stdin/stdout.

	Claims the real stdout for the protocol and points ``sys.stdout`` at stderr
	so prints in user code cannot corrupt it.
	"""

	def __init__(self) -> None:
		self._in = sys.stdin
		self._out = sys.stdout
		sys.stdout = sys.stderr

	def receive(self) -> Any | None:
		while True:
			line = self._in.readline()
			if not line:
				return None
			line = line.strip()
			if line:
				return json.loads(line)

	def send(self, message: Any) -> None:
		self._out.write(json.dumps(message) + "\n")
		self._out.flush()


_stdio_channel: StdioChannel | None = None


def current_channel() -> Any:
	"""The channel connecting this worker to its handler."""
	global _stdio_channel
	channel = getattr(threading.current_thread(), "channel", None)
	if channel is not None:
		return channel
	if _stdio_channel is None:
		_stdio_channel = StdioChannel()
	return _stdio_channel


def run(target: str, args: list[Any] | None = None) -> Any:
	"""Import ``module:qualname`` and call it with ``args``."""
	module_name, _, qualname = target.partition(":")
	if not qualname:
		raise ValueError(f'Expected "module:function", got "{target}"')
	obj: Any = importlib.import_module(module_name)
	for part in qualname.split("."):
		obj = getattr(obj, part)
	return obj(*(args or []))


DEFAULT_METHODS: dict[str, Callable[..., Any]] = {"run": run}


async def _await(awaitable: Any) -> Any:
	return await awaitable


def handle_request(request: dict[str, Any], methods: dict[str, Callable[..., Any]]) -> dict[str, Any]:
	"""Execute one request and build its response."""
	request_id = request.get("id")
	name = request.get("method")
	params = request.get("params") or []

	if name == METHODS:
		return {"id": request_id, "result": [*methods, METHODS]}

	method = methods.get(name) if isinstance(name, str) else None
	if method is None:
		return {"id": request_id, "error": {"name": "Error", "message": f'Unknown method "{name}"'}}

	try:
		result = method(*params)
		if inspect.isawaitable(result):
			result = asyncio.run(_await(result))
	except Exception as exc:  # noqa: BLE001
		return {"id": request_id, "error": serialize_error(exc)}
	return {"id": request_id, "result": result}


def serve(channel: Any, methods: dict[str, Callable[..., Any]]) -> None:
	"""Answer requests until the channel closes."""
	while True:
		request = channel.receive()
		if request is None:
			return
		response = handle_request(request, methods)
		try:
			channel.send(response)
		except (TypeError, ValueError) as exc:
			channel.send({"id": response.get("id"), "error": serialize_error(exc)})


def register(methods: dict[str, Callable[..., Any]] | None = None) -> None:
	"""Expose ``methods``, signal readiness and serve until the handler disconnects."""
	available = dict(DEFAULT_METHODS)
	available.update(methods or {})
	channel = current_channel()
	channel.send(READY)
	serve(channel, available)


def main() -> None:
	serve(current_channel(), dict(DEFAULT_METHODS))


if __name__ == "__main__":
	main()
