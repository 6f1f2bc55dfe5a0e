"""Shared pytest fixtures for pool-worker tests."""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from pool_worker.backends.base import WorkerBackend
from pool_worker.config import ForkOptions, WorkerOptions
from pool_worker.environment import Capabilities
from pool_worker.handler import WorkerHandler

SRC_DIR = Path(__file__).parent.parent / "src"


class FakeBackend(WorkerBackend):
	"""In-memory backend that records what the handler sends."""

	kind = "fake"

	def __init__(self, script: str = "fake_worker.py") -> None:
		super().__init__(script)
		self.sent: list[Any] = []
		self.graceful_stops = 0
		self.forced_stops = 0

	def send(self, message: Any) -> None:
		self.sent.append(message)

	def terminate_gracefully(self) -> None:
		self.graceful_stops += 1

	def terminate_forcibly(self) -> None:
		self.forced_stops += 1

	@property
	def stops(self) -> int:
		return self.graceful_stops + self.forced_stops

	def deliver(self, message: Any) -> None:
		self._emit("message", message)

	def fail(self, error: BaseException) -> None:
		self._emit("error", error)

	def exit(self, exit_code: int | None, signal: str | None = None) -> None:
		self._emit("exit", exit_code, signal)

	def describe(self) -> dict[str, Any]:
		return {
			"kind": self.kind,
			"script": self.script,
			"spawnargs": ["python", self.script],
			"spawnfile": "python",
			"stdout": "",
			"stderr": "boom",
		}


@pytest.fixture()
def backend() -> FakeBackend:
	return FakeBackend()


@pytest.fixture()
def make_handler(backend: FakeBackend) -> Callable[..., WorkerHandler]:
	"""Build WorkerHandlers wired to the fake backend. Call inside a running loop."""

	def _make(script: str | None = None, options: WorkerOptions | None = None) -> WorkerHandler:
		with patch("pool_worker.handler.create_backend", return_value=backend):
			return WorkerHandler(script, options, capabilities=Capabilities())

	return _make


@pytest.fixture()
def process_options() -> WorkerOptions:
	"""Process options whose child interpreter can import pool_worker from src/."""
	env = dict(os.environ)
	env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(SRC_DIR), env.get("PYTHONPATH", "")]))
	return WorkerOptions(worker_type="process", fork_opts=ForkOptions(env=env))
