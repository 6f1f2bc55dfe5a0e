"""pool-worker -- control plane for a single worker in a worker pool."""

from __future__ import annotations

from pool_worker.config import ForkOptions, WorkerOptions
from pool_worker.deferred import Deferred
from pool_worker.errors import (
	CancellationError,
	TaskTimeoutError,
	WorkerError,
	WorkerExitError,
	WorkerSetupError,
	WorkerTerminatedError,
)
from pool_worker.handler import WorkerHandler, WorkerState

__all__ = [
	"CancellationError",
	"Deferred",
	"ForkOptions",
	"TaskTimeoutError",
	"WorkerError",
	"WorkerExitError",
	"WorkerHandler",
	"WorkerOptions",
	"WorkerSetupError",
	"WorkerState",
	"WorkerTerminatedError",
]
