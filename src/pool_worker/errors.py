"""Exception taxonomy and the error codec for values crossing the worker boundary."""

from __future__ import annotations

import traceback
from typing import Any


class WorkerError(Exception):
	"""Base error for worker handler failures.

	Also the reconstructed kind for errors decoded from the wire: the original
	exception class does not survive serialization, only its fields do.
	"""

	def __str__(self) -> str:
		message = self.__dict__.get("message")
		if message is not None:
			return str(message)
		return super().__str__()


class WorkerSetupError(WorkerError):
	"""The requested backend cannot be created in this runtime."""


class WorkerTerminatedError(WorkerError):
	"""The worker was terminated before the task could complete."""


class WorkerExitError(WorkerError):
	"""The backend exited or failed while the handler still expected it to run."""

	def __init__(
		self,
		message: str,
		exit_code: int | None = None,
		signal: str | None = None,
		script: str = "",
		backend: dict[str, Any] | None = None,
	) -> None:
		super().__init__(message)
		self.exit_code = exit_code
		self.signal = signal
		self.script = script
		self.backend = backend or {}


class CancellationError(WorkerError):
	"""A task future was cancelled by its caller."""


class TaskTimeoutError(WorkerError, TimeoutError):
	"""A task future exceeded its deadline."""


def to_error(obj: dict[str, Any]) -> WorkerError:
	"""Convert a serialized error object into a WorkerError.

	Every key of ``obj`` becomes an attribute of the returned error (message,
	stack, name and any custom fields), whatever its name.
	"""
	error = WorkerError("")
	for key, value in obj.items():
		try:
			setattr(error, key, value)
		except (TypeError, AttributeError):
			# Names backed by exception slots (__traceback__, __class__, ...)
			error.__dict__[key] = value
	return error


def decode_error(raw: Any) -> WorkerError:
	"""Decode the ``error`` member of a Response, whatever shape the worker sent."""
	if isinstance(raw, dict):
		return to_error(raw)
	return to_error({"message": str(raw), "error": raw})


def _is_plain(value: Any) -> bool:
	if value is None or isinstance(value, (bool, int, float, str)):
		return True
	if isinstance(value, (list, tuple)):
		return all(_is_plain(v) for v in value)
	if isinstance(value, dict):
		return all(isinstance(k, str) and _is_plain(v) for k, v in value.items())
	return False


def serialize_error(exc: BaseException) -> dict[str, Any]:
	"""Worker-side inverse of :func:`to_error`.

	Keeps the exception's public JSON-compatible attributes next to name,
	message and stack so custom fields reach the caller.
	"""
	data: dict[str, Any] = {}
	for key, value in vars(exc).items():
		if not key.startswith("_") and _is_plain(value):
			data[key] = value
	data["name"] = type(exc).__name__
	data["message"] = str(exc)
	data["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
	return data
