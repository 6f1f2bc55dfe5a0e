"""Wire messages exchanged between a WorkerHandler and its worker script.

Request (handler -> worker)::

	{"id": 1, "method": "add", "params": [1, 2]}

Response (worker -> handler)::

	{"id": 1, "result": 3}
	{"id": 1, "error": {"message": "...", "stack": "...", ...}}

A worker signals that it finished booting with the bare string ``"ready"``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ValidationError

READY = "ready"
METHODS = "methods"


class Request(BaseModel):
	"""A method invocation sent to the worker."""

	id: int
	method: str
	params: list[Any] | None = None


class Response(BaseModel, extra="ignore"):
	"""A worker reply, correlated to its Request by id."""

	id: int
	result: Any = None
	error: Any = None

	@property
	def failed(self) -> bool:
		"""True when the worker reported an error. An empty object still counts."""
		if isinstance(self.error, (dict, list)):
			return True
		return bool(self.error)


def is_ready_signal(message: Any) -> bool:
	return isinstance(message, str) and message == READY


def parse_response(message: Any) -> Response | None:
	"""Validate a raw worker message as a Response.

	Returns None when the message carries no usable id.
	"""
	try:
		return Response.model_validate(message)
	except ValidationError:
		return None
