"""Tests for the error taxonomy and the wire error codec."""

from __future__ import annotations

from pool_worker.errors import (
	CancellationError,
	TaskTimeoutError,
	WorkerError,
	WorkerExitError,
	decode_error,
	serialize_error,
	to_error,
)


class QuotaExceeded(Exception):
	def __init__(self, message: str, limit: int) -> None:
		super().__init__(message)
		self.limit = limit
		self._private = object()


class TestToError:
	def test_copies_every_field(self) -> None:
		"""Custom fields survive decoding, whatever their names."""
		error = to_error({"message": "bad input", "stack": "trace", "code": "E42", "details": {"line": 3}})
		assert isinstance(error, WorkerError)
		assert str(error) == "bad input"
		assert error.stack == "trace"
		assert error.code == "E42"
		assert error.details == {"line": 3}

	def test_empty_object(self) -> None:
		error = to_error({})
		assert isinstance(error, WorkerError)
		assert str(error) == ""


class TestSerializeError:
	def test_keeps_public_plain_fields(self) -> None:
		try:
			raise QuotaExceeded("quota exceeded", 5)
		except QuotaExceeded as exc:
			data = serialize_error(exc)
		assert data["name"] == "QuotaExceeded"
		assert data["message"] == "quota exceeded"
		assert data["limit"] == 5
		assert "_private" not in data
		assert "QuotaExceeded" in data["stack"]

	def test_decoded_error_carries_worker_fields(self) -> None:
		decoded = to_error(serialize_error(QuotaExceeded("over", 9)))
		assert str(decoded) == "over"
		assert decoded.limit == 9
		assert decoded.name == "QuotaExceeded"


class TestTaxonomy:
	def test_timeout_is_builtin_timeout(self) -> None:
		assert issubclass(TaskTimeoutError, TimeoutError)
		assert issubclass(TaskTimeoutError, WorkerError)
		assert issubclass(CancellationError, WorkerError)

	def test_exit_error_fields(self) -> None:
		error = WorkerExitError("gone", exit_code=3, signal=None, script="w.py", backend={"pid": 1})
		assert str(error) == "gone"
		assert error.exit_code == 3
		assert error.backend == {"pid": 1}


class TestDecodeError:
	def test_reserved_names_do_not_raise(self) -> None:
		error = to_error({"message": "x", "__traceback__": "tb", "__class__": "Err"})
		assert type(error) is WorkerError
		assert error.__dict__["__traceback__"] == "tb"

	def test_non_object_payload(self) -> None:
		error = decode_error(["bad", 1])
		assert str(error) == "['bad', 1]"
		assert error.error == ["bad", 1]
