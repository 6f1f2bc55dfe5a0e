"""Process backend -- runs the worker script in a child interpreter over JSON lines."""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import subprocess
import sys
import threading
from collections import deque
from typing import IO, Any

from pool_worker.backends.base import WorkerBackend
from pool_worker.config import WorkerOptions
from pool_worker.errors import WorkerError, WorkerSetupError

logger = logging.getLogger(__name__)

_STDOUT_TAIL_LINES = 20


class ProcessBackend(WorkerBackend):
	"""Execute a worker as a child process.

	Requests are written to the child's stdin and responses read from its
	stdout, one JSON document per line. Reader threads hand every event to the
	owning event loop.
	"""

	kind = "process"

	def __init__(
		self,
		script: str,
		options: WorkerOptions,
		loop: asyncio.AbstractEventLoop,
	) -> None:
		super().__init__(script)
		self._loop = loop
		fork_opts = options.fork_opts
		self.spawnfile = sys.executable
		self.spawnargs = [sys.executable, *fork_opts.exec_argv, script, *options.fork_args]
		self._stdout_tail: deque[str] = deque(maxlen=_STDOUT_TAIL_LINES)
		self._stderr_tail: deque[str] = deque(maxlen=max(options.stderr_tail_lines, 0))

		try:
			self._process = subprocess.Popen(
				self.spawnargs,
				stdin=subprocess.PIPE,
				stdout=subprocess.PIPE,
				stderr=subprocess.PIPE,
				cwd=fork_opts.cwd,
				env=dict(fork_opts.env) if fork_opts.env is not None else None,
				text=True,
				bufsize=1,
			)
		except OSError as exc:
			raise WorkerSetupError(f"Failed spawning worker for {script}: {exc}") from exc

		self._stderr_reader = threading.Thread(
			target=self._read_stderr, name=f"pool-worker-stderr-{self.pid}", daemon=True,
		)
		self._stdout_reader = threading.Thread(
			target=self._read_stdout, name=f"pool-worker-stdout-{self.pid}", daemon=True,
		)
		self._stderr_reader.start()
		self._stdout_reader.start()
		logger.info("Spawned worker process pid=%s cmd=%s", self.pid, " ".join(self.spawnargs))

	@property
	def pid(self) -> int:
		return self._process.pid

	def _read_stdout(self) -> None:
		stdout = self._process.stdout
		if stdout is None:
			return
		with stdout:
			self._pump_stdout(stdout)

		returncode = self._process.wait()
		self._stderr_reader.join(timeout=1)
		exit_code: int | None = returncode
		signal_name: str | None = None
		if returncode < 0:
			exit_code = None
			try:
				signal_name = signal.Signals(-returncode).name
			except ValueError:
				signal_name = str(-returncode)
		logger.debug("Worker pid=%s exited code=%s signal=%s", self.pid, exit_code, signal_name)
		try:
			self._loop.call_soon_threadsafe(self._finish, exit_code, signal_name)
		except RuntimeError:
			# Loop is gone; nothing can write to stdin any more
			self._close_stdin()

	def _pump_stdout(self, stdout: IO[str]) -> None:
		for line in stdout:
			line = line.strip()
			if not line:
				continue
			try:
				message = json.loads(line)
			except json.JSONDecodeError:
				# Stray output that is not part of the protocol
				logger.debug("Worker pid=%s non-protocol stdout: %s", self.pid, line[:200])
				self._stdout_tail.append(line)
				continue
			self._emit_threadsafe(self._loop, "message", message)

	def _finish(self, exit_code: int | None, signal_name: str | None) -> None:
		self._close_stdin()
		self._emit("exit", exit_code, signal_name)

	def _read_stderr(self) -> None:
		stderr = self._process.stderr
		if stderr is None:
			return
		with stderr:
			for line in stderr:
				self._stderr_tail.append(line.rstrip("\n"))

	def send(self, message: Any) -> None:
		stdin = self._process.stdin
		if stdin is None or stdin.closed:
			logger.debug("Dropping message for worker pid=%s: stdin is closed", self.pid)
			return
		try:
			stdin.write(json.dumps(message) + "\n")
			stdin.flush()
		except (OSError, ValueError) as exc:
			error = WorkerError(f"Failed to send message to worker pid={self.pid}: {exc}")
			self._loop.call_soon(self._emit, "error", error)

	def _close_stdin(self) -> None:
		stdin = self._process.stdin
		if stdin is None or stdin.closed:
			return
		try:
			stdin.close()
		except OSError as exc:
			logger.debug("Closing stdin of worker pid=%s failed: %s", self.pid, exc)

	def terminate_gracefully(self) -> None:
		"""Disconnect the channel and ask the child to exit (SIGTERM)."""
		self._close_stdin()
		if self._process.poll() is None:
			self._process.terminate()

	def terminate_forcibly(self) -> None:
		self._close_stdin()
		if self._process.poll() is None:
			self._process.kill()

	def describe(self) -> dict[str, Any]:
		info = super().describe()
		info.update({
			"pid": self.pid,
			"spawnargs": list(self.spawnargs),
			"spawnfile": self.spawnfile,
			"stdout": "\n".join(self._stdout_tail),
			"stderr": "\n".join(self._stderr_tail),
		})
		return info
