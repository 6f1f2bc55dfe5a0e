"""Derive child launch options from the current interpreter's own flags.

A worker process inherits the parent's debugger attachment (debugpy) and its
memory tracing option, so a pool started under a debugger yields workers that
can be attached to as well.
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from dataclasses import replace

from pool_worker.config import WorkerOptions

DEFAULT_DEBUG_PORT = 5678

_DEBUGGERS = ("debugpy", "pydevd")
_BREAK_ON_START = "--wait-for-client"
_MEMORY_OPTIONS = ("tracemalloc",)
_VALUE_OPTIONS = ("-X", "-W", "--check-hash-based-pycs")


def current_exec_argv() -> list[str]:
	"""Interpreter options the current process was launched with.

	Everything in ``sys.orig_argv`` before the script path, ``-m module`` or
	``-c command``.
	"""
	orig = list(getattr(sys, "orig_argv", []))
	user_args = max(len(sys.argv) - 1, 0)
	head = orig[1:len(orig) - user_args] if user_args else orig[1:]
	if len(head) >= 2 and head[-2] in ("-m", "-c"):
		return head[:-2]
	if not head or head[-1].startswith("-") or (len(head) >= 2 and head[-2] in _VALUE_OPTIONS):
		return head
	return head[:-1]


def _is_memory_option(value: str) -> bool:
	return value.startswith(_MEMORY_OPTIONS)


def _memory_flags(exec_argv: Sequence[str]) -> list[str]:
	flags: list[str] = []
	args = list(exec_argv)
	for i, arg in enumerate(args):
		if arg == "-X":
			if i + 1 < len(args) and _is_memory_option(args[i + 1]):
				flags.extend([arg, args[i + 1]])
		elif arg.startswith("-X") and _is_memory_option(arg[2:]):
			flags.append(arg)
	return flags


def _parent_debug_port(exec_argv: Sequence[str]) -> int:
	args = list(exec_argv)
	for i, arg in enumerate(args[:-1]):
		if arg == "--listen":
			_, _, port = args[i + 1].rpartition(":")
			if port.isdigit():
				return int(port)
	return DEFAULT_DEBUG_PORT


def _debug_flags(exec_argv: Sequence[str], debug_port: int | None) -> list[str]:
	joined = " ".join(exec_argv)
	if not any(name in joined for name in _DEBUGGERS):
		return []
	# The parent already listens on its own port
	port = debug_port if debug_port is not None else _parent_debug_port(exec_argv) + 1
	flags = ["-m", "debugpy", "--listen", str(port)]
	if _BREAK_ON_START in exec_argv:
		flags.append(_BREAK_ON_START)
	return flags


def resolve_fork_options(
	options: WorkerOptions | None = None,
	exec_argv: Sequence[str] | None = None,
) -> WorkerOptions:
	"""Return a copy of ``options`` whose interpreter flags carry debug and memory settings.

	Args:
		options: Worker options to extend. Defaults to ``WorkerOptions()``.
		exec_argv: Launch arguments to inspect. Defaults to the current process's.

	Returns:
		New WorkerOptions. The caller's ``fork_opts.exec_argv`` come first, then
		forwarded memory flags, then debugger flags (``-m`` ends the interpreter
		options, so it has to be last).
	"""
	opts = options or WorkerOptions()
	parent_argv = current_exec_argv() if exec_argv is None else list(exec_argv)

	extra = _memory_flags(parent_argv) + _debug_flags(parent_argv, opts.debug_port)
	fork_opts = replace(
		opts.fork_opts,
		exec_argv=list(opts.fork_opts.exec_argv) + extra,
	)
	return replace(opts, fork_args=list(opts.fork_args), fork_opts=fork_opts)
