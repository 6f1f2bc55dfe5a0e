"""TOML configuration loader for pool-worker."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pool_worker.environment import Capabilities, detect_capabilities

WORKER_TYPES = ("process", "thread", "auto")


@dataclass
class ForkOptions:
	"""Launch settings for process-backed workers."""

	exec_argv: list[str] = field(default_factory=list)  # interpreter options before the script
	cwd: str | None = None
	env: dict[str, str] | None = None


@dataclass
class WorkerOptions:
	"""Options a pool passes when constructing a WorkerHandler."""

	worker_type: str = "process"  # process/thread/auto
	fork_args: list[str] = field(default_factory=list)
	fork_opts: ForkOptions = field(default_factory=ForkOptions)
	debug_port: int | None = None
	stderr_tail_lines: int = 50  # stderr lines kept for exit diagnostics


@dataclass
class LoggingConfig:
	"""Logging settings."""

	level: str = "INFO"


@dataclass
class PoolWorkerConfig:
	"""Top-level pool-worker configuration."""

	worker: WorkerOptions = field(default_factory=WorkerOptions)
	logging: LoggingConfig = field(default_factory=LoggingConfig)


def _build_fork_opts(data: dict[str, Any]) -> ForkOptions:
	fo = ForkOptions()
	if "exec_argv" in data:
		fo.exec_argv = [str(v) for v in data["exec_argv"]]
	if "cwd" in data:
		fo.cwd = str(data["cwd"])
	if "env" in data:
		fo.env = {str(k): str(v) for k, v in data["env"].items()}
	return fo


def _build_worker(data: dict[str, Any]) -> WorkerOptions:
	wo = WorkerOptions()
	if "worker_type" in data:
		wo.worker_type = str(data["worker_type"])
	if "fork_args" in data:
		wo.fork_args = [str(v) for v in data["fork_args"]]
	if "fork_opts" in data:
		wo.fork_opts = _build_fork_opts(data["fork_opts"])
	if "debug_port" in data:
		wo.debug_port = int(data["debug_port"])
	if "stderr_tail_lines" in data:
		wo.stderr_tail_lines = int(data["stderr_tail_lines"])
	return wo


def _build_logging(data: dict[str, Any]) -> LoggingConfig:
	lc = LoggingConfig()
	if "level" in data:
		lc.level = str(data["level"]).upper()
	return lc


def load_config(path: str | Path) -> PoolWorkerConfig:
	"""Load a pool-worker.toml config file.

	Args:
		path: Path to the TOML config file.

	Returns:
		Parsed PoolWorkerConfig.

	Raises:
		FileNotFoundError: If config file doesn't exist.
		tomllib.TOMLDecodeError: If config is invalid TOML.
	"""
	config_path = Path(path)
	if not config_path.exists():
		raise FileNotFoundError(f"Config file not found: {config_path}")

	with open(config_path, "rb") as f:
		data = tomllib.load(f)

	pc = PoolWorkerConfig()
	if "worker" in data:
		pc.worker = _build_worker(data["worker"])
	if "logging" in data:
		pc.logging = _build_logging(data["logging"])
	return pc


def validate_config(
	config: PoolWorkerConfig,
	capabilities: Capabilities | None = None,
) -> list[tuple[str, str]]:
	"""Perform semantic validation of a loaded PoolWorkerConfig.

	Returns a list of (level, message) tuples where level is 'error' or 'warning'.
	"""
	issues: list[tuple[str, str]] = []
	caps = capabilities or detect_capabilities()
	wo = config.worker

	if wo.worker_type not in WORKER_TYPES:
		issues.append(("error", f"worker.worker_type must be one of {', '.join(WORKER_TYPES)}: {wo.worker_type}"))
	elif wo.worker_type == "thread" and not caps.threads.available:
		issues.append(("warning", f"worker_type = thread but threads are unavailable: {caps.threads.reason}"))

	if wo.debug_port is not None and not 0 < wo.debug_port < 65536:
		issues.append(("error", f"worker.debug_port out of range: {wo.debug_port}"))

	cwd = wo.fork_opts.cwd
	if cwd:
		cwd_path = Path(os.path.expanduser(cwd))
		if not cwd_path.is_dir():
			issues.append(("error", f"worker.fork_opts.cwd does not exist: {cwd_path}"))

	if wo.stderr_tail_lines <= 0:
		issues.append(("warning", "stderr_tail_lines is zero; exit errors will not include stderr"))

	if config.logging.level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
		issues.append(("error", f"logging.level is not a valid level: {config.logging.level}"))

	return issues
