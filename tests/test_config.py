"""Tests for config loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from pool_worker.config import (
	ForkOptions,
	PoolWorkerConfig,
	WorkerOptions,
	load_config,
	validate_config,
)
from pool_worker.environment import Availability, Capabilities


@pytest.fixture()
def full_config(tmp_path: Path) -> Path:
	toml = tmp_path / "pool-worker.toml"
	toml.write_text(f"""\
[worker]
worker_type = "thread"
fork_args = ["--verbose", 3]
debug_port = 9230
stderr_tail_lines = 10

[worker.fork_opts]
exec_argv = ["-O"]
cwd = "{tmp_path}"
env = {{ APP_ENV = "test" }}

[logging]
level = "debug"
""")
	return toml


def test_load_full_config(full_config: Path) -> None:
	cfg = load_config(full_config)
	assert cfg.worker.worker_type == "thread"
	assert cfg.worker.fork_args == ["--verbose", "3"]
	assert cfg.worker.debug_port == 9230
	assert cfg.worker.stderr_tail_lines == 10
	assert cfg.worker.fork_opts.exec_argv == ["-O"]
	assert cfg.worker.fork_opts.cwd == str(full_config.parent)
	assert cfg.worker.fork_opts.env == {"APP_ENV": "test"}
	assert cfg.logging.level == "DEBUG"


def test_load_empty_config_uses_defaults(tmp_path: Path) -> None:
	"""Missing sections fall back to defaults."""
	toml = tmp_path / "pool-worker.toml"
	toml.write_text("")
	cfg = load_config(toml)
	assert cfg.worker == WorkerOptions()
	assert cfg.logging.level == "INFO"


def test_load_missing_file(tmp_path: Path) -> None:
	with pytest.raises(FileNotFoundError):
		load_config(tmp_path / "nope.toml")


def test_validate_valid_config(full_config: Path) -> None:
	issues = validate_config(load_config(full_config), Capabilities())
	assert issues == []


def test_validate_unknown_worker_type() -> None:
	cfg = PoolWorkerConfig(worker=WorkerOptions(worker_type="fiber"))
	issues = validate_config(cfg, Capabilities())
	errors = [msg for lvl, msg in issues if lvl == "error"]
	assert any("worker_type must be one of" in e for e in errors)


def test_validate_thread_unavailable_warns() -> None:
	"""Requesting threads where there are none is a warning, not an error."""
	caps = Capabilities(threads=Availability(False, "not supported on wasi"))
	cfg = PoolWorkerConfig(worker=WorkerOptions(worker_type="thread"))
	issues = validate_config(cfg, caps)
	assert issues == [("warning", "worker_type = thread but threads are unavailable: not supported on wasi")]


def test_validate_debug_port_range() -> None:
	cfg = PoolWorkerConfig(worker=WorkerOptions(debug_port=70000))
	issues = validate_config(cfg, Capabilities())
	assert ("error", "worker.debug_port out of range: 70000") in issues


def test_validate_missing_cwd(tmp_path: Path) -> None:
	cfg = PoolWorkerConfig(worker=WorkerOptions(fork_opts=ForkOptions(cwd=str(tmp_path / "gone"))))
	issues = validate_config(cfg, Capabilities())
	errors = [msg for lvl, msg in issues if lvl == "error"]
	assert any("does not exist" in e for e in errors)


def test_validate_stderr_tail_and_level() -> None:
	cfg = PoolWorkerConfig(worker=WorkerOptions(stderr_tail_lines=0))
	cfg.logging.level = "LOUD"
	issues = validate_config(cfg, Capabilities())
	assert any(lvl == "warning" and "stderr_tail_lines" in msg for lvl, msg in issues)
	assert ("error", "logging.level is not a valid level: LOUD") in issues
