"""CLI interface for pool-worker."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pool_worker.config import WORKER_TYPES, PoolWorkerConfig, load_config, validate_config
from pool_worker.errors import WorkerError
from pool_worker.handler import WorkerHandler

DEFAULT_CONFIG = "pool-worker.toml"


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		prog="pool-worker",
		description="Pool worker - run methods on a single managed worker",
	)
	sub = parser.add_subparsers(dest="command")

	# pool-worker methods
	methods = sub.add_parser("methods", help="List the methods a worker script offers")
	_add_worker_args(methods)

	# pool-worker exec
	exec_cmd = sub.add_parser("exec", help="Call a method on a worker and print the result")
	exec_cmd.add_argument("method", help="Method name")
	exec_cmd.add_argument("params", nargs="?", default="[]", help="JSON array of parameters")
	exec_cmd.add_argument("--timeout", type=float, default=None, help="Seconds before the call is abandoned")
	_add_worker_args(exec_cmd)

	# pool-worker validate-config
	vc = sub.add_parser("validate-config", help="Validate config file semantically")
	vc.add_argument("--config", default=DEFAULT_CONFIG, help="Config file path")

	return parser


def _add_worker_args(parser: argparse.ArgumentParser) -> None:
	parser.add_argument("--script", default=None, help="Worker script (default worker when omitted)")
	parser.add_argument("--config", default=DEFAULT_CONFIG, help="Config file path")
	parser.add_argument("--worker-type", choices=WORKER_TYPES, default=None, help="Override worker.worker_type")


def _load(args: argparse.Namespace) -> PoolWorkerConfig:
	"""Config from --config when the file exists, defaults otherwise."""
	config = load_config(args.config) if Path(args.config).exists() else PoolWorkerConfig()
	if getattr(args, "worker_type", None):
		config.worker.worker_type = args.worker_type
	return config


async def _call(
	config: PoolWorkerConfig,
	script: str | None,
	method: str,
	params: list[Any] | None,
	timeout: float | None,
) -> Any:
	handler = WorkerHandler(script, config.worker)
	try:
		future = handler.exec(method, params)
		if timeout:
			return await asyncio.wait_for(future, timeout)
		return await future
	finally:
		await handler.terminate_and_notify(force=True)


def cmd_methods(args: argparse.Namespace) -> int:
	"""Print the worker's method names."""
	config = _load(args)
	try:
		names = asyncio.run(_call(config, args.script, "methods", None, None))
	except WorkerError as e:
		print(f"Error: {e}")
		return 1
	for name in names:
		print(name)
	return 0


def cmd_exec(args: argparse.Namespace) -> int:
	"""Call one method and print its JSON result."""
	try:
		params = json.loads(args.params)
	except json.JSONDecodeError as e:
		print(f"Error: params must be a JSON array: {e}")
		return 1
	if not isinstance(params, list):
		print("Error: params must be a JSON array")
		return 1

	config = _load(args)
	try:
		result = asyncio.run(_call(config, args.script, args.method, params, args.timeout))
	except (WorkerError, TimeoutError) as e:
		print(f"Error: {e}")
		return 1
	print(json.dumps(result))
	return 0


def cmd_validate_config(args: argparse.Namespace) -> int:
	"""Validate config file semantically."""
	config = load_config(args.config)
	issues = validate_config(config)

	errors = [(lvl, msg) for lvl, msg in issues if lvl == "error"]
	warnings = [(lvl, msg) for lvl, msg in issues if lvl == "warning"]

	for level, msg in issues:
		print(f"[{level.upper()}] {msg}")

	if not issues:
		print("Config OK")

	print(f"\n{len(errors)} error(s), {len(warnings)} warning(s)")
	return 1 if errors else 0


COMMANDS = {
	"methods": cmd_methods,
	"exec": cmd_exec,
	"validate-config": cmd_validate_config,
}


def main(argv: list[str] | None = None) -> int:
	parser = build_parser()
	args = parser.parse_args(argv)

	level = "INFO"
	config_path = getattr(args, "config", None)
	if config_path and Path(config_path).exists():
		level = load_config(config_path).logging.level
	logging.basicConfig(
		level=getattr(logging, level, logging.INFO),
		format="%(asctime)s %(levelname)s %(name)s: %(message)s",
		datefmt="%H:%M:%S",
		stream=sys.stderr,
		force=True,
	)

	if args.command is None:
		parser.print_help()
		return 0

	handler = COMMANDS.get(args.command)
	if handler is None:
		print(f"Unknown command: {args.command}")
		return 1

	try:
		return handler(args)
	except FileNotFoundError as e:
		print(f"Error: {e}")
		return 1


if __name__ == "__main__":
	sys.exit(main())
