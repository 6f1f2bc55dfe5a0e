"""Runtime capability detection.

Detected once when a WorkerHandler is built; callers can pass their own
``Capabilities`` instead.
"""

from __future__ import annotations

import importlib
import sys
from dataclasses import dataclass
from typing import Any

_NO_OS_PLATFORMS = ("emscripten", "wasi")


@dataclass(frozen=True)
class Availability:
	available: bool
	reason: str = ""


@dataclass(frozen=True)
class Capabilities:
	"""What execution primitives the current runtime offers."""

	platform: str = "python"  # python/browser
	threads: Availability = Availability(True)
	processes: Availability = Availability(True)
	web_workers: Availability = Availability(False, "not running in a browser")
	embedded_scripts: Availability = Availability(False, "not running in a browser")

	@property
	def is_browser(self) -> bool:
		return self.platform == "browser"


def _import_js() -> Any | None:
	try:
		return importlib.import_module("js")
	except ImportError:
		return None


def _detect_browser(js: Any) -> tuple[Availability, Availability]:
	worker = getattr(js, "Worker", None)
	if worker is None:
		web_workers = Availability(False, "Worker is not defined")
	else:
		web_workers = Availability(True)

	if getattr(js, "Blob", None) is None:
		embedded = Availability(False, "Blob not supported by the browser")
	else:
		url = getattr(js, "URL", None)
		if url is None or not callable(getattr(url, "createObjectURL", None)):
			embedded = Availability(False, "URL.createObjectURL not supported by the browser")
		else:
			embedded = Availability(True)
	return web_workers, embedded


def detect_capabilities() -> Capabilities:
	"""Check the interpreter for thread, process and web worker support."""
	if sys.platform not in _NO_OS_PLATFORMS:
		return Capabilities()

	reason = f"not supported on {sys.platform}"
	js = _import_js() if sys.platform == "emscripten" else None
	if js is None:
		return Capabilities(
			threads=Availability(False, reason),
			processes=Availability(False, reason),
		)
	web_workers, embedded = _detect_browser(js)
	return Capabilities(
		platform="browser",
		threads=Availability(False, reason),
		processes=Availability(False, reason),
		web_workers=web_workers,
		embedded_scripts=embedded,
	)
