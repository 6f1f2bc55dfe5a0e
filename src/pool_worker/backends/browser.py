"""Browser backend -- drives a Web Worker from Pyodide."""

from __future__ import annotations

import functools
import importlib
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pool_worker.backends.base import WorkerBackend
from pool_worker.errors import WorkerError, WorkerSetupError

logger = logging.getLogger(__name__)

# Default worker for the browser: offers `run` (a function source applied to
# args) and `methods`, and never sends the ready signal.
EMBEDDED_WORKER = """\
var methods = {
  run: function (fn, args) {
    var f = new Function('return (' + fn + ').apply(null, arguments);');
    return f.apply(f, args || []);
  },
  methods: function () {
    return Object.keys(methods);
  }
};

function serializeError(error) {
  var obj = {};
  Object.getOwnPropertyNames(error).forEach(function (key) {
    obj[key] = error[key];
  });
  return obj;
}

self.onmessage = function (event) {
  var request = event.data;
  var method = methods[request.method];
  if (!method) {
    self.postMessage({id: request.id, error: {message: 'Unknown method "' + request.method + '"'}});
    return;
  }
  Promise.resolve()
    .then(function () { return method.apply(method, request.params || []); })
    .then(function (result) {
      self.postMessage({id: request.id, result: result});
    }, function (error) {
      self.postMessage({id: request.id, error: serializeError(error)});
    });
};
"""


@dataclass
class BrowserRuntime:
	"""The browser primitives a BrowserBackend needs."""

	worker: Any  # js.Worker
	blob: Any  # js.Blob
	url: Any  # js.URL
	to_js: Callable[[Any], Any]
	create_proxy: Callable[[Callable[..., Any]], Any]


def load_browser_runtime() -> BrowserRuntime:
	"""Bind the Pyodide ``js`` and ``pyodide.ffi`` modules."""
	try:
		js = importlib.import_module("js")
		ffi = importlib.import_module("pyodide.ffi")
	except ImportError as exc:
		raise WorkerSetupError(f"Browser primitives unavailable: {exc}") from exc
	return BrowserRuntime(
		worker=getattr(js, "Worker", None),
		blob=getattr(js, "Blob", None),
		url=getattr(js, "URL", None),
		to_js=functools.partial(ffi.to_js, dict_converter=js.Object.fromEntries),
		create_proxy=ffi.create_proxy,
	)


def default_browser_script(runtime: BrowserRuntime) -> str:
	"""Object URL of the embedded default worker."""
	if runtime.blob is None:
		raise WorkerSetupError("Blob not supported by the browser")
	if runtime.url is None or not callable(getattr(runtime.url, "createObjectURL", None)):
		raise WorkerSetupError("URL.createObjectURL not supported by the browser")
	blob = runtime.blob.new(
		runtime.to_js([EMBEDDED_WORKER]),
		runtime.to_js({"type": "text/javascript"}),
	)
	return str(runtime.url.createObjectURL(blob))


def _to_py(value: Any) -> Any:
	convert = getattr(value, "to_py", None)
	return convert() if callable(convert) else value


class BrowserBackend(WorkerBackend):
	"""Web Worker backend. Pyodide delivers events on the page's event loop."""

	kind = "browser"

	def __init__(self, script: str, runtime: BrowserRuntime | None = None) -> None:
		super().__init__(script)
		self._runtime = runtime or load_browser_runtime()
		if self._runtime.worker is None:
			raise WorkerSetupError("WorkerPool: Web workers not supported by the browser")
		self._worker = self._runtime.worker.new(script)
		self._proxies = [
			self._runtime.create_proxy(self._on_message_event),
			self._runtime.create_proxy(self._on_error_event),
		]
		self._worker.addEventListener("message", self._proxies[0])
		self._worker.addEventListener("error", self._proxies[1])

	def _on_message_event(self, event: Any) -> None:
		self._emit("message", _to_py(event.data))

	def _on_error_event(self, event: Any) -> None:
		message = getattr(event, "message", None) or "Web worker error"
		self._emit("error", WorkerError(str(message)))

	def send(self, message: Any) -> None:
		self._worker.postMessage(self._runtime.to_js(message))

	def terminate_forcibly(self) -> None:
		self._worker.terminate()
		for proxy in self._proxies:
			destroy = getattr(proxy, "destroy", None)
			if callable(destroy):
				destroy()
		self._proxies = []
