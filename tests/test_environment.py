"""Tests for runtime capability detection."""

from __future__ import annotations

import sys
from types import SimpleNamespace

from pool_worker.environment import Capabilities, detect_capabilities


def _fake_js(**overrides):
	url = SimpleNamespace(createObjectURL=lambda blob: "blob:fake")
	attrs = {"Worker": object(), "Blob": object(), "URL": url}
	attrs.update(overrides)
	return SimpleNamespace(**attrs)


class TestDetectCapabilities:
	def test_regular_interpreter(self, monkeypatch) -> None:
		monkeypatch.setattr(sys, "platform", "linux")
		caps = detect_capabilities()
		assert caps == Capabilities()
		assert caps.threads.available
		assert caps.processes.available
		assert not caps.web_workers.available
		assert not caps.is_browser

	def test_browser(self, monkeypatch) -> None:
		"""Under Pyodide only Web Workers are available."""
		monkeypatch.setattr(sys, "platform", "emscripten")
		monkeypatch.setitem(sys.modules, "js", _fake_js())
		caps = detect_capabilities()
		assert caps.is_browser
		assert not caps.threads.available
		assert not caps.processes.available
		assert caps.web_workers.available
		assert caps.embedded_scripts.available

	def test_browser_without_blob(self, monkeypatch) -> None:
		monkeypatch.setattr(sys, "platform", "emscripten")
		monkeypatch.setitem(sys.modules, "js", _fake_js(Blob=None))
		caps = detect_capabilities()
		assert not caps.embedded_scripts.available
		assert caps.embedded_scripts.reason == "Blob not supported by the browser"

	def test_browser_without_object_urls(self, monkeypatch) -> None:
		monkeypatch.setattr(sys, "platform", "emscripten")
		monkeypatch.setitem(sys.modules, "js", _fake_js(URL=SimpleNamespace()))
		caps = detect_capabilities()
		assert caps.embedded_scripts.reason == "URL.createObjectURL not supported by the browser"

	def test_browser_without_workers(self, monkeypatch) -> None:
		monkeypatch.setattr(sys, "platform", "emscripten")
		monkeypatch.setitem(sys.modules, "js", _fake_js(Worker=None))
		caps = detect_capabilities()
		assert caps.is_browser
		assert not caps.web_workers.available

	def test_wasi_has_no_primitives(self, monkeypatch) -> None:
		monkeypatch.setattr(sys, "platform", "wasi")
		caps = detect_capabilities()
		assert not caps.is_browser
		assert not caps.threads.available
		assert "wasi" in caps.threads.reason
