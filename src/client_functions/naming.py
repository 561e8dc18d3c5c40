"""Content-addressed filenames for client functions.

A handler's filename is `<name>_<hex>` where `<hex>` is a 32-bit rolling hash
of the handler's source text. Hashing every handler on every start is wasted
work for large apps, so resolved filenames are persisted in a JSON cache keyed
by the defining file and its modification time. Any change to a defining file
drops every filename recorded for it.

Cache layout::

	{
	  "version": 1,
	  "files": {
	    "<source file>": {"mtimeMs": 1700000000000.0, "handlers": {"name": "name_1a2b"}}
	  }
	}
"""

from __future__ import annotations

import asyncio
import atexit
import json
import logging
import os
import struct
import threading
from pathlib import Path
from typing import Any, TypedDict
from urllib.parse import urlparse
from urllib.request import url2pathname

from client_functions.env import env

logger = logging.getLogger(__name__)

CACHE_VERSION = 1


class CachedFile(TypedDict):
	mtimeMs: float
	handlers: dict[str, str]


class CacheDocument(TypedDict):
	version: int
	files: dict[str, CachedFile]


def hash_source(source: str) -> int:
	"""Signed 32-bit `h = h * 31 + unit` hash over UTF-16 code units.

	Matches `String.prototype.charCodeAt` iteration in the browser, so astral
	characters contribute both of their surrogate halves.
	"""
	h = 0
	data = source.encode("utf-16-le", "surrogatepass")
	for (unit,) in struct.iter_unpack("<H", data):
		h = ((h << 5) - h + unit) & 0xFFFFFFFF
	if h & 0x80000000:
		h -= 1 << 32
	return h


def generate_filename(name: str, source: str) -> str:
	return f"{name}_{abs(hash_source(source)):x}"


def locator_path(source_file: str) -> Path:
	"""Filesystem path behind a source file locator (plain path or file:// URL)."""
	if source_file.startswith("file:"):
		return Path(url2pathname(urlparse(source_file).path))
	return Path(source_file)


def _empty_document() -> CacheDocument:
	return {"version": CACHE_VERSION, "files": {}}


def _is_valid_document(value: Any) -> bool:
	return (
		isinstance(value, dict)
		and value.get("version") == CACHE_VERSION
		and isinstance(value.get("files"), dict)
	)


class NameCache:
	"""Resolves handler filenames, backed by a lazily loaded JSON document.

	Mutations mark the cache dirty and schedule one flush. Inside a running
	event loop the flush runs on the next loop iteration, so a burst of
	registrations produces a single write. Outside an event loop the flush is
	deferred to interpreter exit, and callers may checkpoint with `flush()`.
	Read and write failures never propagate.
	"""

	path: Path
	document: CacheDocument
	dirty: bool

	def __init__(self, path: str | Path | None = None) -> None:
		self.path = Path(path) if path is not None else env.cache_path
		self.document = _empty_document()
		self.dirty = False
		self._loaded = False
		self._flush_scheduled = False
		self._atexit_armed = False
		self._mtimes: dict[str, float | None] = {}
		self._lock = threading.Lock()

	@property
	def loaded(self) -> bool:
		return self._loaded

	def load(self) -> None:
		with self._lock:
			self._load_once()

	def _load_once(self) -> None:
		if self._loaded:
			return
		self._loaded = True
		try:
			parsed = json.loads(self.path.read_text(encoding="utf-8"))
		except (OSError, ValueError):
			# Missing or unreadable cache: start cold
			return
		if _is_valid_document(parsed):
			self.document = parsed
		else:
			logger.debug("Ignoring unrecognized name cache at %s", self.path)

	def mtime_ms(self, source_file: str) -> float | None:
		"""Modification time of a defining file in milliseconds, memoized."""
		if source_file in self._mtimes:
			return self._mtimes[source_file]
		try:
			stat = os.stat(locator_path(source_file))
			value: float | None = stat.st_mtime_ns / 1_000_000
		except (OSError, ValueError):
			value = None
		self._mtimes[source_file] = value
		return value

	def resolve(self, name: str, source: str, source_file: str | None = None) -> str:
		"""Filename for handler `name` with the given source text."""
		with self._lock:
			self._load_once()

			mtime: float | None = None
			cached: str | None = None
			if source_file:
				mtime = self.mtime_ms(source_file)
				if mtime is not None:
					files = self.document["files"]
					entry = files.get(source_file)
					if entry is None or entry.get("mtimeMs") != mtime:
						files[source_file] = {"mtimeMs": mtime, "handlers": {}}
						self._mark_dirty()
					cached = files[source_file]["handlers"].get(name)

			if cached:
				return cached

			logger.debug("Generating filename for client function %r by hashing", name)
			filename = generate_filename(name, source)

			if source_file and mtime is not None:
				entry = self.document["files"].setdefault(
					source_file, {"mtimeMs": mtime, "handlers": {}}
				)
				entry["handlers"][name] = filename
				self._mark_dirty()
			return filename

	def _mark_dirty(self) -> None:
		self.dirty = True
		self.schedule_flush()

	def schedule_flush(self) -> None:
		if not self.dirty or self._flush_scheduled:
			return
		try:
			loop = asyncio.get_running_loop()
		except RuntimeError:
			loop = None
		if loop is not None:
			self._flush_scheduled = True
			loop.call_soon(self._deferred_flush)
			return
		if not self._atexit_armed:
			self._atexit_armed = True
			atexit.register(self.flush)

	def _deferred_flush(self) -> None:
		self._flush_scheduled = False
		self.flush()

	def flush(self) -> bool:
		"""Write the whole document if dirty. Returns whether a write happened."""
		with self._lock:
			if not self.dirty:
				return False
			text = json.dumps(self.document, indent=2)
			try:
				self._write(text)
			except OSError as exc:
				logger.debug("Could not write name cache %s: %s", self.path, exc)
				return False
			self.dirty = False
			return True

	def _write(self, text: str) -> None:
		tmp = self.path.with_name(f"{self.path.name}.tmp")
		tmp.write_text(text, encoding="utf-8")
		try:
			os.replace(tmp, self.path)
		except OSError:
			tmp.unlink(missing_ok=True)
			raise

	def discard(self) -> None:
		"""Drop any pending exit-time flush. Used when the owning registry is reset."""
		if self._atexit_armed:
			atexit.unregister(self.flush)
			self._atexit_armed = False
