"""Server-side mirror of the browser handler proxy.

`Dispatcher` resolves handler names the way `clientFunctions.js` does in the
browser: the first access to a name starts loading `<base_path>/<name>.js`,
concurrent callers share that load, and the loaded function is then called
with the receiver as its first argument. The default loader maps the URL back
to the registered Python function, which makes invocation strings produced by
`ClientFunction` executable in tests and server-side tooling.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any

from client_functions.errors import ClientFunctionError, HandlerLoadError
from client_functions.registry import (
	JS_IDENTIFIER,
	AnyFunction,
	HandlerRegistry,
	get_registry,
)

logger = logging.getLogger(__name__)

ModuleLoader = Callable[[str], Awaitable[AnyFunction]]

HANDLER_INVOCATION = re.compile(rf"handlers\.({JS_IDENTIFIER})\(this, event\)")


def registry_loader(registry: HandlerRegistry | None = None) -> ModuleLoader:
	"""Loader resolving `<base>/<filename>.js` to a registered function."""

	async def load(url: str) -> AnyFunction:
		reg = registry if registry is not None else get_registry()
		filename = url.rsplit("/", 1)[-1].removesuffix(".js")
		wrapper = reg.find(filename)
		if wrapper is None:
			raise HandlerLoadError(
				f"No client function is registered as {filename!r}",
				name=filename,
				url=url,
			)
		return wrapper.fn

	return load


class Dispatcher:
	"""Property-access driven handler table with single-flight loading."""

	base_path: str

	def __init__(self, base_path: str = ".", loader: ModuleLoader | None = None) -> None:
		self.base_path = base_path
		self._loader = loader or registry_loader()
		self._loaded: dict[str, AnyFunction] = {}
		self._loading: dict[str, asyncio.Task[AnyFunction]] = {}

	def url_for(self, name: str) -> str:
		return f"{self.base_path}/{name}.js"

	def get(self, key: object) -> Callable[..., Awaitable[Any]] | None:
		"""Handler caller for `key`, or None for non-string keys.

		Accessing an unseen name starts its load right away when an event loop
		is running; otherwise the load starts on the first call.
		"""
		if not isinstance(key, str):
			return None
		if key not in self._loaded:
			try:
				asyncio.get_running_loop()
			except RuntimeError:
				pass
			else:
				self._start_load(key)

		async def caller(receiver: Any = None, *args: Any) -> Any:
			return await self.call(key, receiver, *args)

		return caller

	def __getattr__(self, name: str) -> Callable[..., Awaitable[Any]]:
		if name.startswith("__"):
			raise AttributeError(name)
		return self[name]

	def __getitem__(self, key: object) -> Callable[..., Awaitable[Any]]:
		caller = self.get(key)
		if caller is None:
			raise KeyError(key)
		return caller

	def __contains__(self, name: object) -> bool:
		return name in self._loaded

	async def call(self, name: str, receiver: Any = None, *args: Any) -> Any:
		"""Call handler `name` with `receiver` bound as its first argument."""
		fn = self._loaded.get(name)
		if fn is None:
			# Shielded so a cancelled caller does not cancel the shared load
			fn = await asyncio.shield(self._start_load(name))
		result = fn(receiver, *args)
		if inspect.isawaitable(result):
			result = await result
		return result

	async def invoke(self, invocation: str, this: Any = None, event: Any = None) -> Any:
		"""Evaluate a `handlers.<filename>(this, event)` attribute value."""
		match = HANDLER_INVOCATION.fullmatch(invocation.strip())
		if match is None:
			raise ValueError(f"Not a handler invocation: {invocation!r}")
		return await self.call(match.group(1), this, event)

	def _start_load(self, name: str) -> asyncio.Task[AnyFunction]:
		task = self._loading.get(name)
		if task is None:
			task = asyncio.ensure_future(self._load(name))
			task.add_done_callback(_consume_load_error)
			self._loading[name] = task
		return task

	async def _load(self, name: str) -> AnyFunction:
		url = self.url_for(name)
		try:
			fn = await self._loader(url)
		except ClientFunctionError:
			raise
		except Exception as exc:
			raise HandlerLoadError(
				f"Failed to load handler {name!r} from {url}", name=name, url=url
			) from exc
		finally:
			# A failed load is forgotten so the next call retries
			self._loading.pop(name, None)
		if not callable(fn):
			raise HandlerLoadError(
				f"Module {url} has no callable default export", name=name, url=url
			)
		self._loaded[name] = fn
		logger.debug('Handler function "%s" imported.', name)
		return fn


def _consume_load_error(task: asyncio.Task[Any]) -> None:
	# Loads started by attribute access may never be awaited
	if not task.cancelled() and task.exception() is not None:
		logger.debug("Handler load failed: %s", task.exception())


def create_dispatcher(
	base_path: str = ".", loader: ModuleLoader | None = None
) -> Dispatcher:
	return Dispatcher(base_path, loader)


handlers: Dispatcher | None = None
"""The dispatcher published by `install()`."""


def install(base_path: str = ".", loader: ModuleLoader | None = None) -> Dispatcher:
	"""Publish a dispatcher as the module-level `handlers` binding."""
	global handlers
	handlers = create_dispatcher(base_path, loader)
	return handlers


def installed() -> Dispatcher:
	if handlers is None:
		raise RuntimeError("No dispatcher installed, call install() first")
	return handlers
