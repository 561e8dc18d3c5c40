"""Client function registration.

Declare a browser event handler next to the server code that renders it::

	from client_functions import ClientFunction, client_source

	@client_source('''
	function (event: MouseEvent) {
	  this.classList.toggle("open");
	}
	''')
	def toggle(this, event): ...

	toggle_menu = ClientFunction("toggleMenu", toggle, __file__)

	# In markup: <button onclick="{toggle_menu.toggleMenu}">Menu</button>

`toggle_menu.toggleMenu` is the string `handlers.toggleMenu_<hash>(this, event)`,
which the browser bootstrap resolves by loading `toggleMenu_<hash>.js` on the
first click.
"""

from __future__ import annotations

import logging
import re
import textwrap
import threading
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any, Generic, TypeVar

from client_functions.naming import NameCache
from client_functions.templates import render_handler_module
from client_functions.transpiler import (
	Loader,
	TransformOptions,
	Transpiler,
	default_transpiler,
)

logger = logging.getLogger(__name__)

AnyFunction = Callable[..., Any]
F = TypeVar("F", bound=AnyFunction)

GLOBAL_IMPORTS_KEY = "__global__"
CLIENT_SOURCE_ATTR = "__client_source__"
JS_IDENTIFIER = r"[A-Za-z_$][\w$]*"
_JS_IDENTIFIER_RE = re.compile(JS_IDENTIFIER)


def client_source(source: str) -> Callable[[F], F]:
	"""Attach the browser implementation of a function.

	The decorated Python function is left untouched and stays callable on the
	server (tests, dispatch); the attached text is what gets shipped.
	"""
	text = textwrap.dedent(source).strip()

	def decorator(fn: F) -> F:
		setattr(fn, CLIENT_SOURCE_ATTR, text)
		return fn

	return decorator


def js(source: str) -> AnyFunction:
	"""A browser-only function given as source text, e.g. `js("function(){return 1}")`."""

	def browser_only(*args: Any, **kwargs: Any) -> Any:
		raise RuntimeError("This client function only has a browser implementation")

	setattr(browser_only, CLIENT_SOURCE_ATTR, source)
	return browser_only


def function_source(fn: AnyFunction) -> str:
	"""Browser source text attached to a client function.

	Only source given through `client_source` or `js` is accepted: a Python
	body would be shipped verbatim as a broken ES module.
	"""
	source = getattr(fn, CLIENT_SOURCE_ATTR, None)
	if not isinstance(source, str):
		raise TypeError(
			f"{fn!r} has no browser source, "
			"declare it with @client_source(...) or js(...)"
		)
	return source


def normalize_locator(source_file: str | Path | None) -> str | None:
	if source_file is None:
		return None
	return str(source_file)


class HandlerRegistry:
	"""Process-scoped handler state.

	`handlers` maps each registered function to its wrapper, in registration
	order. `imports` maps a source file locator to the `name -> filename`
	table used to let handlers of the same file import each other.
	"""

	handlers: dict[AnyFunction, ClientFunction[Any]]
	imports: dict[str, dict[str, str]]
	cache: NameCache

	def __init__(self, cache: NameCache | None = None) -> None:
		self.handlers = {}
		self.imports = {}
		self.cache = cache if cache is not None else NameCache()

	def imports_for(self, source_file: str | None) -> dict[str, str]:
		key = source_file or GLOBAL_IMPORTS_KEY
		registry = self.imports.get(key)
		if registry is None:
			registry = {}
			self.imports[key] = registry
		return registry

	def add(self, wrapper: ClientFunction[Any]) -> None:
		self.handlers[wrapper.fn] = wrapper
		self.imports_for(wrapper.source_file)[wrapper.fn_name] = wrapper.filename

	def find(self, filename: str) -> ClientFunction[Any] | None:
		for wrapper in self.handlers.values():
			if wrapper.filename == filename:
				return wrapper
		return None

	def __iter__(self) -> Iterator[ClientFunction[Any]]:
		return iter(list(self.handlers.values()))

	def __len__(self) -> int:
		return len(self.handlers)

	def clear(self) -> None:
		self.handlers.clear()
		self.imports.clear()
		self.cache.discard()


_registry: HandlerRegistry | None = None
_registry_lock = threading.Lock()


def get_registry() -> HandlerRegistry:
	"""The process-wide registry, created on first use."""
	global _registry
	with _registry_lock:
		if _registry is None:
			_registry = HandlerRegistry()
		return _registry


def reset_registry(registry: HandlerRegistry | None = None) -> None:
	"""Forget every registration. Pass a registry to install it directly (tests)."""
	global _registry
	with _registry_lock:
		if _registry is not None:
			_registry.clear()
		_registry = registry


_RESERVED_NAMES = frozenset(
	{"fn_name", "fn", "filename", "source", "source_file", "jsx", "registry"}
)


class ClientFunction(Generic[F]):
	"""A registered client function.

	Besides the fields below, the wrapper has an attribute named after the
	function holding its handler invocation string, so templates can write
	`handler.<name>` the same way they would reference the function.
	"""

	fn_name: str
	fn: F
	filename: str
	"""Resolved id: output file stem and browser-side handler name."""
	source: str
	source_file: str | None
	jsx: bool
	registry: HandlerRegistry

	def __init__(
		self,
		fn_name: str,
		fn: F,
		source_file: str | Path | None = None,
		*,
		jsx: bool = False,
		registry: HandlerRegistry | None = None,
	) -> None:
		if not callable(fn):
			raise TypeError("ClientFunction requires a function")
		if not _JS_IDENTIFIER_RE.fullmatch(fn_name):
			raise ValueError(
				f"Client function name must be a JavaScript identifier: {fn_name!r}"
			)
		if fn_name in _RESERVED_NAMES or hasattr(type(self), fn_name):
			raise ValueError(f"Client function name {fn_name!r} is reserved")

		self.registry = registry if registry is not None else get_registry()
		self.fn_name = fn_name
		self.fn = fn
		self.source = function_source(fn)
		self.source_file = normalize_locator(source_file)
		self.jsx = jsx
		self.filename = self.registry.cache.resolve(
			fn_name, self.source, self.source_file
		)
		setattr(self, fn_name, self.invocation)
		self.registry.add(self)

	@property
	def invocation(self) -> str:
		"""Handler attribute value: `handlers.<filename>(this, event)`."""
		return f"handlers.{self.filename}(this, event)"

	@property
	def loader(self) -> Loader:
		return "tsx" if self.jsx else "ts"

	def register(self, target_source_file: str | Path) -> ClientFunction[F]:
		"""Make this function importable by the handlers of another source file."""
		key = normalize_locator(target_source_file)
		self.registry.imports_for(key)[self.fn_name] = self.filename
		return self

	def imports(self) -> list[tuple[str, str]]:
		"""`(name, filename)` pairs this handler's module imports."""
		registry = self.registry.imports_for(self.source_file)
		return [
			(name, filename)
			for name, filename in registry.items()
			# Self-imports would make the module circular
			if name != self.fn_name and filename != self.filename
		]

	def module_source(self) -> str:
		"""Untransformed module text: sibling imports plus the default export."""
		return render_handler_module(self.imports(), self.source)

	async def build_code(
		self, minify: bool = False, transpiler: Transpiler | None = None
	) -> str:
		"""Build the ES module for this handler.

		Transpiler failures are logged and the untransformed module text is
		returned, so one broken handler never fails a whole build.
		"""
		logger.debug("Building code for handler %s", self.fn_name)
		code = self.module_source()
		transpiler = transpiler or default_transpiler()
		options = TransformOptions(loader=self.loader, minify=minify)
		try:
			return await transpiler.transform(code, options)
		except Exception:
			logger.exception(
				"Transpiling handler %s failed, writing untransformed source",
				self.fn_name,
			)
			return code

	def __str__(self) -> str:
		return self.invocation

	def __repr__(self) -> str:
		return f"ClientFunction({self.fn_name!r}, filename={self.filename!r})"


def client_function(
	fn_name: str,
	source_file: str | Path | None = None,
	*,
	jsx: bool = False,
) -> Callable[[F], ClientFunction[F]]:
	"""Decorator form of `ClientFunction`."""

	def decorator(fn: F) -> ClientFunction[F]:
		return ClientFunction(fn_name, fn, source_file, jsx=jsx)

	return decorator
