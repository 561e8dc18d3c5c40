"""Build registered client functions and client scripts into a static directory.

Use this in a build step, after importing the modules that declare handlers::

	import asyncio
	from client_functions.build import BuildOptions, build_script_files

	import myapp.handlers  # registers ClientFunctions

	result = asyncio.run(
		build_script_files(BuildOptions(client_dir="./client", public_dir="./public"))
	)
	print(result.files, result.timings)

The output directory ends up with:

- `clientFunctions.js`, the bootstrap that installs `globalThis.handlers`,
- one `<filename>.js` per registered handler,
- one `<name>.js` per `.ts`/`.tsx` file of the client directory.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import anyio
import anyio.to_thread

from client_functions.env import env
from client_functions.registry import ClientFunction, HandlerRegistry, get_registry
from client_functions.templates import bootstrap_marker
from client_functions.transpiler import (
	TransformOptions,
	Transpiler,
	default_transpiler,
	loader_for_filename,
)
from client_functions.version import __version__

logger = logging.getLogger(__name__)

BOOTSTRAP_NAME = "clientFunctions"
BOOTSTRAP_SOURCE = Path(__file__).parent / "client" / "client.ts"
CLIENT_EXTENSIONS = (".ts", ".tsx")
DECLARATION_SUFFIX = ".d.ts"
OUTPUT_EXTENSION = ".js"


@dataclass(slots=True)
class BuildOptions:
	client_dir: str | Path = field(default_factory=lambda: env.client_dir)
	"""Directory containing client-side .ts/.tsx files to transpile."""

	public_dir: str | Path = field(default_factory=lambda: env.public_dir)
	"""Output directory for built JavaScript files."""

	cleanup: bool = True
	"""Remove .js files in `public_dir` that this build did not produce."""

	verbose: bool = True
	"""Log progress at INFO instead of DEBUG."""

	minify: bool = False


@dataclass(frozen=True, slots=True)
class BuildTimings:
	"""Durations in milliseconds."""

	scan: float
	build: float
	cleanup: float
	total: float


@dataclass(frozen=True, slots=True)
class BuildResult:
	files: list[str]
	"""Base names (without extension) of every built or kept file."""
	timings: BuildTimings


def _progress_logger(verbose: bool) -> Callable[..., None]:
	level = logging.INFO if verbose else logging.DEBUG

	def log(msg: str, *args: Any) -> None:
		logger.log(level, msg, *args)

	return log


def _output_stem(filename: str) -> str:
	return filename.split(".")[0]


async def build_script_files(
	options: BuildOptions | None = None,
	*,
	transpiler: Transpiler | None = None,
	registry: HandlerRegistry | None = None,
) -> BuildResult:
	"""Build every registered client function and client script.

	1. Scans `client_dir` for .ts/.tsx files
	2. Writes the bootstrap, the handler modules and the transpiled client
	   scripts concurrently
	3. Optionally removes outdated .js files from `public_dir`
	"""
	options = options or BuildOptions()
	transpiler = transpiler or default_transpiler()
	registry = registry if registry is not None else get_registry()
	log = _progress_logger(options.verbose)
	client_dir = anyio.Path(options.client_dir)
	public_dir = anyio.Path(options.public_dir)

	begin = time.perf_counter()

	# Checkpoint for filenames resolved outside an event loop
	await anyio.to_thread.run_sync(registry.cache.flush)

	try:
		await public_dir.mkdir(parents=True, exist_ok=True)
	except OSError as exc:
		logger.debug("Could not create %s: %s", public_dir, exc)

	scan_start = time.perf_counter()
	client_files = await _scan_client_dir(client_dir)
	scan_end = time.perf_counter()
	log("Client script files to process: %s", client_files)

	build_start = time.perf_counter()
	files: list[str] = list(
		await asyncio.gather(
			_build_bootstrap(public_dir, transpiler, options.minify, log),
			*(
				_build_handler(handler, public_dir, transpiler, options.minify, log)
				for handler in registry
			),
			*(
				transpile_client_file(
					name,
					options.client_dir,
					options.public_dir,
					verbose=options.verbose,
					minify=options.minify,
					transpiler=transpiler,
				)
				for name in client_files
			),
		)
	)
	build_end = time.perf_counter()
	log("Built files: %s", files)

	cleanup_start = time.perf_counter()
	if options.cleanup:
		await _remove_stale_files(public_dir, set(files), log)
	cleanup_end = time.perf_counter()
	end = time.perf_counter()

	return BuildResult(
		files=files,
		timings=BuildTimings(
			scan=(scan_end - scan_start) * 1000,
			build=(build_end - build_start) * 1000,
			cleanup=(cleanup_end - cleanup_start) * 1000,
			total=(end - begin) * 1000,
		),
	)


async def _scan_client_dir(client_dir: anyio.Path) -> list[str]:
	names: list[str] = []
	try:
		async for entry in client_dir.iterdir():
			if not entry.name.endswith(CLIENT_EXTENSIONS):
				continue
			# Type declarations emit no code
			if entry.name.endswith(DECLARATION_SUFFIX):
				continue
			if await entry.is_file():
				names.append(entry.name)
	except OSError:
		# No client directory, nothing to transpile
		return []
	return sorted(names)


async def _build_bootstrap(
	public_dir: anyio.Path,
	transpiler: Transpiler,
	minify: bool,
	log: Callable[..., None],
) -> str:
	out = public_dir / f"{BOOTSTRAP_NAME}{OUTPUT_EXTENSION}"
	marker = bootstrap_marker(__version__)

	try:
		existing: str | None = await out.read_text(encoding="utf-8")
	except (OSError, UnicodeDecodeError):
		existing = None
	if existing is not None and existing.split("\n", 1)[0] == marker:
		log("%s already up to date (v%s), skipping.", out.name, __version__)
		return BOOTSTRAP_NAME

	source = await anyio.Path(BOOTSTRAP_SOURCE).read_text(encoding="utf-8")
	code = await transpiler.transform(
		source, TransformOptions(loader="ts", minify=minify)
	)
	await out.write_text(f"{marker}\n{code}", encoding="utf-8")
	log("%s written: %s", out.name, out)
	return BOOTSTRAP_NAME


async def _build_handler(
	handler: ClientFunction[Any],
	public_dir: anyio.Path,
	transpiler: Transpiler,
	minify: bool,
	log: Callable[..., None],
) -> str:
	filename = handler.filename
	out = public_dir / f"{filename}{OUTPUT_EXTENSION}"
	log("Registered handler: %s", filename)

	# Presence only: an existing file is trusted as the build of this filename
	if await out.exists():
		log("File for handler %s already exists, skipping build.", filename)
		return filename

	code = await handler.build_code(minify, transpiler=transpiler)
	await out.write_text(code, encoding="utf-8")
	log("Handler file written: %s", out)
	return filename


async def transpile_client_file(
	filename: str,
	client_dir: str | Path = "./client",
	public_dir: str | Path = "./public",
	*,
	verbose: bool = True,
	minify: bool = False,
	transpiler: Transpiler | None = None,
) -> str:
	"""Transpile one client script, skipping it if its output is up to date.

	Returns the base name of the output file (without extension).
	"""
	log = _progress_logger(verbose)
	transpiler = transpiler or default_transpiler()

	in_path = anyio.Path(client_dir) / filename
	out_stem = _strip_client_extension(filename)
	out_path = anyio.Path(public_dir) / f"{out_stem}{OUTPUT_EXTENSION}"

	source_mtime = (await in_path.stat()).st_mtime_ns
	try:
		out_mtime: int | None = (await out_path.stat()).st_mtime_ns
	except OSError:
		out_mtime = None

	if out_mtime is not None and out_mtime >= source_mtime:
		log("Client script unchanged, skipping: %s", out_path)
		return out_stem

	source = await in_path.read_text(encoding="utf-8")
	options = TransformOptions(loader=loader_for_filename(filename), minify=minify)
	code = await transpiler.transform(source, options)
	await out_path.write_text(code, encoding="utf-8")
	log("Client script written: %s", out_path)
	return out_stem


def _strip_client_extension(filename: str) -> str:
	lower = filename.lower()
	for ext in sorted(CLIENT_EXTENSIONS, key=len, reverse=True):
		if lower.endswith(ext):
			return filename[: -len(ext)]
	return filename


async def _remove_stale_files(
	public_dir: anyio.Path, keep: set[str], log: Callable[..., None]
) -> None:
	entries = [entry async for entry in public_dir.iterdir()]
	for entry in entries:
		if not entry.name.endswith(OUTPUT_EXTENSION) or not await entry.is_file():
			continue
		if _output_stem(entry.name) not in keep:
			log("Removing file: %s", entry.name)
			await entry.unlink()
