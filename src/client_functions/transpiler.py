"""Adapter around the external transpiler.

The build only needs one operation: turn a TypeScript/TSX source string into an
ES module. `EsbuildTranspiler` shells out to the esbuild binary; anything with
the same `transform` coroutine can be plugged in instead.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Literal, Protocol

from client_functions.env import env
from client_functions.errors import TranspileError

logger = logging.getLogger(__name__)

Loader = Literal["ts", "tsx", "js", "jsx"]


@dataclass(frozen=True, slots=True)
class TransformOptions:
	loader: Loader = "ts"
	format: Literal["esm"] = "esm"
	target: str = "esnext"
	sourcemap: bool = False
	minify: bool = False


class Transpiler(Protocol):
	async def transform(self, source: str, options: TransformOptions) -> str: ...


def loader_for_filename(filename: str) -> Loader:
	return "tsx" if filename.lower().endswith(".tsx") else "ts"


class EsbuildTranspiler:
	"""Runs `esbuild` with the source on stdin and returns its stdout."""

	executable: str

	def __init__(self, executable: str | None = None) -> None:
		self.executable = executable or env.esbuild

	def command(self, options: TransformOptions) -> list[str]:
		args = [
			self.executable,
			f"--loader={options.loader}",
			f"--format={options.format}",
			f"--target={options.target}",
		]
		if options.sourcemap:
			args.append("--sourcemap=inline")
		if options.minify:
			args.append("--minify")
		args.append("--log-level=error")
		return args

	async def transform(self, source: str, options: TransformOptions) -> str:
		cmd = self.command(options)
		logger.debug("Running %s", " ".join(cmd))
		try:
			proc = await asyncio.create_subprocess_exec(
				*cmd,
				stdin=asyncio.subprocess.PIPE,
				stdout=asyncio.subprocess.PIPE,
				stderr=asyncio.subprocess.PIPE,
			)
		except FileNotFoundError as exc:
			msg = f"esbuild executable not found: {self.executable}"
			raise TranspileError(msg, loader=options.loader) from exc

		stdout, stderr = await proc.communicate(input=source.encode("utf-8"))
		if proc.returncode != 0:
			output = stderr.decode("utf-8", "replace") if stderr else ""
			msg = f"esbuild exited with code {proc.returncode}"
			raise TranspileError(msg, loader=options.loader, output=output)
		return stdout.decode("utf-8")


_default_transpiler: Transpiler | None = None


def default_transpiler() -> Transpiler:
	global _default_transpiler
	if _default_transpiler is None:
		_default_transpiler = EsbuildTranspiler()
	return _default_transpiler


def set_default_transpiler(transpiler: Transpiler | None) -> None:
	"""Replace the process-wide transpiler. `None` restores esbuild on next use."""
	global _default_transpiler
	_default_transpiler = transpiler
