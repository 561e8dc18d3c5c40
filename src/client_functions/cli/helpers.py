from __future__ import annotations

import importlib
import importlib.util
import sys
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Literal


@dataclass(frozen=True, slots=True)
class Target:
	mode: Literal["path", "module"]
	module_name: str
	file_path: Path | None


def parse_target(target: str) -> Target:
	"""Interpret a CLI target as a Python file, a package directory or a module path."""
	path = Path(target)
	if target.endswith(".py") or path.exists():
		file_path = path.resolve()
		if file_path.is_dir():
			file_path = file_path / "__init__.py"
		module_name = (
			file_path.parent.name if file_path.name == "__init__.py" else file_path.stem
		)
		return Target(mode="path", module_name=module_name, file_path=file_path)
	return Target(mode="module", module_name=target, file_path=None)


def load_target(target: str) -> ModuleType:
	"""Import a target so the client functions it declares get registered."""
	parsed = parse_target(target)
	if parsed.mode == "module":
		return importlib.import_module(parsed.module_name)

	if parsed.file_path is None or not parsed.file_path.exists():
		raise FileNotFoundError(f"No such file: {parsed.file_path}")

	# Make sibling imports of the target work like `python path/to/file.py`
	search_dir = str(
		parsed.file_path.parent.parent
		if parsed.file_path.name == "__init__.py"
		else parsed.file_path.parent
	)
	if search_dir not in sys.path:
		sys.path.insert(0, search_dir)

	if parsed.module_name in sys.modules:
		existing = sys.modules[parsed.module_name]
		if getattr(existing, "__file__", None) == str(parsed.file_path):
			return existing

	spec = importlib.util.spec_from_file_location(
		parsed.module_name, parsed.file_path
	)
	if spec is None or spec.loader is None:
		raise ImportError(f"Cannot import {parsed.file_path}")
	module = importlib.util.module_from_spec(spec)
	sys.modules[parsed.module_name] = module
	try:
		spec.loader.exec_module(module)
	except BaseException:
		sys.modules.pop(parsed.module_name, None)
		raise
	return module
