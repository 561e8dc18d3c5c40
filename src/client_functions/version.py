"""Installed version of client-functions.

Stamped into the bootstrap marker, so a package upgrade rebuilds
`clientFunctions.js`. Source checkouts without installed metadata read the
version from the repository's pyproject.toml.
"""

from __future__ import annotations

import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

__all__ = ["__version__"]

DISTRIBUTION = "client-functions"
# src/client_functions/version.py -> repository root
PYPROJECT = Path(__file__).resolve().parents[2] / "pyproject.toml"


def _checkout_version() -> str | None:
	try:
		with PYPROJECT.open("rb") as f:
			project = tomllib.load(f).get("project", {})
	except (OSError, tomllib.TOMLDecodeError):
		return None
	value = project.get("version")
	return value if isinstance(value, str) and value else None


def _resolve_version() -> str:
	try:
		return version(DISTRIBUTION)
	except PackageNotFoundError:
		return _checkout_version() or "0.0.0"


__version__: str = _resolve_version()
