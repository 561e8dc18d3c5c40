"""Environment-backed settings.

Every setting has a default, so nothing needs to be exported for a plain
`build_script_files()` call. Assigning a property writes the variable back to
`os.environ` so subprocesses see the same configuration.
"""

from __future__ import annotations

import os
from pathlib import Path

ENV_CLIENT_FUNCTIONS_CACHE = "CLIENT_FUNCTIONS_CACHE"
ENV_CLIENT_FUNCTIONS_ESBUILD = "CLIENT_FUNCTIONS_ESBUILD"
ENV_CLIENT_FUNCTIONS_CLIENT_DIR = "CLIENT_FUNCTIONS_CLIENT_DIR"
ENV_CLIENT_FUNCTIONS_PUBLIC_DIR = "CLIENT_FUNCTIONS_PUBLIC_DIR"

DEFAULT_CACHE_PATH = "./.clientFunctionCache.json"
DEFAULT_CLIENT_DIR = "./client"
DEFAULT_PUBLIC_DIR = "./public"


class ClientFunctionsEnv:
	def _get(self, key: str) -> str | None:
		value = os.environ.get(key)
		return value or None

	def _set(self, key: str, value: str | None) -> None:
		if value is None:
			os.environ.pop(key, None)
		else:
			os.environ[key] = value

	@property
	def cache_path(self) -> Path:
		"""Location of the persisted handler name cache."""
		return Path(self._get(ENV_CLIENT_FUNCTIONS_CACHE) or DEFAULT_CACHE_PATH)

	@cache_path.setter
	def cache_path(self, value: str | Path | None) -> None:
		self._set(ENV_CLIENT_FUNCTIONS_CACHE, None if value is None else str(value))

	@property
	def esbuild(self) -> str:
		return self._get(ENV_CLIENT_FUNCTIONS_ESBUILD) or "esbuild"

	@esbuild.setter
	def esbuild(self, value: str | None) -> None:
		self._set(ENV_CLIENT_FUNCTIONS_ESBUILD, value)

	@property
	def client_dir(self) -> str:
		return self._get(ENV_CLIENT_FUNCTIONS_CLIENT_DIR) or DEFAULT_CLIENT_DIR

	@client_dir.setter
	def client_dir(self, value: str | None) -> None:
		self._set(ENV_CLIENT_FUNCTIONS_CLIENT_DIR, value)

	@property
	def public_dir(self) -> str:
		return self._get(ENV_CLIENT_FUNCTIONS_PUBLIC_DIR) or DEFAULT_PUBLIC_DIR

	@public_dir.setter
	def public_dir(self, value: str | None) -> None:
		self._set(ENV_CLIENT_FUNCTIONS_PUBLIC_DIR, value)


env = ClientFunctionsEnv()
