from __future__ import annotations


class ClientFunctionError(Exception):
	"""Base for all client-functions errors."""


class TranspileError(ClientFunctionError):
	"""The transpiler rejected a source text or could not be run."""

	loader: str
	output: str

	def __init__(self, message: str, *, loader: str = "ts", output: str = "") -> None:
		super().__init__(message)
		self.loader = loader
		self.output = output

	def __str__(self) -> str:
		message = super().__str__()
		if self.output:
			return f"{message}\n{self.output}"
		return message


class HandlerLoadError(ClientFunctionError):
	"""A dispatcher could not load the module behind a handler name."""

	name: str
	url: str

	def __init__(self, message: str, *, name: str, url: str) -> None:
		super().__init__(message)
		self.name = name
		self.url = url
