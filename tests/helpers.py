from client_functions.errors import TranspileError
from client_functions.transpiler import TransformOptions


class FakeTranspiler:
	"""Records transform calls and tags the output with the loader.

	Fails every call when `fail` is set, or only the calls whose source
	contains `fail_on`.
	"""

	calls: list[tuple[str, TransformOptions]]
	fail: bool
	fail_on: str | None

	def __init__(self) -> None:
		self.calls = []
		self.fail = False
		self.fail_on = None

	async def transform(self, source: str, options: TransformOptions) -> str:
		self.calls.append((source, options))
		if self.fail or (self.fail_on is not None and self.fail_on in source):
			raise TranspileError("fake transpile failure", loader=options.loader)
		return f"/* {options.loader} */\n{source}"

	def sources(self) -> list[str]:
		return [source for source, _ in self.calls]
