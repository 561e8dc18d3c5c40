from pathlib import Path

import pytest
from client_functions import ClientFunction, js
from client_functions.transpiler import TransformOptions

from helpers import FakeTranspiler


@pytest.fixture
def views(tmp_path: Path) -> Path:
	path = tmp_path / "views.py"
	path.write_text("")
	return path


@pytest.mark.asyncio
async def test_module_imports_siblings_and_exports_source(
	views: Path, transpiler: FakeTranspiler
):
	helper = ClientFunction("helper", js("function helper() { return 2 }"), views)
	other = ClientFunction("other", js("function other() {}"), views)
	main = ClientFunction("main", js("function main() { return helper() }"), views)

	code = await main.build_code()

	source, options = transpiler.calls[0]
	assert source == (
		f'import {{ default as helper }} from "./{helper.filename}.js";\n'
		f'import {{ default as other }} from "./{other.filename}.js";\n'
		"export default function main() { return helper() }"
	)
	assert code == f"/* ts */\n{source}"
	assert options == TransformOptions(
		loader="ts", format="esm", target="esnext", sourcemap=False, minify=False
	)


@pytest.mark.asyncio
async def test_module_never_imports_itself(views: Path, transpiler: FakeTranspiler):
	only = ClientFunction("only", js("function only() {}"), views)
	only.register(views)

	await only.build_code()

	source, _ = transpiler.calls[0]
	assert "import" not in source
	assert source == "export default function only() {}"
	assert only.imports() == []


def test_handlers_without_source_file_share_the_global_imports(views: Path):
	a = ClientFunction("a", js("function a() {}"))
	ClientFunction("b", js("function b() {}"), views)
	c = ClientFunction("c", js("function c() { a() }"))

	assert c.imports() == [("a", a.filename)]
	assert c.module_source().startswith(
		f'import {{ default as a }} from "./{a.filename}.js";\n'
	)


def test_alias_makes_handler_importable_elsewhere(tmp_path: Path, views: Path):
	other_file = tmp_path / "other.py"
	other_file.write_text("")
	shared = ClientFunction("shared", js("function shared() {}"), views)
	shared.register(other_file)
	user = ClientFunction("user", js("function user() { shared() }"), other_file)

	assert user.imports() == [("shared", shared.filename)]


@pytest.mark.asyncio
async def test_jsx_and_minify_options(transpiler: FakeTranspiler):
	view = ClientFunction("view", js("function () { return <p /> }"), jsx=True)
	code = await view.build_code(minify=True)

	_, options = transpiler.calls[0]
	assert options.loader == "tsx"
	assert options.minify is True
	assert code.startswith("/* tsx */")


@pytest.mark.asyncio
async def test_transpile_failure_falls_back_to_raw_source(
	transpiler: FakeTranspiler, caplog: pytest.LogCaptureFixture
):
	transpiler.fail = True
	a = ClientFunction("a", js("function a() {}"))
	broken = ClientFunction("broken", js("function (event: Event) { oops( }"))

	with caplog.at_level("ERROR"):
		code = await broken.build_code()

	assert code == (
		f'import {{ default as a }} from "./{a.filename}.js";\n'
		"export default function (event: Event) { oops( }"
	)
	assert code == broken.module_source()
	assert any("broken" in rec.getMessage() for rec in caplog.records)


@pytest.mark.asyncio
async def test_explicit_transpiler_overrides_default(transpiler: FakeTranspiler):
	explicit = FakeTranspiler()
	handler = ClientFunction("h", js("function h() {}"))
	await handler.build_code(transpiler=explicit)
	assert len(explicit.calls) == 1
	assert transpiler.calls == []
