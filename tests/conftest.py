from pathlib import Path

import pytest
from client_functions.naming import NameCache
from client_functions.registry import HandlerRegistry, reset_registry
from client_functions.transpiler import set_default_transpiler

from helpers import FakeTranspiler


@pytest.fixture(autouse=True)
def registry(tmp_path: Path):
	registry = HandlerRegistry(NameCache(tmp_path / ".clientFunctionCache.json"))
	reset_registry(registry)
	yield registry
	reset_registry()


@pytest.fixture
def transpiler():
	fake = FakeTranspiler()
	set_default_transpiler(fake)
	yield fake
	set_default_transpiler(None)
