import asyncio
import json
import os
from pathlib import Path

import client_functions.naming as naming
import pytest
from client_functions.naming import NameCache, generate_filename, hash_source


def reference_hash(source: str) -> int:
	"""Java-style String.hashCode over UTF-16 code units."""
	h = 0
	units = source.encode("utf-16-le", "surrogatepass")
	for i in range(0, len(units), 2):
		unit = units[i] | (units[i + 1] << 8)
		h = (31 * h + unit) % (1 << 32)
	return h - (1 << 32) if h >= (1 << 31) else h


@pytest.fixture
def hash_calls(monkeypatch: pytest.MonkeyPatch) -> list[str]:
	calls: list[str] = []
	original = naming.hash_source

	def counting(source: str) -> int:
		calls.append(source)
		return original(source)

	monkeypatch.setattr(naming, "hash_source", counting)
	return calls


@pytest.fixture
def defining_file(tmp_path: Path) -> Path:
	path = tmp_path / "handlers.py"
	path.write_text("# handlers\n")
	return path


def test_hash_small_values():
	assert hash_source("") == 0
	assert hash_source("a") == 97
	assert hash_source("ab") == 97 * 31 + 98
	assert generate_filename("ping", "ab") == "ping_c21"


def test_hash_counts_utf16_code_units():
	# U+1F600 is the surrogate pair D83D DE00
	assert hash_source("\U0001f600") == 0xD83D * 31 + 0xDE00
	assert generate_filename("x", "\U0001f600") == "x_1b0d63"


@pytest.mark.parametrize(
	"source",
	[
		"function(){return 1}",
		"function (event) { this.classList.toggle('open'); }",
		"x" * 500,
		"é€" * 40,
	],
)
def test_hash_wraps_to_signed_32_bits(source: str):
	value = hash_source(source)
	assert -(2**31) <= value < 2**31
	assert value == reference_hash(source)
	assert generate_filename("h", source) == f"h_{abs(value):x}"


def test_no_locator_is_never_cached(tmp_path: Path, hash_calls: list[str]):
	cache = NameCache(tmp_path / "cache.json")
	first = cache.resolve("ping", "function(){return 1}")
	second = cache.resolve("ping", "function(){return 1}")
	assert first == second
	assert first.startswith("ping_")
	assert len(hash_calls) == 2
	assert cache.document["files"] == {}
	assert not cache.dirty


def test_unreadable_locator_is_never_cached(tmp_path: Path, hash_calls: list[str]):
	cache = NameCache(tmp_path / "cache.json")
	missing = str(tmp_path / "missing.py")
	cache.resolve("ping", "src", missing)
	cache.resolve("ping", "src", missing)
	assert len(hash_calls) == 2
	assert cache.document["files"] == {}


def test_cache_hit_skips_hashing(
	tmp_path: Path, defining_file: Path, hash_calls: list[str]
):
	cache = NameCache(tmp_path / "cache.json")
	first = cache.resolve("ping", "function(){return 1}", str(defining_file))
	second = cache.resolve("ping", "function(){return 1}", str(defining_file))
	assert first == second
	assert len(hash_calls) == 1
	entry = cache.document["files"][str(defining_file)]
	assert entry["handlers"] == {"ping": first}
	assert entry["mtimeMs"] == defining_file.stat().st_mtime_ns / 1_000_000


def test_persisted_cache_is_reused(
	tmp_path: Path, defining_file: Path, hash_calls: list[str]
):
	path = tmp_path / "cache.json"
	cache = NameCache(path)
	filename = cache.resolve("ping", "src", str(defining_file))
	assert cache.flush()

	# A fresh process sees the same mtime and trusts the cached filename
	fresh = NameCache(path)
	assert fresh.resolve("ping", "completely different source", str(defining_file)) == filename
	assert len(hash_calls) == 1


def test_mtime_change_invalidates_every_handler_of_the_file(
	tmp_path: Path, defining_file: Path, hash_calls: list[str]
):
	path = tmp_path / "cache.json"
	cache = NameCache(path)
	locator = str(defining_file)
	cache.resolve("a", "function a() {}", locator)
	cache.resolve("b", "function b() {}", locator)
	cache.flush()

	stat = defining_file.stat()
	os.utime(defining_file, ns=(stat.st_atime_ns, stat.st_mtime_ns + 5_000_000_000))

	fresh = NameCache(path)
	fresh.resolve("a", "function a() {}", locator)
	assert len(hash_calls) == 3
	entry = fresh.document["files"][locator]
	assert set(entry["handlers"]) == {"a"}
	assert entry["mtimeMs"] == defining_file.stat().st_mtime_ns / 1_000_000


def test_file_url_locator(tmp_path: Path, defining_file: Path, hash_calls: list[str]):
	cache = NameCache(tmp_path / "cache.json")
	url = defining_file.as_uri()
	cache.resolve("ping", "src", url)
	cache.resolve("ping", "src", url)
	assert len(hash_calls) == 1
	assert url in cache.document["files"]


@pytest.mark.parametrize(
	"content",
	[
		"not json",
		json.dumps({"version": 2, "files": {}}),
		json.dumps({"version": 1, "files": []}),
		json.dumps([1, 2, 3]),
	],
)
def test_unrecognized_cache_is_a_cold_start(tmp_path: Path, content: str):
	path = tmp_path / "cache.json"
	path.write_text(content)
	cache = NameCache(path)
	cache.load()
	assert cache.loaded
	assert cache.document == {"version": 1, "files": {}}


def test_write_failure_is_swallowed(tmp_path: Path, defining_file: Path):
	target = tmp_path / "cache-dir"
	target.mkdir()
	cache = NameCache(target)
	cache.resolve("ping", "src", str(defining_file))
	assert cache.flush() is False
	assert cache.dirty
	assert target.is_dir()


def test_flush_is_noop_when_clean(tmp_path: Path):
	path = tmp_path / "cache.json"
	cache = NameCache(path)
	assert cache.flush() is False
	assert not path.exists()


def test_flush_rewrites_whole_document(tmp_path: Path, defining_file: Path):
	path = tmp_path / "cache.json"
	cache = NameCache(path)
	filename = cache.resolve("ping", "src", str(defining_file))
	cache.flush()
	data = json.loads(path.read_text())
	assert data["version"] == 1
	assert data["files"][str(defining_file)]["handlers"] == {"ping": filename}
	assert not (tmp_path / "cache.json.tmp").exists()


@pytest.mark.asyncio
async def test_burst_of_registrations_flushes_once(
	tmp_path: Path, defining_file: Path, monkeypatch: pytest.MonkeyPatch
):
	path = tmp_path / "cache.json"
	cache = NameCache(path)
	writes: list[str] = []
	original = cache._write  # pyright: ignore[reportPrivateUsage]

	def counting_write(text: str) -> None:
		writes.append(text)
		original(text)

	monkeypatch.setattr(cache, "_write", counting_write)

	for name in ("a", "b", "c"):
		cache.resolve(name, f"function {name}() {{}}", str(defining_file))
	assert writes == []

	await asyncio.sleep(0)

	assert len(writes) == 1
	data = json.loads(path.read_text())
	assert set(data["files"][str(defining_file)]["handlers"]) == {"a", "b", "c"}
	assert not cache.dirty
