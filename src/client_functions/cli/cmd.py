"""
Command-line interface for client-functions.
Imports the modules that declare client functions, then builds them.
"""
# typer relies on function calls used as default values
# pyright: reportCallInDefaultInitializer=false

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from watchfiles import awatch

from client_functions.build import BuildOptions, BuildResult, build_script_files
from client_functions.cli.helpers import load_target
from client_functions.env import env
from client_functions.errors import TranspileError
from client_functions.version import __version__

cli = typer.Typer(
	name="client-functions",
	help="Build Python-declared browser handlers into lazily loaded ES modules",
	no_args_is_help=True,
)


def _configure_logging(quiet: bool) -> None:
	logging.basicConfig(
		level=logging.WARNING if quiet else logging.INFO,
		format="%(message)s",
		handlers=[RichHandler(show_path=False, markup=False)],
		force=True,
	)


def _load_targets(console: Console, targets: list[str]) -> None:
	for target in targets:
		console.log(f"📁 Loading handlers from: {target}")
		try:
			load_target(target)
		except (ImportError, FileNotFoundError) as exc:
			console.log(f"❌ {exc}")
			raise typer.Exit(1) from None


def _report(console: Console, result: BuildResult) -> None:
	table = Table(title="Build timings (ms)")
	for column in ("scan", "build", "cleanup", "total"):
		table.add_column(column, justify="right")
	t = result.timings
	table.add_row(*(f"{value:.1f}" for value in (t.scan, t.build, t.cleanup, t.total)))
	console.log(f"✅ {len(result.files)} files: {', '.join(result.files)}")
	console.print(table)


def _run_build(console: Console, options: BuildOptions) -> BuildResult:
	try:
		result = asyncio.run(build_script_files(options))
	except (TranspileError, OSError) as exc:
		console.log(f"❌ {exc}")
		raise typer.Exit(1) from None
	_report(console, result)
	return result


@cli.command("build")
def build(
	targets: list[str] = typer.Argument(
		..., help="Modules declaring client functions: 'path/to/file.py' or 'pkg.module'"
	),
	client_dir: Path = typer.Option(
		Path(env.client_dir), "--client-dir", help="Directory of .ts/.tsx client scripts"
	),
	public_dir: Path = typer.Option(
		Path(env.public_dir), "--public-dir", help="Output directory"
	),
	cleanup: bool = typer.Option(True, "--cleanup/--no-cleanup"),
	minify: bool = typer.Option(False, "--minify"),
	quiet: bool = typer.Option(False, "--quiet", "-q"),
):
	"""Build all registered client functions and client scripts once."""
	_configure_logging(quiet)
	console = Console()
	_load_targets(console, targets)
	options = BuildOptions(
		client_dir=client_dir,
		public_dir=public_dir,
		cleanup=cleanup,
		verbose=not quiet,
		minify=minify,
	)
	_run_build(console, options)


@cli.command("watch")
def watch(
	targets: list[str] = typer.Argument(
		..., help="Modules declaring client functions: 'path/to/file.py' or 'pkg.module'"
	),
	client_dir: Path = typer.Option(
		Path(env.client_dir), "--client-dir", help="Directory of .ts/.tsx client scripts"
	),
	public_dir: Path = typer.Option(
		Path(env.public_dir), "--public-dir", help="Output directory"
	),
	cleanup: bool = typer.Option(True, "--cleanup/--no-cleanup"),
	minify: bool = typer.Option(False, "--minify"),
	quiet: bool = typer.Option(False, "--quiet", "-q"),
):
	"""Build, then rebuild whenever the client directory changes.

	Handler declarations are imported once; restart after editing them.
	"""
	_configure_logging(quiet)
	console = Console()
	if not client_dir.is_dir():
		console.log(f"❌ Directory not found: {client_dir.absolute()}")
		raise typer.Exit(1)
	_load_targets(console, targets)
	options = BuildOptions(
		client_dir=client_dir,
		public_dir=public_dir,
		cleanup=cleanup,
		verbose=not quiet,
		minify=minify,
	)
	try:
		asyncio.run(_watch_loop(console, options))
	except KeyboardInterrupt:
		console.log("👋 Stopped watching")


async def _watch_loop(console: Console, options: BuildOptions) -> None:
	await _build_and_report(console, options)
	console.log(f"👀 Watching {options.client_dir}")
	async for changes in awatch(options.client_dir):
		console.log(f"🔄 {len(changes)} change(s) detected, rebuilding")
		await _build_and_report(console, options)


async def _build_and_report(console: Console, options: BuildOptions) -> None:
	try:
		result = await build_script_files(options)
	except (TranspileError, OSError) as exc:
		console.log(f"❌ {exc}")
		return
	_report(console, result)


@cli.command("version")
def version():
	"""Print the installed version."""
	typer.echo(__version__)


def main() -> None:
	cli()


if __name__ == "__main__":
	main()
