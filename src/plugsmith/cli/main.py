"""plugsmith CLI entry point and global options."""

from pathlib import Path
from typing import Literal

import click

from plugsmith import __version__
from plugsmith.cli.output import OutputFormat, OutputFormatter, set_output_format
from plugsmith.core.config import load_config
from plugsmith.core.errors import AggregateError, PlugsmithError, handle_error
from plugsmith.core.logging import configure_logging, set_verbose
from plugsmith.models.plugin import ParsedHandler, ParsedKey, PluginInfo
from plugsmith.plugins.keys import parse_handler_key, parse_key
from plugsmith.plugins.record import PluginRecord
from plugsmith.plugins.registry import Registry
from plugsmith.plugins.source import RepoRef, classify_source

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_INVALID_ARGS = 2
EXIT_ACQUIRE_FAILED = 3
EXIT_BUILD_FAILED = 4
EXIT_TEST_FAILED = 5
EXIT_LOAD_FAILED = 6

_PHASE_EXIT_CODES = {
    "acquire": EXIT_ACQUIRE_FAILED,
    "build": EXIT_BUILD_FAILED,
    "test": EXIT_TEST_FAILED,
    "load": EXIT_LOAD_FAILED,
}


def _exit_code(error: PlugsmithError) -> int:
    if isinstance(error, AggregateError):
        phases = {getattr(e, "phase", None) for e in error.errors}
    else:
        phases = {error.phase}
    if len(phases) != 1:
        return EXIT_ERROR
    return _PHASE_EXIT_CODES.get(phases.pop() or "", EXIT_ERROR)


def _fail(ctx: click.Context, error: PlugsmithError) -> None:
    formatter: OutputFormatter = ctx.obj["formatter"]
    formatter.error(error.to_structured_error())
    ctx.exit(_exit_code(error))


@click.group()
@click.option(
    "--format",
    "-f",
    type=click.Choice(["json", "human"]),
    default="json",
    help="Output format (default: json)",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose logging to stderr",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    default=False,
    help="Suppress progress output",
)
@click.option(
    "--log-format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Log format for stderr (default: text)",
)
@click.version_option(version=__version__, prog_name="plugsmith")
@click.pass_context
def cli(
    ctx: click.Context,
    format: OutputFormat,
    verbose: bool,
    quiet: bool,
    log_format: Literal["text", "json"],
) -> None:
    """plugsmith: fetch, build, test and load Python plugins."""
    ctx.ensure_object(dict)
    ctx.obj = {
        "format": format,
        "formatter": OutputFormatter(format=format),
    }

    set_output_format(format)
    set_verbose(verbose)
    configure_logging(log_format=log_format, quiet=quiet)


@cli.command("parse-key")
@click.argument("key")
@click.pass_context
def parse_key_command(ctx: click.Context, key: str) -> None:
    """Show how a plugin KEY is resolved, without registering it."""
    formatter: OutputFormatter = ctx.obj["formatter"]
    try:
        record = PluginRecord.from_key(Path("."), key)
    except PlugsmithError as e:
        _fail(ctx, e)
        return

    source_key, _ = parse_key(key)
    source = classify_source(source_key)
    parsed = ParsedKey(
        key=key,
        source=source_key,
        alias=record.alias,
        kind=record.kind,
        url=record.url,
        version=source.version if isinstance(source, RepoRef) else "",
        branch=source.branch if isinstance(source, RepoRef) else "",
    )
    formatter.output(parsed)


@cli.command("parse-handler")
@click.argument("handler_key")
@click.pass_context
def parse_handler_command(ctx: click.Context, handler_key: str) -> None:
    """Split a HANDLER_KEY of the form alias.Method(args) into its parts."""
    formatter: OutputFormatter = ctx.obj["formatter"]
    try:
        call = parse_handler_key(handler_key)
    except PlugsmithError as e:
        _fail(ctx, e)
        return
    formatter.output(ParsedHandler.from_call(call))


@cli.command("list")
@click.argument("config", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.pass_context
def list_command(ctx: click.Context, config: Path) -> None:
    """List the plugins declared in CONFIG."""
    formatter: OutputFormatter = ctx.obj["formatter"]
    try:
        registry = Registry.from_config(load_config(config))
    except PlugsmithError as e:
        _fail(ctx, e)
        return

    formatter.table(
        [PluginInfo.from_record(r) for r in registry.records()],
        columns=["alias", "kind", "url", "ref", "artifact", "state"],
    )


@cli.command()
@click.argument("config", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option("--branch", "-b", default=None, help="Branch or version overriding every plugin")
@click.option(
    "--async/--sequential",
    "concurrent",
    default=True,
    help="Build and test plugins concurrently (default: async)",
)
@click.option("--workers", "-w", type=int, default=None, help="Concurrent build/test workers")
@click.option("--skip-retrieve", is_flag=True, default=False, help="Do not fetch or update sources")
@click.option("--skip-tests", is_flag=True, default=False, help="Do not run plugin tests")
@click.pass_context
def sync(
    ctx: click.Context,
    config: Path,
    branch: str | None,
    concurrent: bool,
    workers: int | None,
    skip_retrieve: bool,
    skip_tests: bool,
) -> None:
    """Retrieve, build, test and load the plugins declared in CONFIG, then close them."""
    formatter: OutputFormatter = ctx.obj["formatter"]

    try:
        settings = load_config(config)
        if branch is not None:
            settings.branch = branch
        if workers is not None:
            settings.workers = workers
        registry = Registry.from_config(settings)
    except PlugsmithError as e:
        _fail(ctx, e)
        return

    try:
        if not skip_retrieve:
            registry.retrieve()

        if concurrent:
            registry.build_async()
        else:
            registry.build()

        if not skip_tests:
            if concurrent:
                registry.test_async()
            else:
                registry.test()

        registry.initialize()
        registry.configure(settings.env)
        registry.link()
        infos = [PluginInfo.from_record(r) for r in registry.records()]
        registry.close()
    except PlugsmithError as e:
        if not registry.closed:
            try:
                registry.close()
            except PlugsmithError as close_error:
                click.echo(f"Error: {close_error}", err=True)
        _fail(ctx, e)
        return

    formatter.table(infos, columns=["alias", "kind", "ref", "artifact", "state"])


def main() -> None:
    """Main entry point."""
    try:
        cli()
    except PlugsmithError as e:
        handle_error(e, _exit_code(e))
    except Exception as e:
        handle_error(e, EXIT_ERROR)


if __name__ == "__main__":
    main()
