"""tsquery CLI main entry point."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from ..config import load_config
from ..protocol.errors import TSQueryError
from . import commands
from .output import print_error, print_event, print_result


def setup_logging(level_name: str) -> None:
    """Send tsquery log records to stderr."""
    level = getattr(logging, level_name.upper(), logging.WARNING)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger("tsquery")
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)


@click.group()
@click.option("--host", "-H", help="Query interface host")
@click.option("--port", "-p", type=int, help="Query interface port")
@click.option(
    "--timeout", "-t", type=float, help="Per-command timeout in seconds (0 = none)"
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Config file (default: ~/.config/tsquery/config.toml)",
)
@click.option("--json", "json_output", is_flag=True, help="Output raw JSON")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, host, port, timeout, config_path, json_output: bool, verbose: bool):
    """tsquery - voice server query client

    Sends commands over the server's line-based query interface, one at a time.
    """
    config = load_config(config_path)
    if host:
        config.server.host = host
    if port:
        config.server.port = port
    if timeout is not None:
        config.client.command_timeout = timeout or None

    setup_logging("debug" if verbose else config.client.log_level)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["json"] = json_output


def _fail(error: Exception, json_output: bool) -> None:
    if isinstance(error, TSQueryError):
        print_error(error, json_output)
    else:
        print(f"Error: {error or type(error).__name__}", file=sys.stderr)
    sys.exit(1)


@cli.command("send", context_settings={"ignore_unknown_options": True})
@click.argument("name")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def send(ctx, name: str, args: tuple[str, ...]):
    """Run one command.

    ARGS are key=value parameters (repeat a key to send a list) or flags,
    e.g. `tsquery send clientlist -uid -away`.
    """
    json_output = ctx.obj["json"]
    try:
        result = commands.cmd_send(ctx.obj["config"], name, args)
    except commands.CLIENT_ERRORS as e:
        _fail(e, json_output)
    else:
        print_result(result, json_output)


@cli.command("run")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--keep-going", "-k", is_flag=True, help="Continue after a failed command")
@click.pass_context
def run(ctx, file: Path, keep_going: bool):
    """Run each line of FILE as a command, in order."""
    json_output = ctx.obj["json"]

    def report(line, result):
        click.echo(f"> {line}")
        if isinstance(result, Exception):
            print_error(result, json_output)
        else:
            print_result(result, json_output)

    try:
        ok = commands.cmd_run(
            ctx.obj["config"], commands.read_command_file(file), report, keep_going
        )
    except commands.CLIENT_ERRORS as e:
        _fail(e, json_output)
    else:
        if not ok:
            sys.exit(1)


@cli.command("listen")
@click.option(
    "--before",
    "-b",
    multiple=True,
    help="Command line to run first, e.g. 'servernotifyregister event=server'",
)
@click.pass_context
def listen(ctx, before: tuple[str, ...]):
    """Print server notifications until interrupted."""
    json_output = ctx.obj["json"]

    def report(line, result):
        if isinstance(result, Exception):
            print_error(result, json_output)

    try:
        commands.cmd_listen(
            ctx.obj["config"],
            before,
            lambda event: print_event(event, json_output),
            report,
        )
    except KeyboardInterrupt:
        pass
    except commands.CLIENT_ERRORS as e:
        _fail(e, json_output)


@cli.command("console")
@click.pass_context
def console(ctx):
    """Launch the interactive console."""
    from ..tui.app import main as tui_main

    tui_main(ctx.obj["config"])


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
