"""CLI command implementations."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Callable, Iterable

from ..config import Config
from ..protocol.client import QueryClient
from ..protocol.errors import TSQueryError
from ..protocol.messages import Event, Fields, split_arguments

CONNECT_TIMEOUT = 10.0

# Failures reported to the user instead of raised
CLIENT_ERRORS = (TSQueryError, OSError, ValueError, asyncio.TimeoutError)

# Failures of a single command line; reported with that line's result
COMMAND_ERRORS = (TSQueryError, ValueError)


@asynccontextmanager
async def open_client(config: Config) -> AsyncIterator[QueryClient]:
    """Connect, wait for the banner, and disconnect on exit."""
    client = QueryClient(command_timeout=config.client.command_timeout)
    await asyncio.wait_for(
        client.connect(
            config.server.host, config.server.port, config.client.encoding
        ),
        timeout=CONNECT_TIMEOUT,
    )
    try:
        await asyncio.wait_for(client.wait_ready(), timeout=CONNECT_TIMEOUT)
        yield client
    finally:
        await client.disconnect()


def read_command_file(path: Path) -> list[str]:
    """Read command lines from a script, skipping blanks and ``#`` comments."""
    lines = []
    for line in path.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            lines.append(line)
    return lines


def cmd_send(config: Config, name: str, args: Iterable[str]) -> Fields:
    """Run one command built from CLI arguments."""
    params, flags = split_arguments(args)

    async def run() -> Fields:
        async with open_client(config) as client:
            return await client.send(name, params, *flags)

    return asyncio.run(run())


def cmd_run(
    config: Config,
    lines: list[str],
    on_result: Callable[[str, Fields | Exception], None],
    keep_going: bool = False,
) -> bool:
    """Run command lines in order. Returns False if any command failed.

    All commands are queued up front; results are reported in order.
    Without ``keep_going`` the commands after the first failure are not
    reported.
    """

    async def run() -> bool:
        ok = True
        async with open_client(config) as client:
            futures = [
                (line, asyncio.ensure_future(client.send_raw(line)))
                for line in lines
            ]
            for line, future in futures:
                try:
                    on_result(line, await future)
                except COMMAND_ERRORS as e:
                    on_result(line, e)
                    ok = False
                    if not keep_going:
                        break
            for _, future in futures:
                if not future.done():
                    future.cancel()
        return ok

    return asyncio.run(run())


def cmd_listen(
    config: Config,
    before: Iterable[str],
    on_event: Callable[[Event], None],
    on_result: Callable[[str, Fields | Exception], None] | None = None,
) -> None:
    """Run setup commands, then report notifications until the server disconnects."""

    async def run() -> None:
        async with open_client(config) as client:
            client.add_event_handler(on_event)
            for line in before:
                try:
                    result = await client.send_raw(line)
                except COMMAND_ERRORS as e:
                    result = e
                if on_result:
                    on_result(line, result)
            await client.closed()

    asyncio.run(run())
