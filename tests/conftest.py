"""Pytest configuration and fixtures for tsquery tests."""

from __future__ import annotations

import logging
import socketserver
import threading
from pathlib import Path
from typing import Generator

import pytest

from tsquery.config import ClientConfig, Config, ServerConfig
from tsquery.protocol.client import QueryClient

BANNER = [
    "TS3",
    'Welcome to the TeamSpeak 3 ServerQuery interface, type "help" for a list of commands.',
]
UNKNOWN_COMMAND = r"error id=256 msg=command\snot\sfound"


class _Handler(socketserver.StreamRequestHandler):
    def handle(self):
        fake: FakeQueryServer = self.server.fake  # type: ignore[attr-defined]
        for line in fake.banner:
            self._send(line)
        if fake.hangup_after_banner:
            return

        for raw in self.rfile:
            line = raw.decode("utf-8").strip()
            if not line:
                continue
            fake.received.append(line)
            name = line.split(" ", 1)[0]
            for reply in fake.replies.get(name, [UNKNOWN_COMMAND]):
                self._send(reply)
            if name in fake.close_after:
                return

    def _send(self, line: str) -> None:
        # The real server ends lines with "\n\r"
        self.wfile.write((line + "\n\r").encode("utf-8"))
        self.wfile.flush()


class _Server(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True


class FakeQueryServer:
    """In-process query server answering from a table of canned replies."""

    def __init__(self):
        self.banner = list(BANNER)
        self.replies: dict[str, list[str]] = {
            "version": [
                "version=3.13.7 build=1655727713 platform=Linux",
                "error id=0 msg=ok",
            ],
            "clientkick": ["error id=0 msg=ok"],
            "servernotifyregister": ["error id=0 msg=ok"],
            "quit": ["error id=0 msg=ok"],
        }
        self.close_after: set[str] = {"quit"}
        self.hangup_after_banner = False
        self.received: list[str] = []
        self._server = _Server(("127.0.0.1", 0), _Handler)
        self._server.fake = self  # type: ignore[attr-defined]
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)

    @property
    def host(self) -> str:
        return self._server.server_address[0]

    @property
    def port(self) -> int:
        return self._server.server_address[1]

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._server.shutdown()
        self._server.server_close()


@pytest.fixture
def fake_server() -> Generator[FakeQueryServer, None, None]:
    """Run a fake query server on a free local port."""
    server = FakeQueryServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def server_config(fake_server: FakeQueryServer) -> Config:
    """Config pointing at the fake server."""
    return Config(
        server=ServerConfig(host=fake_server.host, port=fake_server.port),
        client=ClientConfig(command_timeout=5),
    )


@pytest.fixture
def written() -> list[str]:
    """Lines the client writes to its transport."""
    return []


@pytest.fixture
def client(written: list[str]) -> QueryClient:
    """Client writing to a list instead of a socket."""
    return QueryClient(write=written.append)


@pytest.fixture
def ready_client(client: QueryClient) -> QueryClient:
    """Client that has already seen both banner lines."""
    for line in BANNER:
        client.handle_line(line)
    return client


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep tests away from the user's config and environment."""
    config_home = tmp_path / "config"
    config_home.mkdir()
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.delenv("TSQUERY_HOST", raising=False)
    monkeypatch.delenv("TSQUERY_PORT", raising=False)
    return config_home / "tsquery"


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    """Drop handlers the CLI installs on the package logger."""
    yield
    logger = logging.getLogger("tsquery")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
