from __future__ import annotations

import logging
import socket
import struct
import threading
from collections.abc import Callable, Iterator
from contextlib import closing

import pytest
import structlog


def free_port() -> int:
    """A port with nothing listening on it (bound, then released)."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(("127.0.0.1", 0))
        return int(s.getsockname()[1])


class FakeAgent:
    """Single-threaded passive-check agent on 127.0.0.1.

    Reads one request line per connection, answers with `reply` and closes.
    With hold_open=True it never answers nor closes until stopped; with
    reset=True it aborts the connection (RST) instead of answering.
    """

    def __init__(self, reply: bytes = b"", hold_open: bool = False, reset: bool = False) -> None:
        self.reply = reply
        self.hold_open = hold_open
        self.reset = reset
        self.requests: list[bytes] = []
        self.peers: list[tuple[str, int]] = []
        self._stop = threading.Event()
        self._srv = socket.create_server(("127.0.0.1", 0))
        self._srv.settimeout(0.05)
        self.port = int(self._srv.getsockname()[1])
        self._thread = threading.Thread(target=self._serve, name="fake-agent", daemon=True)

    def start(self) -> FakeAgent:
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stop.set()
        self._thread.join(timeout=2.0)
        self._srv.close()

    def _serve(self) -> None:
        while not self._stop.is_set():
            try:
                conn, peer = self._srv.accept()
            except TimeoutError:
                continue
            except OSError:
                return
            with conn:
                conn.settimeout(2.0)
                self.peers.append(peer)
                data = b""
                while not data.endswith(b"\n"):
                    try:
                        chunk = conn.recv(1024)
                    except OSError:
                        break
                    if not chunk:
                        break
                    data += chunk
                self.requests.append(data)
                if self.reset:
                    conn.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, struct.pack("ii", 1, 0))
                    continue
                if self.hold_open:
                    self._stop.wait(5.0)
                    continue
                try:
                    conn.sendall(self.reply)
                except OSError:
                    pass


@pytest.fixture
def fake_agent() -> Iterator[Callable[..., FakeAgent]]:
    started: list[FakeAgent] = []

    def _start(reply: bytes = b"", hold_open: bool = False, reset: bool = False) -> FakeAgent:
        agent = FakeAgent(reply=reply, hold_open=hold_open, reset=reset).start()
        started.append(agent)
        return agent

    yield _start

    for agent in started:
        agent.stop()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("AGENT_GET_TIMEOUT_S", "AGENT_GET_MAX_RESPONSE_BYTES", "AGENT_GET_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _drop_log_handlers() -> Iterator[None]:
    yield
    # handlers installed by setup_logging hold this test's captured stderr
    root = logging.getLogger()
    for h in list(root.handlers):
        if isinstance(h.formatter, structlog.stdlib.ProcessorFormatter):
            root.removeHandler(h)
