from __future__ import annotations

from dataclasses import dataclass

from . import DEFAULT_AGENT_PORT
from .connection import connect
from .errors import ConnectError, ReceiveError, SendError
from .logging import get_logger
from .protocol import DecodedResult, decode_response, format_result, read_until_close, send_request
from .timeout import Deadline, TimeoutGuard

logger = get_logger(__name__)

DEFAULT_TIMEOUT_S = 60.0
DEFAULT_MAX_RESPONSE_BYTES = 16 * 1024 * 1024


@dataclass(frozen=True)
class ValueRequest:
    host: str
    key: str
    port: int = DEFAULT_AGENT_PORT
    source_address: str | None = None

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("host must not be empty")
        if not self.key:
            raise ValueError("key must not be empty")
        if not 0 <= self.port <= 65535:
            raise ValueError(f"port out of range: {self.port}")


@dataclass(frozen=True)
class Outcome:
    ok: bool
    text: str

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1


@dataclass(frozen=True)
class AgentClientConfig:
    host: str
    port: int = DEFAULT_AGENT_PORT
    source_address: str | None = None
    timeout_s: float = DEFAULT_TIMEOUT_S
    max_response_bytes: int = DEFAULT_MAX_RESPONSE_BYTES


class AgentClient:
    def __init__(self, cfg: AgentClientConfig):
        self._cfg = cfg

    def get_value(self, key: str, deadline: Deadline | None = None) -> DecodedResult:
        """Run one passive check for key.

        Raises ConnectError, SendError or ReceiveError for the stage that
        failed, and TimeoutAbort once the deadline has passed.
        """
        deadline = deadline or Deadline(self._cfg.timeout_s)
        log = logger.bind(host=self._cfg.host, port=self._cfg.port, key=key)

        with connect(self._cfg.host, self._cfg.port, self._cfg.source_address, deadline) as s:
            send_request(s, key, deadline)
            log.debug("request sent")
            raw = read_until_close(s, deadline, self._cfg.max_response_bytes)

        log.debug("response received", size=len(raw))
        return decode_response(raw)


def request_value(
    request: ValueRequest,
    timeout_s: float = DEFAULT_TIMEOUT_S,
    max_response_bytes: int = DEFAULT_MAX_RESPONSE_BYTES,
    guard: TimeoutGuard | None = None,
) -> Outcome:
    """Fetch one value and fold transport failures into an Outcome.

    TimeoutAbort is not folded: it propagates so the caller decides whether
    a timeout ends the process.
    """
    guard = guard or TimeoutGuard()
    client = AgentClient(
        AgentClientConfig(
            host=request.host,
            port=request.port,
            source_address=request.source_address,
            timeout_s=timeout_s,
            max_response_bytes=max_response_bytes,
        )
    )

    deadline = guard.arm(timeout_s)
    try:
        result = client.get_value(request.key, deadline)
    except (ConnectError, SendError, ReceiveError) as e:
        logger.debug("get value failed", host=request.host, port=request.port, error=str(e))
        return Outcome(ok=False, text=f"Get value error: {e}")
    finally:
        guard.disarm()

    return Outcome(ok=True, text=format_result(result))
