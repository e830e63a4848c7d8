from __future__ import annotations

import socket

from .errors import ConnectError, TimeoutAbort
from .logging import get_logger
from .timeout import Deadline

logger = get_logger(__name__)


def _describe(e: OSError) -> str:
    if e.errno is not None and e.strerror:
        return f"[{e.errno}] {e.strerror}"
    return str(e) or e.__class__.__name__


def connect(
    host: str,
    port: int,
    source_address: str | None,
    deadline: Deadline,
) -> socket.socket:
    """Open a TCP connection to host:port, bound to source_address when given.

    The caller owns the returned socket and must close it.
    """
    timeout = deadline.check()
    bind = (source_address, 0) if source_address else None

    logger.debug("connecting", host=host, port=port, source_address=source_address)
    try:
        s = socket.create_connection((host, port), timeout=timeout, source_address=bind)
    except TimeoutError as e:
        raise TimeoutAbort() from e
    except OSError as e:
        where = f"[[{host}]:{port}]"
        if bind is not None:
            where += f" from [{source_address}]"
        raise ConnectError(f"cannot connect to {where}: {_describe(e)}") from e

    logger.debug("connected", host=host, port=port)
    return s
