from __future__ import annotations

import socket
import struct
from dataclasses import dataclass
from typing import Union

from .errors import ReceiveError, ResponseTooLarge, SendError, TimeoutAbort
from .timeout import Deadline

NOTSUPPORTED = b"ZBX_NOTSUPPORTED"
# the agent terminates the sentinel with NUL before appending its message
NOTSUPPORTED_TERMINATOR = b"\0"

HEADER_MAGIC = b"ZBXD\x01"
HEADER_SIZE = len(HEADER_MAGIC) + 8

RECV_CHUNK = 4096


@dataclass(frozen=True)
class Value:
    text: str


@dataclass(frozen=True)
class Unsupported:
    label: str
    message: str


DecodedResult = Union[Value, Unsupported]


def _text(raw: bytes) -> str:
    return raw.decode("utf-8", errors="surrogateescape")


def encode_request(key: str) -> bytes:
    if not key:
        raise ValueError("key must not be empty")
    return (key + "\n").encode("utf-8")


def send_request(s: socket.socket, key: str, deadline: Deadline) -> None:
    payload = encode_request(key)
    s.settimeout(deadline.check())
    try:
        s.sendall(payload)
    except TimeoutError as e:
        raise TimeoutAbort() from e
    except OSError as e:
        raise SendError(f"cannot send request: {e}") from e


def read_until_close(s: socket.socket, deadline: Deadline, max_bytes: int) -> bytes:
    """Collect everything the peer sends until it closes the connection."""
    buf = bytearray()
    while True:
        s.settimeout(deadline.check())
        try:
            chunk = s.recv(RECV_CHUNK)
        except TimeoutError as e:
            raise TimeoutAbort() from e
        except OSError as e:
            raise ReceiveError(f"cannot read response: {e}") from e
        if not chunk:
            break
        buf += chunk
        if len(buf) > max_bytes:
            raise ResponseTooLarge(max_bytes)
    return bytes(buf)


def strip_header(raw: bytes) -> bytes:
    """Drop a ZBXD length header when the agent framed its reply with one."""
    if not raw.startswith(HEADER_MAGIC) or len(raw) < HEADER_SIZE:
        return raw
    (length,) = struct.unpack("<Q", raw[len(HEADER_MAGIC):HEADER_SIZE])
    return raw[HEADER_SIZE:HEADER_SIZE + length]


def decode_response(raw: bytes) -> DecodedResult:
    payload = strip_header(raw)
    marker = NOTSUPPORTED + NOTSUPPORTED_TERMINATOR

    # a bare sentinel without a message is an ordinary value
    if payload.startswith(marker) and len(payload) > len(marker):
        message = payload[len(marker):].rstrip(b"\r\n")
        return Unsupported(label=_text(NOTSUPPORTED), message=_text(message))

    return Value(text=_text(payload.rstrip(b"\r\n")))


def format_result(result: DecodedResult) -> str:
    if isinstance(result, Unsupported):
        return f"{result.label}: {result.message}"
    return result.text
