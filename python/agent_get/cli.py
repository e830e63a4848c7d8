from __future__ import annotations

import argparse
from collections import Counter
from typing import Any

from pydantic import ValidationError
from rich.console import Console

from . import DEFAULT_AGENT_PORT, __version__
from .client import ValueRequest, request_value
from .errors import TimeoutAbort
from .logging import get_logger, setup_logging
from .settings import AgentGetSettings
from .timeout import ProcessTimeoutGuard, install_signal_handlers

PROG = "agent_get"

USAGE = f"{PROG} [-hV] -s <host name or IP> [-p <port>] [-I <IP address>] -k <key>"

EPILOG = (
    f'Example: {PROG} -s 127.0.0.1 -p {DEFAULT_AGENT_PORT} -k "system.cpu.load[all,avg1]"'
)

logger = get_logger(__name__)


class _CountedStore(argparse.Action):
    """Store the first value seen and count every occurrence of the option."""

    def __call__(self, parser, namespace, values, option_string=None):
        counts: Counter = namespace.__dict__.setdefault("_counts", Counter())
        counts[self.option_strings[0]] += 1
        if counts[self.option_strings[0]] == 1:
            setattr(namespace, self.dest, values)


def _port(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port number: {value!r}") from None
    if not 0 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"port out of range: {port}")
    return port


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog=PROG,
        usage=USAGE,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument(
        "-s", "--host", action=_CountedStore, metavar="<host name or IP>",
        help="Specify host name or IP address of a host",
    )
    p.add_argument(
        "-p", "--port", action=_CountedStore, type=_port, default=DEFAULT_AGENT_PORT,
        metavar="<port number>",
        help=f"Specify port number of agent running on the host. Default is {DEFAULT_AGENT_PORT}",
    )
    p.add_argument(
        "-I", "--source-address", action=_CountedStore, metavar="<IP address>",
        help="Specify source IP address",
    )
    p.add_argument(
        "-k", "--key", action=_CountedStore, metavar="<key of metric>",
        help="Specify key of item to retrieve value for",
    )
    p.add_argument(
        "-V", "--version", action="version", version=f"%(prog)s {__version__}",
        help="Display version number",
    )
    p.add_argument("extra", nargs="*", help=argparse.SUPPRESS)
    return p


def _emit(console: Console, text: str) -> None:
    """Write text unrendered so agent bytes reach the stream unchanged."""
    data = text.encode("utf-8", errors="surrogateescape") + b"\n"
    stream = console.file
    buffer = getattr(stream, "buffer", None)
    if buffer is None:
        stream.write(data.decode("utf-8", errors="replace"))
        stream.flush()
        return
    stream.flush()
    buffer.write(data)
    buffer.flush()


def _validate(p: argparse.ArgumentParser, args: Any, err: Console) -> bool:
    ok = True

    if args.host is None or args.key is None:
        err.print(p.format_usage().rstrip())
        ok = False

    counts: Counter = getattr(args, "_counts", Counter())
    for opt in ("-k", "-p", "-s", "-I"):
        if counts[opt] > 1:
            err.print(f'{PROG}: option "{opt}" specified multiple times')
            ok = False

    for extra in args.extra:
        err.print(f'{PROG}: invalid parameter "{extra}"')
        ok = False

    return ok


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_intermixed_args(argv)

    console = Console(markup=False, highlight=False, emoji=False, soft_wrap=True)
    err = Console(stderr=True, markup=False, highlight=False, emoji=False, soft_wrap=True)

    if not _validate(p, args, err):
        return 1

    try:
        settings = AgentGetSettings()
    except ValidationError as e:
        err.print(f"{PROG}: invalid configuration: {e}")
        return 1

    setup_logging(settings.log_level)

    try:
        request = ValueRequest(
            host=args.host,
            key=args.key,
            port=args.port,
            source_address=args.source_address,
        )
    except ValueError as e:
        err.print(f"{PROG}: {e}")
        return 1

    install_signal_handlers()
    try:
        outcome = request_value(
            request,
            timeout_s=settings.timeout_s,
            max_response_bytes=settings.max_response_bytes,
            guard=ProcessTimeoutGuard(),
        )
    except TimeoutAbort as e:
        logger.debug("exchange timed out", timeout_s=settings.timeout_s)
        err.print(f"{PROG}: {e}")
        return 1

    if not outcome.ok:
        err.print(f"{PROG}: {outcome.text}")
        return outcome.exit_code

    _emit(console, outcome.text)
    return outcome.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
