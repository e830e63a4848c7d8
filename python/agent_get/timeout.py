from __future__ import annotations

import signal
import sys
import time
from types import FrameType

from .errors import TimeoutAbort


class Deadline:
    """Absolute point in monotonic time after which the exchange is abandoned."""

    def __init__(self, seconds: float):
        if seconds <= 0:
            raise ValueError("seconds must be > 0")
        self.seconds = seconds
        self._expires_at = time.monotonic() + seconds

    def remaining(self) -> float:
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0

    def check(self) -> float:
        """Return the seconds left, raising TimeoutAbort when none are."""
        left = self.remaining()
        if left <= 0.0:
            raise TimeoutAbort()
        return left


class TimeoutGuard:
    """Cancellable deadline for one exchange.

    Blocking calls consult the armed deadline; nothing here kills the process,
    so an embedding program can catch TimeoutAbort and carry on.
    """

    def __init__(self) -> None:
        self._deadline: Deadline | None = None

    @property
    def deadline(self) -> Deadline | None:
        return self._deadline

    @property
    def armed(self) -> bool:
        return self._deadline is not None

    def arm(self, seconds: float) -> Deadline:
        self._deadline = Deadline(seconds)
        return self._deadline

    def disarm(self) -> None:
        self._deadline = None

    def __enter__(self) -> TimeoutGuard:
        return self

    def __exit__(self, *exc: object) -> None:
        self.disarm()


class ProcessTimeoutGuard(TimeoutGuard):
    """TimeoutGuard that also arms SIGALRM, for the command-line entry point.

    The alarm interrupts blocking calls that ignore the socket timeout and
    surfaces as TimeoutAbort; the caller turns that into a process exit.
    """

    def __init__(self) -> None:
        super().__init__()
        self._previous = None

    @staticmethod
    def supported() -> bool:
        return hasattr(signal, "SIGALRM") and hasattr(signal, "setitimer")

    def _on_alarm(self, signum: int, frame: FrameType | None) -> None:
        raise TimeoutAbort()

    def arm(self, seconds: float) -> Deadline:
        deadline = super().arm(seconds)
        if self.supported():
            self._previous = signal.signal(signal.SIGALRM, self._on_alarm)
            signal.setitimer(signal.ITIMER_REAL, seconds)
        return deadline

    def disarm(self) -> None:
        if self.supported() and self.armed:
            signal.setitimer(signal.ITIMER_REAL, 0)
            signal.signal(signal.SIGALRM, self._previous or signal.SIG_DFL)
            self._previous = None
        super().disarm()


def _terminate(signum: int, frame: FrameType | None) -> None:
    sys.exit(1)


def install_signal_handlers() -> list[int]:
    """Make interrupt, terminate and quit end the process with status 1."""
    installed = []
    for name in ("SIGINT", "SIGTERM", "SIGQUIT"):
        signum = getattr(signal, name, None)
        if signum is None:
            continue
        signal.signal(signum, _terminate)
        installed.append(signum)
    return installed
