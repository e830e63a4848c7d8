from __future__ import annotations


class AgentGetError(Exception):
    """Base for every failure raised while talking to an agent."""


class ConnectError(AgentGetError):
    pass


class SendError(AgentGetError):
    pass


class ReceiveError(AgentGetError):
    pass


class ResponseTooLarge(ReceiveError):
    def __init__(self, limit: int):
        super().__init__(f"response exceeds {limit} bytes")
        self.limit = limit


class TimeoutAbort(AgentGetError):
    MESSAGE = "Timeout while executing operation"

    def __init__(self, message: str = MESSAGE):
        super().__init__(message)
