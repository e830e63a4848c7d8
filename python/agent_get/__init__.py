from __future__ import annotations

__version__ = "0.1.0"

DEFAULT_AGENT_PORT = 10050

__all__ = ["__version__", "DEFAULT_AGENT_PORT"]
