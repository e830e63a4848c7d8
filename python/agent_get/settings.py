from __future__ import annotations

from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AgentGetSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="AGENT_GET_", extra="ignore")

    # whole exchange: connect, send and read-until-close
    timeout_s: float = Field(default=60.0, gt=0)
    max_response_bytes: int = Field(default=16 * 1024 * 1024, gt=0)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v
