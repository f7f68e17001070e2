import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator

FORK_POOL_SIZE = 4


class EngineSettings(BaseModel):
    pool_size: int = Field(default=FORK_POOL_SIZE, ge=1, description="Fork branches running at once")
    allow_eval: bool = Field(default=False, description="Enable the eval tag")
    log_level: str = Field(default="INFO")

    @field_validator("allow_eval", mode="before")
    @classmethod
    def coerce_to_bool(cls, v):
        if isinstance(v, str):
            return v.strip().lower() in ("1", "true", "yes", "on")
        return bool(v)

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_level(cls, v):
        return str(v).strip().upper()

    @classmethod
    def from_env(cls, prefix: str = "FLOWTREE_") -> "EngineSettings":
        """Read FLOWTREE_POOL_SIZE, FLOWTREE_ALLOW_EVAL and FLOWTREE_LOG_LEVEL."""
        values = {}
        for field in ("pool_size", "allow_eval", "log_level"):
            raw: Optional[str] = os.getenv(prefix + field.upper())
            if raw is not None and raw != "":
                values[field] = raw
        return cls.model_validate(values)
