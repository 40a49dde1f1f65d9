"""
Environment-driven settings for mcporter.

Every setting can be overridden with an ``MCPORTER_`` prefixed environment
variable, e.g. ``MCPORTER_CONFIG`` or ``MCPORTER_NO_FORCE_EXIT``.
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mcporter.core.exceptions import UsageError
from mcporter.utils.logging import parse_log_level


class Settings(BaseSettings):
    """Process-level settings read from the environment."""
    
    config: Optional[str] = Field(default=None, description="Config file override")
    log_level: Optional[str] = Field(default=None, description="Default log level")
    call_timeout_ms: int = Field(default=60_000, description="Tool call timeout")
    oauth_timeout_ms: int = Field(default=300_000, description="Browser authorization timeout")
    no_force_exit: bool = Field(default=False, description="Skip forced exit after cleanup")
    force_exit: bool = Field(default=False, description="Force exit even when disabled")
    debug_hang: bool = Field(default=False, description="Log teardown diagnostics")
    
    model_config = SettingsConfigDict(
        env_prefix="MCPORTER_",
        case_sensitive=False,
        extra="ignore",
    )
    
    @field_validator("config")
    @classmethod
    def validate_config(cls, v: Optional[str]) -> Optional[str]:
        """Treat an empty override as unset."""
        if v is not None and not v.strip():
            return None
        return v
    
    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: Optional[str]) -> Optional[str]:
        """Validate logging level."""
        if v is None or not v.strip():
            return None
        try:
            return parse_log_level(v)
        except UsageError as e:
            raise ValueError(e.message) from e
    
    @field_validator("call_timeout_ms", "oauth_timeout_ms")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Timeouts must be positive")
        return v
    
    @property
    def should_force_exit(self) -> bool:
        """Whether the entry point should hard-exit after cleanup."""
        return self.force_exit or not self.no_force_exit


def get_settings() -> Settings:
    """Read settings from the current environment."""
    return Settings()
