"""Pydantic settings for ficsync.toml configuration."""

import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from ...domain.policy.assembly_policy import AssemblyPolicy
from ...domain.policy.retry_policy import RetryPolicy
from .environment import get_env, load_environment_variables

DEFAULT_CONFIG_PATH = "ficsync.toml"


class StateSettings(BaseModel):
    """Persisted state location."""

    path: str = "var/ficsync.sqlite3"

    def __init__(self, **data: Any) -> None:
        """Initialize with environment variable precedence."""
        load_environment_variables()

        env_path = get_env("FICSYNC_STATE_DB")
        if env_path is not None:
            data["path"] = env_path

        super().__init__(**data)


class RetrySettings(BaseModel):
    """Backoff for transient failures, applied per operation."""

    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=30.0, ge=0)
    jitter: bool = True

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            jitter=self.jitter,
        )


class PipelineSettings(BaseModel):
    """Notification cycle settings."""

    max_workers: int = Field(default=4, ge=1)  # concurrent stories per cycle
    max_story_retries: int = Field(default=5, ge=1)  # cycles before a story is abandoned
    recent_notifications: int = Field(default=256, ge=1)  # push message ids kept for dedupe
    max_message_failures: int = Field(default=3, ge=1)  # aborted cycles before an unreadable message is skipped


class AssemblySettings(BaseModel):
    """Document assembly settings."""

    allow_partial: bool = True
    language: str = "en"

    def to_policy(self) -> AssemblyPolicy:
        return AssemblyPolicy(allow_partial=self.allow_partial, language=self.language)


class CredentialSettings(BaseModel):
    """Credential lifecycle settings."""

    refresh_skew_seconds: int = Field(default=300, ge=0)
    mailbox_name: str = "mailbox"
    store_name: str = "document_store"


class FanFictionNetSettings(BaseModel):
    """FanFiction.Net source settings."""

    base_url: str = "https://www.fanfiction.net"
    timeout_seconds: float = Field(default=20.0, gt=0)
    user_agent: str = "Mozilla/5.0 (X11; Linux x86_64; rv:128.0) Gecko/20100101 Firefox/128.0"
    full_story: bool = False  # fetch chapters 1..N instead of only the announced one

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class LoggingSettings(BaseModel):
    """Process logging settings."""

    level: str = "INFO"
    verbose: bool = False  # show HTTP client request logs

    @field_validator("level")
    @classmethod
    def known_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown logging level: {v}")
        return v


class SourceSettings(BaseModel):
    """Per-source settings."""

    fanfictionnet: FanFictionNetSettings = Field(default_factory=FanFictionNetSettings)


class Settings(BaseModel):
    """Main settings loaded from ficsync.toml."""

    state: StateSettings = Field(default_factory=StateSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    assembly: AssemblySettings = Field(default_factory=AssemblySettings)
    credentials: CredentialSettings = Field(default_factory=CredentialSettings)
    source: SourceSettings = Field(default_factory=SourceSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def from_toml(cls, toml_path: Path | str | None = None) -> "Settings":
        """
        Load settings from ficsync.toml with environment variable precedence.

        Args:
            toml_path: Path to the TOML file (default: $FICSYNC_CONFIG or ficsync.toml)

        Returns:
            Settings instance (defaults if the file does not exist)
        """
        load_environment_variables()

        if toml_path is None:
            toml_path = get_env("FICSYNC_CONFIG") or DEFAULT_CONFIG_PATH
        toml_path = Path(toml_path)

        if not toml_path.exists():
            return cls()

        with toml_path.open("rb") as f:
            data = tomllib.load(f)

        return cls(
            state=StateSettings(**data.get("state", {})),
            retry=RetrySettings(**data.get("retry", {})),
            pipeline=PipelineSettings(**data.get("pipeline", {})),
            assembly=AssemblySettings(**data.get("assembly", {})),
            credentials=CredentialSettings(**data.get("credentials", {})),
            source=SourceSettings(
                fanfictionnet=FanFictionNetSettings(**data.get("source", {}).get("fanfictionnet", {})),
            ),
            logging=LoggingSettings(**data.get("logging", {})),
        )
