# src/config/settings.py — v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for the cache, checkpoint, lock and logging
locations used by a batch run.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Verification cache ===
    cache_enabled: bool = True
    cache_dir: Path = Path(".ai-scan-cache")
    cache_ttl_days: float = 7
    cache_max_entries: int = 1000

    # === Checkpoints ===
    checkpoint_file: Path = Path(".ai-scan-checkpoint.json")
    criteria_checkpoint_dir: Path = Path(".ai-scan-checkpoints")
    checkpoint_flush_every: int = 10

    # === Execution lock ===
    lock_file: Path = Path(".ai-scan.lock")
    lock_stale_after_hours: float = 24

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator(
        "cache_ttl_days",
        "cache_max_entries",
        "checkpoint_flush_every",
        "lock_stale_after_hours",
    )
    @classmethod
    def validate_positive(cls, v: float, info) -> float:  # noqa: N805
        if v <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Cross-field consistency rules."""
        errors: list[str] = []

        paths = {
            "CHECKPOINT_FILE": self.checkpoint_file,
            "LOCK_FILE": self.lock_file,
        }
        resolved = {name: p.expanduser().resolve() for name, p in paths.items()}
        if resolved["CHECKPOINT_FILE"] == resolved["LOCK_FILE"]:
            errors.append("CHECKPOINT_FILE and LOCK_FILE must be different paths")

        cache_root = self.cache_dir.expanduser().resolve()
        for name, p in resolved.items():
            if p == cache_root:
                errors.append(f"{name} must not be the CACHE_DIR itself")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-run config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
