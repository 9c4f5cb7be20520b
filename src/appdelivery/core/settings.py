"""
Controller settings.

``ControllerSettings`` is the single validated source of configuration for
the assembler, the workflow engine and the reconciler. It is built once at
startup and handed to each constructor explicitly; nothing in the core reads
configuration from ambient per-call context.

All fields can be set via ``APPDELIVERY_*`` environment variables (e.g.
``APPDELIVERY_MAX_CONCURRENT_RECONCILES=8``) or a ``.env`` file. List fields
take JSON (``APPDELIVERY_NON_INPLACE_UPGRADABLE_KINDS='["batch/Job"]'``).

Tags:
    configuration, settings, pydantic, environment
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ControllerSettings(BaseSettings):
    """Application-delivery controller configuration."""

    model_config = SettingsConfigDict(
        env_prefix="APPDELIVERY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Reconciliation ───────────────────────────────────────────
    max_concurrent_reconciles: int = Field(default=4, ge=1)
    requeue_after_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Delay before re-checking a step that has not reached a terminal condition",
    )
    conflict_requeue_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Delay before retrying a pass that hit a write conflict",
    )

    # ── Naming ───────────────────────────────────────────────────
    max_name_length: int = Field(default=63, ge=1, description="Platform maximum resource name length")

    # ── Workload options ─────────────────────────────────────────
    enable_naming_override: bool = True
    enable_external_discovery: bool = True
    enable_rollout_preparation: bool = False
    non_inplace_upgradable_kinds: list[str] = Field(
        default_factory=lambda: ["batch/Job", "/Pod"],
        description="Workload kinds as 'group/Kind' whose spec cannot be mutated in place",
    )

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    @field_validator("non_inplace_upgradable_kinds")
    @classmethod
    def _check_kinds(cls, value: list[str]) -> list[str]:
        for entry in value:
            if "/" not in entry:
                raise ValueError(f"expected 'group/Kind', got {entry!r}")
        return value

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        if value not in ("json", "console"):
            raise ValueError(f"log_format must be 'json' or 'console', got {value!r}")
        return value

    @property
    def json_logs(self) -> bool:
        return self.log_format == "json"


_settings_cache: dict[str, ControllerSettings] = {}


def get_settings(*, _force_reload: bool = False) -> ControllerSettings:
    """Load, validate, and cache a :class:`ControllerSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = ControllerSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = ["ControllerSettings", "get_settings", "clear_settings_cache"]
