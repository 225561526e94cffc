"""Tool configuration loaded from GROVE_* environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GroveSettings(BaseSettings):
    """grove settings.

    All fields are read from environment variables with the ``GROVE_`` prefix.
    For example, ``GROVE_LOCK_TIMEOUT=30`` maps to ``lock_timeout``.  List
    fields take JSON, e.g. ``GROVE_SHARED_CONFIG_DIRS='["hooks", "skills"]'``.
    """

    model_config = SettingsConfigDict(
        env_prefix="GROVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    # -- Layout ----------------------------------------------------------------
    worktrees_dirname: str = ".worktrees"
    """Directory under the primary checkout that holds every workspace."""

    metadata_filename: str = ".worktree.json"
    lock_filename: str = ".merge.lock"
    guidance_filename: str = "CLAUDE.md"

    # -- Merge lock ------------------------------------------------------------
    lock_timeout: float = 10.0
    """Seconds ``merge`` waits for another live holder before giving up."""

    lock_poll_interval: float = 1.0

    # -- Listing ---------------------------------------------------------------
    stale_after_days: int = 7
    """A workspace with no commit for longer than this is reported as stale."""

    # -- Config propagation ----------------------------------------------------
    config_dirname: str = ".claude"
    shared_config_dirs: list[str] = Field(
        default_factory=lambda: ["hooks", "commands", "templates", "skills", "agents"],
        description="Symlinked into every workspace so edits are visible everywhere",
    )
    copied_config_files: list[str] = Field(
        default_factory=lambda: ["settings.json", "settings.local.json"],
        description="Copied into each workspace; free to diverge afterwards",
    )

    # -- Boundary guard --------------------------------------------------------
    guard_exempt_patterns: list[str] = Field(
        default_factory=lambda: [".gitignore", "CLAUDE.md", "*.json", "*.lock", "*.toml", "*.yaml", "*.yml"],
        description="File-name globs that may always be edited in the primary checkout",
    )

    # -- Bootstrap -------------------------------------------------------------
    run_bootstrap: bool = True
    """Run the project's package-manager install step after ``create``."""


@lru_cache(maxsize=1)
def get_settings() -> GroveSettings:
    """Return a cached settings instance.

    Call ``get_settings.cache_clear()`` in tests after overriding env vars.
    """
    return GroveSettings()
