"""Configuration schema for copyrc.

Defines Pydantic models for the ``.copyrc.yaml`` structure: a list of
copy entries, a list of archive entries, run flags, and logging.

Usage:
    from copyrc.config_schema import CopyrcConfig, build_config

    raw = load_hierarchical_config()
    config = build_config(raw)
    for entry in config.copies:
        ...

Unknown keys are rejected so that typos in a config file surface as a
validation error instead of being silently ignored.
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

_STRICT = {"frozen": True, "extra": "forbid"}


# ---------------------------------------------------------------------------
# Entry models
# ---------------------------------------------------------------------------


class SourceConfig(BaseModel):
    """Where to mirror from.

    Attributes:
        repo: Repository locator, e.g. ``github.com/org/repo`` or a
            local directory path.
        ref: Branch, tag, or commit to mirror.
        path: Subdirectory of the repository to mirror.
        ref_type: Optional hint for archive URLs.
    """

    repo: str = Field(description="Repository locator")
    ref: str = Field(default="main", description="Branch, tag or commit")
    path: str = Field(default="", description="Subpath within the repo")
    ref_type: Literal["branch", "tag", "commit"] | None = Field(
        default=None, description="Kind of ref (archive URLs)"
    )

    model_config = _STRICT

    @field_validator("repo")
    @classmethod
    def _repo_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("source.repo must not be empty")
        return value.strip()


class DestinationConfig(BaseModel):
    """Where to mirror to (directory holding the lock file)."""

    path: str = Field(description="Destination directory")

    model_config = _STRICT

    @field_validator("path")
    @classmethod
    def _path_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("destination.path must not be empty")
        return value


class Replacement(BaseModel):
    """Literal text substitution applied to fetched content.

    Attributes:
        old: Text to find.
        new: Replacement text.
        file: Restrict to one remote path (or basename); all files when
            unset.
    """

    old: str
    new: str
    file: str | None = None

    model_config = _STRICT


class CopyOptions(BaseModel):
    """Per-entry processing options."""

    replacements: list[Replacement] = Field(default_factory=list)
    ignore_files: list[str] = Field(
        default_factory=list,
        description="Globs whose content is kept only in the lock file",
    )
    file_patterns: list[str] = Field(
        default_factory=list,
        description="Globs restricting which remote files are mirrored",
    )
    recursive: bool = Field(
        default=False, description="Mirror subdirectories"
    )
    skip_header_comments: bool = Field(
        default=False, description="Do not prepend generated-by headers"
    )

    model_config = _STRICT


class CopyEntry(BaseModel):
    """One mirrored subtree."""

    source: SourceConfig
    destination: DestinationConfig
    options: CopyOptions = Field(default_factory=CopyOptions)

    model_config = _STRICT

    @field_validator("options", mode="before")
    @classmethod
    def _none_options(cls, value: Any) -> Any:
        return {} if value is None else value


class ArchiveOptions(BaseModel):
    """Options for archive entries."""

    go_embed: bool = Field(
        default=False,
        description="Also write an embed.copy.go referencing the archive",
    )

    model_config = _STRICT


class ArchiveEntry(BaseModel):
    """One downloaded source archive."""

    source: SourceConfig
    destination: DestinationConfig
    options: ArchiveOptions = Field(default_factory=ArchiveOptions)

    model_config = _STRICT

    @field_validator("options", mode="before")
    @classmethod
    def _none_options(cls, value: Any) -> Any:
        return {} if value is None else value


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class FlagsConfig(BaseModel):
    """Default run flags; command-line flags override these."""

    clean: bool = False
    status: bool = False
    remote_status: bool = False
    force: bool = False
    async_: bool = Field(default=False, alias="async")
    concurrency: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Worker threads when async is enabled (1-64)",
    )

    model_config = {**_STRICT, "populate_by_name": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


class CopyrcConfig(BaseModel):
    """Top-level configuration.

    Every section has defaults, so ``CopyrcConfig()`` is valid (and
    simply does nothing).
    """

    copies: list[CopyEntry] = Field(default_factory=list)
    archives: list[ArchiveEntry] = Field(default_factory=list)
    flags: FlagsConfig = Field(default_factory=FlagsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = _STRICT

    @field_validator("copies", "archives", mode="before")
    @classmethod
    def _none_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("flags", "logging", mode="before")
    @classmethod
    def _none_section(cls, value: Any) -> Any:
        return {} if value is None else value


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> CopyrcConfig:
    """Construct a ``CopyrcConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully; anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``CopyrcConfig`` instance.

    Raises:
        pydantic.ValidationError: If the data does not match the schema.
    """
    if not raw_data:
        return CopyrcConfig()

    config = CopyrcConfig.model_validate(raw_data)
    logger.debug(
        "Loaded %d copy and %d archive entries",
        len(config.copies),
        len(config.archives),
    )
    return config
