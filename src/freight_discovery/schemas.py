"""Data models for freight discovery.

This module defines the Pydantic v2 models exchanged with callers of the
discovery engine: the selection strategy enum, selector options, the
selected Image, and the Helm repository index document.

Key Components:
    SelectionStrategy: Which image selection policy to apply
    SelectorOptions: Constraint, tag filters and platform for a selector
    Image: Result of a successful image selection
    ChartRepositoryIndex: The subset of a Helm index.yaml we consume

Example:
    >>> opts = SelectorOptions(constraint="^1.0.0", ignore=["1.0.1"])
    >>> "1.0.1" in opts.ignore
    True
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# =============================================================================
# Selection
# =============================================================================


class SelectionStrategy(str, Enum):
    """Image selection strategies.

    Values match the strings used in Warehouse subscription specs.
    """

    DIGEST = "Digest"
    LEXICAL = "Lexical"
    NEWEST_BUILD = "NewestBuild"
    SEMVER = "SemVer"


class SelectorOptions(BaseModel):
    """Options controlling how an image selector filters and picks tags.

    All fields are optional except where a strategy requires one: the
    Digest strategy requires a constraint naming the tag to track.

    Examples:
        >>> opts = SelectorOptions(allow_regex=r"^v\\d+", platform="linux/arm64")
        >>> opts.constraint
        ''
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    constraint: str = Field(
        default="",
        description="Strategy-dependent constraint (semver range, or tag for Digest)",
    )
    allow_regex: str = Field(
        default="",
        description="Only tags matching this regular expression are considered",
    )
    ignore: frozenset[str] = Field(
        default_factory=frozenset,
        description="Exact tag names that are never selected",
    )
    platform: str = Field(
        default="",
        description="Platform constraint of the form os/arch[/variant]",
        examples=["linux/amd64", "linux/arm64/v8"],
    )


# =============================================================================
# Results
# =============================================================================


class ImagePlatform(BaseModel):
    """OS/architecture pair an image was built for."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    os: str = Field(..., description="Operating system (e.g. linux)")
    architecture: str = Field(..., description="CPU architecture (e.g. amd64)")
    variant: str = Field(default="", description="CPU variant (e.g. v8)")

    def __str__(self) -> str:
        if self.variant:
            return f"{self.os}/{self.architecture}/{self.variant}"
        return f"{self.os}/{self.architecture}"


class Image(BaseModel):
    """A container image selected from a repository.

    Immutable once constructed.

    Examples:
        >>> image = Image(repository="ghcr.io/acme/api", tag="1.2.0", digest="sha256:abc")
        >>> image.reference
        'ghcr.io/acme/api:1.2.0@sha256:abc'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    repository: str = Field(..., description="Repository the image was selected from")
    tag: str | None = Field(default=None, description="Tag, absent for digest-only results")
    digest: str = Field(
        ...,
        pattern=r"^[a-z0-9]+(?:[.+_-][a-z0-9]+)*:[a-zA-Z0-9=_-]+$",
        description="Content-addressable digest (algorithm:hex)",
    )
    platform: ImagePlatform | None = Field(default=None, description="Image platform")
    created_at: datetime | None = Field(
        default=None,
        description="Build time from the image configuration",
    )

    @property
    def reference(self) -> str:
        """Return the pinned reference repository[:tag]@digest."""
        ref = self.repository
        if self.tag:
            ref += f":{self.tag}"
        return f"{ref}@{self.digest}"


# =============================================================================
# Helm repository index
# =============================================================================


class ChartIndexEntry(BaseModel):
    """One chart version listed in a Helm repository index."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    version: str = Field(..., description="Chart version string")

    @field_validator("version", mode="before")
    @classmethod
    def coerce_version(cls, v: Any) -> Any:
        """Accept numeric versions from documents not loaded by the index loader.

        The Helm index is loaded with numbers kept as strings, so "1.10"
        arrives intact; a float here has already lost trailing zeros.
        """
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class ChartRepositoryIndex(BaseModel):
    """The parts of a classic Helm repository index.yaml we consume.

    Unknown top-level fields and entry fields are ignored.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    entries: dict[str, list[ChartIndexEntry]] = Field(
        default_factory=dict,
        description="Chart name to list of published versions",
    )

    @field_validator("entries", mode="before")
    @classmethod
    def null_entries_to_empty(cls, v: Any) -> Any:
        """Treat a null entries map, or a chart listed as null, as empty."""
        if v is None:
            return {}
        if isinstance(v, dict):
            return {name: [] if versions is None else versions for name, versions in v.items()}
        return v


__all__ = [
    "ChartIndexEntry",
    "ChartRepositoryIndex",
    "Image",
    "ImagePlatform",
    "SelectionStrategy",
    "SelectorOptions",
]
