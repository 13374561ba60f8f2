"""Unit tests for freight discovery data models."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from freight_discovery.schemas import (
    ChartRepositoryIndex,
    Image,
    ImagePlatform,
    SelectionStrategy,
    SelectorOptions,
)


class TestSelectionStrategy:
    """Tests for SelectionStrategy."""

    def test_values(self) -> None:
        assert [s.value for s in SelectionStrategy] == [
            "Digest",
            "Lexical",
            "NewestBuild",
            "SemVer",
        ]

    def test_lookup_is_case_sensitive(self) -> None:
        with pytest.raises(ValueError):
            SelectionStrategy("semver")


class TestSelectorOptions:
    """Tests for SelectorOptions."""

    def test_defaults(self) -> None:
        opts = SelectorOptions()
        assert opts.constraint == ""
        assert opts.allow_regex == ""
        assert opts.ignore == frozenset()
        assert opts.platform == ""

    def test_ignore_accepts_list(self) -> None:
        opts = SelectorOptions(ignore=["a", "b", "a"])
        assert opts.ignore == frozenset({"a", "b"})

    def test_extra_fields_forbidden(self) -> None:
        with pytest.raises(ValidationError):
            SelectorOptions(strategy="SemVer")  # type: ignore[call-arg]


class TestImage:
    """Tests for Image."""

    def test_reference_with_tag(self, sample_digest: str) -> None:
        image = Image(repository="ghcr.io/acme/api", tag="1.0.0", digest=sample_digest)
        assert image.reference == f"ghcr.io/acme/api:1.0.0@{sample_digest}"

    def test_reference_without_tag(self, sample_digest: str) -> None:
        image = Image(repository="ghcr.io/acme/api", digest=sample_digest)
        assert image.reference == f"ghcr.io/acme/api@{sample_digest}"

    def test_frozen(self, sample_digest: str) -> None:
        image = Image(repository="ghcr.io/acme/api", digest=sample_digest)
        with pytest.raises(ValidationError):
            image.tag = "latest"  # type: ignore[misc]

    def test_invalid_digest(self) -> None:
        with pytest.raises(ValidationError):
            Image(repository="ghcr.io/acme/api", digest="not-a-digest")

    def test_platform_and_created(self, sample_digest: str) -> None:
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        image = Image(
            repository="ghcr.io/acme/api",
            digest=sample_digest,
            platform=ImagePlatform(os="linux", architecture="arm64", variant="v8"),
            created_at=created,
        )
        assert str(image.platform) == "linux/arm64/v8"
        assert image.created_at == created


class TestChartRepositoryIndex:
    """Tests for ChartRepositoryIndex."""

    def test_ignores_unknown_fields(self) -> None:
        index = ChartRepositoryIndex.model_validate(
            {
                "apiVersion": "v1",
                "generated": "2024-01-01T00:00:00Z",
                "entries": {"nginx": [{"version": "1.0.0", "digest": "abc", "urls": []}]},
            }
        )
        assert [e.version for e in index.entries["nginx"]] == ["1.0.0"]

    def test_numeric_versions_coerced(self) -> None:
        index = ChartRepositoryIndex.model_validate({"entries": {"nginx": [{"version": 1.5}]}})
        assert index.entries["nginx"][0].version == "1.5"

    def test_missing_entries(self) -> None:
        assert ChartRepositoryIndex.model_validate({}).entries == {}

    def test_entry_requires_version(self) -> None:
        with pytest.raises(ValidationError):
            ChartRepositoryIndex.model_validate({"entries": {"nginx": [{"name": "nginx"}]}})
