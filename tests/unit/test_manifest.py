"""Unit tests for manifest and image config parsing."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from freight_discovery.image.manifest import (
    DOCKER_MANIFEST_LIST_V2,
    DOCKER_MANIFEST_V2,
    OCI_IMAGE_INDEX,
    OCI_IMAGE_MANIFEST,
    ManifestError,
    calculate_digest,
    parse_image_config,
    parse_manifest,
)

CONFIG_DIGEST = "sha256:" + "a" * 64
CHILD_DIGEST = "sha256:" + "b" * 64


def _image_manifest(**overrides: object) -> bytes:
    body: dict[str, object] = {
        "schemaVersion": 2,
        "mediaType": DOCKER_MANIFEST_V2,
        "config": {
            "mediaType": "application/vnd.docker.container.image.v1+json",
            "digest": CONFIG_DIGEST,
            "size": 10,
        },
        "layers": [],
    }
    body.update(overrides)
    return json.dumps({k: v for k, v in body.items() if v is not None}).encode()


class TestParseManifest:
    """Tests for parse_manifest."""

    def test_docker_image_manifest(self) -> None:
        document = parse_manifest(_image_manifest())
        assert not document.is_index
        assert document.config is not None
        assert document.config.digest == CONFIG_DIGEST

    def test_docker_manifest_list(self) -> None:
        body = json.dumps(
            {
                "schemaVersion": 2,
                "mediaType": DOCKER_MANIFEST_LIST_V2,
                "manifests": [
                    {
                        "mediaType": DOCKER_MANIFEST_V2,
                        "digest": CHILD_DIGEST,
                        "size": 7,
                        "platform": {"os": "linux", "architecture": "arm64", "variant": "v8"},
                    }
                ],
            }
        ).encode()
        document = parse_manifest(body)
        assert document.is_index
        assert document.manifests[0].platform is not None
        assert str(document.manifests[0].platform) == "linux/arm64/v8"

    def test_media_type_from_content_type_header(self) -> None:
        document = parse_manifest(
            _image_manifest(mediaType=None),
            f"{OCI_IMAGE_MANIFEST}; charset=utf-8",
        )
        assert document.media_type == OCI_IMAGE_MANIFEST

    def test_media_type_inferred_for_index(self) -> None:
        body = json.dumps(
            {"schemaVersion": 2, "manifests": [{"digest": CHILD_DIGEST, "size": 1}]}
        ).encode()
        assert parse_manifest(body).media_type == OCI_IMAGE_INDEX

    def test_media_type_inferred_for_manifest(self) -> None:
        assert parse_manifest(_image_manifest(mediaType=None)).media_type == OCI_IMAGE_MANIFEST

    def test_schema_version_one_rejected(self) -> None:
        with pytest.raises(ManifestError, match="schema version 1"):
            parse_manifest(_image_manifest(schemaVersion=1))

    def test_image_manifest_without_config_rejected(self) -> None:
        with pytest.raises(ManifestError, match="no config"):
            parse_manifest(_image_manifest(config=None))

    def test_invalid_json_rejected(self) -> None:
        with pytest.raises(ManifestError, match="invalid manifest"):
            parse_manifest(b"<html>not found</html>")

    def test_unknown_platform_entry(self) -> None:
        body = json.dumps(
            {
                "schemaVersion": 2,
                "mediaType": OCI_IMAGE_INDEX,
                "manifests": [
                    {
                        "digest": CHILD_DIGEST,
                        "size": 1,
                        "platform": {"os": "unknown", "architecture": "unknown"},
                    }
                ],
            }
        ).encode()
        platform = parse_manifest(body).manifests[0].platform
        assert platform is not None
        assert platform.is_unknown


class TestParseImageConfig:
    """Tests for parse_image_config."""

    def test_reads_created_and_platform(self) -> None:
        config = parse_image_config(
            json.dumps(
                {
                    "created": "2024-05-01T12:30:00Z",
                    "os": "linux",
                    "architecture": "amd64",
                    "rootfs": {"type": "layers"},
                }
            ).encode()
        )
        assert config.created == datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
        assert config.os == "linux"
        assert config.architecture == "amd64"

    def test_naive_timestamp_treated_as_utc(self) -> None:
        config = parse_image_config(b'{"created": "2024-05-01T12:30:00"}')
        assert config.created is not None
        assert config.created.tzinfo is not None

    def test_missing_created(self) -> None:
        assert parse_image_config(b"{}").created is None

    def test_invalid_config(self) -> None:
        with pytest.raises(ManifestError, match="invalid image config"):
            parse_image_config(b"[]")


class TestCalculateDigest:
    """Tests for calculate_digest."""

    def test_empty_content(self) -> None:
        assert calculate_digest(b"") == (
            "sha256:e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )
