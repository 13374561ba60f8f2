"""Image manifest and configuration documents.

Parses the four manifest media types registries serve for a tag: Docker
schema 2 manifests and manifest lists, and OCI image manifests and
indexes. Only the fields needed to resolve a digest, a platform and a
build time are modelled; everything else is ignored.

Media Types:
    Single image: application/vnd.docker.distribution.manifest.v2+json,
                  application/vnd.oci.image.manifest.v1+json
    Multi-platform: application/vnd.docker.distribution.manifest.list.v2+json,
                    application/vnd.oci.image.index.v1+json

Example:
    >>> doc = parse_manifest(body, content_type)
    >>> doc.is_index
    True
    >>> [str(m.platform) for m in doc.manifests]
    ['linux/amd64', 'linux/arm64/v8']
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = structlog.get_logger(__name__)

DOCKER_MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"
DOCKER_MANIFEST_LIST_V2 = "application/vnd.docker.distribution.manifest.list.v2+json"
OCI_IMAGE_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
OCI_IMAGE_INDEX = "application/vnd.oci.image.index.v1+json"

INDEX_MEDIA_TYPES = frozenset({DOCKER_MANIFEST_LIST_V2, OCI_IMAGE_INDEX})
IMAGE_MEDIA_TYPES = frozenset({DOCKER_MANIFEST_V2, OCI_IMAGE_MANIFEST})

MANIFEST_ACCEPT = ", ".join(
    [OCI_IMAGE_INDEX, DOCKER_MANIFEST_LIST_V2, OCI_IMAGE_MANIFEST, DOCKER_MANIFEST_V2]
)
"""Accept header value for manifest requests."""

UNKNOWN_PLATFORM = "unknown"
"""OS/architecture value used by attestation manifests inside an index."""


class ManifestError(ValueError):
    """Raised when a manifest or config document cannot be interpreted."""


def calculate_digest(content: bytes) -> str:
    """Calculate the SHA256 digest of raw content in OCI format.

    Example:
        >>> calculate_digest(b"{}")
        'sha256:44136fa355b3678a1146ad16f7e8649e94fb4fc21fe77e8310c060f61caaff8a'
    """
    return f"sha256:{hashlib.sha256(content).hexdigest()}"


class DescriptorPlatform(BaseModel):
    """Platform of one entry in a manifest list or index."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    os: str = Field(default="")
    architecture: str = Field(default="")
    variant: str = Field(default="")

    @property
    def is_unknown(self) -> bool:
        """Return True for attestation entries (unknown/unknown)."""
        return self.os == UNKNOWN_PLATFORM and self.architecture == UNKNOWN_PLATFORM

    def __str__(self) -> str:
        if self.variant:
            return f"{self.os}/{self.architecture}/{self.variant}"
        return f"{self.os}/{self.architecture}"


class Descriptor(BaseModel):
    """A content descriptor: media type, digest, size and optional platform."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    media_type: str = Field(default="", alias="mediaType")
    digest: str = Field(..., min_length=1)
    size: int = Field(default=0, ge=0)
    platform: DescriptorPlatform | None = Field(default=None)


class ManifestDocument(BaseModel):
    """A single-image manifest or a multi-platform manifest list/index."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    schema_version: int = Field(..., alias="schemaVersion")
    media_type: str = Field(default="", alias="mediaType")
    config: Descriptor | None = Field(default=None)
    manifests: list[Descriptor] = Field(default_factory=list)

    @property
    def is_index(self) -> bool:
        """Return True if this document lists per-platform manifests."""
        return self.media_type in INDEX_MEDIA_TYPES


class ImageConfig(BaseModel):
    """The fields of an image configuration blob used for selection."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    created: datetime | None = Field(default=None)
    os: str = Field(default="")
    architecture: str = Field(default="")
    variant: str = Field(default="")

    @field_validator("created")
    @classmethod
    def ensure_aware(cls, v: datetime | None) -> datetime | None:
        """Treat timestamps without a zone as UTC so they stay comparable."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


def parse_manifest(content: bytes, content_type: str = "") -> ManifestDocument:
    """Parse a manifest response body.

    The media type is taken from the document itself, falling back to the
    response Content-Type for registries that omit it.

    Args:
        content: Raw response body.
        content_type: Response Content-Type header.

    Returns:
        The parsed document.

    Raises:
        ManifestError: If the body is not a schema 2 manifest of a known type.
    """
    try:
        document = ManifestDocument.model_validate_json(content)
    except ValidationError as e:
        raise ManifestError(f"invalid manifest: {e}") from e

    media_type = document.media_type or content_type.split(";")[0].strip()
    if not document.media_type and media_type:
        document = document.model_copy(update={"media_type": media_type})

    if document.schema_version != 2:
        raise ManifestError(f"unsupported manifest schema version {document.schema_version}")
    if media_type not in INDEX_MEDIA_TYPES and media_type not in IMAGE_MEDIA_TYPES:
        # OCI manifests may omit mediaType entirely; infer from shape.
        inferred = OCI_IMAGE_INDEX if document.manifests else OCI_IMAGE_MANIFEST
        logger.debug("manifest_media_type_inferred", media_type=media_type, inferred=inferred)
        document = document.model_copy(update={"media_type": inferred})
    if not document.is_index and document.config is None:
        raise ManifestError("image manifest has no config descriptor")
    return document


def parse_image_config(content: bytes) -> ImageConfig:
    """Parse an image configuration blob.

    Raises:
        ManifestError: If the blob is not a JSON object.
    """
    try:
        return ImageConfig.model_validate_json(content)
    except ValidationError as e:
        raise ManifestError(f"invalid image config: {e}") from e


__all__ = [
    "DOCKER_MANIFEST_LIST_V2",
    "DOCKER_MANIFEST_V2",
    "INDEX_MEDIA_TYPES",
    "IMAGE_MEDIA_TYPES",
    "MANIFEST_ACCEPT",
    "OCI_IMAGE_INDEX",
    "OCI_IMAGE_MANIFEST",
    "Descriptor",
    "DescriptorPlatform",
    "ImageConfig",
    "ManifestDocument",
    "ManifestError",
    "calculate_digest",
    "parse_image_config",
    "parse_manifest",
]
