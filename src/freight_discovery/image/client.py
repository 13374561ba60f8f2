"""Container registry client bound to one repository.

RepositoryClient speaks the OCI distribution API for a single repository:
it lists tags and resolves a tag to an Image (digest, platform, build
time), descending into multi-platform manifest lists when needed.

Authentication is negotiated per registry host through the challenge
flow in freight_discovery.image.auth. Every call is a coroutine;
cancelling the awaiting task aborts the in-flight request. No retries are
performed.

Example:
    >>> client = RepositoryClient("ghcr.io/acme/api")
    >>> tags = await client.get_tags()
    >>> image = await client.get_image_by_tag("1.2.0", PlatformConstraint.parse("linux/amd64"))
    >>> image.digest
    'sha256:...'
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from freight_discovery.config import DiscoverySettings, get_settings
from freight_discovery.errors import AuthenticationError, RegistryError, TransportError
from freight_discovery.image.auth import (
    ChallengeManager,
    ChallengeManagerCache,
    Credentials,
    RegistryAuth,
    get_default_challenge_cache,
)
from freight_discovery.image.manifest import (
    MANIFEST_ACCEPT,
    ManifestDocument,
    ManifestError,
    calculate_digest,
    parse_image_config,
    parse_manifest,
)
from freight_discovery.image.platform import PlatformConstraint
from freight_discovery.image.reference import ImageReference
from freight_discovery.metrics import DiscoveryMetrics, get_discovery_metrics
from freight_discovery.schemas import Image, ImagePlatform

logger = structlog.get_logger(__name__)


class RepositoryClient:
    """Registry client for one repository.

    Holds the resolved registry base URL, TLS settings and a reference to
    the per-host challenge manager cache. Holds no per-tag state and caches
    no results between calls.

    Attributes:
        reference: The parsed repository reference.
    """

    def __init__(
        self,
        repo_url: str,
        *,
        credentials: Credentials | None = None,
        insecure_skip_tls_verify: bool = False,
        challenge_cache: ChallengeManagerCache | None = None,
        settings: DiscoverySettings | None = None,
        metrics: DiscoveryMetrics | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize RepositoryClient. Performs no network I/O.

        Args:
            repo_url: Repository URL (e.g. "debian", "ghcr.io/acme/api").
            credentials: Optional resolved credentials.
            insecure_skip_tls_verify: Skip TLS certificate verification.
            challenge_cache: Cache of per-host challenge managers. Defaults to
                the process-wide cache.
            settings: Transport settings. Defaults to get_settings().
            metrics: Metrics collector. Defaults to the module singleton.
            transport: Optional httpx transport (used by tests).

        Raises:
            ConfigError: If repo_url is not a valid repository reference.
        """
        self.reference = ImageReference.parse(repo_url)
        self._credentials = credentials or Credentials()
        self._verify = not insecure_skip_tls_verify
        self._challenge_cache = challenge_cache or get_default_challenge_cache()
        self._settings = settings or get_settings()
        self._metrics = metrics or get_discovery_metrics()
        self._transport = transport

    @property
    def repo_url(self) -> str:
        """Return the repository URL as supplied."""
        return self.reference.repo_url

    @property
    def registry_host(self) -> str:
        """Return the registry host."""
        return self.reference.registry_host

    @property
    def repository(self) -> str:
        """Return the repository path within the registry."""
        return self.reference.repository

    @property
    def metrics(self) -> DiscoveryMetrics:
        """Return the metrics collector used for this client's operations."""
        return self._metrics

    def _client_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "base_url": self.reference.base_url,
            "verify": self._verify,
            "timeout": self._settings.request_timeout_seconds,
            "headers": {"User-Agent": self._settings.user_agent},
            "follow_redirects": True,
        }
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return kwargs

    async def _ping(self) -> ChallengeManager:
        """Ping /v2/ anonymously and record the registry's challenges."""
        async with httpx.AsyncClient(**self._client_kwargs()) as http:
            response = await self._send(http, "GET", "/v2/", operation="ping")
        logger.debug(
            "registry_pinged",
            registry=self.registry_host,
            status_code=response.status_code,
        )
        return ChallengeManager.from_response(self.reference.api_host, response)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[httpx.AsyncClient]:
        """Open an authenticated HTTP session against the registry.

        Yields:
            An httpx.AsyncClient whose requests answer the registry's challenges.
        """
        manager = await self._challenge_cache.get_or_create(self.reference.api_host, self._ping)
        auth = RegistryAuth(
            self.registry_host,
            manager,
            self._credentials,
            scope=f"repository:{self.repository}:pull",
        )
        async with httpx.AsyncClient(auth=auth, **self._client_kwargs()) as http:
            yield http

    async def _send(
        self,
        http: httpx.AsyncClient,
        method: str,
        url: str,
        *,
        operation: str,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            return await http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.debug(
                "registry_request_failed",
                registry=self.registry_host,
                operation=operation,
                error=str(e),
            )
            raise TransportError(
                f"{self.reference.base_url}{url}" if url.startswith("/") else url,
                str(e) or type(e).__name__,
            ) from e

    def _check_status(self, response: httpx.Response, operation: str, subject: str) -> None:
        if response.is_success:
            return
        if response.status_code in (httpx.codes.UNAUTHORIZED, httpx.codes.FORBIDDEN):
            raise AuthenticationError(
                self.registry_host,
                f"received unexpected HTTP {response.status_code} during {operation} for {subject}",
            )
        raise RegistryError(
            self.registry_host,
            operation,
            f"received unexpected HTTP {response.status_code} for {subject}",
        )

    async def get_tags(self) -> list[str]:
        """List the repository's tags in the order the registry publishes them.

        Follows Link-header pagination. No sorting or deduplication is done.

        Returns:
            Tag names.

        Raises:
            TransportError: If the registry cannot be reached.
            AuthenticationError: If authentication fails.
            RegistryError: On a non-2xx response or malformed body.
        """
        log = logger.bind(registry=self.registry_host, image=self.repository)
        span_attributes = {
            "discovery.registry": self.registry_host,
            "discovery.repository": self.repository,
        }
        with self._metrics.create_span(DiscoveryMetrics.SPAN_LIST_TAGS, span_attributes) as span:
            with self._metrics.operation_timer("list_tags", self.registry_host):
                async with self.session() as http:
                    tags = await self._list_tags(http)
            span.set_attribute("discovery.tag_count", len(tags))
        log.debug("tags_listed", tag_count=len(tags))
        return tags

    async def _list_tags(self, http: httpx.AsyncClient) -> list[str]:
        tags: list[str] = []
        url: str | None = f"/v2/{self.repository}/tags/list"
        params: dict[str, Any] | None = {"n": self._settings.tag_page_size}
        pages = 0
        while url is not None:
            if pages >= self._settings.max_tag_pages:
                logger.warning(
                    "tag_pagination_truncated",
                    registry=self.registry_host,
                    image=self.repository,
                    pages=pages,
                )
                break
            response = await self._send(http, "GET", url, operation="list_tags", params=params)
            self._check_status(response, "list_tags", self.repository)
            try:
                body = response.json()
            except ValueError as e:
                raise RegistryError(
                    self.registry_host, "list_tags", f"invalid tag list response: {e}"
                ) from e
            if not isinstance(body, dict):
                raise RegistryError(self.registry_host, "list_tags", "tag list is not an object")
            tags.extend(body.get("tags") or [])
            pages += 1
            url = response.links.get("next", {}).get("url")
            params = None
        return tags

    async def get_image_by_tag(
        self,
        tag: str,
        platform: PlatformConstraint | None = None,
    ) -> Image | None:
        """Resolve a tag to an Image.

        A single-platform image is returned directly, unless a platform
        constraint is given and the image was built for another platform.
        For a multi-platform manifest list the first entry matching the
        constraint is returned; without a constraint, the first entry in the
        list's own order.

        Args:
            tag: The tag to resolve.
            platform: Optional platform constraint.

        Returns:
            The Image, or None if no manifest matches the platform constraint.

        Raises:
            TransportError: If the registry cannot be reached.
            AuthenticationError: If authentication fails.
            RegistryError: On a non-2xx response or malformed manifest.
        """
        async with self.session() as http:
            return await self._get_image(http, tag, platform)

    async def get_images_by_tags(
        self,
        tags: Iterable[str],
        platform: PlatformConstraint | None = None,
    ) -> list[Image]:
        """Resolve several tags over one session, sequentially.

        Tags whose manifests do not match the platform constraint are skipped.

        Returns:
            Images in the order of the given tags.
        """
        images: list[Image] = []
        async with self.session() as http:
            for tag in tags:
                image = await self._get_image(http, tag, platform)
                if image is not None:
                    images.append(image)
        return images

    async def _get_image(
        self,
        http: httpx.AsyncClient,
        tag: str,
        platform: PlatformConstraint | None,
    ) -> Image | None:
        span_attributes = {
            "discovery.registry": self.registry_host,
            "discovery.repository": self.repository,
            "discovery.tag": tag,
        }
        with self._metrics.create_span(DiscoveryMetrics.SPAN_GET_MANIFEST, span_attributes):
            with self._metrics.operation_timer("get_manifest", self.registry_host):
                document, digest = await self._fetch_manifest(http, tag)
                if not document.is_index:
                    return await self._image_from_manifest(
                        http, tag, document, digest, platform
                    )
                return await self._image_from_index(http, tag, document, platform)

    async def _fetch_manifest(
        self,
        http: httpx.AsyncClient,
        reference: str,
    ) -> tuple[ManifestDocument, str]:
        response = await self._send(
            http,
            "GET",
            f"/v2/{self.repository}/manifests/{reference}",
            operation="get_manifest",
            headers={"Accept": MANIFEST_ACCEPT},
        )
        self._check_status(response, "get_manifest", f"{self.repository}:{reference}")
        try:
            document = parse_manifest(
                response.content, response.headers.get("content-type", "")
            )
        except ManifestError as e:
            raise RegistryError(
                self.registry_host, "get_manifest", f"{self.repository}:{reference}: {e}"
            ) from e
        digest = response.headers.get("docker-content-digest") or calculate_digest(
            response.content
        )
        return document, digest

    async def _image_from_manifest(
        self,
        http: httpx.AsyncClient,
        tag: str,
        document: ManifestDocument,
        digest: str,
        platform: PlatformConstraint | None,
    ) -> Image | None:
        if document.config is None:
            raise RegistryError(
                self.registry_host, "get_manifest", f"{self.repository}:{tag}: no config descriptor"
            )
        response = await self._send(
            http,
            "GET",
            f"/v2/{self.repository}/blobs/{document.config.digest}",
            operation="get_config",
        )
        self._check_status(response, "get_config", f"{self.repository}@{document.config.digest}")
        try:
            config = parse_image_config(response.content)
        except ManifestError as e:
            raise RegistryError(
                self.registry_host, "get_config", f"{self.repository}:{tag}: {e}"
            ) from e

        if platform is not None and not platform.matches(
            config.os, config.architecture, config.variant
        ):
            logger.debug(
                "image_platform_mismatch",
                registry=self.registry_host,
                image=self.repository,
                tag=tag,
                platform=str(platform),
            )
            return None

        image_platform = None
        if config.os and config.architecture:
            image_platform = ImagePlatform(
                os=config.os,
                architecture=config.architecture,
                variant=config.variant,
            )
        try:
            return Image(
                repository=self.repo_url,
                tag=tag,
                digest=digest,
                platform=image_platform,
                created_at=config.created,
            )
        except ValidationError as e:
            raise RegistryError(
                self.registry_host,
                "get_manifest",
                f"{self.repository}:{tag}: invalid digest {digest!r}",
            ) from e

    async def _image_from_index(
        self,
        http: httpx.AsyncClient,
        tag: str,
        document: ManifestDocument,
        platform: PlatformConstraint | None,
    ) -> Image | None:
        for entry in document.manifests:
            entry_platform = entry.platform
            if entry_platform is not None and entry_platform.is_unknown:
                continue
            if platform is not None and (
                entry_platform is None
                or not platform.matches(
                    entry_platform.os, entry_platform.architecture, entry_platform.variant
                )
            ):
                continue

            child, _ = await self._fetch_manifest(http, entry.digest)
            if child.is_index:
                raise RegistryError(
                    self.registry_host,
                    "get_manifest",
                    f"{self.repository}:{tag}: nested manifest list {entry.digest}",
                )
            # The child's own config decides the platform; the index entry
            # already passed the constraint.
            return await self._image_from_manifest(http, tag, child, entry.digest, None)

        logger.debug(
            "no_manifest_matches_platform",
            registry=self.registry_host,
            image=self.repository,
            tag=tag,
            platform=str(platform) if platform else None,
        )
        return None


__all__ = ["RepositoryClient"]
