"""Helm chart version discovery.

Charts are published either in a classic HTTP repository, described by an
``index.yaml`` listing every chart and version, or in an OCI registry,
where each chart version is a tag. Both paths produce the raw list of
version strings; select_chart_version then picks the highest version
satisfying an optional constraint.

OCI registries do not allow ``+`` in tags, so chart versions with build
metadata are pushed with ``_`` in its place. Tags are decoded back to
``+`` before they are returned.

Example:
    >>> await get_chart_versions_from_classic_repo("https://charts.example.com", "nginx")
    ['1.0.0', '1.1.0', '1.2.0']
    >>> await select_chart_version("oci://ghcr.io/acme/charts", "api", "^1.0.0")
    '1.4.2'
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
import yaml
from pydantic import ValidationError

from freight_discovery.config import DiscoverySettings, get_settings
from freight_discovery.errors import (
    ChartNotFoundError,
    HTTPStatusError,
    ParseError,
    TransportError,
)
from freight_discovery.image.auth import ChallengeManagerCache, Credentials
from freight_discovery.image.client import RepositoryClient
from freight_discovery.metrics import DiscoveryMetrics, get_discovery_metrics
from freight_discovery.schemas import ChartRepositoryIndex
from freight_discovery.versions import get_latest_version, is_version

logger = structlog.get_logger(__name__)

OCI_SCHEME = "oci://"


class _IndexLoader(yaml.SafeLoader):
    """SafeLoader that keeps numeric scalars as strings.

    Unquoted chart versions such as ``1.10`` would otherwise load as the
    float 1.1.
    """


_IndexLoader.yaml_implicit_resolvers = {
    first: [
        (tag, regexp)
        for tag, regexp in resolvers
        if tag not in ("tag:yaml.org,2002:int", "tag:yaml.org,2002:float")
    ]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def is_oci_repository(repo_url: str) -> bool:
    """Return True if the repository URL refers to an OCI registry."""
    return repo_url.startswith(OCI_SCHEME)


def oci_chart_reference(repo_url: str, chart: str) -> str:
    """Return the OCI repository holding a chart.

    The chart name is appended as the final path segment unless the URL
    already ends with it.

    Example:
        >>> oci_chart_reference("oci://ghcr.io/acme/charts", "api")
        'oci://ghcr.io/acme/charts/api'
        >>> oci_chart_reference("oci://ghcr.io/acme/charts/api", "api")
        'oci://ghcr.io/acme/charts/api'
    """
    base = repo_url.rstrip("/")
    if not chart or base.rsplit("/", 1)[-1] == chart:
        return base
    return f"{base}/{chart}"


def decode_oci_tag(tag: str) -> str:
    """Restore the build-metadata separator OCI tags cannot carry."""
    return tag.replace("_", "+")


async def get_chart_versions_from_classic_repo(
    repo_url: str,
    chart: str,
    credentials: Credentials | None = None,
    *,
    insecure_skip_tls_verify: bool = False,
    settings: DiscoverySettings | None = None,
    metrics: DiscoveryMetrics | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[str]:
    """List the versions of a chart in a classic Helm repository.

    Args:
        repo_url: Repository base URL; ``/index.yaml`` is appended.
        chart: Chart name to look up.
        credentials: Optional credentials, sent as basic auth or a bearer token.
        insecure_skip_tls_verify: Skip TLS certificate verification.
        settings: Transport settings.
        metrics: Metrics collector.
        transport: Optional httpx transport (used by tests).

    Returns:
        Version strings in index order, neither sorted nor deduplicated.

    Raises:
        TransportError: If the index cannot be fetched.
        HTTPStatusError: If the index endpoint answers with a non-200 status.
        ParseError: If the index is not a valid repository index document.
        ChartNotFoundError: If the index lists no versions of the chart.
    """
    settings = settings or get_settings()
    metrics = metrics or get_discovery_metrics()
    index_url = f"{repo_url.rstrip('/')}/index.yaml"
    host = httpx.URL(index_url).host
    log = logger.bind(repository=repo_url, chart=chart)

    client_kwargs: dict[str, Any] = {
        "verify": not insecure_skip_tls_verify,
        "timeout": settings.request_timeout_seconds,
        "headers": {"User-Agent": settings.user_agent},
        "follow_redirects": True,
    }
    if transport is not None:
        client_kwargs["transport"] = transport
    if credentials is not None and credentials.has_basic:
        client_kwargs["auth"] = httpx.BasicAuth(credentials.username, credentials.password)
    elif credentials is not None and credentials.token:
        client_kwargs["headers"]["Authorization"] = f"Bearer {credentials.token}"

    span_attributes = {"discovery.repository": repo_url, "discovery.chart": chart}
    with metrics.create_span(DiscoveryMetrics.SPAN_CHART_INDEX, span_attributes) as span:
        with metrics.operation_timer("chart_index", host):
            try:
                async with httpx.AsyncClient(**client_kwargs) as http:
                    response = await http.get(index_url)
            except httpx.HTTPError as e:
                raise TransportError(index_url, str(e) or type(e).__name__) from e

            if response.status_code != httpx.codes.OK:
                raise HTTPStatusError(index_url, response.status_code)

            index = _parse_index(response.content)

        entries = index.entries.get(chart)
        if not entries:
            raise ChartNotFoundError(chart, repo_url)
        versions = [entry.version for entry in entries]
        span.set_attribute("discovery.version_count", len(versions))

    log.debug("chart_versions_listed", version_count=len(versions))
    return versions


def _parse_index(content: bytes) -> ChartRepositoryIndex:
    try:
        document = yaml.load(content, Loader=_IndexLoader)  # noqa: S506
        return ChartRepositoryIndex.model_validate(document if document is not None else {})
    except (yaml.YAMLError, ValidationError) as e:
        raise ParseError("unmarshaling repository index", None, str(e)) from e


async def get_chart_versions_from_oci_repo(
    repo_url: str,
    credentials: Credentials | None = None,
    *,
    insecure_skip_tls_verify: bool = False,
    challenge_cache: ChallengeManagerCache | None = None,
    settings: DiscoverySettings | None = None,
    metrics: DiscoveryMetrics | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[str]:
    """List the versions of a chart stored in an OCI registry.

    Args:
        repo_url: The chart's OCI repository (e.g. "oci://ghcr.io/acme/charts/api").
        credentials: Optional registry credentials.

    Returns:
        The repository's tags in registry order, with ``_`` decoded to ``+``.

    Raises:
        ConfigError: If repo_url is not a valid repository reference.
        TransportError: If the registry cannot be reached.
        RegistryError: If tag listing fails.
    """
    client = RepositoryClient(
        repo_url,
        credentials=credentials,
        insecure_skip_tls_verify=insecure_skip_tls_verify,
        challenge_cache=challenge_cache,
        settings=settings,
        metrics=metrics,
        transport=transport,
    )
    tags = await client.get_tags()
    return [decode_oci_tag(tag) for tag in tags]


async def select_chart_version(
    repo_url: str,
    chart: str,
    constraint: str = "",
    credentials: Credentials | None = None,
    *,
    insecure_skip_tls_verify: bool = False,
    challenge_cache: ChallengeManagerCache | None = None,
    settings: DiscoverySettings | None = None,
    metrics: DiscoveryMetrics | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Return the highest chart version satisfying an optional constraint.

    ``oci://`` URLs are resolved through the registry, anything else through
    the classic repository index. OCI tags that are not semantic versions
    (``latest``, signatures) are skipped; versions from a classic index must
    all parse.

    Args:
        repo_url: Classic repository URL or ``oci://`` registry URL.
        chart: Chart name.
        constraint: Optional version range (e.g. "^1.0.0").
        credentials: Optional credentials.
        insecure_skip_tls_verify: Skip TLS certificate verification.
        challenge_cache: Challenge manager cache (OCI registries only).

    Returns:
        The selected version, or "" if no version satisfies the constraint.

    Raises:
        ParseError: If a classic index version or the constraint is malformed.
        DiscoveryError: On any failure to list versions.
    """
    log = logger.bind(repository=repo_url, chart=chart, constraint=constraint)

    if is_oci_repository(repo_url):
        tags = await get_chart_versions_from_oci_repo(
            oci_chart_reference(repo_url, chart),
            credentials,
            insecure_skip_tls_verify=insecure_skip_tls_verify,
            challenge_cache=challenge_cache,
            settings=settings,
            metrics=metrics,
            transport=transport,
        )
        versions = [tag for tag in tags if is_version(tag)]
        if len(versions) < len(tags):
            log.debug("skipped_non_version_tags", skipped=len(tags) - len(versions))
    else:
        versions = await get_chart_versions_from_classic_repo(
            repo_url,
            chart,
            credentials,
            insecure_skip_tls_verify=insecure_skip_tls_verify,
            settings=settings,
            metrics=metrics,
            transport=transport,
        )

    version = get_latest_version(versions, constraint)
    log.debug("chart_version_selected", version=version or None)
    return version


__all__ = [
    "decode_oci_tag",
    "get_chart_versions_from_classic_repo",
    "get_chart_versions_from_oci_repo",
    "is_oci_repository",
    "oci_chart_reference",
    "select_chart_version",
]
