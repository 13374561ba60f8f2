"""Image repository reference parsing.

Splits a repository URL as written in a subscription ("debian",
"ghcr.io/acme/api", "oci://registry.example.com:5000/charts/app") into the
registry host to talk to and the repository path within it.

Example:
    >>> ref = ImageReference.parse("debian")
    >>> ref.registry_host, ref.repository
    ('docker.io', 'library/debian')
    >>> ref.base_url
    'https://registry-1.docker.io'
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from freight_discovery.errors import ConfigError

DOCKER_HUB_HOST = "docker.io"
"""Canonical name of Docker Hub."""

DOCKER_HUB_API_HOST = "registry-1.docker.io"
"""Host serving the Docker Hub registry API."""

_DOCKER_HUB_ALIASES = frozenset({DOCKER_HUB_HOST, "index.docker.io", DOCKER_HUB_API_HOST})
_SCHEME_PREFIXES = ("oci://", "docker://", "https://")
_PATH_COMPONENT = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$")


@dataclass(frozen=True)
class ImageReference:
    """A registry host plus a repository path within it.

    Attributes:
        repo_url: The repository URL exactly as supplied.
        registry_host: Registry host, with port if any (e.g. localhost:5000).
        repository: Repository path (e.g. library/debian).
        plain_http: True if the URL asked for http:// instead of https://.
    """

    repo_url: str
    registry_host: str
    repository: str
    plain_http: bool = False

    @property
    def api_host(self) -> str:
        """Return the host serving the registry API."""
        if self.registry_host in _DOCKER_HUB_ALIASES:
            return DOCKER_HUB_API_HOST
        return self.registry_host

    @property
    def base_url(self) -> str:
        """Return the registry API base URL (scheme and host)."""
        scheme = "http" if self.plain_http else "https"
        return f"{scheme}://{self.api_host}"

    @classmethod
    def parse(cls, repo_url: str) -> ImageReference:
        """Parse a repository URL.

        Args:
            repo_url: Repository URL, optionally prefixed with oci://,
                docker://, https:// or http://.

        Returns:
            The parsed reference.

        Raises:
            ConfigError: If the URL is empty, carries a tag or digest, or has
                invalid path components.
        """
        remainder = repo_url.strip()
        plain_http = False
        if remainder.startswith("http://"):
            plain_http = True
            remainder = remainder[len("http://") :]
        else:
            for prefix in _SCHEME_PREFIXES:
                if remainder.startswith(prefix):
                    remainder = remainder[len(prefix) :]
                    break
        remainder = remainder.rstrip("/")

        if not remainder:
            raise ConfigError("repo_url", "repository URL must not be empty")
        if "@" in remainder:
            raise ConfigError("repo_url", f"{repo_url!r} must not include a digest")

        host, sep, path = remainder.partition("/")
        if not sep or not _looks_like_host(host):
            host, path = DOCKER_HUB_HOST, remainder

        if ":" in path:
            raise ConfigError("repo_url", f"{repo_url!r} must not include a tag")

        components = path.split("/")
        for component in components:
            if not _PATH_COMPONENT.match(component):
                raise ConfigError(
                    "repo_url",
                    f"invalid repository path component {component!r} in {repo_url!r}",
                )

        if host in _DOCKER_HUB_ALIASES and len(components) == 1:
            path = f"library/{path}"

        return cls(
            repo_url=repo_url,
            registry_host=host,
            repository=path,
            plain_http=plain_http,
        )


def _looks_like_host(component: str) -> bool:
    """Return True if the first path component names a registry host."""
    return "." in component or ":" in component or component == "localhost"


__all__ = [
    "DOCKER_HUB_API_HOST",
    "DOCKER_HUB_HOST",
    "ImageReference",
]
