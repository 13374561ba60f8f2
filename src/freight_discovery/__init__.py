"""Artifact version discovery for continuous promotion.

Given a subscription to an upstream artifact source, discovers which
version is currently the one to promote:

- Container images in OCI/Docker registries, chosen by one of four
  selection strategies (Digest, Lexical, NewestBuild, SemVer) after tag
  and platform filtering.
- Helm charts in classic HTTP repositories or OCI registries, chosen as
  the highest version satisfying an optional range constraint.

Absence is never an error: selectors return None and version pickers
return "". Failures raise subclasses of DiscoveryError.

Example:
    >>> from freight_discovery import SelectionStrategy, SelectorOptions, new_selector
    >>> options = SelectorOptions(constraint="bookworm")
    >>> selector = new_selector("debian", SelectionStrategy.DIGEST, options)
    >>> image = await selector.select()
"""

from __future__ import annotations

from freight_discovery.errors import (
    AuthenticationError,
    ChartNotFoundError,
    ConfigError,
    DiscoveryError,
    HTTPStatusError,
    ParseError,
    RegistryError,
    TransportError,
)
from freight_discovery.helm import (
    get_chart_versions_from_classic_repo,
    get_chart_versions_from_oci_repo,
    select_chart_version,
)
from freight_discovery.image import (
    ChallengeManagerCache,
    Credentials,
    PlatformConstraint,
    RepositoryClient,
    Selector,
    allows_tag,
    filter_tags,
    ignores_tag,
    new_selector,
)
from freight_discovery.schemas import Image, ImagePlatform, SelectionStrategy, SelectorOptions
from freight_discovery.versions import get_latest_version

__version__ = "0.1.0"

__all__ = [
    # Selection
    "SelectionStrategy",
    "SelectorOptions",
    "Selector",
    "new_selector",
    "Image",
    "ImagePlatform",
    "PlatformConstraint",
    "allows_tag",
    "filter_tags",
    "ignores_tag",
    # Registry access
    "ChallengeManagerCache",
    "Credentials",
    "RepositoryClient",
    # Charts and versions
    "get_chart_versions_from_classic_repo",
    "get_chart_versions_from_oci_repo",
    "get_latest_version",
    "select_chart_version",
    # Errors
    "AuthenticationError",
    "ChartNotFoundError",
    "ConfigError",
    "DiscoveryError",
    "HTTPStatusError",
    "ParseError",
    "RegistryError",
    "TransportError",
]
