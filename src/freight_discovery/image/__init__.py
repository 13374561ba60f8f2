"""Container image discovery.

Selects one image from an OCI/Docker registry repository according to a
selection strategy, after narrowing tags by an allow-regex, an ignore
list and an optional platform constraint.

Key Components:
- new_selector: Validates options and builds a Selector for a strategy
- Selector: select() returns the chosen Image, or None
- RepositoryClient: Tag listing and tag-to-image resolution
- ChallengeManagerCache: Per-host registry authentication state

Example:
    >>> from freight_discovery.image import new_selector
    >>> from freight_discovery.schemas import SelectionStrategy, SelectorOptions
    >>>
    >>> selector = new_selector(
    ...     "ghcr.io/acme/api",
    ...     SelectionStrategy.NEWEST_BUILD,
    ...     SelectorOptions(allow_regex=r"^main-", platform="linux/amd64"),
    ... )
    >>> image = await selector.select()
    >>> image.reference if image else None
    'ghcr.io/acme/api:main-4f2c1e0@sha256:...'
"""

from __future__ import annotations

from freight_discovery.image.auth import (
    Challenge,
    ChallengeManager,
    ChallengeManagerCache,
    Credentials,
    RegistryAuth,
    get_default_challenge_cache,
    parse_challenges,
)
from freight_discovery.image.client import RepositoryClient
from freight_discovery.image.factory import new_selector
from freight_discovery.image.filters import TagFilter, allows_tag, filter_tags, ignores_tag
from freight_discovery.image.platform import PlatformConstraint
from freight_discovery.image.reference import ImageReference
from freight_discovery.image.selector import Selector
from freight_discovery.image.strategies import (
    DigestSelector,
    LexicalSelector,
    NewestBuildSelector,
    SemVerSelector,
)

__all__ = [
    # Selection
    "DigestSelector",
    "LexicalSelector",
    "NewestBuildSelector",
    "SemVerSelector",
    "Selector",
    "new_selector",
    # Filtering
    "PlatformConstraint",
    "TagFilter",
    "allows_tag",
    "filter_tags",
    "ignores_tag",
    # Registry access
    "Challenge",
    "ChallengeManager",
    "ChallengeManagerCache",
    "Credentials",
    "ImageReference",
    "RegistryAuth",
    "RepositoryClient",
    "get_default_challenge_cache",
    "parse_challenges",
]
