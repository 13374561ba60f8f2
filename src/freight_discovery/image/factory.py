"""Construction of image selectors from a strategy and options.

new_selector validates every option before any network call is made:
the allow-regex is compiled and the platform string parsed exactly once,
then a RepositoryClient is bound to the repository and handed to the
strategy's selector.

Example:
    >>> selector = new_selector(
    ...     "ghcr.io/acme/api",
    ...     SelectionStrategy.SEMVER,
    ...     SelectorOptions(constraint="^1.0.0", platform="linux/amd64"),
    ... )
    >>> image = await selector.select()
"""

from __future__ import annotations

import re
from collections.abc import Callable

import httpx
import structlog

from freight_discovery.config import DiscoverySettings
from freight_discovery.errors import ConfigError
from freight_discovery.image.auth import ChallengeManagerCache, Credentials
from freight_discovery.image.client import RepositoryClient
from freight_discovery.image.filters import TagFilter
from freight_discovery.image.platform import PlatformConstraint
from freight_discovery.image.selector import Selector
from freight_discovery.image.strategies import (
    DigestSelector,
    LexicalSelector,
    NewestBuildSelector,
    SemVerSelector,
)
from freight_discovery.metrics import DiscoveryMetrics
from freight_discovery.schemas import SelectionStrategy, SelectorOptions

logger = structlog.get_logger(__name__)

_Builder = Callable[
    [RepositoryClient, SelectorOptions, TagFilter, PlatformConstraint | None], Selector
]

_BUILDERS: dict[SelectionStrategy, _Builder] = {
    SelectionStrategy.DIGEST: lambda client, opts, _filter, platform: DigestSelector(
        client, opts.constraint, platform
    ),
    SelectionStrategy.LEXICAL: lambda client, _opts, tag_filter, platform: LexicalSelector(
        client, tag_filter, platform
    ),
    SelectionStrategy.NEWEST_BUILD: lambda client, _opts, tag_filter, platform: (
        NewestBuildSelector(client, tag_filter, platform)
    ),
    SelectionStrategy.SEMVER: lambda client, opts, tag_filter, platform: SemVerSelector(
        client, opts.constraint, tag_filter, platform
    ),
}


def new_selector(
    repo_url: str,
    strategy: SelectionStrategy | str = SelectionStrategy.SEMVER,
    options: SelectorOptions | None = None,
    *,
    credentials: Credentials | None = None,
    insecure_skip_tls_verify: bool = False,
    challenge_cache: ChallengeManagerCache | None = None,
    settings: DiscoverySettings | None = None,
    metrics: DiscoveryMetrics | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Selector:
    """Build the selector for a repository and strategy.

    Args:
        repo_url: Repository URL (e.g. "debian", "ghcr.io/acme/api").
        strategy: Selection strategy, as an enum member or its string value.
        options: Constraint, allow-regex, ignore list and platform.
        credentials: Optional resolved registry credentials.
        insecure_skip_tls_verify: Skip TLS certificate verification.
        challenge_cache: Per-host challenge manager cache to use.
        settings: Transport settings.
        metrics: Metrics collector.
        transport: Optional httpx transport (used by tests).

    Returns:
        A selector bound to the repository.

    Raises:
        ConfigError: If the regex, platform, repository URL, strategy or a
            strategy-specific option is invalid. No network call is made.
    """
    options = options or SelectorOptions()

    allow_regex: re.Pattern[str] | None = None
    if options.allow_regex:
        try:
            allow_regex = re.compile(options.allow_regex)
        except re.error as e:
            raise ConfigError(
                "allow_regex",
                f"error compiling regular expression {options.allow_regex!r}: {e}",
            ) from e

    platform: PlatformConstraint | None = None
    if options.platform:
        try:
            platform = PlatformConstraint.parse(options.platform)
        except ValueError as e:
            raise ConfigError(
                "platform",
                f"error parsing platform constraint {options.platform!r}: {e}",
            ) from e

    client = RepositoryClient(
        repo_url,
        credentials=credentials,
        insecure_skip_tls_verify=insecure_skip_tls_verify,
        challenge_cache=challenge_cache,
        settings=settings,
        metrics=metrics,
        transport=transport,
    )

    try:
        builder = _BUILDERS[SelectionStrategy(strategy)]
    except ValueError as e:
        raise ConfigError(
            "selection_strategy", f"invalid image selection strategy {strategy!r}"
        ) from e

    tag_filter = TagFilter(allow_regex=allow_regex, ignore=frozenset(options.ignore))
    selector = builder(client, options, tag_filter, platform)
    logger.debug(
        "selector_created",
        registry=client.registry_host,
        image=client.repository,
        selection_strategy=selector.strategy.value,
    )
    return selector


__all__ = ["new_selector"]
