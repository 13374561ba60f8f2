"""Concrete image selection strategies.

Each strategy lists the repository's tags, narrows them, picks a single
tag and resolves it to an Image:

- DigestSelector: the tag exactly equal to the constraint (a mutable tag
  such as ``latest`` whose digest is tracked).
- LexicalSelector: the lexically greatest tag after filtering.
- NewestBuildSelector: the image with the most recent build time.
- SemVerSelector: the greatest semantic version satisfying the constraint.

Construct selectors through freight_discovery.image.new_selector rather
than directly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from freight_discovery.errors import ConfigError, ParseError
from freight_discovery.image.filters import TagFilter
from freight_discovery.image.selector import Selector
from freight_discovery.schemas import Image, SelectionStrategy
from freight_discovery.versions import get_latest_version, is_version, parse_constraint

if TYPE_CHECKING:
    from freight_discovery.image.client import RepositoryClient
    from freight_discovery.image.platform import PlatformConstraint


class DigestSelector(Selector):
    """Selects the image currently tagged with an exact tag name."""

    strategy = SelectionStrategy.DIGEST

    def __init__(
        self,
        client: RepositoryClient,
        constraint: str,
        platform: PlatformConstraint | None = None,
    ) -> None:
        """Initialize DigestSelector.

        Raises:
            ConfigError: If constraint is empty.
        """
        if not constraint:
            raise ConfigError("constraint", "digest selection strategy requires a constraint")
        super().__init__(client, platform)
        self._constraint = constraint

    @property
    def constraint(self) -> str:
        """Return the tag this selector tracks."""
        return self._constraint

    async def _select(self, log: Any) -> Image | None:
        tags = await self._client.get_tags()
        if not tags:
            log.debug("found_no_tags")
            return None
        log.debug("got_all_tags", tag_count=len(tags))

        if self._constraint not in tags:
            return None
        image = await self._client.get_image_by_tag(self._constraint, self._platform)
        if image is None:
            log.debug("image_did_not_match_platform", tag=self._constraint)
        return image


class LexicalSelector(Selector):
    """Selects the lexically greatest tag (plain string ordering)."""

    strategy = SelectionStrategy.LEXICAL

    def __init__(
        self,
        client: RepositoryClient,
        tag_filter: TagFilter | None = None,
        platform: PlatformConstraint | None = None,
    ) -> None:
        super().__init__(client, platform)
        self._tag_filter = tag_filter or TagFilter()

    async def _select(self, log: Any) -> Image | None:
        tags = self._tag_filter.apply(await self._client.get_tags())
        if not tags:
            log.debug("no_tags_matched_criteria")
            return None
        tag = max(tags)
        log.debug("selected_tag", tag=tag, candidate_count=len(tags))
        return await self._client.get_image_by_tag(tag, self._platform)


class NewestBuildSelector(Selector):
    """Selects the image with the most recent creation time.

    Every filtered tag is resolved, so this is the most expensive strategy
    against repositories with many tags.
    """

    strategy = SelectionStrategy.NEWEST_BUILD

    def __init__(
        self,
        client: RepositoryClient,
        tag_filter: TagFilter | None = None,
        platform: PlatformConstraint | None = None,
    ) -> None:
        super().__init__(client, platform)
        self._tag_filter = tag_filter or TagFilter()

    async def _select(self, log: Any) -> Image | None:
        tags = self._tag_filter.apply(await self._client.get_tags())
        if not tags:
            log.debug("no_tags_matched_criteria")
            return None

        images = await self._client.get_images_by_tags(tags, self._platform)
        log.debug("resolved_images", tag_count=len(tags), image_count=len(images))
        return newest_image(images)


def newest_image(images: list[Image]) -> Image | None:
    """Return the image with the latest created_at.

    Images without a timestamp rank below any image with one. On a tie the
    earliest image in the list wins.
    """
    newest: Image | None = None
    for image in images:
        if newest is None:
            newest = image
            continue
        if image.created_at is None:
            continue
        if newest.created_at is None or image.created_at > newest.created_at:
            newest = image
    return newest


class SemVerSelector(Selector):
    """Selects the greatest semantic-version tag satisfying a constraint.

    Tags that are not semantic versions are ignored.
    """

    strategy = SelectionStrategy.SEMVER

    def __init__(
        self,
        client: RepositoryClient,
        constraint: str = "",
        tag_filter: TagFilter | None = None,
        platform: PlatformConstraint | None = None,
    ) -> None:
        """Initialize SemVerSelector.

        Raises:
            ConfigError: If constraint is not a valid version range.
        """
        if constraint:
            try:
                parse_constraint(constraint)
            except ParseError as e:
                raise ConfigError("constraint", str(e)) from e
        super().__init__(client, platform)
        self._constraint = constraint
        self._tag_filter = tag_filter or TagFilter()

    @property
    def constraint(self) -> str:
        """Return the version range, or "" for any version."""
        return self._constraint

    async def _select(self, log: Any) -> Image | None:
        tags = self._tag_filter.apply(await self._client.get_tags())
        versions = [tag for tag in tags if is_version(tag)]
        if not versions:
            log.debug("no_semantic_version_tags")
            return None

        tag = get_latest_version(versions, self._constraint)
        if not tag:
            log.debug("no_tags_satisfy_constraint", constraint=self._constraint)
            return None
        log.debug("selected_tag", tag=tag, candidate_count=len(versions))
        return await self._client.get_image_by_tag(tag, self._platform)


__all__ = [
    "DigestSelector",
    "LexicalSelector",
    "NewestBuildSelector",
    "SemVerSelector",
    "newest_image",
]
