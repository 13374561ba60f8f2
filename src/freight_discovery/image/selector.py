"""Selector base class shared by all image selection strategies.

A Selector is bound to one RepositoryClient and its validated options at
construction. select() is a pure function of current registry state: it
keeps nothing between calls, and returns None rather than raising when
no suitable image exists.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

import structlog

from freight_discovery.metrics import DiscoveryMetrics
from freight_discovery.schemas import Image, SelectionStrategy

if TYPE_CHECKING:
    from freight_discovery.image.client import RepositoryClient
    from freight_discovery.image.platform import PlatformConstraint

logger = structlog.get_logger(__name__)


class Selector(ABC):
    """Abstract base class for image selectors.

    Subclasses set ``strategy`` and implement ``_select``.

    Attributes:
        strategy: The selection strategy this class implements.
    """

    strategy: ClassVar[SelectionStrategy]

    def __init__(
        self,
        client: RepositoryClient,
        platform: PlatformConstraint | None = None,
    ) -> None:
        self._client = client
        self._platform = platform

    @property
    def client(self) -> RepositoryClient:
        """Return the bound repository client."""
        return self._client

    @property
    def platform(self) -> PlatformConstraint | None:
        """Return the platform constraint, if any."""
        return self._platform

    async def select(self) -> Image | None:
        """Select at most one image from the repository.

        Returns:
            The selected Image, or None if nothing suitable exists.

        Raises:
            TransportError: If the registry cannot be reached.
            RegistryError: If a registry operation fails.
        """
        log = logger.bind(
            registry=self._client.registry_host,
            image=self._client.repository,
            selection_strategy=self.strategy.value,
            platform_constrained=self._platform is not None,
        )
        log.debug("selecting_image")

        span_attributes: dict[str, Any] = {
            "discovery.registry": self._client.registry_host,
            "discovery.repository": self._client.repository,
            "discovery.strategy": self.strategy.value,
        }
        metrics = self._client.metrics
        with metrics.create_span(DiscoveryMetrics.SPAN_SELECT, span_attributes) as span:
            image = await self._select(log)
            span.set_attribute("discovery.found", image is not None)

        if image is None:
            log.debug("no_image_matched_criteria")
        else:
            log.debug("found_image", tag=image.tag, digest=image.digest)
        return image

    @abstractmethod
    async def _select(self, log: Any) -> Image | None:
        """Strategy-specific selection.

        Args:
            log: Logger bound with registry, image and strategy fields.
        """
        ...


__all__ = ["Selector"]
