"""Platform constraints for multi-architecture images."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PlatformConstraint:
    """An os/arch[/variant] filter applied to image manifests.

    Example:
        >>> constraint = PlatformConstraint.parse("linux/arm64/v8")
        >>> constraint.matches("linux", "arm64", "v8")
        True
        >>> constraint.matches("linux", "arm64")
        True
        >>> constraint.matches("linux", "amd64")
        False
    """

    os: str
    architecture: str
    variant: str = ""

    @classmethod
    def parse(cls, value: str) -> PlatformConstraint:
        """Parse a platform string of the form os/arch[/variant].

        Args:
            value: The platform string.

        Returns:
            The parsed constraint.

        Raises:
            ValueError: If the string does not have two or three non-empty parts.
        """
        parts = value.split("/")
        if len(parts) not in (2, 3) or not all(parts):
            raise ValueError(f"expected os/arch[/variant], got {value!r}")
        return cls(*parts)

    def matches(self, os: str, architecture: str, variant: str = "") -> bool:
        """Check whether a platform satisfies this constraint.

        OS and architecture must be equal. Variant is compared only when both
        sides specify one.
        """
        if self.os != os or self.architecture != architecture:
            return False
        if self.variant and variant:
            return self.variant == variant
        return True

    def __str__(self) -> str:
        if self.variant:
            return f"{self.os}/{self.architecture}/{self.variant}"
        return f"{self.os}/{self.architecture}"


__all__ = ["PlatformConstraint"]
