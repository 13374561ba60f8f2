# pyright: reportUnknownMemberType=false, reportUnknownVariableType=false
"""Semantic version helpers shared by chart and image resolution.

Thin wrapper around semantic_version providing lenient version parsing,
range-constraint parsing and the "latest version satisfying a constraint"
pick used by both the Helm chart resolver and the SemVer image selector.

Version strings are accepted in the lenient form registries use in
practice: an optional leading "v" and optional minor/patch components
("v1", "1.2", "1.2.3-rc.1+build.5").

Constraints use the npm range grammar ("^1.0.0", "~1.2", ">=1.0 <2.0",
"1.x", "1.0 - 2.0", "a || b"). Comma-separated clauses are treated as a
conjunction. "!=" clauses exclude a version (or, when written as "1.2",
a whole minor line) from the entire expression.

Example:
    >>> get_latest_version(["2.0.0", "1.0.0", "1.1.0"], "^1.0.0")
    '1.1.0'
    >>> get_latest_version(["2.0.0", "1.0.0", "1.1.0"], "^3.0.0")
    ''
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

import structlog
from semantic_version import NpmSpec, Version  # type: ignore[import-untyped]

from freight_discovery.errors import ParseError

logger = structlog.get_logger(__name__)

_LOOSE_VERSION = re.compile(
    r"^v?(?P<major>0|[1-9]\d*)"
    r"(?:\.(?P<minor>0|[1-9]\d*))?"
    r"(?:\.(?P<patch>0|[1-9]\d*))?"
    r"(?:-(?P<prerelease>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

_CLAUSE_SEPARATOR = re.compile(r"\s*,\s*")
_OPERATOR_SPACING = re.compile(r"(<=|>=|<|>|=|\^|~)\s+")
_EXCLUSION = re.compile(r"!=\s*([^\s,|]+)")
_WILDCARD_SUFFIX = re.compile(r"(?:\.[xX*])+$")


def parse_version(version: str) -> Version:
    """Parse a version string into a semantic_version.Version.

    Args:
        version: The version string (e.g. "1.2.3", "v1.2", "1.0.0-rc.1").

    Returns:
        The parsed Version.

    Raises:
        ParseError: If the string is not a semantic version.
    """
    match = _LOOSE_VERSION.match(version.strip())
    if match is None:
        raise ParseError("version", version, "not a semantic version")

    normalized = "{}.{}.{}".format(
        match.group("major"),
        match.group("minor") or "0",
        match.group("patch") or "0",
    )
    if match.group("prerelease"):
        normalized += f"-{match.group('prerelease')}"
    if match.group("build"):
        normalized += f"+{match.group('build')}"

    try:
        return Version(normalized)
    except ValueError as e:
        raise ParseError("version", version, str(e)) from e


@dataclass(frozen=True)
class VersionConstraint:
    """A parsed range expression together with its ``!=`` exclusions.

    Attributes:
        spec: The npm range, or None when the constraint only excludes.
        excluded: Excluded versions, each paired with the number of
            components (1-3) the constraint spelled out. "!=1.2" excludes
            every 1.2.x release.
    """

    spec: NpmSpec | None
    excluded: tuple[tuple[Version, int], ...] = ()

    def match(self, version: Version) -> bool:
        """Return True if the version satisfies the range and no exclusion."""
        if self.spec is not None and not self.spec.match(version):
            return False
        return not any(_excludes(v, precision, version) for v, precision in self.excluded)


def _excludes(excluded: Version, precision: int, version: Version) -> bool:
    core = (version.major, version.minor, version.patch)
    if core[:precision] != (excluded.major, excluded.minor, excluded.patch)[:precision]:
        return False
    return precision < 3 or tuple(version.prerelease) == tuple(excluded.prerelease)


def _parse_exclusion(constraint: str, raw: str) -> tuple[Version, int]:
    value = _WILDCARD_SUFFIX.sub("", raw)
    match = _LOOSE_VERSION.match(value)
    if match is None:
        raise ParseError("constraint", constraint, f"invalid excluded version {raw!r}")
    precision = 1 + sum(1 for part in ("minor", "patch") if match.group(part))
    return parse_version(value), precision


def parse_constraint(constraint: str) -> VersionConstraint:
    """Parse a semantic version range expression.

    ``!=`` clauses are pulled out and applied to the whole expression as
    additional conditions; what remains is parsed as an npm range.

    Args:
        constraint: The range expression (e.g. "^1.0.0", ">=1.2, <2", "!=1.0.0").

    Returns:
        The parsed constraint.

    Raises:
        ParseError: If the expression is malformed.
    """
    excluded = tuple(_parse_exclusion(constraint, raw) for raw in _EXCLUSION.findall(constraint))
    expression = " ".join(_CLAUSE_SEPARATOR.sub(" ", _EXCLUSION.sub(" ", constraint)).split())
    expression = _OPERATOR_SPACING.sub(r"\1", expression)
    if not expression and excluded:
        return VersionConstraint(None, excluded)
    try:
        return VersionConstraint(NpmSpec(expression), excluded)
    except ValueError as e:
        raise ParseError("constraint", constraint, str(e)) from e


def is_version(version: str) -> bool:
    """Return True if the string parses as a semantic version."""
    try:
        parse_version(version)
    except ParseError:
        return False
    return True


def sort_versions(versions: Iterable[str], *, descending: bool = True) -> list[str]:
    """Sort version strings by semantic version precedence.

    Args:
        versions: Version strings to sort.
        descending: Highest version first when True.

    Returns:
        The original strings, sorted. Equal versions keep their input order.

    Raises:
        ParseError: If any string is not a semantic version.
    """
    parsed = [(parse_version(v), v) for v in versions]
    parsed.sort(key=lambda pair: pair[0], reverse=descending)
    return [original for _, original in parsed]


def get_latest_version(versions: Iterable[str], constraint: str = "") -> str:
    """Return the highest version satisfying an optional constraint.

    Every input must parse; a single malformed version fails the whole call.
    An empty constraint means "highest version, unconstrained". A constraint
    that nothing satisfies is not an error and yields "".

    Args:
        versions: Unsorted version strings.
        constraint: Optional range expression.

    Returns:
        The original string of the selected version, or "" if none matches.

    Raises:
        ParseError: If a version or the constraint is malformed.
    """
    parsed = [(parse_version(v), v) for v in versions]
    spec = parse_constraint(constraint) if constraint else None

    parsed.sort(key=lambda pair: pair[0], reverse=True)
    for version, original in parsed:
        if spec is None or spec.match(version):
            return original

    logger.debug(
        "no_version_satisfies_constraint",
        constraint=constraint,
        candidates=len(parsed),
    )
    return ""


__all__ = [
    "VersionConstraint",
    "get_latest_version",
    "is_version",
    "parse_constraint",
    "parse_version",
    "sort_versions",
]
