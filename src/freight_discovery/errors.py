"""Exception hierarchy for freight discovery.

All exceptions inherit from DiscoveryError so callers can catch every
resolution failure with a single except clause. "Nothing found" is never
an exception: selectors return None and version pickers return "".

Exception Hierarchy:
    DiscoveryError (base)
    ├── ConfigError          # Invalid selector/resolver configuration
    ├── TransportError       # Network-level failure (DNS, TLS, timeout)
    ├── HTTPStatusError      # Non-2xx response from a Helm index endpoint
    ├── ParseError           # Malformed version, constraint or index body
    ├── ChartNotFoundError   # Chart absent from an otherwise valid index
    └── RegistryError        # Registry protocol failure (listing, manifests)
        └── AuthenticationError  # Registry challenge/token exchange failed

Exit Codes:
    1 - General error (DiscoveryError, ParseError)
    2 - Configuration or authentication error
    3 - Chart not found
    5 - Network/registry error

Example:
    >>> from freight_discovery.errors import ChartNotFoundError
    >>> raise ChartNotFoundError("nginx", "https://charts.example.com")
    Traceback (most recent call last):
        ...
    ChartNotFoundError: no versions of chart 'nginx' found in repository index from https://charts.example.com
"""

from __future__ import annotations


class DiscoveryError(Exception):
    """Base exception for all freight discovery errors.

    Attributes:
        exit_code: CLI exit code for this error type (default: 1).
    """

    exit_code: int = 1


class ConfigError(DiscoveryError):
    """Raised when a selector or resolver is configured incorrectly.

    Raised at construction time, before any network call is made.

    Attributes:
        field: The configuration field that is invalid.
        reason: Description of the problem.

    Example:
        >>> raise ConfigError("allow_regex", "error compiling regular expression '(x'")
        Traceback (most recent call last):
            ...
        ConfigError: invalid allow_regex: error compiling regular expression '(x'
    """

    exit_code: int = 2

    def __init__(self, field: str, reason: str) -> None:
        """Initialize ConfigError.

        Args:
            field: The configuration field that is invalid.
            reason: Description of the problem.
        """
        self.field = field
        self.reason = reason
        super().__init__(f"invalid {field}: {reason}")


class TransportError(DiscoveryError):
    """Raised when an endpoint cannot be reached.

    Covers DNS failures, refused connections, TLS errors and timeouts.

    Attributes:
        url: The URL that was being requested.
        reason: Description of the transport failure.
    """

    exit_code: int = 5

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"error requesting {url}: {reason}")


class HTTPStatusError(DiscoveryError):
    """Raised when a Helm repository index endpoint returns a non-2xx status.

    Attributes:
        url: The URL that was requested.
        status_code: The HTTP status code received.
    """

    exit_code: int = 5

    def __init__(self, url: str, status_code: int) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(
            f"received unexpected HTTP {status_code} when requesting {url}"
        )


class ParseError(DiscoveryError):
    """Raised when a version, constraint or index document cannot be parsed.

    Attributes:
        subject: What was being parsed ("version", "constraint", ...).
        value: The offending input, if it is short enough to be useful.
        reason: Description of the parse failure.

    Example:
        >>> raise ParseError("version", "not-semantic", "not a semantic version")
        Traceback (most recent call last):
            ...
        ParseError: error parsing version 'not-semantic': not a semantic version
    """

    def __init__(self, subject: str, value: str | None, reason: str) -> None:
        self.subject = subject
        self.value = value
        self.reason = reason
        if value is None:
            msg = f"error {subject}: {reason}"
        else:
            msg = f"error parsing {subject} {value!r}: {reason}"
        super().__init__(msg)


class ChartNotFoundError(DiscoveryError):
    """Raised when a chart has no entries in a Helm repository index.

    A wholly missing chart indicates a configuration problem. A chart whose
    versions simply do not satisfy a constraint is not an error.

    Attributes:
        chart: The chart name that was looked up.
        repository: The repository URL whose index was searched.
    """

    exit_code: int = 3

    def __init__(self, chart: str, repository: str) -> None:
        self.chart = chart
        self.repository = repository
        super().__init__(
            f"no versions of chart {chart!r} found in repository index from {repository}"
        )


class RegistryError(DiscoveryError):
    """Raised when a container registry operation fails.

    Attributes:
        registry: The registry host the operation targeted.
        operation: The operation that failed (list_tags, get_manifest, ...).
        reason: Description of the failure.

    Example:
        >>> raise RegistryError("ghcr.io", "list_tags", "received unexpected HTTP 500")
        Traceback (most recent call last):
            ...
        RegistryError: error during list_tags on ghcr.io: received unexpected HTTP 500
    """

    exit_code: int = 5

    def __init__(self, registry: str, operation: str, reason: str) -> None:
        self.registry = registry
        self.operation = operation
        self.reason = reason
        super().__init__(f"error during {operation} on {registry}: {reason}")


class AuthenticationError(RegistryError):
    """Raised when registry authentication fails.

    Indicates missing or rejected credentials, or a failed bearer token
    exchange with the registry's token realm.
    """

    exit_code: int = 2

    def __init__(self, registry: str, reason: str) -> None:
        super().__init__(registry, "authentication", reason)


__all__ = [
    "AuthenticationError",
    "ChartNotFoundError",
    "ConfigError",
    "DiscoveryError",
    "HTTPStatusError",
    "ParseError",
    "RegistryError",
    "TransportError",
]
