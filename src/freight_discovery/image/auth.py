"""Registry authentication via the WWW-Authenticate challenge flow.

On first contact with a registry host the client pings ``/v2/`` without
credentials and records the challenges the registry answers with. The
resulting ChallengeManager is cached per host in a ChallengeManagerCache.
Requests are then authenticated by RegistryAuth, an httpx.Auth flow that
supports the three schemes registries use:

- Anonymous: the registry presented no challenge.
- Basic: username/password sent with every request.
- Bearer: a token obtained from the challenge's realm, scoped to
  ``repository:<name>:pull``, sent as ``Authorization: Bearer``.

Authentication Flow:
    1. ChallengeManagerCache.get_or_create(host) pings /v2/ once per host
    2. RegistryAuth applies the known challenge to each outgoing request
    3. A 401 carrying a fresh challenge triggers one re-authentication
    4. Token exchange failures raise AuthenticationError

Example:
    >>> cache = ChallengeManagerCache()
    >>> manager = await cache.get_or_create("ghcr.io", ping)
    >>> auth = RegistryAuth("ghcr.io", manager, Credentials(), scope="repository:acme/api:pull")
    >>> async with httpx.AsyncClient(auth=auth) as http:
    ...     await http.get("https://ghcr.io/v2/acme/api/tags/list")
"""

from __future__ import annotations

import asyncio
import base64
import json
import re
import threading
import weakref
from collections.abc import Awaitable, Callable, Generator, Mapping
from dataclasses import dataclass, field

import httpx
import structlog

from freight_discovery.errors import AuthenticationError

logger = structlog.get_logger(__name__)

_SCHEME = re.compile(r"[\s,]*([A-Za-z][^\s,=]*)")
_PARAM = re.compile(
    r"[\s,]*([A-Za-z0-9!#$%&'*+.^_`|~-]+)\s*=\s*"
    r"(?:\"((?:[^\"\\]|\\.)*)\"|([^\s,\"]*))"
)
_ESCAPE = re.compile(r"\\(.)")


@dataclass(frozen=True)
class Credentials:
    """Resolved registry credentials, opaque to the discovery engine.

    Attributes:
        username: Username for basic auth and token exchange.
        password: Password or access token paired with username.
        token: A pre-issued bearer token, used instead of a token exchange.
    """

    username: str = ""
    password: str = field(default="", repr=False)
    token: str = field(default="", repr=False)

    @property
    def has_basic(self) -> bool:
        """Return True if a username/password pair is available."""
        return bool(self.username and self.password)


@dataclass(frozen=True)
class Challenge:
    """One authentication challenge from a WWW-Authenticate header.

    Attributes:
        scheme: Lower-cased auth scheme ("basic" or "bearer").
        parameters: Lower-cased parameter names to values (realm, service, scope).
    """

    scheme: str
    parameters: Mapping[str, str] = field(default_factory=dict, hash=False)


def parse_challenges(header: str) -> list[Challenge]:
    """Parse a WWW-Authenticate header into challenges.

    Args:
        header: The raw header value.

    Returns:
        Challenges in header order. Unparseable trailing input is ignored.

    Example:
        >>> parse_challenges('Bearer realm="https://auth.example.com/token",service="registry"')
        [Challenge(scheme='bearer', parameters={'realm': 'https://auth.example.com/token', 'service': 'registry'})]
    """
    challenges: list[Challenge] = []
    pos = 0
    while pos < len(header):
        scheme_match = _SCHEME.match(header, pos)
        if scheme_match is None:
            break
        pos = scheme_match.end()
        parameters: dict[str, str] = {}
        while True:
            param_match = _PARAM.match(header, pos)
            if param_match is None:
                break
            name, quoted, token = param_match.groups()
            value = _ESCAPE.sub(r"\1", quoted) if quoted is not None else token
            parameters[name.lower()] = value
            pos = param_match.end()
        challenges.append(Challenge(scheme_match.group(1).lower(), parameters))
    return challenges


class ChallengeManager:
    """The authentication challenges presented by one registry host."""

    def __init__(self, host: str, challenges: list[Challenge] | None = None) -> None:
        self._host = host
        self._challenges = list(challenges or [])

    @property
    def host(self) -> str:
        """Return the registry host these challenges belong to."""
        return self._host

    @property
    def challenges(self) -> list[Challenge]:
        """Return a copy of the recorded challenges."""
        return list(self._challenges)

    @property
    def is_anonymous(self) -> bool:
        """Return True if the registry presented no challenge."""
        return not self._challenges

    def challenge_for(self, scheme: str) -> Challenge | None:
        """Return the first challenge with the given scheme, if any."""
        for challenge in self._challenges:
            if challenge.scheme == scheme:
                return challenge
        return None

    @classmethod
    def from_response(cls, host: str, response: httpx.Response) -> ChallengeManager:
        """Build a manager from a /v2/ ping response.

        Only 401 responses carry challenges; anything else means anonymous.
        """
        if response.status_code != httpx.codes.UNAUTHORIZED:
            return cls(host)
        header = response.headers.get("www-authenticate", "")
        return cls(host, parse_challenges(header))


class ChallengeManagerCache:
    """Per-host cache of ChallengeManagers, safe for concurrent first use.

    The first caller for a host runs the factory (a /v2/ ping) while holding
    a per-host lock; concurrent callers on the same event loop wait for it
    and reuse its result. Callers on other event loops use their own lock,
    so at most one redundant ping per loop can occur. A failed factory call
    caches nothing.
    """

    def __init__(self) -> None:
        self._managers: dict[str, ChallengeManager] = {}
        self._locks: weakref.WeakKeyDictionary[
            asyncio.AbstractEventLoop, dict[str, asyncio.Lock]
        ] = weakref.WeakKeyDictionary()
        self._guard = threading.Lock()

    def get(self, host: str) -> ChallengeManager | None:
        """Return the cached manager for a host, if any."""
        with self._guard:
            return self._managers.get(host)

    async def get_or_create(
        self,
        host: str,
        factory: Callable[[], Awaitable[ChallengeManager]],
    ) -> ChallengeManager:
        """Return the manager for a host, creating it once if needed.

        Args:
            host: Registry host the manager is keyed by.
            factory: Coroutine function that builds the manager.

        Returns:
            The cached or newly built manager.
        """
        manager = self.get(host)
        if manager is not None:
            return manager

        loop = asyncio.get_running_loop()
        with self._guard:
            lock = self._locks.setdefault(loop, {}).setdefault(host, asyncio.Lock())

        async with lock:
            manager = self.get(host)
            if manager is not None:
                return manager
            manager = await factory()
            with self._guard:
                manager = self._managers.setdefault(host, manager)
            logger.debug(
                "challenge_manager_cached",
                registry=host,
                schemes=[c.scheme for c in manager.challenges],
            )
            return manager

    def clear(self) -> None:
        """Forget all cached managers."""
        with self._guard:
            self._managers.clear()


_default_cache = ChallengeManagerCache()


def get_default_challenge_cache() -> ChallengeManagerCache:
    """Return the process-wide challenge manager cache."""
    return _default_cache


class RegistryAuth(httpx.Auth):
    """httpx auth flow answering registry challenges.

    Bearer tokens are cached per scope for the lifetime of this object,
    which is one registry session.
    """

    requires_response_body = True

    def __init__(
        self,
        host: str,
        manager: ChallengeManager,
        credentials: Credentials,
        *,
        scope: str,
    ) -> None:
        self._host = host
        self._manager = manager
        self._credentials = credentials
        self._scope = scope
        self._tokens: dict[str, str] = {}

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        """Authenticate a request, re-authenticating once on a fresh challenge."""
        challenge = self._preferred(self._manager.challenges)
        if challenge is not None:
            yield from self._authorize(request, challenge, refresh=False)

        response = yield request
        if response.status_code != httpx.codes.UNAUTHORIZED:
            return

        fresh = self._preferred(parse_challenges(response.headers.get("www-authenticate", "")))
        if fresh is None:
            return
        yield from self._authorize(request, fresh, refresh=True)
        yield request

    def _preferred(self, challenges: list[Challenge]) -> Challenge | None:
        for scheme in ("bearer", "basic"):
            for challenge in challenges:
                if challenge.scheme == scheme:
                    return challenge
        return None

    def _authorize(
        self,
        request: httpx.Request,
        challenge: Challenge,
        *,
        refresh: bool,
    ) -> Generator[httpx.Request, httpx.Response, None]:
        if challenge.scheme == "basic":
            if self._credentials.has_basic:
                request.headers["Authorization"] = self._basic_header()
            return

        if self._credentials.token:
            request.headers["Authorization"] = f"Bearer {self._credentials.token}"
            return

        # Ping challenges are per host; their scope names no particular repository.
        scope = (refresh and challenge.parameters.get("scope")) or self._scope
        token = None if refresh else self._tokens.get(scope)
        if token is None:
            token_response = yield self._token_request(challenge, scope)
            token = self._parse_token(token_response)
            self._tokens[scope] = token
        request.headers["Authorization"] = f"Bearer {token}"

    def _basic_header(self) -> str:
        raw = f"{self._credentials.username}:{self._credentials.password}".encode()
        return "Basic " + base64.b64encode(raw).decode("ascii")

    def _token_request(self, challenge: Challenge, scope: str) -> httpx.Request:
        realm = challenge.parameters.get("realm")
        if not realm:
            raise AuthenticationError(self._host, "bearer challenge has no realm")

        params = {"scope": scope}
        service = challenge.parameters.get("service")
        if service:
            params["service"] = service

        headers = {}
        if self._credentials.has_basic:
            headers["Authorization"] = self._basic_header()

        logger.debug("token_exchange_started", registry=self._host, realm=realm, scope=scope)
        return httpx.Request("GET", realm, params=params, headers=headers)

    def _parse_token(self, response: httpx.Response) -> str:
        if response.status_code != httpx.codes.OK:
            raise AuthenticationError(
                self._host,
                f"token exchange returned unexpected HTTP {response.status_code}",
            )
        try:
            body = json.loads(response.content)
        except ValueError as e:
            raise AuthenticationError(self._host, f"invalid token response: {e}") from e

        token = None
        if isinstance(body, dict):
            token = body.get("token") or body.get("access_token")
        if not token:
            raise AuthenticationError(self._host, "token response contained no token")
        return str(token)


__all__ = [
    "Challenge",
    "ChallengeManager",
    "ChallengeManagerCache",
    "Credentials",
    "RegistryAuth",
    "get_default_challenge_cache",
    "parse_challenges",
]
