"""Shared fixtures for freight discovery tests.

Registry and chart repository traffic is served by in-process fakes
mounted on httpx.MockTransport, so no test touches the network.

Key Fixtures:
- registry: FakeRegistry serving one repository at registry.example.com
- challenge_cache: A fresh ChallengeManagerCache per test
- settings: DiscoverySettings with small tag pages
"""

from __future__ import annotations

import base64
import json
from typing import Any

import httpx
import pytest

from freight_discovery.config import DiscoverySettings
from freight_discovery.image.auth import ChallengeManagerCache, Credentials
from freight_discovery.image.manifest import (
    DOCKER_MANIFEST_LIST_V2,
    DOCKER_MANIFEST_V2,
    OCI_IMAGE_INDEX,
    OCI_IMAGE_MANIFEST,
    calculate_digest,
)

REGISTRY_HOST = "registry.example.com"
TOKEN_REALM = "https://auth.example.com/token"
TEST_USERNAME = "test-user"
# Placeholder values to avoid secret scanner false positives
TEST_PASSWORD = "PLACEHOLDER_TEST_VALUE"
TEST_TOKEN = "PLACEHOLDER_REGISTRY_TOKEN"


class FakeRegistry:
    """In-memory OCI distribution API for one repository.

    Args:
        repository: Repository path served (e.g. "acme/api").
        auth: None for anonymous access, "basic" or "bearer".
    """

    def __init__(self, repository: str = "acme/api", *, auth: str | None = None) -> None:
        self.repository = repository
        self.auth = auth
        self.tags: list[str] = []
        self.manifests: dict[str, tuple[bytes, str]] = {}
        self.blobs: dict[str, bytes] = {}
        self.failures: dict[str, int] = {}
        self.requests: list[httpx.Request] = []
        self.token = TEST_TOKEN
        self.token_status = 200
        self.ping_scope: str | None = None

    # -- content -----------------------------------------------------------

    def add_image(
        self,
        tag: str | None,
        *,
        os: str = "linux",
        architecture: str = "amd64",
        variant: str = "",
        created: str | None = None,
        media_type: str = OCI_IMAGE_MANIFEST,
    ) -> str:
        """Add a single-platform image and return its manifest digest."""
        config: dict[str, Any] = {"os": os, "architecture": architecture}
        if variant:
            config["variant"] = variant
        if created:
            config["created"] = created
        config_body = json.dumps(config).encode()
        config_digest = calculate_digest(config_body)
        self.blobs[config_digest] = config_body

        manifest = {
            "schemaVersion": 2,
            "mediaType": media_type,
            "config": {
                "mediaType": "application/vnd.oci.image.config.v1+json",
                "digest": config_digest,
                "size": len(config_body),
            },
            "layers": [],
        }
        body = json.dumps(manifest).encode()
        digest = calculate_digest(body)
        self.manifests[digest] = (body, media_type)
        if tag is not None:
            self.manifests[tag] = (body, media_type)
            self.tags.append(tag)
        return digest

    def add_index(
        self,
        tag: str,
        platforms: list[str],
        *,
        created: str | None = None,
        media_type: str = OCI_IMAGE_INDEX,
    ) -> dict[str, str]:
        """Add a multi-platform index; return manifest digests keyed by platform."""
        digests: dict[str, str] = {}
        entries = []
        child_type = OCI_IMAGE_MANIFEST
        if media_type == DOCKER_MANIFEST_LIST_V2:
            child_type = DOCKER_MANIFEST_V2
        for platform in platforms:
            os, architecture, *rest = platform.split("/")
            variant = rest[0] if rest else ""
            digest = self.add_image(
                None,
                os=os,
                architecture=architecture,
                variant=variant,
                created=created,
                media_type=child_type,
            )
            digests[platform] = digest
            entry_platform = {"os": os, "architecture": architecture}
            if variant:
                entry_platform["variant"] = variant
            entries.append(
                {"mediaType": child_type, "digest": digest, "size": 100, "platform": entry_platform}
            )

        index = {"schemaVersion": 2, "mediaType": media_type, "manifests": entries}
        body = json.dumps(index).encode()
        self.manifests[tag] = (body, media_type)
        self.tags.append(tag)
        return digests

    # -- inspection --------------------------------------------------------

    def paths(self) -> list[str]:
        """Return the paths of all requests to the registry host."""
        return [r.url.path for r in self.requests if r.url.host == REGISTRY_HOST]

    @property
    def token_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url).startswith(TOKEN_REALM)]

    # -- transport ---------------------------------------------------------

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if str(request.url).startswith(TOKEN_REALM):
            return self._token(request)

        path = request.url.path
        if path in self.failures:
            return httpx.Response(self.failures[path])
        if path == "/v2/":
            if self.auth is None:
                return httpx.Response(200, json={})
            return self._challenge(self.ping_scope)
        if not self._authorized(request):
            return self._challenge()

        prefix = f"/v2/{self.repository}/"
        if path == f"{prefix}tags/list":
            return self._tags(request)
        if path.startswith(f"{prefix}manifests/"):
            reference = path[len(f"{prefix}manifests/") :]
            if reference not in self.manifests:
                return httpx.Response(404)
            body, media_type = self.manifests[reference]
            return httpx.Response(
                200,
                content=body,
                headers={
                    "Content-Type": media_type,
                    "Docker-Content-Digest": calculate_digest(body),
                },
            )
        if path.startswith(f"{prefix}blobs/"):
            blob = self.blobs.get(path[len(f"{prefix}blobs/") :])
            if blob is None:
                return httpx.Response(404)
            return httpx.Response(200, content=blob)
        return httpx.Response(404)

    def _tags(self, request: httpx.Request) -> httpx.Response:
        page_size = int(request.url.params.get("n", len(self.tags) or 1))
        last = request.url.params.get("last")
        start = self.tags.index(last) + 1 if last else 0
        page = self.tags[start : start + page_size]
        headers = {}
        if start + page_size < len(self.tags):
            headers["Link"] = (
                f'</v2/{self.repository}/tags/list?n={page_size}&last={page[-1]}>; rel="next"'
            )
        return httpx.Response(
            200, json={"name": self.repository, "tags": page}, headers=headers
        )

    def _challenge(self, scope: str | None = None) -> httpx.Response:
        if self.auth == "basic":
            header = 'Basic realm="registry"'
        else:
            header = f'Bearer realm="{TOKEN_REALM}",service="{REGISTRY_HOST}"'
            if scope is not None:
                header += f',scope="{scope}"'
        return httpx.Response(401, headers={"WWW-Authenticate": header})

    def _authorized(self, request: httpx.Request) -> bool:
        if self.auth is None:
            return True
        header = request.headers.get("Authorization", "")
        if self.auth == "basic":
            return header == basic_header(TEST_USERNAME, TEST_PASSWORD)
        return header == f"Bearer {self.token}"

    def _token(self, request: httpx.Request) -> httpx.Response:
        if self.token_status != 200:
            return httpx.Response(self.token_status)
        return httpx.Response(200, json={"token": self.token})


def basic_header(username: str, password: str) -> str:
    """Return the Authorization header value for basic auth."""
    return "Basic " + base64.b64encode(f"{username}:{password}".encode()).decode()


@pytest.fixture
def registry() -> FakeRegistry:
    """Return an anonymous FakeRegistry serving acme/api."""
    return FakeRegistry()


@pytest.fixture
def challenge_cache() -> ChallengeManagerCache:
    """Return a challenge cache isolated from the process-wide default."""
    return ChallengeManagerCache()


@pytest.fixture
def settings() -> DiscoverySettings:
    """Return settings with small tag pages so pagination is exercised."""
    return DiscoverySettings(tag_page_size=2, max_tag_pages=100)


@pytest.fixture
def sample_digest() -> str:
    """Return a valid SHA256 digest for testing."""
    return "sha256:e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


@pytest.fixture
def credentials() -> Credentials:
    """Return username/password credentials accepted by FakeRegistry."""
    return Credentials(username=TEST_USERNAME, password=TEST_PASSWORD)
