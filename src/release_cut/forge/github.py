"""GitHub REST API client.

Only the calls needed to publish a release are implemented: look up a
release by tag, create one, list its assets and upload new ones.

Authentication resolves a token in order of precedence:

1. ``token`` constructor parameter (``github.token`` in the configuration)
2. ``GITHUB_TOKEN`` environment variable (set by GitHub Actions)
3. ``GH_TOKEN`` environment variable (used by the ``gh`` CLI)

Transient failures (429, 5xx, timeouts and network errors) are retried with
exponential backoff; anything else raises :class:`PublishTransportError`.
"""

from __future__ import annotations

import mimetypes
import os
import time
from typing import TYPE_CHECKING, Any, Final

import httpx

from release_cut.exceptions import PublishTransportError
from release_cut.logging import get_logger

if TYPE_CHECKING:
    from pathlib import Path

log = get_logger(__name__)

API_VERSION: Final[str] = "2022-11-28"
DEFAULT_API_URL: Final[str] = "https://api.github.com"
DEFAULT_UPLOADS_URL: Final[str] = "https://uploads.github.com"
DEFAULT_TIMEOUT: Final[float] = 60.0

MAX_RETRIES: Final[int] = 3
RETRY_BACKOFF_BASE: Final[float] = 1.0
RETRYABLE_STATUS_CODES: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})
ASSETS_PER_PAGE: Final[int] = 100


def resolve_token(token: str | None = None) -> str:
    """Return the API token from the argument or the environment.

    Raises:
        PublishTransportError: If no token is available
    """
    resolved = token or os.environ.get("GITHUB_TOKEN", "") or os.environ.get("GH_TOKEN", "")
    if not resolved:
        raise PublishTransportError(
            "GitHub token required: set GITHUB_TOKEN or GH_TOKEN, or github.token in config"
        )
    return resolved


class GitHubClient:
    """Release endpoints of the GitHub REST API.

    Args:
        owner: Repository owner
        repo: Repository name
        token: API token, falls back to ``GITHUB_TOKEN`` / ``GH_TOKEN``
        api_url: API base URL (GitHub Enterprise: ``https://host/api/v3``)
        uploads_url: Upload base URL (GitHub Enterprise: ``https://host/api/uploads``)
        timeout: Request timeout in seconds
        transport: Custom httpx transport, used by tests
        backoff_base: Base delay in seconds between retries
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        *,
        token: str | None = None,
        api_url: str = DEFAULT_API_URL,
        uploads_url: str = DEFAULT_UPLOADS_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
        backoff_base: float = RETRY_BACKOFF_BASE,
    ) -> None:
        self.owner = owner
        self.repo = repo
        self._repo_path = f"/repos/{owner}/{repo}"
        self._api_url = api_url.rstrip("/")
        self._uploads_url = uploads_url.rstrip("/")
        self._backoff_base = backoff_base
        self._client = httpx.Client(
            headers={
                "Authorization": f"Bearer {resolve_token(token)}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
            },
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            transport=transport,
        )

    def __repr__(self) -> str:
        return f"GitHubClient(owner={self.owner!r}, repo={self.repo!r})"

    def __enter__(self) -> GitHubClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        for attempt in range(MAX_RETRIES + 1):
            last = attempt == MAX_RETRIES
            try:
                response = self._client.request(method, url, **kwargs)
            except (httpx.TimeoutException, httpx.NetworkError) as e:
                if last:
                    raise PublishTransportError(f"{method} {url} failed: {e}") from e
                log.warning("http_retry_error", url=url, error=str(e), attempt=attempt + 1)
            except httpx.TransportError as e:
                raise PublishTransportError(f"{method} {url} failed: {e}") from e
            else:
                if response.status_code not in RETRYABLE_STATUS_CODES or last:
                    return response
                log.warning(
                    "http_retry", url=url, status=response.status_code, attempt=attempt + 1
                )
            time.sleep(self._backoff_base * (2**attempt))
        raise AssertionError("unreachable")

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str) -> None:
        if response.is_success:
            return
        try:
            detail = response.json().get("message", response.text)
        except ValueError:
            detail = response.text
        raise PublishTransportError(
            f"GitHub {action} failed ({response.status_code}): {detail}",
            status_code=response.status_code,
        )

    def get_release_by_tag(self, tag: str) -> dict[str, Any] | None:
        """Return the release for ``tag``, None if there is none."""
        response = self._request("GET", f"{self._api_url}{self._repo_path}/releases/tags/{tag}")
        if response.status_code == 404:
            return None
        self._raise_for_status(response, f"release lookup for {tag}")
        return response.json()

    def create_release(
        self,
        tag: str,
        *,
        name: str | None = None,
        body: str = "",
        draft: bool = False,
        prerelease: bool = False,
    ) -> dict[str, Any]:
        """Create a release for an existing tag."""
        payload = {
            "tag_name": tag,
            "name": name or tag,
            "body": body,
            "draft": draft,
            "prerelease": prerelease,
        }
        response = self._request("POST", f"{self._api_url}{self._repo_path}/releases", json=payload)
        self._raise_for_status(response, f"release creation for {tag}")
        release = response.json()
        log.info("release_created", tag=tag, id=release.get("id"))
        return release

    def list_release_assets(self, release_id: int) -> list[dict[str, Any]]:
        """Return every asset of the release, following pagination."""
        assets: list[dict[str, Any]] = []
        page = 1
        while True:
            response = self._request(
                "GET",
                f"{self._api_url}{self._repo_path}/releases/{release_id}/assets",
                params={"per_page": ASSETS_PER_PAGE, "page": page},
            )
            self._raise_for_status(response, "asset listing")
            batch = response.json()
            assets.extend(batch)
            if len(batch) < ASSETS_PER_PAGE:
                return assets
            page += 1

    def upload_asset(self, release_id: int, path: Path, name: str) -> dict[str, Any]:
        """Upload ``path`` to the release under the remote file name ``name``."""
        content_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
        try:
            content = path.read_bytes()
        except OSError as e:
            raise PublishTransportError(f"Cannot read artifact {path}: {e}") from e
        response = self._request(
            "POST",
            f"{self._uploads_url}{self._repo_path}/releases/{release_id}/assets",
            params={"name": name},
            content=content,
            headers={"Content-Type": content_type},
        )
        self._raise_for_status(response, f"upload of {name}")
        log.info("asset_uploaded", name=name, size=len(content))
        return response.json()
