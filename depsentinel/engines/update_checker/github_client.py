"""GitHub API client for tag listing and commit comparison.

The commit-compare endpoint is the only way version-control pins are
ordered: a tag or branch is "newer" only when GitHub says so.
"""

from __future__ import annotations

import os
import re
import time
from collections.abc import Iterator
from typing import Any, Protocol
from urllib.parse import quote

import httpx
import structlog

from depsentinel.core.http import build_client, send
from depsentinel.models import Credential, credential_for_host

log = structlog.get_logger("depsentinel.engine")

_NEXT_LINK_RE = re.compile(r'<([^>]+)>;\s*rel="next"')

# Longest we are willing to block on an exhausted rate limit.
_MAX_RATE_LIMIT_WAIT = 60


class CompareClient(Protocol):
    """Host capability used to order version-control refs."""

    def compare(self, repo: str, base: str, head: str) -> dict[str, Any]: ...

    def list_tags(self, repo: str) -> list[dict[str, Any]]: ...


class GitHubClient:
    """Thin synchronous wrapper around the GitHub REST API."""

    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str = "https://api.github.com",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        resolved_token = token or os.environ.get("GITHUB_TOKEN")
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if resolved_token:
            headers["Authorization"] = f"token {resolved_token}"
        self._client = build_client(base_url, headers, transport=transport)

    @classmethod
    def from_credentials(
        cls, credentials: list[Credential], **kwargs: Any
    ) -> GitHubClient:
        cred = credential_for_host(credentials, "github.com")
        return cls(cred.password if cred else None, **kwargs)

    # ── lifecycle ──────────────────────────────────────────────────────────

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GitHubClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ── public ─────────────────────────────────────────────────────────────

    def get_paginated(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        max_pages: int = 10,
    ) -> Iterator[dict[str, Any]]:
        """Yield items across pages, following ``rel="next"`` links up to *max_pages*."""
        query: dict[str, Any] | None = {"per_page": 100, **(params or {})}
        next_url: str | None = path
        for _ in range(max_pages):
            if next_url is None:
                break
            response = self._request(next_url, query)
            # The next link already carries the query string.
            query = None
            body = response.json()
            yield from body if isinstance(body, list) else [body]
            next_url = self._parse_next_link(response.headers.get("Link", ""))

    def get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return self._request(path, params).json()

    def list_tags(self, repo: str) -> list[dict[str, Any]]:
        """Tags of ``owner/repo`` in the order GitHub lists them (newest first)."""
        return list(self.get_paginated(f"/repos/{repo}/tags"))

    def compare(self, repo: str, base: str, head: str) -> dict[str, Any]:
        """Compare two refs: ``status`` is ahead, behind, identical or diverged."""
        path = f"/repos/{repo}/compare/{quote(base, safe='')}...{quote(head, safe='')}"
        data = self.get(path)
        log.debug(
            "github.compare",
            repo=repo,
            base=base,
            head=head,
            status=data.get("status"),
        )
        return data

    # ── internal ───────────────────────────────────────────────────────────

    def _request(self, path: str, params: dict[str, Any] | None) -> httpx.Response:
        response = send(self._client, path, params)
        self._check_rate_limit(response)
        return response

    def _check_rate_limit(self, response: httpx.Response) -> None:
        """Block until the quota resets when this response used up the last request."""
        headers = response.headers
        if self._parse_header_int(headers.get("X-RateLimit-Remaining")) != 0:
            return
        retry_after = self._parse_header_int(headers.get("Retry-After"))
        reset_at = self._parse_header_int(headers.get("X-RateLimit-Reset"))
        if retry_after is not None:
            wait = retry_after
        elif reset_at is not None:
            wait = reset_at - int(time.time())
        else:
            wait = _MAX_RATE_LIMIT_WAIT
        wait = min(max(wait, 1), _MAX_RATE_LIMIT_WAIT)
        log.warning("github.rate_limit_wait", wait_seconds=wait)
        time.sleep(wait)

    @staticmethod
    def _parse_header_int(value: str | None) -> int | None:
        try:
            return int(value) if value is not None else None
        except ValueError:
            return None

    @staticmethod
    def _parse_next_link(link_header: str) -> str | None:
        match = _NEXT_LINK_RE.search(link_header)
        return match.group(1) if match else None
