"""GitHub REST API client used for template discovery."""

from __future__ import annotations

from typing import Any

import httpx

from .base import BaseClient

_GH_API = "https://api.github.com"
_GH_ACCEPT = "application/vnd.github+json"
_GH_ACCEPT_RAW = "application/vnd.github.raw+json"
_GH_API_VERSION = "2022-11-28"


class GitHubClient(BaseClient):
    """Read-only GitHub client for repository trees and file contents.

    The token is optional: public repositories work anonymously, at the cost of
    a much lower rate limit.
    """

    service_name = "github"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        token: str | None = None,
        api_url: str = _GH_API,
    ) -> None:
        super().__init__(http_client)
        self._api = api_url.rstrip("/")
        self._headers = {
            "Accept": _GH_ACCEPT,
            "X-GitHub-Api-Version": _GH_API_VERSION,
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    async def get_tree(self, owner: str, repo: str, ref: str) -> dict[str, Any]:
        """Return the recursive git tree of ``ref``."""
        resp = await self.http.get(
            f"{self._api}/repos/{owner}/{repo}/git/trees/{ref}",
            headers=self._headers,
            params={"recursive": "1"},
        )
        self._check_error(resp)
        return resp.json()

    async def get_contents(self, owner: str, repo: str, path: str, ref: str) -> list[dict[str, Any]]:
        """List a directory through the contents API.

        A file path yields a single-element list so callers can treat both the
        same way.
        """
        resp = await self.http.get(
            f"{self._api}/repos/{owner}/{repo}/contents/{path.strip('/')}",
            headers=self._headers,
            params={"ref": ref},
        )
        self._check_error(resp)
        data = resp.json()
        return data if isinstance(data, list) else [data]

    async def get_file_text(self, owner: str, repo: str, path: str, ref: str) -> str:
        """Download a single file as text."""
        resp = await self.http.get(
            f"{self._api}/repos/{owner}/{repo}/contents/{path.strip('/')}",
            headers={**self._headers, "Accept": _GH_ACCEPT_RAW},
            params={"ref": ref},
        )
        self._check_error(resp)
        return resp.text
