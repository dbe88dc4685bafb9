"""Discovery of implicit template values in GitHub-hosted ``fetch:template`` skeletons."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar
from urllib.parse import parse_qs, unquote, urlparse

import httpx

from ..clients.base import ClientError
from ..clients.github import GitHubClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

SKELETON_VALUES = re.compile(r"\{\{\s*values\.(\w+)\s*\}\}", re.IGNORECASE)
_GITHUB_URL = re.compile(r"^https://github\.com/([^/]+)/([^/]+)/tree/([^/]+)/(.+)$")
_GITHUB_API_URL = re.compile(r"^https://api\.github\.com/repos/([^/]+)/([^/]+)/contents/(.+)$")


@dataclass(frozen=True)
class GitHubLocation:
    owner: str
    repo: str
    ref: str
    path: str


def parse_github_url(url: str) -> GitHubLocation | None:
    """Accept a ``github.com/.../tree/<ref>/<path>`` URL or an API contents URL."""
    match = _GITHUB_URL.match(url.strip())
    if match:
        owner, repo, ref, path = match.groups()
        return GitHubLocation(owner, repo, ref, unquote(path).strip("/"))

    parsed = urlparse(url.strip())
    match = _GITHUB_API_URL.match(f"{parsed.scheme}://{parsed.netloc}{parsed.path}")
    if match:
        ref = parse_qs(parsed.query).get("ref", [None])[0]
        if not ref:
            return None
        owner, repo, path = match.groups()
        return GitHubLocation(owner, repo, ref, unquote(path).strip("/"))
    return None


def find_template_values(text: str) -> list[str]:
    return SKELETON_VALUES.findall(text)


def to_camel_case(name: str) -> str:
    words = [w for w in re.split(r"[^A-Za-z0-9]+|(?<=[a-z0-9])(?=[A-Z])", name) if w]
    if not words:
        return name
    return words[0].lower() + "".join(w[:1].upper() + w[1:].lower() for w in words[1:])


def to_snake_case(name: str) -> str:
    words = [w for w in re.split(r"[^A-Za-z0-9]+|(?<=[a-z0-9])(?=[A-Z])", name) if w]
    if not words:
        return name
    return "_".join(w.lower() for w in words)


def naming_variants(name: str) -> list[str]:
    """``name`` followed by its camelCase and snake_case spellings, without duplicates."""
    variants: list[str] = []
    for variant in (name, to_camel_case(name), to_snake_case(name)):
        if variant not in variants:
            variants.append(variant)
    return variants


class TemplateScanner:
    """Collects ``{{ values.X }}`` placeholders under a GitHub folder.

    Requests fan out with at most ``max_concurrency`` in flight; every URL is
    visited once and the result is a plain set of names.
    """

    def __init__(self, github: GitHubClient, max_concurrency: int = 8) -> None:
        self.github = github
        self._semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def _bounded(self, fn: Callable[[], Awaitable[T]]) -> T:
        async with self._semaphore:
            return await fn()

    async def scan(self, location: GitHubLocation) -> set[str]:
        files = await self._list_files(location)
        logger.info(
            "Scanning %d files of %s/%s@%s:%s", len(files), location.owner, location.repo, location.ref, location.path
        )
        found = await asyncio.gather(*(self._scan_file(location, path) for path in files))
        return set().union(*found) if found else set()

    async def _list_files(self, location: GitHubLocation) -> list[str]:
        tree = await self._bounded(lambda: self.github.get_tree(location.owner, location.repo, location.ref))
        if not tree.get("truncated"):
            prefix = location.path
            return sorted(
                item["path"]
                for item in tree.get("tree", [])
                if item.get("type") == "blob"
                and (not prefix or item["path"] == prefix or item["path"].startswith(prefix + "/"))
            )
        logger.info("Tree of %s/%s is truncated, walking folders instead", location.owner, location.repo)
        return await self._walk(location)

    async def _walk(self, location: GitHubLocation) -> list[str]:
        files: set[str] = set()
        visited: set[str] = set()
        pending = [location.path]
        while pending:
            level = [p for p in pending if p not in visited]
            visited.update(level)
            listings: list[list[dict[str, Any]]] = await asyncio.gather(
                *(
                    self._bounded(
                        lambda p=p: self.github.get_contents(location.owner, location.repo, p, location.ref)
                    )
                    for p in level
                )
            )
            pending = []
            for listing in listings:
                for item in listing:
                    if item.get("type") == "file":
                        files.add(item["path"])
                    elif item.get("type") == "dir":
                        pending.append(item["path"])
        return sorted(files)

    async def _scan_file(self, location: GitHubLocation, path: str) -> set[str]:
        values = set(find_template_values(path))
        try:
            content = await self._bounded(
                lambda: self.github.get_file_text(location.owner, location.repo, path, location.ref)
            )
        except (ClientError, httpx.HTTPError) as exc:
            logger.error("Failed to fetch %s from %s/%s: %s", path, location.owner, location.repo, exc)
            return values
        values.update(find_template_values(content))
        return values
