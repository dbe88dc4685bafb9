"""Outbound HTTP clients sharing a single AsyncClient.

Usage:
    from swf_backend.clients import create_clients, close_clients

    clients = create_clients(settings)
    try:
        ...
    finally:
        await close_clients(clients)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

from .base import BaseClient, ClientError, EngineUnavailableError
from .engine import EngineClient
from .github import GitHubClient
from .scaffolder import ScaffolderClient

if TYPE_CHECKING:
    from ..config import Settings

__all__ = [
    "BaseClient",
    "ClientError",
    "Clients",
    "EngineClient",
    "EngineUnavailableError",
    "GitHubClient",
    "ScaffolderClient",
    "close_clients",
    "create_clients",
]


@dataclass
class Clients:
    http: httpx.AsyncClient
    engine: EngineClient
    scaffolder: ScaffolderClient
    github: GitHubClient


def create_clients(settings: Settings, http_client: httpx.AsyncClient | None = None) -> Clients:
    """Build every client from Settings around one shared AsyncClient."""
    http = http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)
    return Clients(
        http=http,
        engine=EngineClient(
            http,
            settings.engine_url,
            backoff_seconds=settings.retry_backoff_seconds,
            max_errors=settings.retry_max_errors,
        ),
        scaffolder=ScaffolderClient(http, settings.scaffolder_base_url),
        github=GitHubClient(http, settings.github_token, settings.github_api_url),
    )


async def close_clients(clients: Clients) -> None:
    await clients.http.aclose()
