"""Base class and errors shared by the outbound HTTP clients."""

from __future__ import annotations

import httpx


class ClientError(Exception):
    """Raised when a remote service answers with a non-success status."""

    def __init__(self, message: str, error_type: str = "client_error", status_code: int | None = None):
        self.error_type = error_type
        self.status_code = status_code
        super().__init__(message)


class EngineUnavailableError(ClientError):
    """Raised when the workflow engine cannot be reached after all retries."""

    def __init__(self, message: str = "Unable to execute query."):
        super().__init__(message, "engine_unavailable")


class BaseClient:
    """Thin wrapper around a shared ``httpx.AsyncClient``.

    Clients never own the underlying AsyncClient; whoever builds the client
    map is responsible for closing it (see ``clients.close_clients``).
    """

    service_name: str = ""

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self.http = http_client

    def _check_error(self, resp: httpx.Response) -> None:
        if 200 <= resp.status_code < 300:
            return
        name = self.service_name or "remote service"
        if resp.status_code == 401:
            raise ClientError(f"{name} authentication failed", "auth_error", resp.status_code)
        if resp.status_code == 403:
            raise ClientError(f"{name} permission denied", "permission_denied", resp.status_code)
        if resp.status_code == 404:
            raise ClientError(f"{name} resource not found: {resp.request.url}", "not_found", resp.status_code)
        body = resp.text[:300]
        raise ClientError(f"{name} API error {resp.status_code}: {body}", "client_error", resp.status_code)
