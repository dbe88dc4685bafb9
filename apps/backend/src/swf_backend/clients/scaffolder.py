"""Scaffolder actions API client, used by the engine to call back into the portal."""

from __future__ import annotations

from typing import Any

import httpx

from .base import BaseClient

PROCESS_INSTANCE_HEADER = "kogitoprocinstanceid"


class ScaffolderClient(BaseClient):
    service_name = "scaffolder"

    def __init__(self, http_client: httpx.AsyncClient, base_url: str) -> None:
        super().__init__(http_client)
        self._base = base_url.rstrip("/")

    async def list_actions(self) -> httpx.Response:
        return await self.http.get(f"{self._base}/v2/actions")

    async def get_actions(self) -> list[dict[str, Any]]:
        """Return the installed actions, raising ``ClientError`` on failure."""
        resp = await self.list_actions()
        self._check_error(resp)
        return resp.json()

    async def execute_action(
        self,
        action_id: str,
        body: Any,
        process_instance_id: str | None = None,
    ) -> httpx.Response:
        headers = {"content-type": "application/json"}
        if process_instance_id:
            headers[PROCESS_INSTANCE_HEADER] = process_instance_id
        return await self.http.post(
            f"{self._base}/v2/actions/{action_id}",
            json=body,
            headers=headers,
        )
