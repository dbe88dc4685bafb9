"""Client for the external serverless workflow engine (management, GraphQL, start)."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable

import httpx
import yaml

from .base import BaseClient, EngineUnavailableError

logger = logging.getLogger(__name__)

_INSTANCES_QUERY = (
    "{ ProcessInstances (where: {processId: {isNull: false} } ) "
    "{ id, processName, processId, state, start, lastUpdate, end, nodes { id }, "
    "variables, parentProcessInstance {id, processName, businessKey} } }"
)

_INSTANCE_QUERY = (
    "query ($id: String) { ProcessInstances (where: { id: {equal: $id } } ) "
    "{ id, processName, processId, state, start, lastUpdate, end, "
    "nodes { id, nodeId, definitionId, type, name, enter, exit }, variables, "
    "parentProcessInstance {id, processName, businessKey}, "
    "error { nodeDefinitionId, message} } }"
)


class EngineClient(BaseClient):
    """Talks to the workflow engine over REST and GraphQL.

    Read calls go through ``execute_with_retry`` because the engine may still be
    booting when the backend starts; starting a workflow is never retried.
    """

    service_name = "workflow engine"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        backoff_seconds: float = 5.0,
        max_errors: int = 15,
    ) -> None:
        super().__init__(http_client)
        self._base = base_url.rstrip("/")
        self._backoff = backoff_seconds
        self._max_errors = max_errors

    @property
    def base_url(self) -> str:
        return self._base

    async def execute_with_retry(
        self, request: Callable[[], Awaitable[httpx.Response]]
    ) -> httpx.Response:
        """Run ``request`` until it answers below 400, sleeping a fixed backoff between tries."""
        errors = 0
        while errors < self._max_errors:
            try:
                resp = await request()
            except httpx.HTTPError as exc:
                errors += 1
                logger.warning("Engine request failed (%d/%d): %s", errors, self._max_errors, exc)
                await asyncio.sleep(self._backoff)
                continue
            if resp.status_code < 400:
                return resp
            errors += 1
            logger.warning(
                "Engine answered %d for %s (%d/%d)",
                resp.status_code,
                resp.request.url,
                errors,
                self._max_errors,
            )
            await asyncio.sleep(self._backoff)
        raise EngineUnavailableError()

    async def health(self) -> None:
        await self.execute_with_retry(lambda: self.http.get(f"{self._base}/q/health"))

    async def list_process_ids(self) -> list[str]:
        resp = await self.execute_with_retry(
            lambda: self.http.get(f"{self._base}/management/processes")
        )
        return resp.json() or []

    async def get_process(self, swf_id: str) -> dict[str, Any]:
        resp = await self.http.get(f"{self._base}/management/processes/{swf_id}")
        self._check_error(resp)
        return resp.json()

    async def get_source(self, swf_id: str) -> str:
        resp = await self.execute_with_retry(
            lambda: self.http.get(f"{self._base}/management/processes/{swf_id}/source")
        )
        return resp.text

    async def get_source_uri(self, swf_id: str) -> str:
        resp = await self.execute_with_retry(
            lambda: self.http.get(f"{self._base}/management/processes/{swf_id}/sources")
        )
        # One source per process definition
        return resp.json()[0]["uri"]

    async def execute(self, swf_id: str, data: Any) -> httpx.Response:
        """Start a workflow instance; the raw response is returned for status passthrough."""
        return await self.http.post(f"{self._base}/{swf_id}", json=data)

    async def list_instances(self) -> list[dict[str, Any]]:
        return await self._graphql(_INSTANCES_QUERY)

    async def get_instance(self, instance_id: str) -> dict[str, Any] | None:
        instances = await self._graphql(_INSTANCE_QUERY, {"id": instance_id})
        return instances[0] if instances else None

    async def get_open_api(self) -> dict[str, Any]:
        """Fetch the engine's own OpenAPI document, served as YAML by default."""
        resp = await self.execute_with_retry(lambda: self.http.get(f"{self._base}/q/openapi"))
        try:
            document = resp.json()
        except json.JSONDecodeError:
            try:
                document = yaml.safe_load(resp.text) or {}
            except yaml.YAMLError as exc:
                raise ValueError(f"Engine OpenAPI document is neither JSON nor YAML: {exc}") from exc
        if not isinstance(document, dict):
            raise ValueError("Engine OpenAPI document is not an object")
        return document

    async def _graphql(self, query: str, variables: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables
        resp = await self.execute_with_retry(lambda: self.http.post(f"{self._base}/graphql", json=payload))
        return resp.json()["data"]["ProcessInstances"]
