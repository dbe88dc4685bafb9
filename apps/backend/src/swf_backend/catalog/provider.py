"""Publishes the engine's workflow definitions as scaffolder Template entities."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Protocol

import httpx
from pydantic import BaseModel

from ..clients.base import ClientError
from ..clients.engine import EngineClient

logger = logging.getLogger(__name__)

TEMPLATE_API_VERSION = "scaffolder.backstage.io/v1beta3"
TEMPLATE_TYPE = "serverless-workflow"


class EntityMutation(BaseModel):
    """A catalog mutation; ``full`` replaces everything this provider published before."""

    type: str = "full"
    entities: list[dict[str, Any]] = []


class EntityProviderConnection(Protocol):
    async def apply_mutation(self, mutation: EntityMutation) -> None: ...


class MemoryEntityConnection:
    """Keeps the last applied mutation in memory."""

    def __init__(self) -> None:
        self.mutation: Optional[EntityMutation] = None

    async def apply_mutation(self, mutation: EntityMutation) -> None:
        self.mutation = mutation

    @property
    def entities(self) -> list[dict[str, Any]]:
        if self.mutation is None:
            return []
        return [item["entity"] for item in self.mutation.entities]


class ServerlessWorkflowEntityProvider:
    def __init__(
        self,
        engine: EngineClient,
        connection: EntityProviderConnection,
        env: str = "development",
        owner: str = "swf@example.com",
    ) -> None:
        self.engine = engine
        self.connection = connection
        self.env = env
        self.owner = owner

    async def refresh(self) -> int:
        """Rebuild all template entities from the engine. Returns how many were published."""
        logger.info("Retrieving Serverless Workflow definitions")
        ids = await self.engine.list_process_ids()
        definitions = await asyncio.gather(*(self.engine.get_process(swf_id) for swf_id in ids))
        open_api = await self.engine.get_open_api()

        entities = [self.to_entity(definition, open_api) for definition in definitions]
        await self.connection.apply_mutation(
            EntityMutation(
                type="full",
                entities=[
                    {"entity": entity, "locationKey": f"swf-provider:{self.env}"} for entity in entities
                ],
            )
        )
        return len(entities)

    async def run(self, interval_seconds: float) -> None:
        """Refresh forever; a failed round is logged and retried on the next tick."""
        while True:
            try:
                count = await self.refresh()
                logger.info("Published %d workflow templates", count)
            except (ClientError, httpx.HTTPError) as exc:
                logger.error("Workflow catalog refresh failed: %s", exc)
            except (ValueError, KeyError) as exc:
                # malformed engine reply; the next round may be fine
                logger.error("Workflow catalog refresh got an unexpected engine response: %r", exc, exc_info=True)
            await asyncio.sleep(interval_seconds)

    def template_parameters(self, swf_id: str, open_api: dict[str, Any]) -> dict[str, Any] | None:
        paths = open_api.get("paths")
        if paths is None:
            logger.error("Unable to locate OpenAPI paths definition. Zero parameters will be available.")
            return None
        schema = (
            (((paths.get(f"/{swf_id}") or {}).get("post") or {}).get("requestBody") or {})
            .get("content", {})
            .get("application/json", {})
            .get("schema")
        )
        if schema is None:
            logger.error("Unable to locate OpenAPI schema for '%s'. Zero parameters will be available.", swf_id)
            return None
        return {
            "title": "Fill in some input parameters",
            "required": schema.get("required"),
            "properties": schema.get("properties"),
        }

    def to_entity(self, definition: dict[str, Any], open_api: dict[str, Any]) -> dict[str, Any]:
        swf_id = definition["id"]
        location = f"url:{self.engine.base_url}"
        spec: dict[str, Any] = {
            "owner": self.owner,
            "type": TEMPLATE_TYPE,
            "steps": [],
        }
        parameters = self.template_parameters(swf_id, open_api)
        if parameters is not None:
            spec["parameters"] = parameters
        return {
            "apiVersion": TEMPLATE_API_VERSION,
            "kind": "Template",
            "metadata": {
                "name": swf_id,
                "title": definition.get("name"),
                "description": definition.get("description"),
                "tags": ["experimental", "swf"],
                "annotations": {
                    "backstage.io/managed-by-location": location,
                    "backstage.io/managed-by-origin-location": location,
                },
            },
            "spec": spec,
        }
