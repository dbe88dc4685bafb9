"""Persistence of workflow definitions alongside their derived data input schemas."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..clients.base import ClientError
from ..input_schema import DataInputSchemaService
from ..models import ComposedJsonSchema, SwfItem
from ..openapi import OpenApiService
from .schema import Workflow, from_workflow_source
from .store import WorkflowNotFoundError, WorkflowStore

logger = logging.getLogger(__name__)


class WorkflowService:
    """Saves definitions into the engine's resources folder.

    When an actions OpenAPI document has been stored, every saved definition
    gets its data input schema derived and written next to it, and the
    definition's ``dataInputSchema`` points at the composition file.
    """

    def __init__(
        self,
        store: WorkflowStore,
        open_api_service: OpenApiService,
        data_input_schema_service: DataInputSchemaService,
        http_client: httpx.AsyncClient,
    ) -> None:
        self.store = store
        self.open_api_service = open_api_service
        self.data_input_schema_service = data_input_schema_service
        self.http = http_client

    async def save_workflow_definition(self, workflow: Workflow) -> SwfItem:
        open_api = self.store.load_open_api()
        if open_api is None:
            logger.info("No actions OpenAPI stored; %s saved without data input schema", workflow.id)
        else:
            schemas = await self.data_input_schema_service.generate(workflow, open_api)
            self.store.delete_schemas(workflow.id)
            if schemas is not None:
                workflow.data_input_schema = self.store.save_schemas(schemas)

        filepath = self.store.save(workflow)
        logger.info("Saved workflow %s to %s", workflow.id, filepath)
        return SwfItem(uri=filepath.name, definition=workflow.to_dict())

    async def fetch_workflow_definition_from_url(self, url: str) -> Workflow:
        resp = await self.http.get(url)
        if resp.status_code >= 400:
            raise ClientError(f"Failed to fetch workflow from {url} ({resp.status_code})", status_code=resp.status_code)
        return from_workflow_source(resp.text)

    async def save_workflow_definition_from_url(self, url: str) -> SwfItem:
        workflow = await self.fetch_workflow_definition_from_url(url)
        return await self.save_workflow_definition(workflow)

    def delete_workflow_definition_by_id(self, uri: str) -> None:
        if not self.store.delete_by_uri(uri):
            raise WorkflowNotFoundError(f"No stored workflow definition at '{uri}'")
        logger.info("Deleted workflow definition %s", uri)

    async def save_open_api(self) -> dict[str, Any] | None:
        open_api = await self.open_api_service.generate_open_api()
        if open_api is not None:
            self.store.save_open_api(open_api)
        return open_api

    def get_data_input_schema(self, workflow_id: str) -> ComposedJsonSchema:
        return self.store.load_schemas(workflow_id)
