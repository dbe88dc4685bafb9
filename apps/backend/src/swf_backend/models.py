"""API models for the orchestrator backend."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str = "SWF Orchestrator Backend"


class SwfItem(BaseModel):
    """A workflow definition together with the source URI the engine loaded it from."""

    uri: str = Field(..., description="Source location of the definition")
    definition: dict[str, Any] = Field(..., description="Workflow definition document")


class SwfListResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: list[SwfItem]
    limit: int = 0
    offset: int = 0
    total_count: int = Field(0, alias="totalCount")


class ProcessInstance(BaseModel):
    """Subset of the engine's GraphQL ``ProcessInstance`` the UI consumes."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    process_id: str = Field(alias="processId")
    process_name: Optional[str] = Field(None, alias="processName")
    state: str
    start: Optional[str] = None
    last_update: Optional[str] = Field(None, alias="lastUpdate")
    end: Optional[str] = None
    nodes: list[dict[str, Any]] = []
    variables: Optional[Any] = None
    parent_process_instance: Optional[dict[str, Any]] = Field(None, alias="parentProcessInstance")
    error: Optional[dict[str, Any]] = None


class JsonSchemaFile(BaseModel):
    """A JSON Schema document together with the file name it is stored under."""

    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(alias="fileName")
    json_schema: dict[str, Any] = Field(alias="jsonSchema")


class ComposedJsonSchema(BaseModel):
    """The derived data input schema: one composition plus one schema per call site."""

    model_config = ConfigDict(populate_by_name=True)

    composition_schema: JsonSchemaFile = Field(alias="compositionSchema")
    action_schemas: list[JsonSchemaFile] = Field([], alias="actionSchemas")
