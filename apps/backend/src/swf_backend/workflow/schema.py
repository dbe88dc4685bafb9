"""Pydantic models for the Serverless Workflow definitions run by the engine."""

from __future__ import annotations

import json
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator


def check_workflow_id(workflow_id: str) -> None:
    """Workflow ids name files on disk; reject anything that is not a plain file name."""
    if not workflow_id or workflow_id in (".", "..") or any(sep in workflow_id for sep in ("/", "\\", "\0")):
        raise ValueError(f"Invalid workflow id: {workflow_id!r}")


class _SwfModel(BaseModel):
    # Definitions carry many keys we never interpret (transitions, timeouts,
    # metadata); keep them so a saved definition round-trips untouched.
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class WorkflowFunction(_SwfModel):
    """A named pointer to an external operation, e.g. ``specs/actions.json#catalog:fetch``."""

    name: str
    operation: str = ""
    type: Optional[str] = None


class FunctionRef(_SwfModel):
    ref_name: str = Field(alias="refName")
    arguments: dict[str, Any] = {}


class WorkflowAction(_SwfModel):
    name: Optional[str] = None
    function_ref: Optional[FunctionRef] = Field(None, alias="functionRef")

    @field_validator("function_ref", mode="before")
    @classmethod
    def _bare_function_ref(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"refName": value}
        return value


class WorkflowBranch(_SwfModel):
    name: Optional[str] = None
    actions: list[WorkflowAction] = []


class OnEvent(_SwfModel):
    event_refs: list[str] = Field([], alias="eventRefs")
    actions: list[WorkflowAction] = []


class WorkflowState(_SwfModel):
    """Any state kind; which of the action containers is populated depends on ``type``."""

    name: str
    type: str
    actions: list[WorkflowAction] = []  # operation, foreach
    branches: list[WorkflowBranch] = []  # parallel
    on_events: list[OnEvent] = Field([], alias="onEvents")  # event
    action: Optional[WorkflowAction] = None  # callback


class Workflow(_SwfModel):
    """A complete workflow definition (``*.sw.json`` / ``*.sw.yaml``)."""

    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    version: Optional[str] = None
    spec_version: Optional[str] = Field(None, alias="specVersion")
    start: Optional[Union[str, dict[str, Any]]] = None
    data_input_schema: Optional[Union[str, dict[str, Any]]] = Field(None, alias="dataInputSchema")
    # A bare string is a URI to an external functions file
    functions: Optional[Union[list[WorkflowFunction], str]] = None
    states: list[WorkflowState] = []

    @field_validator("id")
    @classmethod
    def _id_is_file_name(cls, value: str) -> str:
        check_workflow_id(value)
        return value

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def from_workflow_source(source: str) -> Workflow:
    """Parse a workflow definition written as JSON or YAML."""
    try:
        data = json.loads(source)
    except json.JSONDecodeError:
        data = yaml.safe_load(source)
    if not isinstance(data, dict):
        raise ValueError("Workflow source must be a JSON or YAML object")
    return Workflow.model_validate(data)
