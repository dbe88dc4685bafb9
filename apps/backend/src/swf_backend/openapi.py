"""Generates the OpenAPI document describing scaffolder actions to the workflow engine."""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any

import httpx

from .clients.base import ClientError
from .clients.scaffolder import ScaffolderClient

logger = logging.getLogger(__name__)

OPEN_API_TEMPLATE_PATH = Path(__file__).resolve().parent / "openapi-template.json"


def schema_name_for(action_id: str) -> str:
    return action_id.replace(":", "_")


def _clean_schema(node: Any) -> None:
    """Rewrite constructs the engine's OpenAPI parser rejects, in place."""
    if not isinstance(node, dict):
        return
    for key in list(node.keys()):
        value = node[key]
        if key == "const" and value == "*":
            del node[key]
        elif key == "type" and value == "array" and "items" not in node:
            # an array without items is invalid; fall back to string
            node[key] = "string"
        else:
            _clean_schema(value)


class OpenApiService:
    def __init__(self, scaffolder: ScaffolderClient, template_path: Path = OPEN_API_TEMPLATE_PATH) -> None:
        self.scaffolder = scaffolder
        self.template_path = template_path

    def _template(self) -> dict[str, Any]:
        return json.loads(self.template_path.read_text())

    async def generate_open_api(self) -> dict[str, Any] | None:
        """Return the actions OpenAPI document, or None when the scaffolder is unreachable."""
        try:
            actions = await self.scaffolder.get_actions()
        except (ClientError, httpx.HTTPError) as exc:
            logger.error("Failed to fetch scaffolder actions: %s", exc, exc_info=True)
            return None

        template = self._template()
        template["paths"] = self.map_paths(actions)
        template.setdefault("components", {})["schemas"] = self.map_schemas(actions)
        return template

    @staticmethod
    def map_paths(actions: list[dict[str, Any]]) -> dict[str, Any]:
        paths: dict[str, Any] = {}
        for action in actions:
            action_id = action["id"]
            paths[f"/actions/{action_id}"] = {
                "post": {
                    "operationId": action_id,
                    "description": action.get("description"),
                    "requestBody": {
                        "description": f"Input parameters for the action {action_id} in BS",
                        "required": True,
                        "content": {
                            "application/json": {
                                "schema": {"$ref": f"#/components/schemas/{schema_name_for(action_id)}"}
                            }
                        },
                    },
                    "responses": {
                        "default": {
                            "description": f"Action {action_id} response",
                            "content": {"application/json": {"schema": {"type": "object"}}},
                        }
                    },
                }
            }
        return paths

    @staticmethod
    def map_schemas(actions: list[dict[str, Any]]) -> dict[str, Any]:
        schemas: dict[str, Any] = {}
        for action in actions:
            action_input = copy.deepcopy((action.get("schema") or {}).get("input") or {})
            action_input.pop("$schema", None)
            _clean_schema(action_input)

            for prop in (action_input.get("properties") or {}).values():
                # type: [string, boolean] is invalid; keep the last one
                if isinstance(prop, dict) and isinstance(prop.get("type"), list) and prop["type"]:
                    prop["type"] = prop["type"][-1]

            schemas[schema_name_for(action["id"])] = action_input
        return schemas
