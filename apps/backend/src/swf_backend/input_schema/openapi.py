"""Lookups into an OpenAPI v3 document describing the available actions."""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)

_SCHEMA_REF_PREFIX = "#/components/schemas/"


def operation_id_of(operation: str) -> str | None:
    """Return the right-hand side of ``<resource>#<operationId>``, if any."""
    _, sep, operation_id = operation.partition("#")
    if not sep or not operation_id:
        return None
    return operation_id


def find_operation(open_api: dict[str, Any], operation_id: str) -> dict[str, Any] | None:
    """Scan every path/method for ``operation_id``; the last match wins."""
    found = None
    for methods in (open_api.get("paths") or {}).values():
        if not isinstance(methods, dict):
            continue
        for operation in methods.values():
            if isinstance(operation, dict) and operation.get("operationId") == operation_id:
                found = operation
    return found


def resolve_schema_ref(open_api: dict[str, Any], ref: str) -> dict[str, Any] | None:
    if not ref.startswith(_SCHEMA_REF_PREFIX):
        return None
    key = ref[len(_SCHEMA_REF_PREFIX):]
    schemas = (open_api.get("components") or {}).get("schemas") or {}
    schema = schemas.get(key)
    return schema if isinstance(schema, dict) else None


def resolve_request_schema(
    open_api: dict[str, Any], operation: dict[str, Any], operation_id: str
) -> dict[str, Any] | None:
    """Follow requestBody -> content -> schema.$ref -> components.schemas.

    Every missing link is logged and yields None.
    """
    request_body = operation.get("requestBody")
    if not request_body:
        logger.info("The operation associated with %s has no requestBody. Skipping...", operation_id)
        return None

    content = request_body.get("content")
    if not content:
        logger.info("The request body associated with %s has no content. Skipping...", operation_id)
        return None

    # Any content type will do; take the last one listed
    body_content = list(content.values())[-1]
    schema = (body_content or {}).get("schema")
    if not schema:
        logger.info("The body content associated with %s has no schema. Skipping...", operation_id)
        return None

    ref = schema.get("$ref")
    if not ref:
        logger.info("The schema associated with %s has no $ref. Skipping...", operation_id)
        return None

    referenced = resolve_schema_ref(open_api, ref)
    if referenced is None:
        logger.info("The ref %s could not be found for %s. Skipping...", ref, operation_id)
    return referenced


def _inline(open_api: dict[str, Any], schema: dict[str, Any]) -> dict[str, Any]:
    ref = schema.get("$ref")
    if ref:
        return resolve_schema_ref(open_api, ref) or {}
    return schema


def select_schema_properties(
    open_api: dict[str, Any], schema: dict[str, Any], argument_names: set[str]
) -> tuple[dict[str, Any], set[str]] | None:
    """Return ``(properties, required)`` usable for the given arguments.

    With a ``oneOf``, the branch sharing the most property names with
    ``argument_names`` is merged onto the top-level properties. None means no
    branch matched at all.
    """
    properties = dict(schema.get("properties") or {})
    required = set(schema.get("required") or [])

    branches = schema.get("oneOf")
    if not branches:
        return properties, required

    best: dict[str, Any] | None = None
    best_overlap = 0
    for branch in branches:
        branch = _inline(open_api, branch)
        overlap = len(argument_names & set(branch.get("properties") or {}))
        if overlap > best_overlap:
            best, best_overlap = branch, overlap

    if best is None:
        return None

    properties.update(best.get("properties") or {})
    required.update(best.get("required") or [])
    return properties, required
