"""Derivation of the data input schema a workflow needs before it can start."""

from __future__ import annotations

import asyncio
import copy
import logging
import re
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..clients.base import ClientError
from ..models import ComposedJsonSchema, JsonSchemaFile
from ..workflow.schema import Workflow
from .arguments import classify_argument, referenced_field, requires_user_input
from .descriptors import DESCRIPTOR_SEPARATOR, ActionSite, collect_action_sites, sites_for_function
from .openapi import find_operation, operation_id_of, resolve_request_schema, select_schema_properties
from .templates import TemplateScanner, naming_variants, parse_github_url

logger = logging.getLogger(__name__)

JSON_SCHEMA_VERSION = "http://json-schema.org/draft-04/schema#"
FETCH_TEMPLATE_ACTION_OPERATION_ID = "fetch:template"


def sanitize(text: str, placeholder: str = "_") -> str:
    return re.sub(r"[^a-zA-Z0-9]", placeholder, text).lower()


def main_schema_file_name(workflow_id: str) -> str:
    return f"{workflow_id}__main_schema.json"


def sub_schema_file_name(workflow_id: str, descriptor: str) -> str:
    return f"{workflow_id}__sub_schema__{sanitize(descriptor)}.json"


def _unique_file_name(file_name: str, taken: set[str]) -> str:
    """Suffix ``file_name`` with a counter until it is not in ``taken``, then claim it."""
    stem = file_name[: -len(".json")]
    candidate, n = file_name, 1
    while candidate in taken:
        n += 1
        candidate = f"{stem}__{n}.json"
    taken.add(candidate)
    return candidate


def build_skeleton(title: str, file_name: str) -> JsonSchemaFile:
    return JsonSchemaFile(
        file_name=file_name,
        json_schema={
            "$schema": JSON_SCHEMA_VERSION,
            "title": title,
            "type": "object",
            "properties": {},
        },
    )


@dataclass
class _CallSitePlan:
    site: ActionSite
    operation_id: str
    schema: dict[str, Any]


@dataclass
class _PropertyClaims:
    """Property names already handed out, with the input field each one reads."""

    origins: dict[str, str] = field(default_factory=dict)

    def claim(self, key: str, origin: str, descriptor: str) -> str | None:
        """Return the name ``key`` should be published under, or None if already covered."""
        previous = self.origins.get(key)
        if previous is None:
            self.origins[key] = origin
            return key
        if previous == origin:
            return None
        renamed = f"{descriptor}{DESCRIPTOR_SEPARATOR}{key}"
        self.origins[renamed] = origin
        return renamed


class DataInputSchemaService:
    """Builds ``{compositionSchema, actionSchemas}`` from a workflow and an OpenAPI document.

    Nothing here raises to the caller: missing links in the OpenAPI document and
    GitHub failures only shrink the result. ``None`` means the workflow asks for
    no input at all.
    """

    def __init__(self, template_scanner: TemplateScanner | None = None) -> None:
        self.template_scanner = template_scanner

    async def generate(self, workflow: Workflow, open_api: dict[str, Any]) -> ComposedJsonSchema | None:
        if isinstance(workflow.functions, str):
            logger.info("Functions cannot be string. Skipping generation...")
            return None
        if not workflow.functions:
            logger.info("The workflow has no functions. Skipping generation...")
            return None

        plans = self._plan(workflow, open_api)
        template_values = await self._resolve_template_values(plans)

        claims = _PropertyClaims()
        # sanitizing folds case and punctuation, so distinct descriptors can collide
        file_names: set[str] = set()
        action_schemas: list[JsonSchemaFile] = []
        for plan in plans:
            properties, required = self._site_properties(plan, open_api, claims)
            if plan.operation_id == FETCH_TEMPLATE_ACTION_OPERATION_ID:
                properties.update(
                    self._template_properties(plan, template_values.get(plan.site.descriptor, set()), claims)
                )
            if not properties:
                logger.info("No user input found for %s. Skipping...", plan.site.descriptor)
                continue

            action_schema = build_skeleton(
                plan.site.descriptor,
                _unique_file_name(sub_schema_file_name(workflow.id, plan.site.descriptor), file_names),
            )
            action_schema.json_schema["properties"] = properties
            if required:
                action_schema.json_schema["required"] = required
            if plan.schema.get("description"):
                action_schema.json_schema["description"] = plan.schema["description"]
            action_schemas.append(action_schema)

        if not action_schemas:
            logger.info("No action of %s needs user input", workflow.id)
            return None

        title = f"Data Input Schema for {workflow.name}" if workflow.name else "Data Input Schema"
        composition = build_skeleton(title, main_schema_file_name(workflow.id))
        for action_schema in action_schemas:
            reference = {"$ref": action_schema.file_name, "type": action_schema.json_schema["type"]}
            if action_schema.json_schema.get("description"):
                reference["description"] = action_schema.json_schema["description"]
            composition.json_schema["properties"][action_schema.json_schema["title"]] = reference

        return ComposedJsonSchema(composition_schema=composition, action_schemas=action_schemas)

    def _plan(self, workflow: Workflow, open_api: dict[str, Any]) -> list[_CallSitePlan]:
        """Resolve every function to its request schema and call sites, in declaration order."""
        sites = collect_action_sites(workflow)
        plans: list[_CallSitePlan] = []
        for fn in workflow.functions or []:
            operation_id = operation_id_of(fn.operation)
            if not operation_id:
                logger.info("No operation id found for function %s. Skipping...", fn.name)
                continue

            operation = find_operation(open_api, operation_id)
            if operation is None:
                logger.info("No OpenAPI operation matches %s. Skipping...", operation_id)
                continue

            schema = resolve_request_schema(open_api, operation, operation_id)
            if schema is None:
                continue

            fn_sites = sites_for_function(sites, fn.name)
            if not fn_sites:
                logger.info("Function %s is never invoked. Skipping...", fn.name)
                continue
            plans.extend(_CallSitePlan(site, operation_id, schema) for site in fn_sites)
        return plans

    def _site_properties(
        self, plan: _CallSitePlan, open_api: dict[str, Any], claims: _PropertyClaims
    ) -> tuple[dict[str, Any], list[str]]:
        arguments = plan.site.function_ref.arguments
        user_fields = {
            key: referenced_field(value) for key, value in arguments.items() if requires_user_input(value)
        }
        if not user_fields:
            return {}, []

        selected = select_schema_properties(open_api, plan.schema, set(arguments))
        if selected is None:
            logger.info("No oneOf branch of %s matches %s. Skipping...", plan.operation_id, plan.site.descriptor)
            return {}, []
        schema_properties, schema_required = selected

        properties: dict[str, Any] = {}
        required: list[str] = []
        for key, origin in user_fields.items():
            if key not in schema_properties:
                continue
            name = claims.claim(key, origin or key, plan.site.descriptor)
            if name is None:
                continue
            properties[name] = copy.deepcopy(schema_properties[key])
            if key in schema_required:
                required.append(name)
        return properties, required

    def _template_properties(
        self, plan: _CallSitePlan, discovered: set[str], claims: _PropertyClaims
    ) -> dict[str, Any]:
        supplied = plan.site.function_ref.arguments.get("values")
        supplied = supplied if isinstance(supplied, dict) else {}

        properties: dict[str, Any] = {}
        for value_name in sorted(discovered):
            if value_name in supplied and not requires_user_input(supplied[value_name]):
                # Filled in by the workflow itself
                continue
            for variant in naming_variants(value_name):
                name = claims.claim(variant, f"values.{value_name}", plan.site.descriptor)
                if name is None:
                    continue
                properties[name] = {"title": variant, "description": variant, "type": "string"}
        return properties

    async def _resolve_template_values(self, plans: list[_CallSitePlan]) -> dict[str, set[str]]:
        """Scan the skeleton of every ``fetch:template`` call site concurrently."""
        targets = []
        for plan in plans:
            if plan.operation_id != FETCH_TEMPLATE_ACTION_OPERATION_ID:
                continue
            url = plan.site.function_ref.arguments.get("url")
            if not isinstance(url, str):
                logger.info("No template url for %s. Skipping...", plan.site.descriptor)
                continue
            location = parse_github_url(url)
            if location is None:
                logger.info(
                    "Template url %s of %s is not a GitHub folder (%s). Skipping...",
                    url,
                    plan.site.descriptor,
                    classify_argument(url).value,
                )
                continue
            targets.append((plan.site.descriptor, location))

        if not targets:
            return {}
        if self.template_scanner is None:
            logger.info("No template scanner configured, template values will not be discovered")
            return {}

        async def scan(descriptor, location) -> tuple[str, set[str]]:
            try:
                return descriptor, await self.template_scanner.scan(location)
            except (ClientError, httpx.HTTPError, KeyError, ValueError) as exc:
                logger.error("Failed to resolve template for %s: %s", descriptor, exc, exc_info=True)
                return descriptor, set()

        results = await asyncio.gather(*(scan(d, loc) for d, loc in targets))
        return dict(results)
