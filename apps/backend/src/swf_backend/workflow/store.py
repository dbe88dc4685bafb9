"""File based storage of workflow definitions, action specs and derived schemas.

Layout under ``base_dir`` (the engine's resources folder)::

    <id>.sw.json
    specs/actions-openapi.json
    schemas/<id>__main_schema.json
    schemas/<id>__sub_schema__<descriptor>.json
"""

import glob
import json
from pathlib import Path
from typing import Any

from ..input_schema.service import main_schema_file_name
from ..models import ComposedJsonSchema, JsonSchemaFile
from .schema import Workflow, check_workflow_id

SCHEMAS_FOLDER = "schemas"
SPECS_FOLDER = "specs"
ACTIONS_OPEN_API_FILE = "actions-openapi.json"
WORKFLOW_SUFFIX = ".sw.json"


class WorkflowNotFoundError(LookupError):
    """Raised when a stored workflow or its schema does not exist."""


class WorkflowStore:
    """Stores workflow definitions and their companion files as JSON."""

    def __init__(self, base_dir: Path):
        self.base_dir = base_dir
        self.schemas_dir = base_dir / SCHEMAS_FOLDER
        self.specs_dir = base_dir / SPECS_FOLDER

    def definition_path(self, workflow_id: str) -> Path:
        check_workflow_id(workflow_id)
        return self.base_dir / f"{workflow_id}{WORKFLOW_SUFFIX}"

    def save(self, workflow: Workflow) -> Path:
        """Save a workflow definition and return the file it was written to."""
        self.base_dir.mkdir(parents=True, exist_ok=True)
        filepath = self.definition_path(workflow.id)
        filepath.write_text(json.dumps(workflow.to_dict(), indent=2))
        return filepath

    def load(self, workflow_id: str) -> Workflow | None:
        filepath = self.definition_path(workflow_id)
        if not filepath.exists():
            return None
        return Workflow.model_validate(json.loads(filepath.read_text()))

    def delete_by_uri(self, uri: str) -> bool:
        """Delete the definition an engine source URI points at, plus its schemas.

        Only the file name of ``uri`` is used, so nothing outside ``base_dir``
        can be removed.
        """
        name = Path(uri).name
        if not name.endswith(WORKFLOW_SUFFIX) or name == WORKFLOW_SUFFIX:
            return False
        filepath = self.base_dir / name
        if not filepath.exists():
            return False
        filepath.unlink()
        self.delete_schemas(name[: -len(WORKFLOW_SUFFIX)])
        return True

    # ------------------------------------------------------------------
    # Actions OpenAPI
    # ------------------------------------------------------------------

    def save_open_api(self, open_api: dict[str, Any]) -> Path:
        self.specs_dir.mkdir(parents=True, exist_ok=True)
        filepath = self.specs_dir / ACTIONS_OPEN_API_FILE
        filepath.write_text(json.dumps(open_api, indent=2))
        return filepath

    def load_open_api(self) -> dict[str, Any] | None:
        filepath = self.specs_dir / ACTIONS_OPEN_API_FILE
        if not filepath.exists():
            return None
        return json.loads(filepath.read_text())

    # ------------------------------------------------------------------
    # Derived data input schemas
    # ------------------------------------------------------------------

    def save_schemas(self, schemas: ComposedJsonSchema) -> str:
        """Write every schema file and return the composition path relative to ``base_dir``."""
        self.schemas_dir.mkdir(parents=True, exist_ok=True)
        for schema_file in [schemas.composition_schema, *schemas.action_schemas]:
            (self.schemas_dir / schema_file.file_name).write_text(
                json.dumps(schema_file.json_schema, indent=2)
            )
        return f"{SCHEMAS_FOLDER}/{schemas.composition_schema.file_name}"

    def load_schemas(self, workflow_id: str) -> ComposedJsonSchema:
        check_workflow_id(workflow_id)
        composition_path = self.schemas_dir / main_schema_file_name(workflow_id)
        if not composition_path.exists():
            raise WorkflowNotFoundError(f"No data input schema stored for '{workflow_id}'")

        action_schemas = [
            JsonSchemaFile(file_name=path.name, json_schema=json.loads(path.read_text()))
            for path in sorted(self.schemas_dir.glob(f"{glob.escape(workflow_id)}__sub_schema__*.json"))
        ]
        return ComposedJsonSchema(
            composition_schema=JsonSchemaFile(
                file_name=composition_path.name,
                json_schema=json.loads(composition_path.read_text()),
            ),
            action_schemas=action_schemas,
        )

    def delete_schemas(self, workflow_id: str) -> int:
        check_workflow_id(workflow_id)
        if not self.schemas_dir.exists():
            return 0
        main_schema = self.schemas_dir / main_schema_file_name(workflow_id)
        matches = [main_schema] if main_schema.exists() else []
        matches += self.schemas_dir.glob(f"{glob.escape(workflow_id)}__sub_schema__*.json")
        for f in matches:
            f.unlink()
        return len(matches)
