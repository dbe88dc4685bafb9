import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from fastapi import Body, FastAPI, Header, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .catalog.provider import MemoryEntityConnection, ServerlessWorkflowEntityProvider
from .clients import ClientError, EngineUnavailableError, close_clients, create_clients
from .config import get_settings
from .events.cloudevents import CloudEventClient
from .events.jira import JiraEvent, JiraService
from .input_schema import DataInputSchemaService, TemplateScanner
from .models import HealthResponse, ProcessInstance, SwfItem, SwfListResult
from .openapi import OpenApiService
from .workflow.schema import from_workflow_source
from .workflow.service import WorkflowService
from .workflow.store import WorkflowNotFoundError, WorkflowStore

load_dotenv()

settings = get_settings()
logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

clients = create_clients(settings)
workflow_store = WorkflowStore(Path(settings.swf_resources_dir))
workflow_service = WorkflowService(
    workflow_store,
    OpenApiService(clients.scaffolder),
    DataInputSchemaService(TemplateScanner(clients.github, settings.github_max_concurrency)),
    clients.http,
)
jira_service = JiraService(CloudEventClient(clients.http, settings.engine_url))
entity_connection = MemoryEntityConnection()
entity_provider = ServerlessWorkflowEntityProvider(
    clients.engine,
    entity_connection,
    env=settings.catalog_env,
    owner=settings.catalog_owner,
)


async def _start_catalog() -> None:
    """Wait for the engine to come up, then keep the template catalog in sync."""
    try:
        await clients.engine.health()
    except EngineUnavailableError:
        logger.error("Workflow engine failed to start. Serverless Workflow Templates could not be loaded.")
        return
    logger.info("Workflow engine is ready")
    if settings.catalog_polling_enabled:
        await entity_provider.run(settings.catalog_refresh_interval_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Using serverless workflow engine at %s", settings.engine_url)
    if not settings.github_token:
        logger.warning("No GitHub token found. Some features may not work as expected.")
    catalog_task = asyncio.create_task(_start_catalog())
    yield
    catalog_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await catalog_task
    await close_clients(clients)


app = FastAPI(
    title="SWF Orchestrator API",
    description="Author, list, execute and monitor serverless workflows",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:7007"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ClientError)
async def client_error_handler(request: Request, exc: ClientError):
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": str(exc), "error_type": exc.error_type})


def _instance(data: dict) -> dict:
    return ProcessInstance.model_validate(data).model_dump(by_alias=True, exclude_none=True)


def _passthrough(resp) -> JSONResponse:
    try:
        content = resp.json()
    except ValueError:
        content = {"detail": resp.text}
    return JSONResponse(status_code=resp.status_code, content=content)


@app.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok")


# --- Workflow definitions, delegated to the engine ---

@app.get("/items")
async def list_items():
    ids = await clients.engine.list_process_ids()

    async def load(swf_id: str) -> SwfItem:
        definition = await clients.engine.get_process(swf_id)
        uri = await clients.engine.get_source_uri(definition["id"])
        definition["description"] = definition.get("description") or definition.get("name")
        return SwfItem(uri=uri, definition=definition)

    items = await asyncio.gather(*(load(swf_id) for swf_id in ids))
    result = SwfListResult(items=list(items), limit=0, offset=0, total_count=len(items))
    return result.model_dump(by_alias=True)


@app.get("/items/{swf_id}")
async def get_item(swf_id: str):
    source = await clients.engine.get_source(swf_id)
    uri = await clients.engine.get_source_uri(swf_id)
    return SwfItem(uri=uri, definition=from_workflow_source(source).to_dict()).model_dump()


@app.get("/items/{swf_id}/schema")
def get_item_schema(swf_id: str):
    try:
        schemas = workflow_service.get_data_input_schema(swf_id)
    except (WorkflowNotFoundError, ValueError):
        raise HTTPException(status_code=404, detail=f"No data input schema for '{swf_id}'")
    return schemas.model_dump(by_alias=True)


@app.post("/execute/{swf_id}")
async def execute_workflow(swf_id: str, data: Any = Body(None)):
    resp = await clients.engine.execute(swf_id, data)
    return _passthrough(resp)


@app.get("/instances")
async def list_instances():
    instances = await clients.engine.list_instances()
    return [_instance(i) for i in instances]


@app.get("/instances/{instance_id}")
async def get_instance(instance_id: str):
    instance = await clients.engine.get_instance(instance_id)
    if instance is None:
        raise HTTPException(status_code=404, detail="Process instance not found")
    return _instance(instance)


@app.delete("/workflows/{swf_id}")
async def delete_workflow(swf_id: str):
    uri = await clients.engine.get_source_uri(swf_id)
    try:
        workflow_service.delete_workflow_definition_by_id(uri)
    except WorkflowNotFoundError:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return Response(status_code=201)


@app.post("/workflows", status_code=201)
async def save_workflow(request: Request, uri: Optional[str] = None):
    try:
        if uri and uri.startswith("http"):
            workflow = await workflow_service.fetch_workflow_definition_from_url(uri)
        else:
            workflow = from_workflow_source((await request.body()).decode())
    except (ValueError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid workflow definition: {e}")
    item = await workflow_service.save_workflow_definition(workflow)
    return item.model_dump()


@app.get("/actions/schema")
async def get_actions_schema():
    open_api = await workflow_service.open_api_service.generate_open_api()
    if open_api is None:
        raise HTTPException(status_code=502, detail="Unable to generate the actions OpenAPI")
    return open_api


@app.put("/actions/schema")
async def put_actions_schema():
    open_api = await workflow_service.save_open_api()
    if open_api is None:
        raise HTTPException(status_code=502, detail="Unable to generate the actions OpenAPI")
    return open_api


@app.post("/webhook/jira")
async def jira_webhook(event: Optional[JiraEvent] = None):
    await jira_service.handle_event(event)
    return Response(status_code=200)


# --- Scaffolder actions, called back by the engine ---

@app.get("/actions")
async def list_actions():
    return _passthrough(await clients.scaffolder.list_actions())


@app.post("/actions/{action_id}")
async def execute_action(
    action_id: str,
    body: Any = Body(None),
    kogitoprocinstanceid: Optional[str] = Header(None),
):
    resp = await clients.scaffolder.execute_action(action_id, body, kogitoprocinstanceid)
    return _passthrough(resp)
