"""API endpoints exposing the task flow over HTTP."""

from collections.abc import Iterator
from datetime import UTC, datetime

from cuid2 import cuid_wrapper
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from tinypenguin import __version__
from tinypenguin.clients.inference import InferenceClient, get_inference_client
from tinypenguin.config import get_settings
from tinypenguin.errors import TransportError
from tinypenguin.models.task import CancelTaskResponse, HealthResponse, TaskEvent, TaskListResponse, TaskRequest
from tinypenguin.services.interaction_log import InteractionLog, get_interaction_log
from tinypenguin.services.rating import NullRatingProvider
from tinypenguin.services.task import TaskManager
from tinypenguin.tools.registry import ToolsRegistry, get_tools_registry
from tinypenguin.utils.logging import get_logger

logger = get_logger(__name__)

cuid = cuid_wrapper()

router = APIRouter()


def get_task_manager(
    client: InferenceClient = Depends(get_inference_client),
    tools_registry: ToolsRegistry = Depends(get_tools_registry),
    interaction_log: InteractionLog = Depends(get_interaction_log),
) -> TaskManager:
    """Build a task manager for one request; nobody is around to rate results."""
    settings = get_settings()
    return TaskManager(
        client=client,
        tools_registry=tools_registry,
        interaction_log=interaction_log,
        model=settings.model,
        tools_enabled=settings.tools_enabled,
        rating_provider=NullRatingProvider(),
    )


def _stream_task(manager: TaskManager, query: str, task_id: str) -> Iterator[str]:
    try:
        for event in manager.run(query, task_id=task_id):
            yield event.model_dump_json(exclude_none=True) + "\n"
    except TransportError as e:
        logger.error(f"Task {task_id} aborted: {e}")
        error_event = TaskEvent(type="error", task_id=task_id, message=f"Failed to get response from model: {e}")
        yield error_event.model_dump_json(exclude_none=True) + "\n"


@router.post("/tasks", tags=["Tasks"])
def execute_task(request: TaskRequest, manager: TaskManager = Depends(get_task_manager)) -> StreamingResponse:
    """Run a task and stream its progress as newline-delimited JSON events."""
    task_id = cuid()
    logger.info(f"Received task request {task_id}: {request.query[:50]}...")
    return StreamingResponse(_stream_task(manager, request.query, task_id), media_type="application/x-ndjson")


@router.post("/tasks/{task_id}/cancel", response_model=CancelTaskResponse, tags=["Tasks"])
def cancel_task(task_id: str) -> CancelTaskResponse:
    """Cancel a task.

    Tasks run to completion within their request, so there is nothing to
    cancel; the call is acknowledged for client compatibility.
    """
    logger.info(f"Received cancel request for task: {task_id}")
    return CancelTaskResponse(success=True, task_id=task_id)


@router.get("/tasks", response_model=TaskListResponse, tags=["Tasks"])
def list_tasks() -> TaskListResponse:
    """List tasks. No task outlives its request, so the list is empty."""
    return TaskListResponse(tasks=[])


@router.get("/health", response_model=HealthResponse, tags=["Health"])
def health_check(client: InferenceClient = Depends(get_inference_client)) -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=__version__,
        endpoint_reachable=client.check_connection(),
    )
