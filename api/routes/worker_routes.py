"""
Content worker endpoints.

Exposes the queue state, lets the client enqueue generation tasks and fetch
a module's question pack. WebSocket /worker/ws pushes a QueueSnapshot on
every queue change.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from api.bootstrap import ServiceContainer
from api.schemas.game_schemas import GamePayload
from api.schemas.worker_schemas import (
    PAYLOAD_MODELS,
    EnqueueTaskRequest,
    EnqueueTaskResponse,
    QueueSnapshot,
    TaskStatus,
    TaskStatusResponse,
)
from api.utils.logger import get_logger
from api.ws import subscribe_worker_queue, unsubscribe_worker_queue

logger = get_logger(__name__)

worker_routes = APIRouter()


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


@worker_routes.get("/worker/queue", response_model=QueueSnapshot)
async def get_queue(container: ServiceContainer = Depends(get_container)) -> QueueSnapshot:
    return container.worker.snapshot()


@worker_routes.post("/worker/tasks", response_model=EnqueueTaskResponse, status_code=202)
async def enqueue_task(
    body: EnqueueTaskRequest,
    container: ServiceContainer = Depends(get_container),
) -> EnqueueTaskResponse:
    """
    Enqueue a generation task. Identical pending tasks are not duplicated:
    the existing task id is returned with queued=false.
    """
    model = PAYLOAD_MODELS[body.type]
    try:
        payload = model.model_validate(body.payload)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False))

    worker = container.worker
    existing = worker.find_pending(body.type, payload)
    if existing is not None:
        return EnqueueTaskResponse(task_id=existing.id, queued=False, queue_length=len(worker.queue))

    worker.add_task(body.type, payload, body.priority)
    created = worker.find_pending(body.type, payload)
    # The drain may already have picked the task up
    task_id = created.id if created is not None else (worker.active_task_id or "")
    return EnqueueTaskResponse(task_id=task_id, queued=True, queue_length=len(worker.queue))


@worker_routes.get("/worker/tasks/{task_id}", response_model=TaskStatusResponse)
async def get_task_status(task_id: str, container: ServiceContainer = Depends(get_container)) -> TaskStatusResponse:
    return TaskStatusResponse(task_id=task_id, status=container.worker.get_task_status(task_id))


@worker_routes.delete("/worker/tasks/{task_id}", status_code=204)
async def remove_task(task_id: str, container: ServiceContainer = Depends(get_container)) -> None:
    if not container.worker.remove_task(task_id):
        status = container.worker.get_task_status(task_id)
        if status == TaskStatus.RUNNING:
            raise HTTPException(status_code=409, detail="Task is running and cannot be removed")
        raise HTTPException(status_code=404, detail="Task not found")


@worker_routes.post("/worker/queue/clear", response_model=QueueSnapshot)
async def clear_queue(container: ServiceContainer = Depends(get_container)) -> QueueSnapshot:
    container.worker.clear_queue()
    return container.worker.snapshot()


@worker_routes.get("/modules/{module_id}/pack", response_model=List[GamePayload])
async def get_module_pack(
    module_id: str,
    wait: float = Query(0.0, ge=0.0, le=30.0, description="Seconds to wait for the worker"),
    container: ServiceContainer = Depends(get_container),
) -> List[GamePayload]:
    if wait > 0:
        pack = await container.loader.wait_for_pack(module_id, timeout=wait)
    else:
        pack = await container.loader.load(module_id)
    if not pack:
        raise HTTPException(status_code=404, detail="Pack not ready")
    return pack


@worker_routes.websocket("/worker/ws")
async def worker_ws(websocket: WebSocket) -> None:
    await websocket.accept()
    container: ServiceContainer = websocket.app.state.container
    subscribe_worker_queue(websocket)
    try:
        await websocket.send_json(container.worker.snapshot().model_dump(mode="json"))
        while True:
            # Client messages are ignored; the loop only detects disconnects
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        unsubscribe_worker_queue(websocket)
