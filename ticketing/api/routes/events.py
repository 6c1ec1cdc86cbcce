from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ticketing.api.errors import error_response
from ticketing.api.schemas import ApiResponse, EventResponse
from ticketing.dependencies import LifecycleManagerDep

router = APIRouter(prefix="/api/events", tags=["events"])


@router.get("", response_model=ApiResponse[list[EventResponse]])
async def list_events(manager: LifecycleManagerDep) -> ApiResponse[list[EventResponse]]:
    events = await manager.list_events()
    return ApiResponse(message="Events retrieved", data=[EventResponse.from_event(event) for event in events])


@router.get("/{event_id}", response_model=ApiResponse[EventResponse])
async def get_event(event_id: str, manager: LifecycleManagerDep) -> ApiResponse[EventResponse]:
    event = await manager.get_event(event_id)
    return ApiResponse(message="Event retrieved", data=EventResponse.from_event(event))


# The event catalogue is read-only; organizers manage it out of band.


@router.post("")
async def create_event() -> JSONResponse:
    return error_response(400, "Event creation is not supported")


@router.put("/{event_id}")
async def update_event(event_id: str) -> JSONResponse:
    return error_response(400, "Event updates are not supported")


@router.delete("/{event_id}")
async def delete_event(event_id: str) -> JSONResponse:
    return error_response(400, "Event deletion is not supported")
