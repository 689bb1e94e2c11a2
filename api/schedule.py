"""Schedule API — weekly entries, optionally grouped Monday..Sunday."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from api.deps import current_session, hub_dependency
from models.entities import ScheduleEntry
from models.request import ScheduleItemRequest
from services.classroom import group_by_day
from services.live_query import LiveQueryHub
from services.session_store import Session

router = APIRouter(prefix="/api/schedule", tags=["schedule"])


@router.get("")
async def list_schedule(
    grouped: bool = Query(default=False),
    session: Session = Depends(current_session),
    hub: LiveQueryHub = Depends(hub_dependency),
):
    entries = await hub.query("list_schedule", session)
    if grouped:
        return [day.to_api() for day in group_by_day(entries)]
    return [entry.to_api() for entry in entries]


@router.post("", response_model=ScheduleEntry, status_code=201)
async def add_schedule_item(
    req: ScheduleItemRequest,
    session: Session = Depends(current_session),
    hub: LiveQueryHub = Depends(hub_dependency),
):
    return await hub.mutate(
        "add_schedule_item",
        session,
        day=req.day,
        time=req.time,
        subject=req.subject,
        room=req.room,
    )


@router.delete("/{entry_id}")
async def delete_schedule_item(
    entry_id: str,
    session: Session = Depends(current_session),
    hub: LiveQueryHub = Depends(hub_dependency),
):
    """Idempotent: a second delete of the same id still succeeds."""
    return await hub.mutate("delete_schedule_item", session, id=entry_id)
