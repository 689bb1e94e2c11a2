"""Announcements API — listing for everyone, posting/deleting for delegates and admins."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.deps import current_session, hub_dependency
from models.entities import Announcement
from models.request import IllustratedAnnouncementRequest, PostAnnouncementRequest
from services.augmented import IllustratedPost, post_illustrated_announcement
from services.live_query import LiveQueryHub
from services.session_store import Session

router = APIRouter(prefix="/api/announcements", tags=["announcements"])


@router.get("", response_model=list[Announcement])
async def list_announcements(
    session: Session = Depends(current_session),
    hub: LiveQueryHub = Depends(hub_dependency),
):
    return await hub.query("list_announcements", session)


@router.post("", response_model=Announcement, status_code=201)
async def post_announcement(
    req: PostAnnouncementRequest,
    session: Session = Depends(current_session),
    hub: LiveQueryHub = Depends(hub_dependency),
):
    return await hub.mutate(
        "post_announcement",
        session,
        title=req.title,
        body=req.body,
        priority=req.priority,
        image=req.image,
    )


@router.post("/illustrated", response_model=IllustratedPost, status_code=201)
async def post_illustrated(
    req: IllustratedAnnouncementRequest,
    session: Session = Depends(current_session),
    hub: LiveQueryHub = Depends(hub_dependency),
):
    """Post with an AI illustration; posts without one if generation fails."""
    return await post_illustrated_announcement(
        hub,
        session,
        title=req.title,
        body=req.body,
        priority=req.priority,
        image_prompt=req.image_prompt,
        base_image=req.base_image,
    )


@router.delete("/{announcement_id}")
async def delete_announcement(
    announcement_id: str,
    session: Session = Depends(current_session),
    hub: LiveQueryHub = Depends(hub_dependency),
):
    """Idempotent: deleting an unknown id returns ``{"deleted": false}``."""
    return await hub.mutate("delete_announcement", session, id=announcement_id)
