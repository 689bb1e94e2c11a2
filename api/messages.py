"""Chat API — message list, plain send, and translated send."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.deps import current_session, hub_dependency
from models.entities import ChatMessage
from models.request import SendMessageRequest, TranslatedMessageRequest
from services.augmented import TranslatedSend, send_translated_message
from services.live_query import LiveQueryHub
from services.session_store import Session

router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.get("", response_model=list[ChatMessage])
async def list_messages(
    session: Session = Depends(current_session),
    hub: LiveQueryHub = Depends(hub_dependency),
):
    """Most recent messages, oldest-first (live: ``/api/live/list_messages``)."""
    return await hub.query("list_messages", session)


@router.post("", response_model=ChatMessage, status_code=201)
async def send_message(
    req: SendMessageRequest,
    session: Session = Depends(current_session),
    hub: LiveQueryHub = Depends(hub_dependency),
):
    return await hub.mutate(
        "send_message",
        session,
        content=req.content,
        author_id=session.account_id,
        is_target_language=req.is_target_language,
        phonetic=req.phonetic,
    )


@router.post("/translated", response_model=TranslatedSend, status_code=201)
async def send_translated(
    req: TranslatedMessageRequest,
    session: Session = Depends(current_session),
    hub: LiveQueryHub = Depends(hub_dependency),
):
    """Send in Mandarin; falls back to the original text if translation fails."""
    return await send_translated_message(hub, session, req.text)
