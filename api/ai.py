"""Direct AI endpoints — translation and illustration without persistence."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.deps import current_session
from models.ai import Translation
from models.request import ImageRequest, ImageResponse, TranslateRequest
from services.session_store import Session
from skills.image_skill import generate_or_edit_image
from skills.translate_skill import translate

router = APIRouter(prefix="/api/ai", tags=["ai"])


@router.post("/translate", response_model=Translation)
async def translate_text(req: TranslateRequest, session: Session = Depends(current_session)):
    return await translate(req.text)


@router.post("/image", response_model=ImageResponse)
async def generate_image(req: ImageRequest, session: Session = Depends(current_session)):
    """``{"image": null}`` means the model produced no image."""
    return ImageResponse(image=await generate_or_edit_image(req.prompt, req.base_image))
