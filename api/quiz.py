"""Quiz API — default and generated questions, submission and standing."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.deps import current_session, hub_dependency
from models.ai import QuizSet
from models.entities import QuizStanding
from models.request import GenerateQuizRequest, SubmitQuizRequest
from services.augmented import load_quiz
from services.live_query import LiveQueryHub
from services.quiz_progress import QuizProgressTracker
from services.session_store import Session
from skills.quiz_skill import DEFAULT_QUIZ

router = APIRouter(prefix="/api/quiz", tags=["quiz"])


@router.get("/default", response_model=QuizSet)
async def default_quiz():
    return QuizSet(questions=list(DEFAULT_QUIZ), fallback=True)


@router.post("/generate", response_model=QuizSet)
async def generate(req: GenerateQuizRequest, session: Session = Depends(current_session)):
    """Generated questions, or the default set with ``fallback: true``."""
    return await load_quiz(req.topic)


@router.post("/submit", response_model=QuizStanding)
async def submit(
    req: SubmitQuizRequest,
    session: Session = Depends(current_session),
    hub: LiveQueryHub = Depends(hub_dependency),
):
    """Replace the caller's previous result, if any."""
    return await QuizProgressTracker(hub).submit(session, req.score, req.total)


@router.get("/status", response_model=QuizStanding)
async def status(
    session: Session = Depends(current_session),
    hub: LiveQueryHub = Depends(hub_dependency),
):
    return await QuizProgressTracker(hub).check(session)
