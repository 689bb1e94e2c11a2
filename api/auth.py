"""Auth API — registration, login and logout with explicit sessions.

A session is created by register/login, returned as an opaque bearer token,
and destroyed by logout.  Every other endpoint resolves it per request.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from api.deps import current_session, hub_dependency
from models.entities import Account
from models.request import AuthResponse, LoginRequest, RegisterRequest
from services.live_query import LiveQueryHub
from services.session_store import Session, get_session_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


async def _open_session(account: Account) -> AuthResponse:
    session = Session.for_account(account)
    await get_session_store().save(session)
    return AuthResponse(token=session.token, account=account)


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(req: RegisterRequest, hub: LiveQueryHub = Depends(hub_dependency)):
    account = await hub.mutate(
        "register",
        None,
        email=req.email,
        password=req.password,
        name=req.name,
        role_hint=req.role_hint,
    )
    return await _open_session(account)


@router.post("/login", response_model=AuthResponse)
async def login(req: LoginRequest, hub: LiveQueryHub = Depends(hub_dependency)):
    account = await hub.mutate("login", None, email=req.email, password=req.password)
    logger.info("Login for account %s", account.id)
    return await _open_session(account)


@router.post("/logout")
async def logout(session: Session = Depends(current_session)):
    await get_session_store().delete(session.token)
    return {"ok": True}


@router.get("/me", response_model=Account)
async def me(
    session: Session = Depends(current_session),
    hub: LiveQueryHub = Depends(hub_dependency),
):
    return await hub.query("get_account", session, account_id=session.account_id)
