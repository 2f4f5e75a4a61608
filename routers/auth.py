from fastapi import APIRouter, Depends, Request
from typing import Optional

from errors import AuthError, NotFound
from logging_config import get_logger
from routers.deps import get_current_user, get_store, get_token
from schemas.auth import GuestRequest, LoginRequest, OkResponse, RegisterRequest, TokenResponse
from schemas.store import User
from store import ChatStore

logger = get_logger(__name__)

auth_router = APIRouter(prefix="/auth", tags=["auth"])


def require_auth_mode(request: Request, mode: str):
    # Password and guest entry are alternative deployments, never both at once.
    if request.app.state.auth_mode != mode:
        logger.warning(f"Rejected {request.url.path}: server runs in {request.app.state.auth_mode} mode")
        raise NotFound("Not found")


@auth_router.post("/register", response_model=OkResponse, status_code=201)
def register(payload: RegisterRequest, request: Request, store: ChatStore = Depends(get_store)):
    # Body: { "username": "alice", "password": "secret1" }
    require_auth_mode(request, "password")
    logger.info(f"Registration request for username {payload.username!r}")
    store.register(payload.username, payload.password)
    return OkResponse()


@auth_router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, request: Request, store: ChatStore = Depends(get_store)):
    require_auth_mode(request, "password")
    try:
        token, user = store.authenticate(payload.username, payload.password)
    except AuthError:
        logger.warning(f"Login failed for username {payload.username!r}")
        raise
    logger.info(f"User {user.username} logged in")
    return TokenResponse(token=token, username=user.username)


@auth_router.post("/guest", response_model=TokenResponse, status_code=201)
def guest(payload: GuestRequest, request: Request, store: ChatStore = Depends(get_store)):
    require_auth_mode(request, "guest")
    token, user = store.guest_login(payload.username)
    logger.info(f"Guest {user.username} joined")
    return TokenResponse(token=token, username=user.username)


@auth_router.post("/logout", response_model=OkResponse)
def logout(
    user: User = Depends(get_current_user),
    token: Optional[str] = Depends(get_token),
    store: ChatStore = Depends(get_store),
):
    store.destroy(token)
    logger.info(f"User {user.username} logged out")
    return OkResponse()
