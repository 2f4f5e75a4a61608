from fastapi import APIRouter, Depends, Query
from typing import Optional

from routers.deps import get_current_user, get_store
from schemas.auth import MeResponse, UserSummary, UsersResponse
from schemas.store import User
from store import ChatStore

users_router = APIRouter(tags=["users"])


@users_router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user)):
    return MeResponse(id=user.id, username=user.username)


@users_router.get("/users/search", response_model=UsersResponse)
def search_users(
    q: Optional[str] = Query(None, description="Part of a username, case-insensitive"),
    user: User = Depends(get_current_user),
    store: ChatStore = Depends(get_store),
):
    found = store.search_users(q, exclude_id=user.id)
    return UsersResponse(users=[UserSummary(id=u.id, username=u.username) for u in found])
