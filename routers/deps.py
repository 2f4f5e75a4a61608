from typing import Optional

from fastapi import Depends, Header, Request

from constants import TOKEN_HEADER
from schemas.store import User
from store import ChatStore


def get_store(request: Request) -> ChatStore:
    return request.app.state.store


def get_token(token: Optional[str] = Header(None, alias=TOKEN_HEADER)) -> Optional[str]:
    return token


def get_current_user(token: Optional[str] = Depends(get_token), store: ChatStore = Depends(get_store)) -> User:
    # raises AuthError (401) on a missing or unknown token
    return store.current_user(token)
