from fastapi import APIRouter, Depends, Query
from typing import Optional

from logging_config import get_logger
from routers.deps import get_current_user, get_store
from schemas.messages import MessageResponse, MessagesResponse, PostMessageRequest
from schemas.store import User
from store import ChatStore

logger = get_logger(__name__)

messages_router = APIRouter(tags=["messages"])


@messages_router.get("/messages", response_model=MessagesResponse)
def list_messages(
    roomId: Optional[str] = Query(None),
    since: Optional[str] = Query(None, description="createdAt of the last message already seen"),
    user: User = Depends(get_current_user),
    store: ChatStore = Depends(get_store),
):
    # Polled by clients about every 1.2s. Only messages strictly newer than `since`
    # are returned, at most the latest 200.
    messages = store.read_messages(roomId, user.id, since)
    return MessagesResponse(messages=messages)


@messages_router.post("/messages", response_model=MessageResponse, status_code=201)
def post_message(payload: PostMessageRequest, user: User = Depends(get_current_user), store: ChatStore = Depends(get_store)):
    message = store.append(payload.roomId, user.id, payload.text)
    logger.info(f"Message {message.id} posted by {user.username} in room {message.roomId}")
    return MessageResponse(message=message)
