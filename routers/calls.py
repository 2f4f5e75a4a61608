from fastapi import APIRouter, Depends, Query, Response
from typing import Optional

from logging_config import get_logger
from routers.deps import get_current_user, get_store
from schemas.calls import CallActionRequest, CallResponse, CallsResponse, StartCallRequest
from schemas.store import User
from store import ChatStore

logger = get_logger(__name__)

calls_router = APIRouter(prefix="/calls", tags=["calls"])


@calls_router.get("", response_model=CallsResponse)
def list_calls(
    roomId: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    store: ChatStore = Depends(get_store),
):
    # Active calls only, so zero or one entry.
    return CallsResponse(calls=store.active_calls_for(roomId, user.id))


@calls_router.post("/start", response_model=CallResponse, status_code=201)
def start_call(
    payload: StartCallRequest,
    response: Response,
    user: User = Depends(get_current_user),
    store: ChatStore = Depends(get_store),
):
    # Body: { "roomId": "...", "type": "voice" | "video" }
    # 201 with a new call, 200 with the call already running in the room.
    call, created = store.start_call(payload.roomId, user.id, payload.type)
    if not created:
        response.status_code = 200
        logger.info(f"{user.username} asked to start a call in room {call.roomId}, call {call.id} already active")
    return CallResponse(call=call)


@calls_router.post("/join", response_model=CallResponse)
def join_call(payload: CallActionRequest, user: User = Depends(get_current_user), store: ChatStore = Depends(get_store)):
    call = store.join_call(payload.callId, user.id)
    logger.info(f"{user.username} joined call {call.id} ({len(call.participants)} participants)")
    return CallResponse(call=call)


@calls_router.post("/leave", response_model=CallResponse)
def leave_call(payload: CallActionRequest, user: User = Depends(get_current_user), store: ChatStore = Depends(get_store)):
    call = store.leave_call(payload.callId, user.id)
    logger.info(f"{user.username} left call {call.id}, status {call.status}")
    return CallResponse(call=call)


@calls_router.post("/end", response_model=CallResponse)
def end_call(payload: CallActionRequest, user: User = Depends(get_current_user), store: ChatStore = Depends(get_store)):
    call = store.end_call(payload.callId, user.id)
    return CallResponse(call=call)
