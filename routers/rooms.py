from fastapi import APIRouter, Depends

from logging_config import get_logger
from routers.deps import get_current_user, get_store
from schemas.rooms import CreateDMRequest, CreateRoomRequest, RoomResponse, RoomsResponse
from schemas.store import User
from store import ChatStore

logger = get_logger(__name__)

rooms_router = APIRouter(tags=["rooms"])


@rooms_router.get("/rooms", response_model=RoomsResponse)
def list_rooms(user: User = Depends(get_current_user), store: ChatStore = Depends(get_store)):
    return RoomsResponse(rooms=store.list_rooms_for(user.id))


@rooms_router.post("/rooms", response_model=RoomResponse, status_code=201)
def create_room(payload: CreateRoomRequest, user: User = Depends(get_current_user), store: ChatStore = Depends(get_store)):
    # Body: { "name": "Ideas", "members": ["bob", "carol"] }
    # Unknown member usernames are dropped, the creator is always a member.
    logger.info(f"Room creation request from {user.username}, name: {payload.name!r}, members: {payload.members}")
    room = store.create_group(user.id, payload.name, payload.members)
    return RoomResponse(room=room)


@rooms_router.post("/dm", response_model=RoomResponse, status_code=201)
def create_dm(payload: CreateDMRequest, user: User = Depends(get_current_user), store: ChatStore = Depends(get_store)):
    # Body: { "username": "bob" }
    # Same pair in either order always yields the same room.
    room, created = store.create_or_get_dm(user.id, payload.username)
    if created:
        logger.info(f"DM room {room.id} created between {user.username} and {payload.username}")
    else:
        logger.debug(f"DM room {room.id} reused for {user.username} and {payload.username}")
    return RoomResponse(room=room)
