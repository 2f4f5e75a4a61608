from pydantic import BaseModel
from typing import Optional, Literal


class CreateRoomRequest(BaseModel):
    name: Optional[str] = None
    members: Optional[list[str]] = None

class CreateDMRequest(BaseModel):
    username: Optional[str] = None

class RoomView(BaseModel):
    id: str
    type: Literal["group", "dm"]
    name: Optional[str]
    title: str
    members: list[str]
    memberNames: list[str]
    createdBy: str
    createdAt: str

class RoomResponse(BaseModel):
    room: RoomView

class RoomsResponse(BaseModel):
    rooms: list[RoomView]
