"""
Stored records for Kovers.

Every model is one entry of a top-level collection of the store document:
- User -> "users"
- Session -> "sessions"
- Room -> "rooms"
- Message -> "messages"
- Call -> "calls"

Field names are camelCase because the records are returned to clients as-is.
Timestamps are ISO-8601 UTC strings with millisecond precision.
"""

from pydantic import BaseModel, Field
from typing import Optional, Literal, List


class User(BaseModel):
    id: str
    username: str
    passwordHash: Optional[str] = Field(None, description="None for guest users")
    createdAt: str


class Session(BaseModel):
    token: str
    userId: str
    createdAt: str


class Room(BaseModel):
    id: str
    type: Literal["group", "dm"] = "group"
    name: Optional[str] = None
    members: List[str] = Field(default_factory=list, description="user ids")
    createdBy: str
    createdAt: str


class Message(BaseModel):
    id: str
    roomId: str
    authorId: str
    author: str
    text: str
    createdAt: str


class Call(BaseModel):
    id: str
    roomId: str
    type: Literal["voice", "video"]
    status: Literal["active", "ended"] = "active"
    participants: List[str] = Field(default_factory=list, description="usernames, join order")
    startedAt: str
    endedAt: Optional[str] = None


class StoreDocument(BaseModel):
    users: List[User] = Field(default_factory=list)
    sessions: List[Session] = Field(default_factory=list)
    rooms: List[Room] = Field(default_factory=list)
    messages: List[Message] = Field(default_factory=list)
    calls: List[Call] = Field(default_factory=list)
