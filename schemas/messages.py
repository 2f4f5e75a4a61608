from pydantic import BaseModel
from typing import Optional

from schemas.store import Message


class PostMessageRequest(BaseModel):
    roomId: Optional[str] = None
    text: Optional[str] = None

class MessageResponse(BaseModel):
    message: Message

class MessagesResponse(BaseModel):
    messages: list[Message]
