from pydantic import BaseModel
from typing import Optional

from schemas.store import Call


class StartCallRequest(BaseModel):
    roomId: Optional[str] = None
    type: Optional[str] = "voice"

class CallActionRequest(BaseModel):
    callId: Optional[str] = None

class CallResponse(BaseModel):
    call: Call

class CallsResponse(BaseModel):
    calls: list[Call]
