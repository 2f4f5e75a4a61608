from pydantic import BaseModel
from typing import Optional


class RegisterRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None

class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None

class GuestRequest(BaseModel):
    username: Optional[str] = None

class TokenResponse(BaseModel):
    token: str
    username: str

class OkResponse(BaseModel):
    ok: bool = True

class MeResponse(BaseModel):
    id: str
    username: str

class UserSummary(BaseModel):
    id: str
    username: str

class UsersResponse(BaseModel):
    users: list[UserSummary]
