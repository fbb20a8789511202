from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    display_name: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class MeResponse(BaseModel):
    uid: str
    email: EmailStr
    display_name: str
    role_id: str
    role_name: Optional[str] = None
    allowed_paths: List[str] = []
    manager_email: Optional[str] = None
    subcontractor_id: Optional[str] = None
    menu: List[dict] = []
