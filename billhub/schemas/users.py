from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, EmailStr, Field


class ActorRole(str, Enum):
    SUBCONTRACTOR = "SUBCONTRACTOR"
    PROJECT_MANAGER = "PROJECT_MANAGER"
    DIRECTOR = "DIRECTOR"


class RoleDefinition(BaseModel):
    id: str  # e.g. 'admin', 'project_manager'
    name: str
    description: Optional[str] = None
    allowed_paths: List[str] = Field(default_factory=list)  # ['/projects', '/timesheets', ...] or ['*']
    permissions: List[str] = Field(default_factory=list)

    class Config:
        extra = "ignore"


class RoleUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    allowed_paths: Optional[List[str]] = None
    permissions: Optional[List[str]] = None


class UserProfile(BaseModel):
    uid: str
    email: EmailStr
    display_name: str = ""
    role_id: str = ""
    photo_url: Optional[str] = None
    manager_email: Optional[str] = None  # set when the user is a managed resource
    subcontractor_id: Optional[str] = None  # resource the user logs hours as

    class Config:
        extra = "ignore"


class UserUpdate(BaseModel):
    display_name: Optional[str] = None
    role_id: Optional[str] = None
    photo_url: Optional[str] = None
    manager_email: Optional[str] = None
    subcontractor_id: Optional[str] = None


class UserCreateRequest(BaseModel):
    email: EmailStr
    display_name: str = ""
    role_id: str
    manager_email: Optional[str] = None
    subcontractor_id: Optional[str] = None
    password: Optional[str] = None
    mode: str = Field(default="direct", pattern="^(direct|invite)$")


class NotificationType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Notification(BaseModel):
    id: str
    recipient_role: ActorRole
    message: str
    type: NotificationType = NotificationType.INFO
    read: bool = False
    timestamp: str
    related_id: Optional[str] = None

    class Config:
        extra = "ignore"
