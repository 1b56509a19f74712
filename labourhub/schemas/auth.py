from pydantic import BaseModel, EmailStr
from typing import Optional, List


class LabourerLoginRequest(BaseModel):
    identifier: str  # contact number or email
    password: str  # ID or passport number


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LabourerTokenResponse(TokenResponse):
    labourer_id: str


class MeResponse(BaseModel):
    id: str
    email: Optional[EmailStr] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    role: str
    roles: List[str] = []


class UserRoleUpdate(BaseModel):
    role: str
