"""
Auth feature: Pydantic schemas for request/response models.
"""

from pydantic import BaseModel, EmailStr, Field


# ── Requests ─────────────────────────────────────────────
class SignInRequest(BaseModel):
    email: EmailStr
    password: str


class SignUpRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)


# ── Responses ────────────────────────────────────────────
class UserResponse(BaseModel):
    id: str
    email: str | None = None
    full_name: str = ""


class SessionResponse(BaseModel):
    authenticated: bool
    user: UserResponse | None = None
    expires_at: int | None = None


class OAuthResponse(BaseModel):
    url: str


class MessageResponse(BaseModel):
    message: str


def user_response(user) -> UserResponse | None:
    if user is None:
        return None
    metadata = getattr(user, "user_metadata", None) or {}
    return UserResponse(
        id=str(user.id),
        email=getattr(user, "email", None),
        full_name=metadata.get("full_name") or metadata.get("name") or "",
    )
