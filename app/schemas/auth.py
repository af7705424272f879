from pydantic import BaseModel, Field

class LoginRequest(BaseModel):
    email: str
    password: str

class RegisterRequest(BaseModel):
    email: str
    password: str = Field(min_length=8)
    displayName: str = ""
    photoUrl: str = ""

class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"

class UserOut(BaseModel):
    id: str
    email: str
    displayName: str = ""
    role: str
    specialty: str = ""
    photoUrl: str = ""
    isApproved: bool = False
    isActive: bool = True


def user_out(u) -> UserOut:
    return UserOut(
        id=u.id,
        email=u.email,
        displayName=u.display_name or "",
        role=u.role,
        specialty=u.specialty or "",
        photoUrl=u.photo_url or "",
        isApproved=bool(u.is_approved),
        isActive=bool(u.is_active),
    )
