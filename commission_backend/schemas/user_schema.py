from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime

from commission_backend.models.enums import UserRole, UserStatus

class UserBase(BaseModel):
    email: EmailStr
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    role: UserRole = UserRole.CUSTOMER

# Schema for creating a user in our database AFTER Firebase authentication
class UserCreateInternal(UserBase):
    firebase_uid: str
    invite_code: Optional[str] = None
    manager_id: Optional[int] = None
    referred_by_id: Optional[int] = None

class UserDisplay(UserBase):
    id: int
    status: UserStatus
    invite_code: Optional[str] = Field(None, description="Code others register with to name this user as referrer/manager")
    manager_id: Optional[int] = Field(None, description="Manager of an affiliate")
    referred_by_id: Optional[int] = Field(None, description="ID of the user who referred this user")
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

# Schema representing the data decoded from a Firebase ID token
class TokenData(BaseModel):
    firebase_uid: str
    email: EmailStr

# Request body for /auth/register, sent after client-side Firebase sign-up
class UserRegisterRequest(BaseModel):
    firebase_id_token: str
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    role: UserRole = Field(UserRole.CUSTOMER, description="MANAGER, AFFILIATE or CUSTOMER")
    manager_code: Optional[str] = Field(None, description="Manager invite code (affiliates only)")
    referral_code: Optional[str] = Field(None, description="Referrer invite code (customers only)")

class UserRegistration(BaseModel):
    """Verified registration input handed to the user service."""
    firebase_uid: str
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: UserRole = UserRole.CUSTOMER
    manager_code: Optional[str] = None
    referral_code: Optional[str] = None

class AuthResponse(BaseModel):
    message: str
    user: Optional[UserDisplay] = None

# --- Admin Specific Schemas ---
class AdminUserUpdate(BaseModel):
    """Schema for data an Admin can update on a user."""
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None
    manager_id: Optional[int] = Field(None, description="Assign an affiliate to a manager")
    clear_manager: bool = Field(False, description="Detach the affiliate from its manager")

class MyReferralInfo(BaseModel):
    invite_code: str
    customer_invite_link: str
    affiliate_invite_link: Optional[str] = Field(None, description="Managers only: link for recruiting affiliates")

class TeamMemberDisplay(BaseModel):
    id: int
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    invite_code: Optional[str] = None
    status: UserStatus
    created_at: datetime

    class Config:
        from_attributes = True
