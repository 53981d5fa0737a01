from fastapi import Depends, Header, HTTPException, status, Request
from fastapi.security.utils import get_authorization_scheme_param
from sqlalchemy.orm import Session
from typing import Optional
import logging

from commission_backend.core.config import settings
from commission_backend.core.database import get_db # Re-export or use directly
from commission_backend.core.security import verify_firebase_id_token, verify_shared_secret
from commission_backend.crud.user_crud import get_user_by_firebase_uid, get_user_by_id
from commission_backend.models.enums import UserRole, UserStatus
from commission_backend.models.user_model import User
from commission_backend.schemas.user_schema import TokenData

logger = logging.getLogger(__name__)

# Dependency to get the current user from a Firebase ID token
async def get_current_user(
    request: Request, db: Session = Depends(get_db)
) -> User:
    """
    Dependency to get the current authenticated user.
    Verifies the Firebase ID token from the Authorization header,
    then fetches the user from the database.
    """
    authorization: str = request.headers.get("Authorization")
    scheme, param = get_authorization_scheme_param(authorization)

    if not authorization or scheme.lower() != "bearer":
        logger.warning("Missing or invalid Bearer token in Authorization header.")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated. Bearer token required.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token_data: TokenData = verify_firebase_id_token(param)

    user = get_user_by_firebase_uid(db, firebase_uid=token_data.firebase_uid)
    if user is None:
        logger.warning(f"User not found in DB for Firebase UID: {token_data.firebase_uid} from token.")
        # Authenticated with Firebase but /auth/register never completed
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account not found or not fully registered in the system.",
        )

    logger.debug(f"Authenticated user retrieved: {user.email} (ID: {user.id})")
    return user


# --- User Status/Role Dependencies ---
async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if current_user.status != UserStatus.ACTIVE:
        logger.warning(f"Inactive user {current_user.email} (status {current_user.status}) rejected.")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is not active.")
    return current_user


async def get_current_admin_user(current_user: User = Depends(get_current_active_user)) -> User:
    """
    Checks if the current user has the ADMIN role.
    """
    if current_user.role != UserRole.ADMIN:
        logger.warning(f"Admin access denied for user: {current_user.email} (Role: {current_user.role})")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operation not permitted: Requires admin privileges.",
        )
    return current_user


async def get_current_earner_user(current_user: User = Depends(get_current_active_user)) -> User:
    """Managers and affiliates: the users that accrue commission and request payouts."""
    if current_user.role not in (UserRole.MANAGER, UserRole.AFFILIATE):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operation not permitted: Requires an affiliate or manager account.",
        )
    return current_user


async def get_current_manager_user(current_user: User = Depends(get_current_active_user)) -> User:
    if current_user.role != UserRole.MANAGER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operation not permitted: Requires a manager account.",
        )
    return current_user


async def get_current_customer_user(current_user: User = Depends(get_current_active_user)) -> User:
    if current_user.role != UserRole.CUSTOMER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operation not permitted: Requires a customer account.",
        )
    return current_user


# --- Scheduler authentication ---
async def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    """Batch triggers from the external scheduler carry `Authorization: Bearer <CRON_SECRET>`."""
    verify_shared_secret(authorization, settings.CRON_SECRET)


# Dependency to get user by ID from path
def get_user_or_404(user_id: int, db: Session = Depends(get_db)) -> User:
    user = get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User with ID {user_id} not found.")
    return user
