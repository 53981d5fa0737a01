from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status, Body
from sqlalchemy.orm import Session
import logging

from commission_backend.core.database import get_db
from commission_backend.core.dependencies import get_current_user
from commission_backend.core.security import verify_firebase_id_token
from commission_backend.models.user_model import User
from commission_backend.schemas.user_schema import (
    UserRegisterRequest,
    UserRegistration,
    UserDisplay,
    AuthResponse,
    TokenData
)
from commission_backend.services import notification_service, user_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register_user_after_firebase(
    background_tasks: BackgroundTasks,
    payload: UserRegisterRequest = Body(...),
    db: Session = Depends(get_db)
):
    """
    Register a new user in the application's database after successful
    authentication and registration with Firebase on the client-side.

    Affiliates may send their manager's invite code; customers may send the
    invite code of the affiliate or manager who referred them.
    """
    logger.info("Registration attempt with Firebase ID token.")

    try:
        token_data: TokenData = verify_firebase_id_token(payload.firebase_id_token)
    except HTTPException as e:
        logger.warning(f"Firebase ID token verification failed during registration: {e.detail}")
        raise e

    registration = UserRegistration(
        firebase_uid=token_data.firebase_uid,
        email=token_data.email,
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=payload.role,
        manager_code=payload.manager_code,
        referral_code=payload.referral_code,
    )
    result = user_service.register_user(db, registration)
    background_tasks.add_task(notification_service.dispatch_notifications, result.commissions.notifications)

    return AuthResponse(
        message="User registered successfully.",
        user=UserDisplay.model_validate(result.user)
    )


@router.get("/me", response_model=UserDisplay)
def read_users_me(current_user: User = Depends(get_current_user)):
    """
    Get the profile of the currently authenticated user.
    Requires a valid Firebase ID token in the Authorization header.
    """
    logger.info(f"Fetching profile for user: {current_user.email}")
    return current_user
