from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List
import logging

from commission_backend.core.config import settings
from commission_backend.core.database import get_db
from commission_backend.core.dependencies import get_current_earner_user, get_current_manager_user
from commission_backend.crud import user_crud
from commission_backend.models.enums import UserRole
from commission_backend.models.user_model import User
from commission_backend.schemas import user_schema as schemas

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/referrals", tags=["Referrals & Teams"])


@router.get("/me/info", response_model=schemas.MyReferralInfo)
def get_my_referral_information(
    current_user: User = Depends(get_current_earner_user)
):
    """
    Get the current user's invite code and the links built from it.
    Customers register through the customer link; managers also recruit
    affiliates through the affiliate link.
    """
    if not current_user.invite_code:
        logger.error(f"User {current_user.email} (ID: {current_user.id}) is missing an invite code.")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invite code not found for user.")

    base_url = settings.APP_FRONTEND_URL.rstrip("/")
    affiliate_link = None
    if current_user.role == UserRole.MANAGER:
        affiliate_link = f"{base_url}/join/affiliate/{current_user.invite_code}"

    return schemas.MyReferralInfo(
        invite_code=current_user.invite_code,
        customer_invite_link=f"{base_url}/join/customer/{current_user.invite_code}",
        affiliate_invite_link=affiliate_link,
    )


@router.get("/me/team", response_model=List[schemas.TeamMemberDisplay])
def get_my_team(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_manager_user)
):
    """Affiliates attached to the current manager."""
    logger.info(f"Fetching team for manager {current_user.email} (ID: {current_user.id}).")
    return user_crud.get_team_members(db, current_user.id)
