import logging
from typing import NamedTuple, Optional

from sqlalchemy.orm import Session

from commission_backend.crud import user_crud
from commission_backend.models.enums import UserRole
from commission_backend.models.user_model import User

logger = logging.getLogger(__name__)

# Only these roles can appear as a referrer
REFERRER_ROLES = (UserRole.AFFILIATE, UserRole.MANAGER)


class ReferralChain(NamedTuple):
    referrer: Optional[User]
    manager_of_referrer: Optional[User]

    @property
    def is_empty(self) -> bool:
        return self.referrer is None


EMPTY_CHAIN = ReferralChain(None, None)


def chain_for_referrer(db: Session, referrer: Optional[User]) -> ReferralChain:
    """
    Expands a referrer into at most two beneficiaries.

    An AFFILIATE contributes its manager as the second tier. A MANAGER has no
    manager of its own, so the chain stops there.
    """
    if referrer is None:
        return EMPTY_CHAIN
    if referrer.role not in REFERRER_ROLES:
        logger.warning(f"User {referrer.id} with role {referrer.role} cannot act as a referrer; ignoring.")
        return EMPTY_CHAIN

    manager = None
    if referrer.role == UserRole.AFFILIATE and referrer.manager_id:
        manager = user_crud.get_user_by_id(db, referrer.manager_id)
        if manager is not None and manager.role != UserRole.MANAGER:
            logger.warning(f"Affiliate {referrer.id} points at non-manager user {manager.id}; second tier skipped.")
            manager = None
    return ReferralChain(referrer, manager)


def resolve_for_user(db: Session, user_id: int) -> ReferralChain:
    """Chain for whoever referred `user_id`."""
    user = user_crud.get_user_by_id(db, user_id)
    if user is None or user.referred_by_id is None:
        return EMPTY_CHAIN
    return chain_for_referrer(db, user_crud.get_user_by_id(db, user.referred_by_id))


def resolve_by_invite_code(db: Session, invite_code: Optional[str]) -> ReferralChain:
    if not invite_code:
        return EMPTY_CHAIN
    referrer = user_crud.get_user_by_invite_code(db, invite_code)
    if referrer is None:
        logger.warning(f"Invite code '{invite_code}' does not resolve to any user.")
        return EMPTY_CHAIN
    return chain_for_referrer(db, referrer)


def resolve_by_referrer_id(db: Session, referrer_id: Optional[int]) -> ReferralChain:
    if referrer_id is None:
        return EMPTY_CHAIN
    return chain_for_referrer(db, user_crud.get_user_by_id(db, referrer_id))
