import logging
import secrets
import string
from typing import NamedTuple, Optional

from sqlalchemy.orm import Session

from commission_backend.core.database import run_unit_of_work
from commission_backend.core.exceptions import (
    AlreadyProcessedError, CommerceError, NotFoundError, PermissionDeniedError, ValidationError
)
from commission_backend.crud import activity_crud, user_crud
from commission_backend.models.activity_model import ActivityLog
from commission_backend.models.commission_model import Commission
from commission_backend.models.enums import ActivityType, UserRole
from commission_backend.models.order_model import Order
from commission_backend.models.payout_model import PayoutRequest
from commission_backend.models.subscription_model import Subscription
from commission_backend.models.user_model import User
from commission_backend.schemas.user_schema import AdminUserUpdate, UserCreateInternal, UserRegistration
from commission_backend.services.commission_engine import CommissionEngine, CommissionOutcome
from commission_backend.services.referral_graph import REFERRER_ROLES
from commission_backend.services.settings_provider import CommissionSettings
from commission_backend.services.subscription_service import SubscriptionLifecycleService

logger = logging.getLogger(__name__)

INVITE_CODE_LENGTH = 8
INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits
INVITE_CODE_ROLES = (UserRole.MANAGER, UserRole.AFFILIATE)


class Registration(NamedTuple):
    user: User
    commissions: CommissionOutcome


def generate_invite_code(db: Session, attempts: int = 10) -> str:
    for _ in range(attempts):
        code = "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))
        if user_crud.get_user_by_invite_code(db, code) is None:
            return code
    raise CommerceError("Could not allocate a unique invite code.")


def validate_referral_links(db: Session, role: UserRole, manager_id: Optional[int], referred_by_id: Optional[int]) -> None:
    """A manager link only ever joins an AFFILIATE to a MANAGER; a referrer is an AFFILIATE or MANAGER."""
    if manager_id is not None:
        if role != UserRole.AFFILIATE:
            raise ValidationError("Only affiliates can be assigned a manager.")
        manager = user_crud.get_user_by_id(db, manager_id)
        if manager is None or manager.role != UserRole.MANAGER:
            raise ValidationError(f"User {manager_id} is not a manager.")
    if referred_by_id is not None:
        referrer = user_crud.get_user_by_id(db, referred_by_id)
        if referrer is None or referrer.role not in REFERRER_ROLES:
            raise ValidationError(f"User {referred_by_id} cannot act as a referrer.")


def register_user(db: Session, registration: UserRegistration, settings_provider: Optional[CommissionSettings] = None) -> Registration:
    """
    Creates the local user for a verified Firebase identity.

    Affiliates may name their manager by invite code (must resolve to a MANAGER).
    Customers may name a referrer by invite code; unknown codes are ignored.
    New customers start on the free plan and their referrer's signup bonus is
    written in the same transaction.
    """
    if registration.role == UserRole.ADMIN:
        raise PermissionDeniedError("Admin accounts cannot be self-registered.")

    def work():
        if user_crud.get_user_by_firebase_uid(db, registration.firebase_uid) or user_crud.get_user_by_email(db, registration.email):
            raise AlreadyProcessedError("User already registered. Please log in.")

        manager_id = None
        referred_by_id = None
        referral_code_used = None

        if registration.role == UserRole.AFFILIATE and registration.manager_code:
            manager = user_crud.get_user_by_invite_code(db, registration.manager_code)
            if manager is None or manager.role != UserRole.MANAGER:
                raise ValidationError("Invalid manager code.")
            manager_id = manager.id

        if registration.role == UserRole.CUSTOMER and registration.referral_code:
            referrer = user_crud.get_user_by_invite_code(db, registration.referral_code)
            if referrer is not None and referrer.role in REFERRER_ROLES:
                referred_by_id = referrer.id
                referral_code_used = referrer.invite_code
            else:
                logger.warning(f"Referral code '{registration.referral_code}' ignored for {registration.email}.")

        validate_referral_links(db, registration.role, manager_id, referred_by_id)

        user = user_crud.create_user(db, UserCreateInternal(
            firebase_uid=registration.firebase_uid,
            email=registration.email,
            first_name=registration.first_name,
            last_name=registration.last_name,
            role=registration.role,
            invite_code=generate_invite_code(db) if registration.role in INVITE_CODE_ROLES else None,
            manager_id=manager_id,
            referred_by_id=referred_by_id,
        ))
        activity_crud.log_activity(db, user.id, ActivityType.USER_REGISTERED, {
            "role": registration.role.value,
            "manager_id": manager_id,
            "referred_by_id": referred_by_id,
        })

        commissions = CommissionOutcome()
        if registration.role == UserRole.CUSTOMER:
            lifecycle = SubscriptionLifecycleService(db, settings_provider)
            lifecycle.enroll_in_free_plan(user)
            if referral_code_used:
                commissions = CommissionEngine(db, lifecycle.settings).signup_commission(user.id, referral_code_used)
        return Registration(user, commissions)

    result = run_unit_of_work(db, work)
    db.refresh(result.user)
    logger.info(f"User registered: {result.user.email} (ID: {result.user.id}, role {result.user.role.value}).")
    return result


def update_user_by_admin(db: Session, user_id: int, data_in: AdminUserUpdate) -> User:
    """
    Applies an admin edit while keeping the manager/referrer links valid.
    Promoting an affiliate drops its manager link; demoting a manager detaches its team.
    """
    def work():
        user = user_crud.get_user_by_id(db, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found.")

        update_data = {
            k: v for k, v in data_in.model_dump(exclude_unset=True, exclude={"manager_id", "clear_manager"}).items()
            if v is not None
        }
        new_role = update_data.get("role") or user.role

        if data_in.clear_manager:
            manager_id = None
        elif data_in.manager_id is not None:
            manager_id = data_in.manager_id
        elif new_role != UserRole.AFFILIATE:
            manager_id = None
        else:
            manager_id = user.manager_id

        if user.role == UserRole.MANAGER and new_role != UserRole.MANAGER:
            for member in user_crud.get_team_members(db, user.id):
                member.manager_id = None
                logger.info(f"Affiliate {member.id} detached from demoted manager {user.id}.")

        if user.role in REFERRER_ROLES and new_role not in REFERRER_ROLES:
            if db.query(User.id).filter(User.referred_by_id == user.id).first() is not None:
                raise ValidationError("This user still has referred users and must remain an affiliate or manager.")

        # The stored role of `user` is stale here; no one else changes in this edit
        if manager_id is not None and manager_id == user.id:
            raise ValidationError("A user cannot be their own manager.")
        validate_referral_links(db, new_role, manager_id, user.referred_by_id)

        for field, value in update_data.items():
            setattr(user, field, value)
        user.manager_id = manager_id
        if new_role in INVITE_CODE_ROLES and not user.invite_code:
            user.invite_code = generate_invite_code(db)
        db.flush()
        return user

    user = run_unit_of_work(db, work, retry_on_conflict=False)
    db.refresh(user)
    logger.info(f"User ID {user_id} updated by admin: role {user.role.value}, status {user.status.value}, manager_id {user.manager_id}.")
    return user


def delete_user(db: Session, user_id: int, acting_admin_id: Optional[int] = None) -> None:
    """
    Hard-deletes a user in one transaction: links held by other users and
    orders are nulled, rows owned by the user are removed.
    """
    def work():
        user = user_crud.get_user_by_id(db, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found.")
        if acting_admin_id is not None and user_id == acting_admin_id:
            raise ValidationError("Admins cannot delete their own account.")

        # Detach everything that points at the user
        db.query(User).filter(User.manager_id == user_id).update({User.manager_id: None}, synchronize_session=False)
        db.query(User).filter(User.referred_by_id == user_id).update({User.referred_by_id: None}, synchronize_session=False)
        db.query(Order).filter(Order.referred_by_id == user_id).update({Order.referred_by_id: None}, synchronize_session=False)
        db.query(PayoutRequest).filter(PayoutRequest.processed_by_id == user_id).update(
            {PayoutRequest.processed_by_id: None}, synchronize_session=False
        )

        # Owned rows; commissions go before the payout requests they reference
        counts = {
            "activity_logs": db.query(ActivityLog).filter(ActivityLog.user_id == user_id).delete(synchronize_session=False),
            "commissions": db.query(Commission).filter(Commission.user_id == user_id).delete(synchronize_session=False),
            "payout_requests": db.query(PayoutRequest).filter(PayoutRequest.user_id == user_id).delete(synchronize_session=False),
            "subscriptions": db.query(Subscription).filter(Subscription.customer_id == user_id).delete(synchronize_session=False),
            "orders": db.query(Order).filter(Order.customer_id == user_id).delete(synchronize_session=False),
        }
        db.query(User).filter(User.id == user_id).delete(synchronize_session=False)
        return counts

    counts = run_unit_of_work(db, work, retry_on_conflict=False)
    db.expire_all()
    logger.info(f"User {user_id} deleted with dependents: {counts}")
