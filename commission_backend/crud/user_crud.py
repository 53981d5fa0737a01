from sqlalchemy.orm import Session
from sqlalchemy import func
import logging
from typing import List, Optional, Dict, Any

from commission_backend.models.user_model import User
from commission_backend.models.enums import UserRole
from commission_backend.schemas.user_schema import UserCreateInternal

logger = logging.getLogger(__name__)


# Helper function to apply filters to a query
def _apply_user_filters(query, filters: Optional[Dict[str, Any]] = None):
    if not filters:
        return query

    if "email_contains" in filters and filters["email_contains"]:
        query = query.filter(User.email.ilike(f"%{filters['email_contains']}%"))
    if "role" in filters and filters["role"]:
        query = query.filter(User.role == filters["role"])
    if "status" in filters and filters["status"]:
        query = query.filter(User.status == filters["status"])
    if "manager_id" in filters and filters["manager_id"]:
        query = query.filter(User.manager_id == filters["manager_id"])
    return query

def get_user_by_id(db: Session, user_id: int) -> User | None:
    """Fetches a user by their internal database ID."""
    logger.debug(f"Fetching user by ID: {user_id}")
    return db.query(User).filter(User.id == user_id).first()

def get_user_by_email(db: Session, email: str) -> User | None:
    logger.debug(f"Fetching user by email: {email}")
    return db.query(User).filter(User.email == email).first()

def get_user_by_firebase_uid(db: Session, firebase_uid: str) -> User | None:
    logger.debug(f"Fetching user by Firebase UID: {firebase_uid}")
    return db.query(User).filter(User.firebase_uid == firebase_uid).first()

def get_user_by_invite_code(db: Session, invite_code: str) -> User | None:
    """Invite codes are stored upper-case; lookups are case-insensitive on input."""
    if not invite_code:
        return None
    code = invite_code.strip().upper()
    logger.debug(f"Fetching user by invite code: {code}")
    return db.query(User).filter(User.invite_code == code).first()

def create_user(db: Session, user_data: UserCreateInternal) -> User:
    """
    Adds a user row to the session and flushes it to obtain an ID.
    Referral links must already be validated by the caller; the transaction
    is committed by the calling service.
    """
    logger.info(f"Creating user for email: {user_data.email}, Firebase UID: {user_data.firebase_uid}, "
                f"role: {user_data.role.value}, manager_id: {user_data.manager_id}, referred_by_id: {user_data.referred_by_id}")
    db_user = User(**user_data.model_dump())
    db.add(db_user)
    db.flush()
    return db_user

def get_team_members(db: Session, manager_id: int) -> List[User]:
    """Affiliates whose manager is `manager_id`."""
    logger.debug(f"Fetching team members for manager ID {manager_id}")
    return (
        db.query(User)
        .filter(User.manager_id == manager_id, User.role == UserRole.AFFILIATE)
        .order_by(User.created_at.asc(), User.id.asc())
        .all()
    )

def get_referred_customers(db: Session) -> List[User]:
    """Every customer that has a referrer recorded."""
    return (
        db.query(User)
        .filter(User.role == UserRole.CUSTOMER, User.referred_by_id.isnot(None))
        .order_by(User.id.asc())
        .all()
    )


# --- Admin User Management CRUD ---

def get_users(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    filters: Optional[Dict[str, Any]] = None
) -> List[User]:
    """
    Retrieves a list of users with pagination and optional filtering.
    """
    logger.debug(f"Fetching users with skip: {skip}, limit: {limit}, filters: {filters}")
    query = db.query(User)
    query = _apply_user_filters(query, filters)
    return query.order_by(User.id.asc()).offset(skip).limit(limit).all()

def count_users(db: Session, filters: Optional[Dict[str, Any]] = None) -> int:
    logger.debug(f"Counting users with filters: {filters}")
    query = db.query(func.count(User.id))
    query = _apply_user_filters(query, filters)
    return query.scalar() or 0
