from sqlalchemy import Column, Integer, String, TIMESTAMP, ForeignKey, UniqueConstraint, Enum as SAEnum
from sqlalchemy.orm import relationship

from commission_backend.core.database import Base, utcnow
from commission_backend.models.enums import UserRole, UserStatus

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String(255), unique=True, index=True, nullable=False) # Firebase User ID
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)

    role = Column(SAEnum(UserRole, name="user_role_enum", values_callable=lambda obj: [e.value for e in obj]),
                  nullable=False, default=UserRole.CUSTOMER, index=True)
    status = Column(SAEnum(UserStatus, name="user_status_enum", values_callable=lambda obj: [e.value for e in obj]),
                    nullable=False, default=UserStatus.ACTIVE)

    # Code others register with to name this user as their referrer or manager
    invite_code = Column(String(32), unique=True, nullable=True, index=True)

    # Only ever set on AFFILIATE users, always pointing at a MANAGER
    manager_id = Column(Integer, ForeignKey("users.id", name="fk_user_manager"), nullable=True, index=True)
    # Whoever's invite code this user registered with (AFFILIATE or MANAGER)
    referred_by_id = Column(Integer, ForeignKey("users.id", name="fk_user_referred_by"), nullable=True, index=True)

    manager = relationship("User", remote_side=[id], foreign_keys=[manager_id], backref="team_members")
    referrer = relationship("User", remote_side=[id], foreign_keys=[referred_by_id], backref="referred_users")

    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint('email', name='uq_user_email'),
        UniqueConstraint('firebase_uid', name='uq_user_firebase_uid'),
        UniqueConstraint('invite_code', name='uq_user_invite_code'),
    )

    @property
    def display_name(self) -> str:
        full_name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return full_name or self.email

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
