from sqlalchemy import (
    Column, Integer, String, Text, ForeignKey, TIMESTAMP, DECIMAL,
    Enum as SAEnum, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship, validates

from commission_backend.core.database import Base, utcnow
from commission_backend.models.enums import CommissionSourceType, CommissionStatus, source_group_for

class Commission(Base):
    __tablename__ = "commissions"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True) # The user who earns the commission

    source_type = Column(SAEnum(CommissionSourceType, name="commission_source_type_enum", values_callable=lambda obj: [e.value for e in obj]),
                         nullable=False)
    # PRODUCT and ORDER fold into one group so the unique constraint spans both labels
    source_group = Column(String(20), nullable=False)
    source_id = Column(Integer, nullable=False) # Order, subscription or signed-up user id

    amount = Column(DECIMAL(10, 2), nullable=False)

    status = Column(SAEnum(CommissionStatus, name="commission_status_enum", values_callable=lambda obj: [e.value for e in obj]),
                    nullable=False, default=CommissionStatus.PENDING, index=True)

    # Set when a payout consumes this commission
    payout_request_id = Column(Integer, ForeignKey("payout_requests.id"), nullable=True, index=True)

    notes = Column(Text, nullable=True)

    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)
    approved_at = Column(TIMESTAMP, nullable=True)
    paid_at = Column(TIMESTAMP, nullable=True)

    earning_user = relationship("User", foreign_keys=[user_id])
    payout_request = relationship("PayoutRequest", back_populates="commissions")

    __table_args__ = (
        UniqueConstraint("user_id", "source_group", "source_id", name="uq_commission_user_source"),
        Index("idx_commission_user_status_created", "user_id", "status", "created_at"),
    )

    @validates("source_type")
    def _sync_source_group(self, key, value):
        self.source_group = source_group_for(value)
        return value

    def __repr__(self):
        return (f"<Commission(id={self.id}, user_id={self.user_id}, source={self.source_type}:{self.source_id}, "
                f"amount={self.amount}, status='{self.status}')>")
