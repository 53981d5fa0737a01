from sqlalchemy import Column, Integer, Text, ForeignKey, TIMESTAMP, DECIMAL, Enum as SAEnum
from sqlalchemy.orm import relationship

from commission_backend.core.database import Base, utcnow
from commission_backend.models.enums import PayoutStatus

class PayoutRequest(Base):
    __tablename__ = "payout_requests"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    amount = Column(DECIMAL(10, 2), nullable=False)
    payment_method = Column(Text, nullable=False) # JSON blob: {"type": ..., "details": {...}}

    status = Column(SAEnum(PayoutStatus, name="payout_status_enum", values_callable=lambda obj: [e.value for e in obj]),
                    nullable=False, default=PayoutStatus.PENDING, index=True)

    requested_at = Column(TIMESTAMP, nullable=False, default=utcnow)
    processed_at = Column(TIMESTAMP, nullable=True)
    processed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    user = relationship("User", foreign_keys=[user_id])
    processed_by = relationship("User", foreign_keys=[processed_by_id])
    commissions = relationship("Commission", back_populates="payout_request")

    def __repr__(self):
        return f"<PayoutRequest(id={self.id}, user_id={self.user_id}, amount={self.amount}, status='{self.status}')>"
