from sqlalchemy import (
    Column, Integer, String, Text, Boolean, ForeignKey, TIMESTAMP, DECIMAL,
    Enum as SAEnum
)
from sqlalchemy.orm import relationship
from datetime import timedelta

from commission_backend.core.database import Base, utcnow
from commission_backend.models.enums import SubscriptionStatus

class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=True)
    features = Column(Text, nullable=True)
    price = Column(DECIMAL(10, 2), nullable=False) # 0 marks the free plan
    duration_days = Column(Integer, nullable=False)

    # Percentage (10 means 10%) of the price paid to the referring affiliate.
    # When unset the flat affiliate subscription fee from system settings applies.
    affiliate_commission_percentage = Column(DECIMAL(5, 2), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=utcnow, onupdate=utcnow)

    subscriptions = relationship("Subscription", back_populates="plan")

    @property
    def is_free(self) -> bool:
        return self.price is not None and self.price == 0

    def __repr__(self):
        return f"<SubscriptionPlan(id={self.id}, name='{self.name}', price={self.price})>"

class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("subscription_plans.id", ondelete="RESTRICT"), nullable=False)

    status = Column(SAEnum(SubscriptionStatus, name="subscription_status_enum", values_callable=lambda obj: [e.value for e in obj]),
                    nullable=False, default=SubscriptionStatus.ACTIVE, index=True)

    start_date = Column(TIMESTAMP, nullable=False, default=utcnow)
    end_date = Column(TIMESTAMP, nullable=False, index=True)
    auto_renew = Column(Boolean, default=False, nullable=False)

    # Verified gateway reference for paid plans, unique so a replayed event is recognised
    payment_reference = Column(String(255), nullable=True, unique=True)

    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=utcnow, onupdate=utcnow)

    customer = relationship("User", foreign_keys=[customer_id])
    plan = relationship("SubscriptionPlan", back_populates="subscriptions")

    def __repr__(self):
        return f"<Subscription(id={self.id}, customer_id={self.customer_id}, plan_id={self.plan_id}, status='{self.status}')>"

    @staticmethod
    def end_date_for(plan: SubscriptionPlan, start_date):
        return start_date + timedelta(days=plan.duration_days)
