from sqlalchemy import Column, Integer, String, Text, ForeignKey, TIMESTAMP

from commission_backend.core.database import Base, utcnow

class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    action_type = Column(String(64), nullable=False, index=True)
    action_details = Column(Text, nullable=True) # JSON-encoded
    created_at = Column(TIMESTAMP, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<ActivityLog(id={self.id}, user_id={self.user_id}, action_type='{self.action_type}')>"
