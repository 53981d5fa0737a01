from sqlalchemy import Column, Integer, String, Text, TIMESTAMP

from commission_backend.core.database import Base, utcnow

class SystemSetting(Base):
    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), unique=True, nullable=False, index=True)
    value = Column(Text, nullable=False) # JSON-encoded
    updated_at = Column(TIMESTAMP, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<SystemSetting(key='{self.key}', value={self.value!r})>"
