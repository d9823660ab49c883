import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, DateTime, String
from voicestyle.model.base import Base


class User(Base):
    __tablename__ = "users"
    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False)
    business_type = Column(String(64))
    onboarding_step = Column(String(64))
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
