import enum
from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String, Text
from voicestyle.model.base import Base

VOICE_TRAINING_MIGRATION = "0003_enhance_communication_styles_for_voice_training.sql"


class AnalysisStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


def _optional(migration: str) -> dict:
    return {"optional": True, "migration": migration}


class CommunicationStyle(Base):
    """Per-user voice/style record. Columns marked optional may lag behind in the live schema."""
    __tablename__ = "communication_styles"
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    style_profile = Column(JSON)
    learning_count = Column(Integer, nullable=False, server_default="0")
    last_updated = Column(DateTime)
    created_at = Column(DateTime)

    # No Python-side defaults on optional columns: statements must only name columns they were given
    analysis_status = Column(String(32), info=_optional(VOICE_TRAINING_MIGRATION))
    analysis_started_at = Column(DateTime, info=_optional(VOICE_TRAINING_MIGRATION))
    analysis_completed_at = Column(DateTime, info=_optional(VOICE_TRAINING_MIGRATION))
    skip_reason = Column(Text, info=_optional(VOICE_TRAINING_MIGRATION))
    email_sample_count = Column(Integer, info=_optional(VOICE_TRAINING_MIGRATION))


# Used when a record is first created and no voice analysis has run yet
DEFAULT_STYLE_PROFILE = {
    "voice": {
        "empathyLevel": 0.7,
        "formalityLevel": 0.8,
        "directnessLevel": 0.8,
    },
    "tone": "professional",
    "formality": "balanced",
    "source": "default_fallback",
}


def fallback_style_profile(source: str) -> dict:
    """Default profile tagged with why it was used (``default_fallback``, ``error_fallback``)."""
    return {**DEFAULT_STYLE_PROFILE, "voice": dict(DEFAULT_STYLE_PROFILE["voice"]), "source": source}
