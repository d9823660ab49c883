import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from voicestyle.config import NEXT_STEP_AFTER_BUSINESS_TYPE, SUPPORTED_BUSINESS_TYPES
from voicestyle.model.CommunicationStyle import DEFAULT_STYLE_PROFILE, AnalysisStatus, fallback_style_profile
from voicestyle.services.database import store_user
from voicestyle.services.style_writer import StyleWriter, StyleWriteResult, WriteStatus

_logger = logging.getLogger(__name__)


class InvalidBusinessType(ValueError):
    """Raised when the selected business type is not supported."""


@dataclass(frozen=True)
class OnboardingResult:
    user_id: str
    business_type: str
    next_step: str
    style_write: StyleWriteResult

    @property
    def style_status(self) -> str:
        return self.style_write.status.value


def normalize_business_type(business_type: str) -> str:
    """Match a business type case-insensitively against the supported list."""
    candidate = (business_type or "").strip().lower()
    for supported in SUPPORTED_BUSINESS_TYPES:
        if supported.lower() == candidate:
            return supported
    raise InvalidBusinessType(f"Unsupported business type: {business_type!r}")


def select_business_type(email: str, business_type: str, writer: StyleWriter) -> OnboardingResult:
    """
    Complete the business type onboarding step.

    Stores the business type on the user and marks voice analysis as started
    on the user's style record. A style record that cannot hold the analysis
    status yet does not block the step.

    Args:
        email (str): The user's email address
        business_type (str): Selected business type
        writer (StyleWriter): Style record writer

    Returns:
        OnboardingResult: next step and the outcome of the style write

    Raises:
        InvalidBusinessType: if the business type is not supported
        StyleWriteError: if the style record write failed for any other reason
    """
    if not email:
        raise ValueError("email is required")
    selected = normalize_business_type(business_type)

    # The style record references the user row, but the step only advances once the style write went through
    user = store_user(email=email)

    now = datetime.now(timezone.utc)
    style_write = writer.upsert(
        user.id,
        {
            "analysis_status": AnalysisStatus.IN_PROGRESS.value,
            "analysis_started_at": now,
            "last_updated": now,
        },
        insert_defaults={"style_profile": DEFAULT_STYLE_PROFILE, "learning_count": 0},
    )
    if style_write.status is WriteStatus.SCHEMA_GAP:
        _logger.info(f"Voice analysis status not recorded for user {user.id}; continuing onboarding")

    store_user(email=email, business_type=selected, onboarding_step=NEXT_STEP_AFTER_BUSINESS_TYPE)
    _logger.info(f"Business type {selected} stored for user {user.id}")

    return OnboardingResult(
        user_id=user.id,
        business_type=selected,
        next_step=NEXT_STEP_AFTER_BUSINESS_TYPE,
        style_write=style_write,
    )


def record_analysis_completed(
    user_id: str,
    writer: StyleWriter,
    sample_count: int = 0,
    style_profile: dict | None = None,
) -> StyleWriteResult:
    """Mark voice analysis as completed, storing the learned profile when one is given."""
    now = datetime.now(timezone.utc)
    fields = {
        "analysis_status": AnalysisStatus.COMPLETED.value,
        "analysis_completed_at": now,
        "email_sample_count": sample_count,
        "last_updated": now,
    }
    if style_profile is not None:
        fields["style_profile"] = style_profile
    result = writer.update(user_id, fields)
    _logger.info(f"Voice analysis completed for user {user_id} ({sample_count} emails, {result.status.value})")
    return result


def record_analysis_skipped(user_id: str, reason: str, writer: StyleWriter) -> StyleWriteResult:
    """Mark voice analysis as skipped, e.g. when there were too few sent emails to learn from."""
    now = datetime.now(timezone.utc)
    result = writer.upsert(
        user_id,
        {
            "analysis_status": AnalysisStatus.SKIPPED.value,
            "analysis_completed_at": now,
            "skip_reason": reason,
            "last_updated": now,
        },
        insert_defaults={"style_profile": fallback_style_profile("default_fallback"), "learning_count": 0},
    )
    _logger.info(f"Voice analysis skipped for user {user_id}: {reason}")
    return result


def record_analysis_failed(user_id: str, error: BaseException | str, writer: StyleWriter) -> StyleWriteResult:
    """Mark voice analysis as failed; onboarding carries on with the fallback profile."""
    now = datetime.now(timezone.utc)
    result = writer.upsert(
        user_id,
        {
            "analysis_status": AnalysisStatus.FAILED.value,
            "analysis_completed_at": now,
            "skip_reason": str(error),
            "last_updated": now,
        },
        insert_defaults={"style_profile": fallback_style_profile("error_fallback"), "learning_count": 0},
    )
    _logger.info(f"Voice analysis failure recorded for user {user_id}: {error}")
    return result
