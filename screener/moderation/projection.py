"""Projection of internal decision records into caller-facing results."""

from __future__ import annotations

from datetime import datetime, timezone

from screener.config import ModerationConfig
from screener.moderation.models import (
    DecisionRecord,
    ModerationAction,
    ModerationIssue,
    ModerationOutcome,
    ModerationResult,
    RiskLevel,
    SensitiveWordDetection,
)

SENSITIVE_WORDS_SEVERITY = 0.8
SPAM_SEVERITY = 0.7
REVIEW_MEDIUM_RISK_CONFIDENCE = 0.7

SUGGESTED_ACTIONS: dict[ModerationOutcome, ModerationAction] = {
    ModerationOutcome.APPROVED: ModerationAction.APPROVE,
    ModerationOutcome.REQUIRES_HUMAN_REVIEW: ModerationAction.REVIEW,
    ModerationOutcome.REJECTED_SPAM: ModerationAction.MARK_AS_SPAM,
    ModerationOutcome.REJECTED_INAPPROPRIATE: ModerationAction.DELETE,
    ModerationOutcome.REJECTED_HATE_SPEECH: ModerationAction.DELETE,
    ModerationOutcome.REJECTED_SENSITIVE_WORDS: ModerationAction.REVIEW,
}

_FIXED_RISK: dict[ModerationOutcome, RiskLevel] = {
    ModerationOutcome.APPROVED: RiskLevel.LOW,
    ModerationOutcome.REJECTED_SPAM: RiskLevel.MEDIUM,
    ModerationOutcome.REJECTED_INAPPROPRIATE: RiskLevel.HIGH,
    ModerationOutcome.REJECTED_HATE_SPEECH: RiskLevel.CRITICAL,
    ModerationOutcome.REJECTED_SENSITIVE_WORDS: RiskLevel.HIGH,
}


def risk_level(outcome: ModerationOutcome, confidence: float) -> RiskLevel:
    if outcome is ModerationOutcome.REQUIRES_HUMAN_REVIEW:
        return RiskLevel.MEDIUM if confidence > REVIEW_MEDIUM_RISK_CONFIDENCE else RiskLevel.LOW
    return _FIXED_RISK[outcome]


def issues_for(record: DecisionRecord) -> tuple[ModerationIssue, ...]:
    issues = []
    if record.contains_sensitive_words:
        issues.append(
            ModerationIssue(
                type="sensitive_words",
                description="Content contains sensitive words",
                severity=SENSITIVE_WORDS_SEVERITY,
            )
        )
    if record.outcome is ModerationOutcome.REJECTED_SPAM:
        issues.append(
            ModerationIssue(type="spam", description="Content detected as spam", severity=SPAM_SEVERITY)
        )
    return tuple(issues)


def to_moderation_result(record: DecisionRecord, config: ModerationConfig) -> ModerationResult:
    detections = tuple(
        SensitiveWordDetection(
            word=word,
            category=config.detection_category,
            severity=config.severity_for(record.sensitive_word_tiers.get(word)),
        )
        for word in record.detected_sensitive_words
    )
    return ModerationResult(
        approved=record.outcome is ModerationOutcome.APPROVED,
        confidence=record.confidence,
        reason=record.reason,
        issues=issues_for(record),
        suggested_action=SUGGESTED_ACTIONS[record.outcome],
        risk_level=risk_level(record.outcome, record.confidence),
        model_version=config.model_version,
        processed_at=datetime.now(timezone.utc),
        processing_time_ms=record.processing_time_ms,
        sensitive_word_detections=detections,
    )
