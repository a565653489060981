"""Data models for the content moderation pipeline."""

from __future__ import annotations

import re
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

# ---------------------------------------------------------------------------
# Authors
# ---------------------------------------------------------------------------

EMPTY_AUTHOR = uuid.UUID(int=0)  # "unknown author"


def as_author(value: uuid.UUID | str | None) -> uuid.UUID:
    """Coerce *value* to an author id; ``None`` and ``""`` mean unknown."""
    if value is None or value == "":
        return EMPTY_AUTHOR
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------

CONTENT_TYPES = ("markdown", "html", "plaintext")

_MARKER_WORDS = ("spam", "advertisement", "广告", "垃圾")
_MAX_MODERATION_FREE_WORDS = 500
_SUMMARY_LENGTH = 150


@dataclass(frozen=True)
class Content:
    """Immutable wrapper around user-submitted text."""

    raw: str
    content_type: str = "markdown"

    def __post_init__(self) -> None:
        if not isinstance(self.raw, str):
            raise TypeError(f"Content text must be str, not {type(self.raw).__name__}")
        if self.content_type.lower() not in CONTENT_TYPES:
            raise ValueError(
                f"Unsupported content type: {self.content_type}. "
                f"Supported types: {', '.join(CONTENT_TYPES)}"
            )
        object.__setattr__(self, "content_type", self.content_type.lower())

    @property
    def contains_marker_words(self) -> bool:
        lowered = self.raw.lower()
        return any(word in lowered for word in _MARKER_WORDS)

    @property
    def word_count(self) -> int:
        return len(self.raw.split())

    @property
    def is_empty(self) -> bool:
        return not self.raw.strip()

    @property
    def requires_moderation(self) -> bool:
        """True when the text should never skip moderation.

        Marker words, very long posts and links all count.
        """
        lowered = self.raw.lower()
        return (
            self.contains_marker_words
            or self.word_count > _MAX_MODERATION_FREE_WORDS
            or "http://" in lowered
            or "https://" in lowered
        )

    @property
    def summary(self) -> str:
        text = re.sub(r"\s+", " ", re.sub(r"<[^>]*>", "", self.raw)).strip()
        if len(text) <= _SUMMARY_LENGTH:
            return text
        truncated = text[:_SUMMARY_LENGTH]
        last_space = truncated.rfind(" ")
        if last_space > _SUMMARY_LENGTH // 2:
            truncated = truncated[:last_space]
        return truncated + "..."


# ---------------------------------------------------------------------------
# Collaborator payloads
# ---------------------------------------------------------------------------


class RiskTier(Enum):
    """Risk tier of a sensitive word."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class SensitiveWordResult:
    """Outcome of a sensitive-word lookup for one piece of text."""

    contains_sensitive_words: bool = False
    detected_words: tuple[str, ...] = ()
    high_risk_words: tuple[str, ...] = ()
    medium_risk_words: tuple[str, ...] = ()
    low_risk_words: tuple[str, ...] = ()
    filtered_content: str = ""
    requires_manual_review: bool = False

    def tier_of(self, word: str) -> RiskTier | None:
        if word in self.high_risk_words:
            return RiskTier.HIGH
        if word in self.medium_risk_words:
            return RiskTier.MEDIUM
        if word in self.low_risk_words:
            return RiskTier.LOW
        return None


@dataclass(frozen=True)
class AIModerationResponse:
    """Scores returned by the remote classifier, each in [0, 1]."""

    toxicity: float
    spam: float
    hate_speech: float

    @property
    def max_score(self) -> float:
        return max(self.toxicity, self.spam, self.hate_speech)


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------


class ModerationOutcome(Enum):
    """Terminal classification of one moderation evaluation."""

    APPROVED = "approved"
    REQUIRES_HUMAN_REVIEW = "requires_human_review"
    REJECTED_SPAM = "rejected_spam"
    REJECTED_INAPPROPRIATE = "rejected_inappropriate"
    REJECTED_HATE_SPEECH = "rejected_hate_speech"
    REJECTED_SENSITIVE_WORDS = "rejected_sensitive_words"


@dataclass(frozen=True)
class DecisionRecord:
    """Internal result of the moderation pipeline."""

    outcome: ModerationOutcome
    confidence: float
    contains_sensitive_words: bool = False
    detected_sensitive_words: tuple[str, ...] = ()
    sensitive_word_tiers: dict[str, RiskTier] = field(default_factory=dict)
    reason: Optional[str] = None
    suggested_action: Optional[str] = None
    processing_time_ms: int = 0


class ModerationAction(Enum):
    APPROVE = "approve"
    REVIEW = "review"
    MARK_AS_SPAM = "mark_as_spam"
    DELETE = "delete"


class RiskLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class ModerationIssue:
    """A single problem found in the content."""

    type: str  # "sensitive_words" | "spam"
    description: str
    severity: float


@dataclass(frozen=True)
class SensitiveWordDetection:
    word: str
    category: str
    severity: float


@dataclass(frozen=True)
class ModerationResult:
    """Caller-facing moderation result, projected from a DecisionRecord."""

    approved: bool
    confidence: float
    suggested_action: ModerationAction
    risk_level: RiskLevel
    reason: Optional[str] = None
    issues: tuple[ModerationIssue, ...] = ()
    model_version: str = "1.0"
    processed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    processing_time_ms: int = 0
    sensitive_word_detections: tuple[SensitiveWordDetection, ...] = ()

    def to_dict(self) -> dict:
        data = asdict(self)
        data["suggested_action"] = self.suggested_action.value
        data["risk_level"] = self.risk_level.value
        data["processed_at"] = self.processed_at.isoformat()
        data["issues"] = [asdict(i) for i in self.issues]
        data["sensitive_word_detections"] = [asdict(d) for d in self.sensitive_word_detections]
        return data
