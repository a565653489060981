"""The moderation cascade.

Stages run strictly in order and the first conclusive one wins:

1. basic checks (blank, low quality, obvious spam)
2. sensitive-word lookup
3. remote AI classification, when enabled and configured
4. trust-weighted rule-based scoring, which always concludes

A stage returns a :class:`DecisionRecord` when it has decided and ``None``
when the next stage should look.  Any unexpected error is converted into a
``REQUIRES_HUMAN_REVIEW`` record with zero confidence; the pipeline never
fails toward approval and never raises.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import replace
from typing import Iterable, Optional

from screener.config import ModerationConfig
from screener.moderation import heuristics
from screener.moderation.classifier import AIClassifier
from screener.moderation.models import (
    EMPTY_AUTHOR,
    AIModerationResponse,
    Content,
    DecisionRecord,
    ModerationOutcome,
    SensitiveWordResult,
)
from screener.moderation.sensitive_words import SensitiveWordGateway
from screener.moderation.trust import HashTrustEstimator, TrustEstimator

logger = logging.getLogger(__name__)

MIN_CONTENT_LENGTH = 2
AI_REVIEW_SCORE = 0.5
APPROVAL_TRUST = 0.8
APPROVAL_MAX_SCORE = 0.3

# Internal suggested-action notes (the caller-facing action is an enum).
_ACTION_NOTES: dict[ModerationOutcome, str] = {
    ModerationOutcome.APPROVED: "Approve for publishing",
    ModerationOutcome.REQUIRES_HUMAN_REVIEW: "Send to human review",
    ModerationOutcome.REJECTED_SPAM: "Mark as spam",
    ModerationOutcome.REJECTED_INAPPROPRIATE: "Reject publishing",
    ModerationOutcome.REJECTED_HATE_SPEECH: "Reject publishing and record",
    ModerationOutcome.REJECTED_SENSITIVE_WORDS: "Contains sensitive words, needs handling",
}


def _record(outcome: ModerationOutcome, confidence: float, reason: str, **extra) -> DecisionRecord:
    return DecisionRecord(
        outcome=outcome,
        confidence=max(0.0, min(1.0, confidence)),
        reason=reason,
        suggested_action=_ACTION_NOTES[outcome],
        **extra,
    )


def fallback_record(reason: str, processing_time_ms: int = 0) -> DecisionRecord:
    """The conservative record used whenever evaluation itself fails."""
    return _record(
        ModerationOutcome.REQUIRES_HUMAN_REVIEW,
        0.0,
        reason,
        processing_time_ms=processing_time_ms,
    )


# ---------------------------------------------------------------------------
# Pure stage logic
# ---------------------------------------------------------------------------


def basic_checks(text: str) -> Optional[DecisionRecord]:
    if not text.strip() or len(text) < MIN_CONTENT_LENGTH:
        return _record(ModerationOutcome.REJECTED_INAPPROPRIATE, 1.0, "Content is empty or too short")
    if heuristics.is_low_quality_content(text):
        return _record(ModerationOutcome.REJECTED_SPAM, 0.9, "Content quality is too low")
    if heuristics.is_obvious_spam(text):
        return _record(ModerationOutcome.REJECTED_SPAM, 0.95, "Content contains spam markers")
    return None


def sensitive_word_decision(result: SensitiveWordResult) -> Optional[DecisionRecord]:
    if not result.contains_sensitive_words:
        return None

    if result.high_risk_words:
        outcome = ModerationOutcome.REJECTED_HATE_SPEECH
    elif result.medium_risk_words:
        outcome = ModerationOutcome.REJECTED_INAPPROPRIATE
    else:
        outcome = ModerationOutcome.REQUIRES_HUMAN_REVIEW

    tiers = {}
    for word in result.detected_words:
        tier = result.tier_of(word)
        if tier is not None:
            tiers[word] = tier

    return _record(
        outcome,
        0.95,
        "Content contains sensitive words",
        contains_sensitive_words=True,
        detected_sensitive_words=tuple(result.detected_words),
        sensitive_word_tiers=tiers,
    )


def interpret_ai_response(response: AIModerationResponse, config: ModerationConfig) -> DecisionRecord:
    """Turn classifier scores into a decision; confidence is the top score."""
    if response.hate_speech > config.hate_speech_threshold:
        outcome, reason = ModerationOutcome.REJECTED_HATE_SPEECH, "AI detected hate speech"
    elif response.toxicity > config.toxicity_threshold:
        outcome, reason = ModerationOutcome.REJECTED_INAPPROPRIATE, "AI detected inappropriate content"
    elif response.spam > config.spam_threshold:
        outcome, reason = ModerationOutcome.REJECTED_SPAM, "AI detected spam"
    elif response.max_score > AI_REVIEW_SCORE:
        outcome, reason = ModerationOutcome.REQUIRES_HUMAN_REVIEW, "AI suggests human review"
    else:
        outcome, reason = ModerationOutcome.APPROVED, "AI moderation passed"
    return _record(outcome, response.max_score, reason)


def rule_based_decision(text: str, trust: float, config: ModerationConfig) -> DecisionRecord:
    spam = heuristics.calculate_spam_score(text)
    toxicity = heuristics.calculate_toxicity_score(text)
    adjusted_spam = heuristics.adjust_for_trust(spam, trust)
    adjusted_toxicity = heuristics.adjust_for_trust(toxicity, trust)

    if adjusted_toxicity > config.hate_speech_threshold:
        return _record(
            ModerationOutcome.REJECTED_HATE_SPEECH, adjusted_toxicity, "Content may contain hate speech"
        )
    if adjusted_toxicity > config.toxicity_threshold:
        return _record(
            ModerationOutcome.REJECTED_INAPPROPRIATE, adjusted_toxicity, "Content may be inappropriate"
        )
    if adjusted_spam > config.spam_threshold:
        return _record(ModerationOutcome.REJECTED_SPAM, adjusted_spam, "Content may be spam")

    # Raw scores here: trusted authors still need clean text to skip review.
    if trust > APPROVAL_TRUST and spam < APPROVAL_MAX_SCORE and toxicity < APPROVAL_MAX_SCORE:
        return _record(ModerationOutcome.APPROVED, trust, "Normal content from a trusted author")

    return _record(ModerationOutcome.REQUIRES_HUMAN_REVIEW, 0.5, "Content needs human review")


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class ModerationPipeline:
    """Runs the cascade for one piece of content at a time."""

    def __init__(
        self,
        config: ModerationConfig,
        sensitive_words: SensitiveWordGateway,
        classifier: AIClassifier | None = None,
        trust: TrustEstimator | None = None,
    ) -> None:
        self.config = config
        self.sensitive_words = sensitive_words
        self.classifier = classifier
        self.trust = trust or HashTrustEstimator()

    @property
    def ai_active(self) -> bool:
        return bool(self.config.ai_enabled and self.classifier is not None and self.classifier.configured)

    async def moderate(
        self,
        content: Content,
        author: uuid.UUID = EMPTY_AUTHOR,
        source_address: str | None = None,
        cancel: asyncio.Event | None = None,
    ) -> DecisionRecord:
        start = time.monotonic()
        try:
            record = await self._evaluate(content, author, cancel)
        except Exception:
            logger.exception(
                "Error during content moderation for author %s (source %s)", author, source_address
            )
            return fallback_record("An error occurred during moderation", _elapsed_ms(start))
        return replace(record, processing_time_ms=_elapsed_ms(start))

    async def _evaluate(
        self, content: Content, author: uuid.UUID, cancel: asyncio.Event | None
    ) -> DecisionRecord:
        text = content.raw

        # 1. Basic checks
        record = basic_checks(text)
        if record is not None:
            return record

        # 2. Sensitive words
        record = await self._check_sensitive_words(text)
        if record is not None:
            return record

        # 3. AI classification
        if self.ai_active:
            response = await self._classify(text, author, cancel)
            if response is not None:
                return interpret_ai_response(response, self.config)

        # 4. Rules
        trust = await self.trust.get_trust_score(author)
        return rule_based_decision(text, trust, self.config)

    async def _check_sensitive_words(self, text: str) -> Optional[DecisionRecord]:
        try:
            result = await self.sensitive_words.check_content(text)
        except Exception as exc:
            logger.warning("Sensitive-word lookup failed, skipping stage: %s", exc)
            return None
        return sensitive_word_decision(result)

    async def _classify(
        self, text: str, author: uuid.UUID, cancel: asyncio.Event | None
    ) -> Optional[AIModerationResponse]:
        try:
            return await self.classifier.classify(text, author, cancel=cancel)
        except Exception as exc:
            logger.warning("AI classifier failed, falling back to rules: %s", exc)
            return None

    async def moderate_batch(
        self,
        items: Iterable[tuple[Content, uuid.UUID, Optional[str]]],
        cancel: asyncio.Event | None = None,
    ) -> list[DecisionRecord]:
        """Moderate every item concurrently; results follow input order."""

        async def run(item: tuple[Content, uuid.UUID, Optional[str]]) -> DecisionRecord:
            content, author, source_address = item
            try:
                return await self.moderate(content, author, source_address, cancel)
            except Exception:
                logger.exception("Error in batch moderation for author %s", author)
                return fallback_record("An error occurred during batch moderation")

        return list(await asyncio.gather(*(run(item) for item in items)))


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
