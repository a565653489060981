"""Content moderation service.

The facade the surrounding application talks to.  Moderation calls always
return a :class:`ModerationResult`; failures surface as results that send the
content to human review, never as exceptions.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Iterable, Optional

import httpx

from screener.config import ModerationConfig
from screener.moderation import heuristics
from screener.moderation.classifier import AIClassifier
from screener.moderation.models import (
    EMPTY_AUTHOR,
    Content,
    ModerationAction,
    ModerationResult,
    RiskLevel,
    RiskTier,
    SensitiveWordResult,
    as_author,
)
from screener.moderation.pipeline import ModerationPipeline
from screener.moderation.projection import to_moderation_result
from screener.moderation.sensitive_words import SensitiveWordFilter, SensitiveWordGateway
from screener.moderation.trust import NEUTRAL_TRUST, TrustEstimator

logger = logging.getLogger(__name__)


class ContentModerationService:
    """Moderation entry points on top of a :class:`ModerationPipeline`."""

    def __init__(self, pipeline: ModerationPipeline) -> None:
        self.pipeline = pipeline

    @classmethod
    def from_config(
        cls,
        config: ModerationConfig,
        sensitive_words: SensitiveWordGateway | None = None,
        trust: TrustEstimator | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> ContentModerationService:
        """Wire a service from configuration, defaulting to the local word filter."""
        pipeline = ModerationPipeline(
            config,
            sensitive_words or SensitiveWordFilter.from_config(config),
            classifier=AIClassifier.from_config(config, client=http_client),
            trust=trust,
        )
        return cls(pipeline)

    @property
    def config(self) -> ModerationConfig:
        return self.pipeline.config

    # -- moderation ----------------------------------------------------------

    async def moderate(self, text: str | None, cancel: asyncio.Event | None = None) -> ModerationResult:
        """Moderate *text* from an unknown author."""
        return await self.moderate_comment(text, EMPTY_AUTHOR, cancel=cancel)

    async def moderate_comment(
        self,
        text: str | None,
        author: uuid.UUID | str | None,
        source_address: str | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ModerationResult:
        record = await self.pipeline.moderate(
            Content(text or ""), as_author(author), source_address, cancel
        )
        return to_moderation_result(record, self.config)

    async def moderate_batch(self, texts: Iterable[str | None]) -> list[ModerationResult]:
        """Moderate many texts concurrently; results align with *texts*."""
        items = [(Content(text or ""), EMPTY_AUTHOR, None) for text in texts]
        records = await self.pipeline.moderate_batch(items)
        return [to_moderation_result(record, self.config) for record in records]

    # -- queries -------------------------------------------------------------

    async def check_sensitive_words(self, text: str | None, replace_with_mask: bool = False) -> SensitiveWordResult:
        return await self.pipeline.sensitive_words.check_content(text or "", replace_with_mask)

    async def contains_sensitive_content(self, text: str | None) -> bool:
        result = await self.check_sensitive_words(text)
        return result.contains_sensitive_words

    async def get_risk_level(self, text: str | None) -> RiskLevel:
        result = await self.moderate(text)
        return result.risk_level

    async def requires_human_review(
        self,
        text: str | None,
        prior_result: Optional[ModerationResult] = None,
        author: uuid.UUID | str | None = None,
    ) -> bool:
        """Whether a person should look at *text*.

        Suspicious patterns (links, advertising or contact wording, long digit
        runs, email addresses) force ``True`` whatever *prior_result* says.
        """
        try:
            content = Content(text or "")
            if prior_result is not None and prior_result.suggested_action is ModerationAction.REVIEW:
                return True
            if content.requires_moderation:
                return True
            if await self.pipeline.trust.get_trust_score(as_author(author)) < NEUTRAL_TRUST:
                return True
            return bool(heuristics.find_suspicious_patterns(content.raw))
        except Exception:
            logger.exception("Error checking if content requires human review")
            return True

    # -- boundary stubs ------------------------------------------------------

    def update_sensitive_words(self, words: Iterable[str], tier: RiskTier) -> int:
        """Add words to the sensitive-word list, when the gateway allows it."""
        gateway = self.pipeline.sensitive_words
        if not hasattr(gateway, "add_words"):
            raise TypeError(f"{type(gateway).__name__} does not support adding words")
        return gateway.add_words(words, tier)

    def train_model(self, samples: Iterable[tuple[str, bool]]) -> None:
        # No trainable model behind the rules yet; only the sample count is recorded.
        logger.info("Training data received with %d samples", len(list(samples)))
