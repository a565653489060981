"""Author trust estimation.

A trust score in [0.5, 1.0] scales how harshly rule-based scores are read:
the pipeline multiplies risk by ``2 - trust``.  :class:`TrustEstimator` is the
pluggable seam; :class:`HashTrustEstimator` is only a deterministic reference
until a reputation model built from author history is plugged in.
"""

from __future__ import annotations

import hashlib
import logging
import uuid

logger = logging.getLogger(__name__)

MIN_TRUST = 0.5
MAX_TRUST = 1.0
NEUTRAL_TRUST = 0.5


class TrustEstimator:
    """Maps an author to a trust score in ``[MIN_TRUST, MAX_TRUST]``.

    Subclasses implement :meth:`_score`; :meth:`get_trust_score` clamps the
    result and turns any failure into :data:`NEUTRAL_TRUST`.
    """

    async def get_trust_score(self, author: uuid.UUID) -> float:
        try:
            score = await self._score(author)
        except Exception:
            logger.exception("Error calculating trust score for author %s", author)
            return NEUTRAL_TRUST
        return max(MIN_TRUST, min(MAX_TRUST, score))

    async def _score(self, author: uuid.UUID) -> float:
        raise NotImplementedError


class HashTrustEstimator(TrustEstimator):
    """Deterministic stand-in: hashes the author id into [0.5, 1.0).

    The unknown author is hashed like any other id, so it still gets an
    in-range score.
    """

    async def _score(self, author: uuid.UUID) -> float:
        digest = hashlib.sha256(str(author).encode("utf-8")).digest()
        bucket = int.from_bytes(digest[:8], "big") % 1000
        return MIN_TRUST + bucket / 2000.0


class StaticTrustEstimator(TrustEstimator):
    """Returns the same score for every author."""

    def __init__(self, score: float = NEUTRAL_TRUST) -> None:
        self.score = score

    async def _score(self, author: uuid.UUID) -> float:
        return self.score
