"""Sensitive-word lookup.

:class:`SensitiveWordGateway` is the interface the pipeline consumes; any
external word-list service can stand behind it.  :class:`SensitiveWordFilter`
is the local implementation: an Aho-Corasick automaton over risk-tiered word
lists, scanning normalised text in a single pass.
"""

from __future__ import annotations

import logging
import re
from collections import deque
from typing import Iterable, Optional

from screener.moderation.models import RiskTier, SensitiveWordResult

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Built-in word lists
# ---------------------------------------------------------------------------

BUILTIN_WORDS: dict[RiskTier, tuple[str, ...]] = {
    RiskTier.HIGH: (
        "恐怖主义", "极端主义", "暴恐", "分裂国家",
        "terrorism", "extremism", "ethnic cleansing",
    ),
    RiskTier.MEDIUM: (
        "毒品", "枪支", "赌博", "诈骗", "洗钱", "人体器官", "钓鱼",
        "drug dealing", "gambling", "money laundering", "phishing", "organ trade",
    ),
    RiskTier.LOW: (
        "广告", "推广", "代理", "加盟", "刷单", "兼职赚钱",
        "clickbait", "follow for follow",
    ),
}

# Three or more medium-risk hits warrant a person even without a high-risk word.
_MEDIUM_REVIEW_COUNT = 3

_NON_WORD = re.compile(r"[\W_]")


class SensitiveWordGateway:
    """Interface to a sensitive-word lookup service."""

    async def check_content(self, text: str, replace_with_mask: bool = False) -> SensitiveWordResult:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Aho-Corasick automaton
# ---------------------------------------------------------------------------


class _Node:
    __slots__ = ("children", "failure", "word")

    def __init__(self) -> None:
        self.children: dict[str, _Node] = {}
        self.failure: Optional[_Node] = None
        self.word: str = ""


def _build_automaton(words: Iterable[str]) -> _Node:
    root = _Node()
    for word in words:
        node = root
        for char in word:
            node = node.children.setdefault(char, _Node())
        node.word = word

    queue: deque[_Node] = deque()
    for child in root.children.values():
        child.failure = root
        queue.append(child)

    while queue:
        current = queue.popleft()
        for char, child in current.children.items():
            queue.append(child)
            failure = current.failure
            while failure is not None and char not in failure.children:
                failure = failure.failure
            child.failure = failure.children[char] if failure is not None else root

    return root


def _scan(root: _Node, text: str) -> list[str]:
    found: list[str] = []
    node = root
    for char in text:
        while node is not root and char not in node.children:
            node = node.failure or root
        node = node.children.get(char, root)

        hit: Optional[_Node] = node
        while hit is not None and hit is not root:
            if hit.word and hit.word not in found:
                found.append(hit.word)
            hit = hit.failure
    return found


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


class SensitiveWordFilter(SensitiveWordGateway):
    """Local tiered word filter.

    Parameters
    ----------
    words : dict[RiskTier, Iterable[str]] | None
        Extra words per tier, added on top of the built-in lists.
    mask_char : str
        Character used when masking detected words.
    fuzzy_matching : bool
        Strip spaces and punctuation before matching, so ``t-e r_ror`` still
        hits ``terror``.
    case_sensitive : bool
        Match case exactly instead of lowercasing everything.
    include_builtin : bool
        Load :data:`BUILTIN_WORDS`.
    """

    def __init__(
        self,
        words: dict[RiskTier, Iterable[str]] | None = None,
        mask_char: str = "*",
        fuzzy_matching: bool = True,
        case_sensitive: bool = False,
        include_builtin: bool = True,
    ) -> None:
        self.mask_char = mask_char
        self.fuzzy_matching = fuzzy_matching
        self.case_sensitive = case_sensitive
        self._words: dict[str, RiskTier] = {}
        # normalised -> configured spelling, used when reporting hits
        self._spellings: dict[str, str] = {}

        if include_builtin:
            for tier, entries in BUILTIN_WORDS.items():
                self._store(entries, tier)
        for tier, entries in (words or {}).items():
            self._store(entries, tier)

        self._root = _build_automaton(self._words)
        logger.debug("Sensitive words initialized. Total: %d", len(self._words))

    @classmethod
    def from_config(cls, config) -> SensitiveWordFilter:
        return cls(
            words=config.sensitive_words,
            mask_char=config.mask_char,
            fuzzy_matching=config.fuzzy_matching,
            case_sensitive=config.case_sensitive,
        )

    # -- normalisation -------------------------------------------------------

    def normalize(self, text: str) -> str:
        normalized = text.strip()
        if not self.case_sensitive:
            normalized = normalized.lower()
        if self.fuzzy_matching:
            normalized = _NON_WORD.sub("", normalized)
        return normalized

    def _store(self, words: Iterable[str], tier: RiskTier) -> int:
        count = 0
        for word in words:
            normalized = self.normalize(word)
            if normalized:
                self._words[normalized] = tier
                self._spellings[normalized] = word.strip()
                count += 1
        return count

    # -- word list management ------------------------------------------------

    def add_words(self, words: Iterable[str], tier: RiskTier) -> int:
        """Add (or re-tier) *words*; returns how many were accepted."""
        count = self._store(words, tier)
        self._root = _build_automaton(self._words)
        logger.info("Added %d sensitive words with risk tier %s", count, tier.value)
        return count

    def remove_words(self, words: Iterable[str]) -> int:
        count = 0
        for word in words:
            normalized = self.normalize(word)
            if self._words.pop(normalized, None) is not None:
                self._spellings.pop(normalized, None)
                count += 1
        self._root = _build_automaton(self._words)
        logger.info("Removed %d sensitive words", count)
        return count

    def stats(self) -> dict[str, int]:
        counts = {tier.value: 0 for tier in RiskTier}
        for tier in self._words.values():
            counts[tier.value] += 1
        counts["total"] = len(self._words)
        return counts

    # -- lookup --------------------------------------------------------------

    def find_words(self, text: str) -> list[str]:
        """Return the distinct normalised words found in *text*, first hit first."""
        return _scan(self._root, self.normalize(text))

    def mask(self, text: str, words: Iterable[str]) -> str:
        result = text
        for word in sorted(words, key=len, reverse=True):
            replacement = self.mask_char * len(word)
            result = result.replace(word, replacement)
            if self.fuzzy_matching:
                pattern = r"[\s\-_]*".join(re.escape(c) for c in word)
                result = re.sub(pattern, replacement, result, flags=re.IGNORECASE)
        return result

    def check(self, text: str, replace_with_mask: bool = False) -> SensitiveWordResult:
        if not text or not text.strip():
            return SensitiveWordResult(filtered_content=text or "")

        detected = self.find_words(text)
        if not detected:
            return SensitiveWordResult(filtered_content=text)

        by_tier: dict[RiskTier, list[str]] = {tier: [] for tier in RiskTier}
        for word in detected:
            by_tier[self._words[word]].append(self._spellings[word])

        high = tuple(by_tier[RiskTier.HIGH])
        medium = tuple(by_tier[RiskTier.MEDIUM])
        return SensitiveWordResult(
            contains_sensitive_words=True,
            detected_words=tuple(self._spellings[word] for word in detected),
            high_risk_words=high,
            medium_risk_words=medium,
            low_risk_words=tuple(by_tier[RiskTier.LOW]),
            filtered_content=self.mask(text, detected) if replace_with_mask else text,
            requires_manual_review=bool(high) or len(medium) >= _MEDIUM_REVIEW_COUNT,
        )

    async def check_content(self, text: str, replace_with_mask: bool = False) -> SensitiveWordResult:
        return self.check(text, replace_with_mask)
