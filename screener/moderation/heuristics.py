"""Pattern heuristics for spam and toxicity.

Everything here is a pure function over a string.  The patterns are plain
data tables so a deployment can extend or localise them without touching the
pipeline.  Phrases are listed in Chinese alongside English equivalents.
"""

from __future__ import annotations

import re

# ---------------------------------------------------------------------------
# Pattern tables
# ---------------------------------------------------------------------------

URL_PATTERN = re.compile(r"https?://[^\s]+", re.IGNORECASE)
PHONE_PATTERN = re.compile(r"\d{3,4}[-\s]?\d{7,8}|\d{11}")
EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
LONG_DIGITS_PATTERN = re.compile(r"\d{10,}")

_REPEATED_CHAR = re.compile(r"(.)\1{10,}", re.DOTALL)
# No word character at all; \w already covers CJK ideographs.
_SYMBOLS_ONLY = re.compile(r"^[^\w一-龥]+$")

_MIN_DISTINCT_CHARS = 5
_DISTINCT_CHECK_MIN_LENGTH = 20

# Marketing-intent phrase pairs, separated by arbitrary text.
OBVIOUS_SPAM_PATTERNS: list[re.Pattern[str]] = [
    re.compile(p, re.IGNORECASE | re.DOTALL)
    for p in [
        r"免费.*领取", r"限时.*优惠", r"加.*微信", r"扫.*二维码",
        r"点击.*链接", r"立即.*下载", r"注册.*送", r"充值.*返利",
        r"\bfree\b.*\bclaim\b",
        r"limited[-\s]time.*\bdiscount",
        r"\badd\b.*\b(wechat|whatsapp|telegram)\b",
        r"\bscan\b.*\bqr\b",
        r"\bclick\b.*\blink\b",
        r"\bdownload\s+now\b",
        r"\bregister\b.*\b(bonus|get)\b",
        r"\brecharge\b.*\brebate\b",
    ]
]

# (pattern, weight): each matching pattern adds its weight once.
SPAM_SIGNALS: list[tuple[re.Pattern[str], float]] = [
    (URL_PATTERN, 0.3),
    (PHONE_PATTERN, 0.4),
    (EMAIL_PATTERN, 0.2),
]

MARKETING_KEYWORDS: tuple[str, ...] = (
    "优惠", "折扣", "免费", "赚钱", "兼职",
    "discount", "free", "earn money", "part-time job",
)
MARKETING_KEYWORD_WEIGHT = 0.1

EXCLAMATION_ALLOWANCE = 3
EXCLAMATION_WEIGHT = 0.05
EXCLAMATION_CAP = 0.3

TOXIC_WORDS: tuple[str, ...] = (
    "傻", "蠢", "死", "滚", "垃圾",
    "idiot", "stupid", "moron", "loser",
)
TOXIC_WORD_WEIGHT = 0.2
SHOUTING_WEIGHT = 0.1

# name -> pattern; any hit means a person should look at the content.
SUSPICIOUS_PATTERNS: dict[str, re.Pattern[str]] = {
    "url": URL_PATTERN,
    "advertisement": re.compile(r"[一-龥]*广告[一-龥]*|\badvertisement\b", re.IGNORECASE),
    "contact": re.compile(r"[一-龥]*联系[一-龥]*|\bcontact\b", re.IGNORECASE),
    "long_number": LONG_DIGITS_PATTERN,
    "email": EMAIL_PATTERN,
}


# ---------------------------------------------------------------------------
# Generic scorers
# ---------------------------------------------------------------------------


def score_patterns(text: str, table: list[tuple[re.Pattern[str], float]]) -> float:
    """Sum the weights of every pattern in *table* that occurs in *text*."""
    return sum(weight for pattern, weight in table if pattern.search(text))


def score_keywords(text: str, keywords: tuple[str, ...], weight: float) -> float:
    """Add *weight* once per keyword present (case-insensitive)."""
    lowered = text.lower()
    return sum(weight for word in keywords if word.lower() in lowered)


def _clamp(score: float) -> float:
    return max(0.0, min(1.0, score))


# ---------------------------------------------------------------------------
# Detectors
# ---------------------------------------------------------------------------


def is_low_quality_content(text: str) -> bool:
    """Repeated characters, symbol-only text, or too little variety."""
    if _REPEATED_CHAR.search(text):
        return True
    if text and _SYMBOLS_ONLY.match(text):
        return True
    if len(text) > _DISTINCT_CHECK_MIN_LENGTH and len(set(text)) < _MIN_DISTINCT_CHARS:
        return True
    return False


def is_obvious_spam(text: str) -> bool:
    return any(pattern.search(text) for pattern in OBVIOUS_SPAM_PATTERNS)


def find_suspicious_patterns(text: str) -> list[str]:
    """Return the names of suspicious patterns found in *text*."""
    return [name for name, pattern in SUSPICIOUS_PATTERNS.items() if pattern.search(text)]


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------


def calculate_spam_score(text: str) -> float:
    """Spam likelihood in [0, 1].

    Links, phone numbers and emails add fixed weights; more than three
    exclamation marks add 0.05 each (capped at 0.3); every marketing keyword
    present adds 0.1.
    """
    score = score_patterns(text, SPAM_SIGNALS)

    exclamations = text.count("!")
    if exclamations > EXCLAMATION_ALLOWANCE:
        score += min(EXCLAMATION_CAP, exclamations * EXCLAMATION_WEIGHT)

    score += score_keywords(text, MARKETING_KEYWORDS, MARKETING_KEYWORD_WEIGHT)
    return _clamp(score)


def calculate_toxicity_score(text: str) -> float:
    """Toxicity likelihood in [0, 1] from a small vocabulary and shouting."""
    score = score_keywords(text, TOXIC_WORDS, TOXIC_WORD_WEIGHT)

    letters = [c for c in text if c.isalpha()]
    uppercase = sum(1 for c in letters if c.isupper())
    if uppercase / max(1, len(letters)) > 0.5:
        score += SHOUTING_WEIGHT

    return _clamp(score)


def adjust_for_trust(score: float, trust: float) -> float:
    """Scale *score* by ``2 - trust``: low trust amplifies, high trust dampens."""
    return score * (2.0 - trust)
