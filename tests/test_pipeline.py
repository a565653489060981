"""Tests for the moderation cascade."""

import asyncio

import httpx
import pytest

from screener.config import ModerationConfig
from screener.moderation.classifier import AIClassifier
from screener.moderation.models import (
    EMPTY_AUTHOR,
    AIModerationResponse,
    Content,
    ModerationOutcome,
    SensitiveWordResult,
)
from screener.moderation.pipeline import (
    ModerationPipeline,
    basic_checks,
    interpret_ai_response,
    rule_based_decision,
)
from screener.moderation.sensitive_words import SensitiveWordFilter, SensitiveWordGateway
from screener.moderation.trust import StaticTrustEstimator, TrustEstimator

AI_CONFIG = ModerationConfig(ai_enabled=True, ai_endpoint="https://ai.test/moderate", ai_api_key="k")


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class _FakeClassifier(AIClassifier):
    def __init__(self, response=None, error=None):
        super().__init__("https://ai.test/moderate", "k")
        self.response = response
        self.error = error
        self.calls = 0

    async def classify(self, text, author=EMPTY_AUTHOR, features=(), cancel=None):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.response


class _BrokenGateway(SensitiveWordGateway):
    async def check_content(self, text, replace_with_mask=False):
        raise ConnectionError("word service down")


class _SlowGateway(SensitiveWordGateway):
    """Flags text containing 'bad'; earlier items answer later."""

    async def check_content(self, text, replace_with_mask=False):
        if "bad" in text:
            await asyncio.sleep(0.05)
            return SensitiveWordResult(
                contains_sensitive_words=True, detected_words=("bad",), high_risk_words=("bad",)
            )
        return SensitiveWordResult(filtered_content=text)


class _FailingTrust(TrustEstimator):
    async def get_trust_score(self, author):
        raise RuntimeError("trust store exploded")


def _pipeline(config=None, trust=0.5, classifier=None, gateway=None):
    return ModerationPipeline(
        config or ModerationConfig(),
        gateway or SensitiveWordFilter(),
        classifier=classifier,
        trust=trust if isinstance(trust, TrustEstimator) else StaticTrustEstimator(trust),
    )


def _run(pipeline, text, **kwargs):
    return asyncio.run(pipeline.moderate(Content(text), **kwargs))


# ---------------------------------------------------------------------------
# Basic checks
# ---------------------------------------------------------------------------


def test_blank_and_short_content_rejected():
    for text in ["", "   ", "a"]:
        record = _run(_pipeline(), text)
        assert record.outcome is ModerationOutcome.REJECTED_INAPPROPRIATE
        assert record.confidence == 1.0


def test_repeated_characters_rejected_as_spam():
    record = _run(_pipeline(), "a" * 13)
    assert record.outcome is ModerationOutcome.REJECTED_SPAM
    assert record.confidence == 0.9


def test_obvious_spam_rejected():
    record = _run(_pipeline(), "Free gift, claim it today")
    assert record.outcome is ModerationOutcome.REJECTED_SPAM
    assert record.confidence == 0.95


def test_basic_checks_pass_normal_text():
    assert basic_checks("a normal sentence") is None


# ---------------------------------------------------------------------------
# Sensitive words
# ---------------------------------------------------------------------------


def test_high_risk_word_short_circuits_classifier():
    classifier = _FakeClassifier(AIModerationResponse(0.0, 0.0, 0.0))
    record = _run(_pipeline(AI_CONFIG, classifier=classifier), "They support terrorism")
    assert record.outcome is ModerationOutcome.REJECTED_HATE_SPEECH
    assert record.confidence == 0.95
    assert record.contains_sensitive_words
    assert record.detected_sensitive_words == ("terrorism",)
    assert classifier.calls == 0


def test_medium_risk_word_rejected():
    record = _run(_pipeline(), "Let's talk about gambling")
    assert record.outcome is ModerationOutcome.REJECTED_INAPPROPRIATE
    assert record.confidence == 0.95


def test_low_risk_word_goes_to_review():
    record = _run(_pipeline(), "This is clickbait content")
    assert record.outcome is ModerationOutcome.REQUIRES_HUMAN_REVIEW
    assert record.confidence == 0.95
    assert record.detected_sensitive_words == ("clickbait",)


def test_gateway_failure_falls_through():
    record = _run(_pipeline(trust=0.9, gateway=_BrokenGateway()), "Thanks for the thoughtful article")
    assert record.outcome is ModerationOutcome.APPROVED


# ---------------------------------------------------------------------------
# AI classification
# ---------------------------------------------------------------------------


def test_ai_hate_speech():
    classifier = _FakeClassifier(AIModerationResponse(toxicity=0.1, spam=0.1, hate_speech=0.95))
    record = _run(_pipeline(AI_CONFIG, classifier=classifier), "some ordinary words")
    assert record.outcome is ModerationOutcome.REJECTED_HATE_SPEECH
    assert record.confidence == 0.95
    assert classifier.calls == 1


def test_unavailable_ai_matches_rules_only():
    text = "Thanks for the thoughtful article"
    rules_only = _run(_pipeline(trust=0.9), text)
    for classifier in [_FakeClassifier(None), _FakeClassifier(error=RuntimeError("boom"))]:
        record = _run(_pipeline(AI_CONFIG, trust=0.9, classifier=classifier), text)
        assert classifier.calls == 1
        assert record.outcome is rules_only.outcome
        assert record.confidence == rules_only.confidence


def test_enabled_but_unconfigured_ai_is_skipped():
    config = ModerationConfig(ai_enabled=True)
    pipeline = _pipeline(config, trust=0.9, classifier=AIClassifier.from_config(config))
    assert not pipeline.ai_active
    assert _run(pipeline, "Thanks for the thoughtful article").outcome is ModerationOutcome.APPROVED


def test_cancelled_classification_falls_back_to_rules():
    async def slow(request):
        await asyncio.sleep(5)
        return httpx.Response(200, json={"toxicity": 1, "spam": 1, "hateSpeech": 1})

    async def go():
        cancel = asyncio.Event()
        async with httpx.AsyncClient(transport=httpx.MockTransport(slow)) as client:
            pipeline = _pipeline(AI_CONFIG, trust=0.9, classifier=AIClassifier.from_config(AI_CONFIG, client))
            asyncio.get_running_loop().call_later(0.05, cancel.set)
            return await pipeline.moderate(Content("Thanks for the thoughtful article"), cancel=cancel)

    assert asyncio.run(go()).outcome is ModerationOutcome.APPROVED


@pytest.mark.parametrize(
    "scores, outcome",
    [
        ((0.1, 0.1, 0.95), ModerationOutcome.REJECTED_HATE_SPEECH),
        ((0.85, 0.1, 0.1), ModerationOutcome.REJECTED_INAPPROPRIATE),
        ((0.1, 0.75, 0.1), ModerationOutcome.REJECTED_SPAM),
        ((0.6, 0.1, 0.1), ModerationOutcome.REQUIRES_HUMAN_REVIEW),
        ((0.2, 0.3, 0.1), ModerationOutcome.APPROVED),
        ((0.8, 0.7, 0.9), ModerationOutcome.REQUIRES_HUMAN_REVIEW),
    ],
)
def test_interpret_ai_response(scores, outcome):
    response = AIModerationResponse(*scores)
    record = interpret_ai_response(response, ModerationConfig())
    assert record.outcome is outcome
    assert record.confidence == max(scores)


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def test_trusted_author_with_clean_text_is_approved():
    record = _run(_pipeline(trust=0.9), "Thanks for the thoughtful article")
    assert record.outcome is ModerationOutcome.APPROVED
    assert record.confidence == 0.9


def test_neutral_author_with_clean_text_goes_to_review():
    record = _run(_pipeline(trust=0.5), "Thanks for the thoughtful article")
    assert record.outcome is ModerationOutcome.REQUIRES_HUMAN_REVIEW
    assert record.confidence == 0.5


def test_link_email_and_exclamations_rejected_as_spam():
    record = _run(_pipeline(trust=0.5), "Visit https://x.io or mail me@x.io !!!!")
    assert record.outcome is ModerationOutcome.REJECTED_SPAM
    assert record.confidence == 1.0


def test_heavy_toxicity_rejected_as_hate_speech():
    record = _run(_pipeline(trust=0.5), "You idiot, stupid moron loser")
    assert record.outcome is ModerationOutcome.REJECTED_HATE_SPEECH
    assert record.confidence == 1.0


def test_moderate_toxicity_rejected_as_inappropriate():
    record = rule_based_decision("you idiot, stupid moron", 0.6, ModerationConfig())
    assert record.outcome is ModerationOutcome.REJECTED_INAPPROPRIATE
    assert record.confidence == pytest.approx(0.84)


def test_custom_thresholds_change_outcome():
    text = "you idiot, that was stupid"
    assert rule_based_decision(text, 0.5, ModerationConfig()).outcome is ModerationOutcome.REQUIRES_HUMAN_REVIEW
    strict = ModerationConfig(toxicity_threshold=0.5)
    assert rule_based_decision(text, 0.5, strict).outcome is ModerationOutcome.REJECTED_INAPPROPRIATE


# ---------------------------------------------------------------------------
# Failures, repeatability, batches
# ---------------------------------------------------------------------------


def test_unexpected_error_yields_conservative_review():
    record = _run(_pipeline(trust=_FailingTrust()), "Thanks for the thoughtful article")
    assert record.outcome is ModerationOutcome.REQUIRES_HUMAN_REVIEW
    assert record.confidence == 0.0
    assert record.reason == "An error occurred during moderation"


def test_moderation_is_repeatable():
    pipeline = _pipeline(trust=0.5)
    first = _run(pipeline, "Visit https://x.io or mail me@x.io !!!!")
    second = _run(pipeline, "Visit https://x.io or mail me@x.io !!!!")
    assert (first.outcome, first.confidence) == (second.outcome, second.confidence)
    assert first.processing_time_ms >= 0


def test_batch_preserves_input_order():
    pipeline = _pipeline(trust=0.5, gateway=_SlowGateway())
    items = [
        (Content("a bad first comment"), EMPTY_AUTHOR, None),
        (Content("Thanks for the thoughtful article"), EMPTY_AUTHOR, "10.0.0.1"),
        (Content("a" * 13), EMPTY_AUTHOR, None),
    ]
    records = asyncio.run(pipeline.moderate_batch(items))
    assert [r.outcome for r in records] == [
        ModerationOutcome.REJECTED_HATE_SPEECH,
        ModerationOutcome.REQUIRES_HUMAN_REVIEW,
        ModerationOutcome.REJECTED_SPAM,
    ]


def test_empty_batch():
    assert asyncio.run(_pipeline().moderate_batch([])) == []
