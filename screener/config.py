"""Moderation configuration.

Thresholds, feature flags, classifier credentials and sensitive-word filter
options live in one frozen :class:`ModerationConfig` that is built once at
startup and handed to the pipeline.  Values come from an optional YAML file
and a handful of ``SCREENER_*`` environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from screener.moderation.models import RiskTier

ENV_AI_ENDPOINT = "SCREENER_AI_ENDPOINT"
ENV_AI_API_KEY = "SCREENER_AI_API_KEY"
ENV_AI_ENABLED = "SCREENER_AI_ENABLED"

_TRUTHY = {"1", "true", "yes", "on"}


def _default_severity() -> dict[RiskTier, float]:
    return {tier: 0.7 for tier in RiskTier}


@dataclass(frozen=True)
class ModerationConfig:
    """Process-wide moderation settings, read-only after startup."""

    spam_threshold: float = 0.7
    toxicity_threshold: float = 0.8
    hate_speech_threshold: float = 0.9

    # Remote classifier
    ai_enabled: bool = False
    ai_endpoint: str = ""
    ai_api_key: str = ""
    ai_timeout_seconds: float = 10.0

    # Result projection
    model_version: str = "1.0"
    detection_category: str = "general"
    detection_severity: Mapping[RiskTier, float] = field(default_factory=_default_severity)

    # Local sensitive-word filter
    mask_char: str = "*"
    fuzzy_matching: bool = True
    case_sensitive: bool = False
    sensitive_words: Mapping[RiskTier, tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Mapping fields are exposed read-only, whatever the caller passed in.
        object.__setattr__(self, "detection_severity", MappingProxyType(dict(self.detection_severity)))
        object.__setattr__(
            self,
            "sensitive_words",
            MappingProxyType({tier: tuple(words) for tier, words in self.sensitive_words.items()}),
        )

    @property
    def ai_configured(self) -> bool:
        """True when both the classifier endpoint and API key are set."""
        return bool(self.ai_endpoint and self.ai_api_key)

    def severity_for(self, tier: RiskTier | None) -> float:
        if tier is None:
            return self.detection_severity.get(RiskTier.LOW, 0.7)
        return self.detection_severity.get(tier, 0.7)


def load_config(path: str | Path | None = None, environ: Mapping[str, str] | None = None) -> ModerationConfig:
    """Build a :class:`ModerationConfig` from a YAML file and the environment.

    The file may hold the settings at top level or under a ``moderation:``
    key.  Environment variables win over the file.  Invalid values raise
    :class:`ValueError`.
    """
    data: dict[str, Any] = {}
    if path is not None:
        with open(path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        data = loaded.get("moderation", loaded)
        if not isinstance(data, dict):
            raise ValueError("'moderation' section must be a mapping")

    config = config_from_dict(data)
    return apply_env_overrides(config, os.environ if environ is None else environ)


def config_from_dict(data: dict[str, Any]) -> ModerationConfig:
    """Validate a plain mapping and turn it into a config object."""
    defaults = ModerationConfig()
    known = set(ModerationConfig.__dataclass_fields__)
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")

    kwargs: dict[str, Any] = {}
    for name in ("spam_threshold", "toxicity_threshold", "hate_speech_threshold"):
        if name in data:
            kwargs[name] = _unit_float(name, data[name])

    for name in ("ai_enabled", "fuzzy_matching", "case_sensitive"):
        if name in data:
            kwargs[name] = _flag(name, data[name])

    for name in ("ai_endpoint", "ai_api_key", "model_version", "detection_category"):
        if name in data:
            kwargs[name] = str(data[name] or "")

    if "ai_timeout_seconds" in data:
        timeout = float(data["ai_timeout_seconds"])
        if timeout <= 0:
            raise ValueError("ai_timeout_seconds must be positive")
        kwargs["ai_timeout_seconds"] = timeout

    if "mask_char" in data:
        mask = str(data["mask_char"])
        if len(mask) != 1:
            raise ValueError("mask_char must be a single character")
        kwargs["mask_char"] = mask

    if "detection_severity" in data:
        severity = dict(defaults.detection_severity)
        for tier_name, value in (data["detection_severity"] or {}).items():
            severity[_tier(tier_name)] = _unit_float(f"detection_severity.{tier_name}", value)
        kwargs["detection_severity"] = severity

    if "sensitive_words" in data:
        words: dict[RiskTier, tuple[str, ...]] = {}
        for tier_name, entries in (data["sensitive_words"] or {}).items():
            words[_tier(tier_name)] = tuple(str(w) for w in (entries or []) if str(w).strip())
        kwargs["sensitive_words"] = words

    return replace(defaults, **kwargs)


def apply_env_overrides(config: ModerationConfig, environ: Mapping[str, str]) -> ModerationConfig:
    overrides: dict[str, Any] = {}
    if environ.get(ENV_AI_ENDPOINT):
        overrides["ai_endpoint"] = environ[ENV_AI_ENDPOINT]
    if environ.get(ENV_AI_API_KEY):
        overrides["ai_api_key"] = environ[ENV_AI_API_KEY]
    if environ.get(ENV_AI_ENABLED):
        overrides["ai_enabled"] = environ[ENV_AI_ENABLED].strip().lower() in _TRUTHY
    return replace(config, **overrides) if overrides else config


def _flag(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{name} must be true or false, got {value!r}")
    return value


def _unit_float(name: str, value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}") from None
    if not 0.0 <= number <= 1.0:
        raise ValueError(f"{name} must be between 0 and 1, got {number}")
    return number


def _tier(name: Any) -> RiskTier:
    try:
        return RiskTier(str(name).lower())
    except ValueError:
        raise ValueError(f"Unknown sensitive-word tier: {name!r}") from None
