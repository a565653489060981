"""Remote AI moderation classifier.

Posts text to an external scoring endpoint and returns toxicity, spam and
hate-speech scores.  The classifier **fails open**: a missing or malformed
endpoint, a missing key, a non-2xx status, a malformed body, a transport
error, a timeout or an explicit cancellation all come back as ``None`` so
the pipeline can carry on with its local rules.  Nothing here raises to the caller.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import uuid
from typing import Any, Optional, Sequence

import httpx

from screener.moderation.models import EMPTY_AUTHOR, AIModerationResponse

logger = logging.getLogger(__name__)

DEFAULT_FEATURES: tuple[str, ...] = ("toxicity", "spam", "hate_speech")
DEFAULT_TIMEOUT = 10.0

# Response field -> accepted spellings.
_FIELDS: dict[str, tuple[str, ...]] = {
    "toxicity": ("toxicity",),
    "spam": ("spam",),
    "hate_speech": ("hateSpeech", "hate_speech"),
}


class AIClassifier:
    """Thin async client for the moderation endpoint.

    Parameters
    ----------
    endpoint : str
        URL the request is POSTed to.  Empty disables the classifier.
    api_key : str
        Sent as ``Authorization: Bearer <key>``.  Empty disables the classifier.
    timeout : float
        Per-request timeout in seconds.
    client : httpx.AsyncClient | None
        Shared client to send requests with.  When *None* a client is opened
        for each call.
    """

    def __init__(
        self,
        endpoint: str = "",
        api_key: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_config(cls, config, client: httpx.AsyncClient | None = None) -> AIClassifier:
        return cls(
            endpoint=config.ai_endpoint,
            api_key=config.ai_api_key,
            timeout=config.ai_timeout_seconds,
            client=client,
        )

    @property
    def configured(self) -> bool:
        """Return *True* if both endpoint and API key are set."""
        return bool(self.endpoint and self.api_key)

    # -- request -------------------------------------------------------------

    async def classify(
        self,
        text: str,
        author: uuid.UUID = EMPTY_AUTHOR,
        features: Sequence[str] = DEFAULT_FEATURES,
        cancel: asyncio.Event | None = None,
    ) -> Optional[AIModerationResponse]:
        """Score *text*; ``None`` means the classifier is unavailable."""
        if not self.configured:
            return None

        payload = {"text": text, "user_id": str(author), "features": list(features)}
        try:
            response = await self._post_cancellable(payload, cancel)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Error calling AI moderation service: %s", exc)
            return None

        if response is None:
            logger.warning("AI moderation request cancelled")
            return None

        if not response.is_success:
            logger.warning("AI moderation API returned %s", response.status_code)
            return None

        result = parse_response(response.text)
        if result is None:
            logger.warning("AI moderation API returned a malformed body")
        return result

    async def _post_cancellable(
        self, payload: dict[str, Any], cancel: asyncio.Event | None
    ) -> Optional[httpx.Response]:
        if cancel is None:
            return await self._post(payload)
        if cancel.is_set():
            return None

        request = asyncio.ensure_future(self._post(payload))
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({request, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            # Also reached when the caller itself is cancelled.
            if not request.done():
                request.cancel()
                try:
                    await request
                except asyncio.CancelledError:
                    pass

        if request.cancelled():
            return None
        return request.result()

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        if self._client is not None:
            return await self._client.post(
                self.endpoint, json=payload, headers=headers, timeout=self.timeout
            )
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.endpoint, json=payload, headers=headers)


def parse_response(body: str) -> Optional[AIModerationResponse]:
    """Parse a classifier body; ``None`` when it is not a valid score object."""
    try:
        data = json.loads(body)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    scores: dict[str, float] = {}
    for name, keys in _FIELDS.items():
        value = next((data[k] for k in keys if k in data), None)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        value = float(value)
        if math.isnan(value) or not 0.0 <= value <= 1.0:
            return None
        scores[name] = value

    return AIModerationResponse(**scores)
