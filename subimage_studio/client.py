"""
client.py — Sends assembled requests to Gemini and turns replies into images.

Responsibilities:
  - blocks → google.genai parts + GenerateContentConfig
  - retry/backoff for transient server errors (linear, no jitter)
  - classification of transport errors into the studio's error taxonomy
  - extraction of the first inline image, or a typed failure

Retry policy:
  RetryableError (5xx, busy)    wait base_delay × (attempt − 1), then retry
  PayloadTooLarge (400, 413)   raise immediately
  other transport errors       raise immediately
  text-only or empty reply     raise immediately (ModelRefusal / EmptyResponse)
The same parts and seed are sent on every attempt.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Protocol

from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from pydantic import BaseModel, Field, ValidationError

from .config import StudioConfig
from .encoding import DEFAULT_RESULT_MIME, EncodedImage
from .errors import (
    EmptyResponse,
    ModelRefusal,
    NonRetryableError,
    PayloadTooLarge,
    RemoteError,
    RetryableError,
)
from .events import REQUESTING, WAITING, EventBus
from .prompts import Block, BlockKind

logger = logging.getLogger(__name__)

# Phrases the image model uses when it glitches mid-generation
TRANSIENT_PHRASES = ("Finish what you were doing", "unexpected error")

_RETRYABLE_RE = re.compile(r"\b(500|503|internal|overloaded|unavailable)\b", re.IGNORECASE)
_INVALID_RE = re.compile(r"\b(400|413|invalid_argument)\b", re.IGNORECASE)


class RequestKind(str, Enum):
    GENERATION = "generation"
    EDIT = "edit"
    RESIZE = "resize"


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 5.0

    def delay_before(self, attempt: int) -> float:
        """Seconds to wait before `attempt` (1-based); the first attempt never waits."""
        if attempt <= 1:
            return 0.0
        return self.base_delay * (attempt - 1)


class CopySuggestion(BaseModel):
    copy_text: str = Field(
        description="One short catch-copy line for the product image (two lines at most)."
    )


# ── Backend ───────────────────────────────────────────────────────────────────

class ModelBackend(Protocol):
    async def generate_content(self, *, model: str, contents: Any, config: Any) -> Any: ...


class GeminiBackend:
    """Async Gemini transport bound to one API key."""

    def __init__(self, api_key: str) -> None:
        self._client = genai.Client(api_key=api_key)

    async def generate_content(self, *, model: str, contents: Any, config: Any) -> Any:
        return await self._client.aio.models.generate_content(
            model=model,
            contents=contents,
            config=config,
        )


# ── Request/response helpers ──────────────────────────────────────────────────

def to_parts(blocks: List[Block]) -> List[types.Part]:
    parts = []
    for block in blocks:
        if block.kind is BlockKind.IMAGE:
            parts.append(types.Part.from_bytes(
                data=block.image.to_bytes(),
                mime_type=block.image.mime_type,
            ))
        else:
            parts.append(types.Part.from_text(text=block.text))
    return parts


def build_image_config(
    kind: RequestKind,
    aspect_ratio: str,
    image_size: str,
    seed: Optional[int] = None,
) -> types.GenerateContentConfig:
    return types.GenerateContentConfig(
        response_modalities=["IMAGE", "TEXT"],
        image_config=types.ImageConfig(aspect_ratio=aspect_ratio, image_size=image_size),
        seed=seed if kind is RequestKind.GENERATION else None,
    )


def extract_image(response: Any) -> EncodedImage:
    """First inline image across all candidates; otherwise a typed failure."""
    text_reply = None
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            if inline is not None and inline.data:
                data = inline.data
                payload = data if isinstance(data, str) else base64.b64encode(data).decode("ascii")
                return EncodedImage(payload=payload, mime_type=inline.mime_type or DEFAULT_RESULT_MIME)
            if text_reply is None and getattr(part, "text", None):
                text_reply = part.text

    if text_reply:
        logger.warning("Model returned text instead of an image: %s", text_reply[:200])
        transient = any(phrase in text_reply for phrase in TRANSIENT_PHRASES)
        raise ModelRefusal(text_reply, transient=transient)
    raise EmptyResponse()


def classify_error(exc: BaseException) -> RemoteError:
    """Map any transport exception onto RetryableError / PayloadTooLarge / NonRetryableError."""
    if isinstance(exc, RemoteError):
        return exc

    code = getattr(exc, "code", None)
    if not isinstance(code, int):
        code = getattr(exc, "status_code", None)
    text = str(exc)

    if isinstance(code, int):
        if code in (400, 413):
            error = PayloadTooLarge(status_code=code)
        elif code >= 500:
            error = RetryableError(status_code=code)
        else:
            error = NonRetryableError(text or NonRetryableError.default_message, status_code=code)
    elif isinstance(exc, genai_errors.ServerError) or _RETRYABLE_RE.search(text):
        error = RetryableError()
    elif _INVALID_RE.search(text):
        error = PayloadTooLarge()
    else:
        error = NonRetryableError(text or NonRetryableError.default_message)

    error.__cause__ = exc
    return error


# ── Client ────────────────────────────────────────────────────────────────────

Sleep = Callable[[float], Awaitable[Any]]


class ModelClient:
    """Stateless between calls; one instance can serve every panel concurrently."""

    def __init__(
        self,
        backend: ModelBackend,
        config: Optional[StudioConfig] = None,
        events: Optional[EventBus] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.config = config or StudioConfig()
        self.retry_policy = RetryPolicy(
            max_attempts=self.config.max_attempts,
            base_delay=self.config.retry_delay,
        )
        self._backend = backend
        self._events = events
        self._sleep = sleep

    async def invoke(
        self,
        kind: RequestKind,
        blocks: List[Block],
        aspect_ratio: str,
        seed: Optional[int] = None,
        topic: Optional[str] = None,
    ) -> EncodedImage:
        """
        Run one image request through the retry policy.

        Args:
            kind:          generation / edit / resize
            blocks:        assembled request blocks
            aspect_ratio:  transport ratio token, e.g. "3:4"
            seed:          fixed for the whole user action; only sent for generation
            topic:         progress channel topic

        Raises:
            RemoteError subclasses (see module docstring).
        """
        config = build_image_config(kind, aspect_ratio, self.config.image_size, seed)
        response = await self._call(
            model=self.config.image_model,
            contents=to_parts(blocks),
            config=config,
            topic=topic,
            label=kind.value,
        )
        return extract_image(response)

    async def suggest_copy(self, prompt: str, topic: Optional[str] = None) -> str:
        """Ask the text model for one catch-copy line."""
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=CopySuggestion,
        )
        response = await self._call(
            model=self.config.text_model,
            contents=prompt,
            config=config,
            topic=topic,
            label="copy",
        )
        raw = (getattr(response, "text", None) or "").strip()
        if not raw:
            raise EmptyResponse("The copywriting model returned no text.")
        try:
            suggestion = CopySuggestion.model_validate_json(raw).copy_text.strip()
        except ValidationError:
            # model ignored the schema; its plain answer is still the copy
            suggestion = raw
        if not suggestion:
            raise EmptyResponse("The copywriting model returned no text.")
        return suggestion

    async def _call(self, *, model: str, contents: Any, config: Any, topic: Optional[str], label: str) -> Any:
        policy = self.retry_policy
        last_error: Optional[RemoteError] = None

        for attempt in range(1, policy.max_attempts + 1):
            if attempt > 1:
                delay = policy.delay_before(attempt)
                self._emit(
                    topic, WAITING,
                    f"Server busy, waiting {delay:.0f}s ({attempt - 1}/{policy.max_attempts - 1})",
                    attempt,
                )
                await self._sleep(delay)

            self._emit(
                topic, REQUESTING,
                "Generating…" if attempt == 1 else f"Retrying ({attempt}/{policy.max_attempts})…",
                attempt,
            )
            try:
                return await self._backend.generate_content(model=model, contents=contents, config=config)
            except Exception as exc:
                error = classify_error(exc)
                logger.warning(
                    "%s attempt %d/%d failed (%s): %s",
                    label, attempt, policy.max_attempts, type(error).__name__, exc,
                )
                if not error.retryable:
                    raise error from exc
                last_error = error

        raise last_error

    def _emit(self, topic: Optional[str], stage: str, message: str, attempt: int) -> None:
        if self._events is not None and topic:
            self._events.emit(topic, stage, message, attempt)
