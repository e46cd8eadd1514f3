from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

from upsc_digest.adapters.llm.base import LLM
from upsc_digest.core.config import settings
from upsc_digest.core.errors import (
    ModelTimeoutError,
    RateLimitedError,
    TransientModelError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryDecision:
    retryable: bool
    wait_hint: float | None = None


@dataclass(frozen=True)
class CallProfile:
    """Generation settings and budget for one kind of model call."""
    label: str
    max_output_tokens: int
    temperature: float
    top_p: float
    timeout: float


def classification_profile() -> CallProfile:
    # routing decision, not content generation: deterministic and cheap
    return CallProfile(
        label="classify",
        max_output_tokens=settings.CLASSIFY_MAX_TOKENS,
        temperature=0.0,
        top_p=0.1,
        timeout=settings.CLASSIFY_TIMEOUT_SECONDS,
    )


def extraction_profile() -> CallProfile:
    return CallProfile(
        label="extract",
        max_output_tokens=settings.EXTRACT_MAX_TOKENS,
        temperature=0.0,
        top_p=0.1,
        timeout=settings.EXTRACT_TIMEOUT_SECONDS,
    )


def single_pass_profile() -> CallProfile:
    return CallProfile(
        label="single_pass",
        max_output_tokens=settings.SINGLE_PASS_MAX_TOKENS,
        temperature=0.2,
        top_p=0.95,
        timeout=settings.EXTRACT_TIMEOUT_SECONDS,
    )


def classify_error(exc: BaseException) -> RetryDecision:
    """Decide whether a failed model call may be retried.

    Only network-class failures (timeouts, dropped connections, 5xx and other
    unexpected statuses) are retried. Rate limits carry their wait hint back
    to the caller instead of being retried here; auth, bad-request, parse and
    configuration failures are final.
    """
    if isinstance(exc, RateLimitedError):
        return RetryDecision(False, exc.retry_after)
    if isinstance(exc, TransientModelError):
        return RetryDecision(True, exc.retry_after)
    if isinstance(exc, (httpx.TransportError, asyncio.TimeoutError)):
        return RetryDecision(True)
    return RetryDecision(False)


def backoff_delay(attempt: int) -> float:
    return min(
        settings.RETRY_BACKOFF_BASE_SECONDS * (2 ** attempt),
        settings.RETRY_BACKOFF_MAX_SECONDS,
    )


def _as_transient(exc: BaseException) -> TransientModelError:
    if isinstance(exc, TransientModelError):
        return exc
    if isinstance(exc, asyncio.TimeoutError):
        return ModelTimeoutError("model call timed out")
    return TransientModelError(f"model transport failure: {exc!r}")


async def call_model(
    llm: LLM,
    prompt: str,
    profile: CallProfile,
    *,
    max_retries: int | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> str:
    """Run one model call with its own timeout and bounded exponential backoff."""
    retries = settings.MODEL_MAX_RETRIES if max_retries is None else max_retries
    attempt = 0
    while True:
        try:
            logger.debug(
                "%s call attempt %d, prompt length %d", profile.label, attempt + 1, len(prompt)
            )
            text = await asyncio.wait_for(
                llm.generate(
                    prompt,
                    max_output_tokens=profile.max_output_tokens,
                    temperature=profile.temperature,
                    top_p=profile.top_p,
                ),
                timeout=profile.timeout,
            )
            logger.debug("%s call returned %d chars", profile.label, len(text or ""))
            return text
        except Exception as exc:
            decision = classify_error(exc)
            if not decision.retryable:
                raise
            err = _as_transient(exc)
            if attempt >= retries:
                logger.warning(
                    "%s call failed after %d attempts: %s", profile.label, attempt + 1, err.detail
                )
                err.retry_after = err.retry_after or settings.RETRY_AFTER_SECONDS
                if err is exc:
                    raise
                raise err from exc
            delay = backoff_delay(attempt)
            logger.warning(
                "%s call attempt %d failed (%s), retrying in %.1fs",
                profile.label,
                attempt + 1,
                err.detail,
                delay,
            )
            await sleep(delay)
            attempt += 1
