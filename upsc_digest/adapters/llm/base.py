import re
from abc import ABC, abstractmethod

import httpx

from upsc_digest.core.config import settings
from upsc_digest.core.errors import (
    ModelRequestError,
    RateLimitedError,
    ServiceUnavailableError,
    TransientModelError,
)

# Providers sometimes put the wait in the body, e.g. "retry in 18.8s"
_RETRY_DELAY_RE = re.compile(r"retry[^\d]*(\d+(?:\.\d+)?)\s*s", re.IGNORECASE)


class LLM(ABC):
    name = "llm"

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        max_output_tokens: int,
        temperature: float,
        top_p: float,
    ) -> str:
        ...

    def is_configured(self) -> bool:
        return True


def parse_retry_after(value: str | None, body: str = "") -> int | None:
    if value:
        try:
            return max(1, int(float(value)))
        except ValueError:
            pass
    m = _RETRY_DELAY_RE.search(body or "")
    if m:
        return max(1, int(float(m.group(1)) + 0.999))
    return None


def raise_for_model_status(response: httpx.Response) -> None:
    """Translate a provider HTTP failure into the analysis error taxonomy."""
    if response.is_success:
        return
    status = response.status_code
    body = response.text[:500]
    if status == 429:
        hint = parse_retry_after(response.headers.get("retry-after"), body)
        raise RateLimitedError(
            f"model rate limited (429): {body}",
            retry_after=hint or settings.RETRY_AFTER_SECONDS,
        )
    if status in (401, 403):
        raise ServiceUnavailableError(f"model auth/quota failure ({status}): {body}")
    if status == 400:
        raise ModelRequestError(f"model rejected request (400): {body}")
    raise TransientModelError(f"model error ({status}): {body}", status=status)
