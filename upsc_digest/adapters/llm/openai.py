from upsc_digest.core.config import settings
from upsc_digest.core.errors import (
    ConfigurationError,
    ModelRequestError,
    RateLimitedError,
    ServiceUnavailableError,
    TransientModelError,
)
from upsc_digest.adapters.llm.base import LLM, parse_retry_after

SYSTEM_PROMPT = "You extract exam-relevant news items from newspaper text and answer with JSON only."


class OpenAILLM(LLM):
    name = "openai"

    def __init__(self, api_key: str | None = None, model: str | None = None):
        self.api_key = api_key or settings.OPENAI_API_KEY
        self.model = model or settings.OPENAI_MODEL

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def generate(self, prompt: str, *, max_output_tokens: int, temperature: float, top_p: float) -> str:
        import openai
        from openai import AsyncOpenAI

        if not self.api_key:
            raise ConfigurationError("OPENAI_API_KEY not configured")
        # retries are owned by the model-call wrapper
        client = AsyncOpenAI(api_key=self.api_key, max_retries=0)
        try:
            resp = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=temperature,
                top_p=top_p,
                max_tokens=max_output_tokens,
            )
        except openai.RateLimitError as e:
            hint = parse_retry_after(e.response.headers.get("retry-after"), str(e))
            raise RateLimitedError(
                f"model rate limited (429): {e}",
                retry_after=hint or settings.RETRY_AFTER_SECONDS,
            ) from e
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            raise ServiceUnavailableError(f"model auth/quota failure: {e}") from e
        except openai.BadRequestError as e:
            raise ModelRequestError(f"model rejected request: {e}") from e
        except openai.APIStatusError as e:
            raise TransientModelError(f"model error ({e.status_code}): {e}", status=e.status_code) from e
        except openai.APIConnectionError as e:
            # APITimeoutError is a subclass
            raise TransientModelError(f"model connection failure: {e}") from e
        finally:
            await client.close()
        return resp.choices[0].message.content or ""
