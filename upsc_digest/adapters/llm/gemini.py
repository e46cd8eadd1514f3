import httpx

from upsc_digest.core.config import settings
from upsc_digest.core.errors import ConfigurationError, ModelOutputError
from upsc_digest.adapters.llm.base import LLM, raise_for_model_status

# Newspapers routinely trip the default filters on crime and conflict coverage.
SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_NONE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_NONE"},
]


class GeminiLLM(LLM):
    name = "gemini"

    def __init__(self, api_key: str | None = None, model: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.api_key = api_key or settings.GEMINI_API_KEY
        self.model = model or settings.GEMINI_MODEL
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def generate(self, prompt: str, *, max_output_tokens: int, temperature: float, top_p: float) -> str:
        if not self.api_key:
            raise ConfigurationError("GEMINI_API_KEY not configured")
        # Timeouts are enforced by the caller per call type.
        async with httpx.AsyncClient(timeout=None, transport=self._transport) as client:
            r = await client.post(
                f"{settings.GEMINI_BASE_URL.rstrip('/')}/models/{self.model}:generateContent",
                headers={"x-goog-api-key": self.api_key},
                json={
                    "contents": [{"parts": [{"text": prompt}]}],
                    "generationConfig": {
                        "temperature": temperature,
                        "topP": top_p,
                        "maxOutputTokens": max_output_tokens,
                    },
                    "safetySettings": SAFETY_SETTINGS,
                },
            )
            raise_for_model_status(r)
            data = r.json()
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise ModelOutputError("Invalid response structure from Gemini") from e
        text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
        if not text:
            raise ModelOutputError("Gemini returned an empty response")
        return text
