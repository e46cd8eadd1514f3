import httpx

from upsc_digest.core.config import settings
from upsc_digest.adapters.llm.base import LLM, raise_for_model_status

class OllamaLLM(LLM):
    name = "ollama"

    def __init__(self, base_url: str | None = None, model: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = (base_url or settings.OLLAMA_BASE_URL).rstrip("/")
        self.model = model or settings.OLLAMA_MODEL
        self._transport = transport

    async def generate(self, prompt: str, *, max_output_tokens: int, temperature: float, top_p: float) -> str:
        async with httpx.AsyncClient(timeout=None, transport=self._transport) as client:
            r = await client.post(
                f"{self.base_url}/api/generate",
                json={
                    "model": self.model,
                    "prompt": prompt,
                    "stream": False,
                    # ask for a JSON body; the parser still tolerates prose around it
                    "format": "json",
                    "keep_alive": settings.OLLAMA_KEEP_ALIVE,
                    "options": {
                        "num_predict": max_output_tokens,
                        "temperature": temperature,
                        "top_p": top_p,
                    },
                },
            )
            raise_for_model_status(r)
            return r.json().get("response", "")
