from upsc_digest.core.config import settings
from upsc_digest.adapters.llm.base import LLM
from upsc_digest.adapters.llm.gemini import GeminiLLM
from upsc_digest.adapters.llm.ollama import OllamaLLM
from upsc_digest.adapters.llm.openai import OpenAILLM

def get_llm() -> LLM:
    if settings.LLM_PROVIDER == "openai":
        return OpenAILLM()
    if settings.LLM_PROVIDER == "ollama":
        return OllamaLLM()
    return GeminiLLM()
