from upsc_digest.adapters.llm.base import LLM
from upsc_digest.core.config import Settings, settings
from upsc_digest.services.governor_service import RequestGovernor, governor
from upsc_digest.services.llm_factory import get_llm as build_llm


def get_settings() -> Settings:
    return settings


def get_llm() -> LLM:
    return build_llm()


def get_governor() -> RequestGovernor:
    return governor
