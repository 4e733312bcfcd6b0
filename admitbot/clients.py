from functools import lru_cache
from typing import Optional

from openai import OpenAI

from .config import LLM_API_KEY, LLM_BASE_URL


@lru_cache(maxsize=1)
def _build_client(api_key: str, base_url: str) -> OpenAI:
    # upstream failures are relayed to the caller as-is
    return OpenAI(api_key=api_key, base_url=base_url, max_retries=0)


def get_llm() -> Optional[OpenAI]:
    """Chat-completions client, or None when no API key is configured."""
    if not LLM_API_KEY:
        return None
    return _build_client(LLM_API_KEY, LLM_BASE_URL)
