"""LLM initialisation — single place to swap providers.

Supports two modes:

1. **OpenAI cloud** (default) — set ``OPENAI_API_KEY``.
2. **OpenAI-compatible endpoint** — set ``LLM_BASE_URL`` to any server that
   exposes ``/v1/chat/completions`` (vLLM, a proxy, …); ``ChatOpenAI``
   works unchanged.
"""

from __future__ import annotations

import logging

from langchain_openai import ChatOpenAI

from docchat.config import Settings, settings

logger = logging.getLogger(__name__)


def get_llm(s: Settings = settings) -> ChatOpenAI:
    """Return the configured chat model.

    Token and temperature controls come from ``llm_max_tokens`` and
    ``llm_temperature``.
    """
    kwargs: dict = {
        "model": s.llm_model_name,
        "temperature": s.llm_temperature,
        "max_tokens": s.llm_max_tokens,
    }

    if s.llm_base_url:
        logger.info("Using OpenAI-compatible endpoint: %s", s.llm_base_url)
        kwargs["base_url"] = s.llm_base_url
        # Self-hosted servers often need no key; LangChain requires a non-empty value.
        kwargs["api_key"] = s.openai_api_key or "EMPTY"
    else:
        kwargs["api_key"] = s.openai_api_key

    return ChatOpenAI(**kwargs)
