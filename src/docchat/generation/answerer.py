"""Answer a query from retrieved chunks with a chat-completion model."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from docchat.errors import DocChatError, GenerationFailure, QuotaExceeded, status_code_of
from docchat.generation.prompts import build_answer_prompt

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

    from docchat.retrieval.models import RetrievalMatch

logger = logging.getLogger(__name__)


class Answerer:
    """Prompt *llm* with the query and its context and return the reply text."""

    def __init__(self, llm: BaseChatModel) -> None:
        self._llm = llm

    async def answer(self, query: str, matches: list[RetrievalMatch]) -> str:
        """Generate an answer grounded in *matches*.

        Raises
        ------
        QuotaExceeded
            The chat provider answered HTTP 429.
        GenerationFailure
            Any other provider error, or an empty completion.
        """
        messages = build_answer_prompt(query, matches)
        try:
            response = await self._llm.ainvoke(messages)
        except DocChatError:
            raise
        except Exception as exc:
            if status_code_of(exc) == 429:
                raise QuotaExceeded(details=str(exc)) from exc
            logger.error("Chat completion failed: %s", exc)
            raise GenerationFailure(details=str(exc)) from exc

        content = getattr(response, "content", None)
        if not isinstance(content, str) or not content.strip():
            raise GenerationFailure("Chat model returned an empty response")
        logger.debug("Token usage: %r", getattr(response, "usage_metadata", None))
        return content
