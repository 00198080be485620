"""
Generation — prompt assembly and chat-completion calls for answering queries.

Public API
----------
- :class:`Answerer` — turn retrieved matches into a grounded answer.
- :class:`ChatService` — the full query path: embed → retrieve → answer.
- :func:`get_llm` — construct the configured chat model.
"""

from docchat.generation.answerer import Answerer
from docchat.generation.llm import get_llm
from docchat.generation.service import ChatAnswer, ChatService

__all__ = [
    "Answerer",
    "ChatAnswer",
    "ChatService",
    "get_llm",
]
