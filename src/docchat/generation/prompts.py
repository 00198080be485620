"""Prompt templates for grounded question answering."""

from __future__ import annotations

from typing import TYPE_CHECKING

from langchain_core.messages import HumanMessage, SystemMessage

if TYPE_CHECKING:
    from langchain_core.messages import BaseMessage

    from docchat.retrieval.models import RetrievalMatch

ANSWER_SYSTEM = """\
You are a helpful assistant that answers questions based on the provided context.
Use only the information from the context to answer questions.
If the context doesn't contain enough information to answer the question,
say so politely and ask for clarification.

Context:
{context}
"""


def format_context(matches: list[RetrievalMatch]) -> str:
    """Concatenate match texts as ``Document i (from fileName):`` blocks."""
    return "\n\n".join(
        f"Document {i} (from {m.file_name}):\n{m.text}" for i, m in enumerate(matches, 1)
    )


def build_answer_prompt(query: str, matches: list[RetrievalMatch]) -> list[BaseMessage]:
    """Assemble the system (context-bearing) and user messages."""
    return [
        SystemMessage(content=ANSWER_SYSTEM.format(context=format_context(matches))),
        HumanMessage(content=query),
    ]
