"""
Answer synthesis over retrieved businesses.

Builds a context block from the ranked records and asks the completion
provider for a concise answer. When the provider fails or times out, a
deterministic templated summary is returned instead.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from ..errors import ProviderError
from ..storage import BusinessRecord

logger = logging.getLogger(__name__)

NO_RESULTS_ANSWER = (
    "I couldn't find any businesses matching your query. "
    "Please try different keywords or expand your search area."
)
KEYWORD_FALLBACK_NOTE = (
    "_Note: Results generated using keyword matching instead of semantic search "
    "(AI embeddings temporarily unavailable)._"
)
GENERATION_UNAVAILABLE_NOTE = "_Note: AI response generation temporarily unavailable._"

PROMPT_TEMPLATE = """You are a helpful assistant for Yellow Book, a business directory service.

User Question: "{question}"

Relevant Businesses Found:
{context}

Instructions:
- Answer the user's question based on the businesses provided
- Be concise and helpful
- Mention specific business names when relevant
- Include contact information if the user is looking for how to reach them
- If none of the businesses are relevant, say so plainly

Answer:"""


class Completer(Protocol):
    async def complete(self, prompt: str) -> str: ...


def format_context(records: list[BusinessRecord]) -> str:
    entries: list[str] = []
    for index, record in enumerate(records, start=1):
        contact = f"{record.phone} | {record.email}"
        if record.website:
            contact += f" | {record.website}"
        entries.append(
            f"{index}. {record.name}\n"
            f"   Description: {record.description}\n"
            f"   Categories: {', '.join(record.categories)}\n"
            f"   Location: {record.city}, {record.state}\n"
            f"   Contact: {contact}"
        )
    return "\n\n".join(entries)


def build_prompt(question: str, records: list[BusinessRecord]) -> str:
    return PROMPT_TEMPLATE.format(question=question, context=format_context(records))


def templated_answer(question: str, records: list[BusinessRecord]) -> str:
    lines = [
        f"{index}. **{record.name}**" + (f" - {record.city}" if record.city else "")
        for index, record in enumerate(records, start=1)
    ]
    return (
        f'Found {len(records)} business(es) matching "{question}":\n\n'
        + "\n".join(lines)
        + f"\n\n{GENERATION_UNAVAILABLE_NOTE}"
    )


class AnswerSynthesizer:
    """Turn a question and its ranked records into a natural-language answer."""

    def __init__(self, completer: Completer, *, timeout: float = 30.0) -> None:
        self.completer = completer
        self.timeout = timeout

    async def synthesize(
        self,
        question: str,
        records: list[BusinessRecord],
        *,
        keyword_fallback: bool = False,
    ) -> str:
        if not records:
            answer = NO_RESULTS_ANSWER
        else:
            try:
                answer = await asyncio.wait_for(
                    self.completer.complete(build_prompt(question, records)),
                    timeout=self.timeout,
                )
            except (ProviderError, TimeoutError) as exc:
                logger.warning("Answer generation failed, using templated summary: %s", exc)
                answer = templated_answer(question, records)

        if keyword_fallback:
            answer += f"\n\n{KEYWORD_FALLBACK_NOTE}"
        return answer
