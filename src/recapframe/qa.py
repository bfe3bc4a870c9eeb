"""Question answering over a transcript."""

from __future__ import annotations

import logging
import re

from .errors import ServiceError
from .llm import LanguageModelClient

logger = logging.getLogger("recapframe.qa")

QA_SYSTEM_PROMPT = (
    "You are a helpful AI assistant that answers questions about meeting "
    "transcripts. Be concise and direct in your answers."
)

CONCISENESS_INSTRUCTION = (
    "Please provide the most concise answer possible. Use phrases instead of "
    "sentences. Omit unnecessary words and explanations. Be direct and to the point."
)

_LEAD_IN = re.compile(r"^(I |The |It |This |That |These |Those |We |They )")


def strip_lead_in(answer: str) -> str:
    """Drop one conversational opener word at the very start of an answer."""
    return _LEAD_IN.sub("", answer, count=1).strip()


class QuestionAnswerer:
    def __init__(
        self,
        client: LanguageModelClient,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ) -> None:
        self.client = client
        self.temperature = temperature
        self.max_tokens = max_tokens

    def ask(self, transcript: str, question: str) -> str:
        prompt = f"{CONCISENESS_INSTRUCTION} Question: {question}"
        messages = [
            {"role": "system", "content": QA_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": "Based on this meeting transcript, answer the following "
                f"question:\n\nTranscript:\n{transcript}\n\nQuestion:\n{prompt}",
            },
        ]
        answer = self.client.chat(
            messages, max_tokens=self.max_tokens, temperature=self.temperature
        )
        if not answer.strip():
            raise ServiceError("No response from the language model")
        return strip_lead_in(answer)
