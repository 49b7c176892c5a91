"""Generative text helpers: reply suggestions, writing, summaries and translation."""

import logging
import re
from typing import Awaitable, Callable, Optional

from openai import AsyncOpenAI, OpenAIError

from airchat.core.config import settings
from airchat.core.exceptions import AIServiceError
from airchat.models.message import Message

logger = logging.getLogger(__name__)

# Leading list markers: "1.", "2)", "(3)", "-", "*", "•"
_LIST_MARKER = re.compile(r"^\s*(?:\(?\d+[.)]|[-*•])\s*")
_QUOTES = "\"'“”‘’"

SYSTEM_PROMPT = (
    "You are the writing assistant of AirChat, a friendly chat app. "
    "Answer with plain text only, no markdown."
)


def parse_suggestions(text: Optional[str]) -> list[str]:
    """
    Turn a free-text completion into a list of suggestions.

    One suggestion per non-blank line, with list markers and surrounding
    quotes removed. Input with no usable line gives an empty list.
    """
    if not text:
        return []
    suggestions = []
    for line in text.splitlines():
        line = _LIST_MARKER.sub("", line).strip().strip(_QUOTES).strip()
        if line:
            suggestions.append(line)
    return suggestions


def format_transcript(messages: list[Message]) -> str:
    return "\n".join(f"{m.sender_username}: {m.text}" for m in messages)


class AIService:
    """Thin wrapper over the chat completions API; every helper is one call."""

    def __init__(self, complete: Optional[Callable[[str], Awaitable[str]]] = None):
        self._openai_client = None
        self._complete = complete

    def _get_openai_client(self) -> AsyncOpenAI:
        if self._openai_client is None:
            self._openai_client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        return self._openai_client

    async def _openai_complete(self, prompt: str) -> str:
        client = self._get_openai_client()
        response = await client.chat.completions.create(
            model=settings.OPENAI_MODEL,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=settings.OPENAI_TEMPERATURE,
        )
        return response.choices[0].message.content or ""

    async def generate(self, prompt: str) -> str:
        """Send one prompt and return the completion text."""
        complete = self._complete or self._openai_complete
        try:
            return (await complete(prompt)).strip()
        except (OpenAIError, OSError) as e:
            logger.error(f"Text generation failed: {e}", exc_info=True)
            raise AIServiceError() from e

    async def suggest_replies(self, messages: list[Message], count: int = 3) -> list[str]:
        if not messages:
            return []
        prompt = f"""Here is the end of a chat conversation:

{format_transcript(messages)}

Suggest {count} short, natural replies the last reader could send next.
Write one reply per line, numbered 1., 2., 3. and nothing else."""
        return parse_suggestions(await self.generate(prompt))[:count]

    async def creative_writing(self, topic: str) -> str:
        prompt = f"Write a short, creative piece (a few sentences) about: {topic}"
        return await self.generate(prompt)

    async def summarize(self, messages: list[Message]) -> str:
        if not messages:
            return ""
        prompt = f"""Summarize this chat conversation in two or three sentences:

{format_transcript(messages)}"""
        return await self.generate(prompt)

    async def translate(self, text: str, target_language: str) -> str:
        prompt = f"""Translate the following text into {target_language}.
Return only the translation.

{text}"""
        return await self.generate(prompt)
