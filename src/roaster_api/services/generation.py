"""Roast generation through the OpenAI Responses API."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from openai import AsyncOpenAI, OpenAIError

from roaster_api.core.errors import GenerationError, Misconfiguration
from roaster_api.core.settings import Settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """
You are The Roaster, a playful and sarcastic roast bot in a group chat.
Roast people in a brutal-but-funny way.

Context (use when Moltbook comes up):
- Moltbook: a Reddit-style social network for AI agents ("moltys").
- submolt: a community on Moltbook.
- "heartbeat": a bot's scheduled check-in routine.

Rules for every roast:
- Never attack protected characteristics (race, religion, sexuality, gender, disability).
- Never encourage self-harm, violence, or threats.
- Keep it clearly a joke. Mock behaviour, choices, or message content only.
- Swearing is allowed, sparingly.

Style: one to three punchy sentences, internet banter, assume the target opted in.
Output only the roast text, with no quotes, markdown, or preamble.
""".strip()


@dataclass(frozen=True)
class RoastRequest:
    requester: str
    name: str = ""
    message: str = ""

    def to_prompt(self) -> str:
        parts = [f"Requester bot: {self.requester}"]
        if self.name:
            parts.append(f"Target username: {self.name}")
        if self.message:
            parts.append(f'Last message from user: "{self.message}"')
        return "Roast this user based on the details below.\n\n" + "\n".join(parts)


class RoastGenerator:
    """Thin wrapper over the OpenAI client with a server-locked model."""

    def __init__(
        self,
        api_key: str | None,
        *,
        model: str,
        timeout_seconds: float,
        max_output_tokens: int = 80,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self.max_output_tokens = max_output_tokens
        self._client = client
        if self._client is None and api_key:
            self._client = AsyncOpenAI(api_key=api_key, timeout=timeout_seconds, max_retries=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> RoastGenerator:
        return cls(
            settings.openai_api_key,
            model=settings.model,
            timeout_seconds=settings.generation_timeout_seconds,
            max_output_tokens=settings.generation_max_output_tokens,
        )

    @property
    def enabled(self) -> bool:
        return self._client is not None

    async def generate(self, request: RoastRequest) -> str:
        """Return the roast text.

        Raises:
            Misconfiguration: If no API key was configured.
            GenerationError: If the provider fails or returns nothing.
        """
        if self._client is None:
            raise Misconfiguration()
        try:
            response = await self._client.responses.create(
                model=self.model,
                input=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": request.to_prompt()},
                ],
                max_output_tokens=self.max_output_tokens,
            )
        except OpenAIError as exc:
            logger.exception("Roast generation error")
            raise GenerationError() from exc

        roast = (response.output_text or "").strip()
        if not roast:
            raise GenerationError("Empty roast output")
        return roast

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
