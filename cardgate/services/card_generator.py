"""
Card generation collaborator backed by OpenAI.

Turns free text into a content card JSON object. The card schema itself is
owned by the frontend; this module only guarantees a JSON object comes back.
"""
import json
import logging
from typing import Any, Dict

from openai import OpenAI

from cardgate.core.config import settings
from cardgate.core.exceptions import CardGenerationError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a social media content editor. Turn the user's text into a content card. "
    "Always return valid JSON."
)

CARD_PROMPT = """Turn the following text into a content card.

Return a JSON object with:
1. "title": A catchy headline
2. "summary": A 50-80 word summary of the core value
3. "keyPoints": 3-4 short highlights for the cover
4. "sections": 4-5 objects with "title" and "content" (150-200 words each)
5. "category": A 1-2 word category tag
6. "emoji": One emoji for the topic
7. "sentimentColor": A hex color code
8. "readingTime": Estimated reading time
9. "authorOrSource": Author or source

Text input: "{text}"

Return only valid JSON, no markdown formatting."""


class CardGenerator:
    """Generates card content with the OpenAI chat completions API."""

    def __init__(self):
        self._client = None

    @property
    def client(self):
        """Lazy-load OpenAI client."""
        if self._client is None and settings.is_openai_available():
            try:
                self._client = OpenAI(api_key=settings.OPENAI_API_KEY)
            except Exception as e:
                logger.error(f"Failed to initialize OpenAI client: {e}")
                return None
        return self._client

    def is_available(self) -> bool:
        """Check if card generation is configured."""
        return settings.is_openai_available() and self.client is not None

    def generate(self, text: str) -> Dict[str, Any]:
        """
        Generate a content card for the given text.

        Raises:
            CardGenerationError: If generation is not configured, the API call
                fails, or the reply is not a JSON object
        """
        if not self.is_available():
            raise CardGenerationError("Server misconfiguration: OPENAI_API_KEY missing")

        try:
            response = self.client.chat.completions.create(
                model=settings.OPENAI_MODEL,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": CARD_PROMPT.format(text=text)},
                ],
                temperature=0.7,
                response_format={"type": "json_object"},
            )
        except Exception as e:
            logger.error(f"Card generation request failed: {e}", exc_info=True)
            raise CardGenerationError(f"Card generation request failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise CardGenerationError("No response from AI")

        try:
            card = json.loads(content)
        except json.JSONDecodeError:
            # Models occasionally wrap JSON in prose or code fences
            json_start = content.find("{")
            json_end = content.rfind("}") + 1
            if json_start < 0 or json_end <= json_start:
                raise CardGenerationError("AI response did not contain valid JSON")
            try:
                card = json.loads(content[json_start:json_end])
            except json.JSONDecodeError as e:
                raise CardGenerationError("AI response did not contain valid JSON") from e

        if not isinstance(card, dict):
            raise CardGenerationError("AI response was not a JSON object")
        return card


card_generator = CardGenerator()


def get_card_generator() -> CardGenerator:
    """Dependency returning the shared card generator."""
    return card_generator
