"""ChatGPT-backed duplicate validation for slice transcripts."""

import asyncio
import logging

import aiohttp

from .dedup import DUPLICATE_SENTINEL
from ..errors import TransientServiceError, service_error_from_message

logger = logging.getLogger(__name__)


class ChatGPTDuplicateValidator:
    """Asks ChatGPT to strip content that repeats the previous transcript."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini",
                 base_url: str = "https://api.openai.com/v1/chat/completions"):
        """Initialize ChatGPT validator.

        Args:
            api_key: OpenAI API key
            model: ChatGPT model to use for validation
            base_url: Chat completions endpoint
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url

        logger.info(f"ChatGPTDuplicateValidator initialized with model: {model}")

    async def send_prompt(self, prompt: str, temperature: float = 0.0, max_tokens: int = 512) -> str:
        """Send a prompt to ChatGPT and get the response.

        Raises:
            ServiceError: If the API call fails
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

        data = {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": prompt
                }
            ],
            "temperature": temperature,
            "max_tokens": max_tokens
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(self.base_url, headers=headers, json=data) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise service_error_from_message(
                            f"ChatGPT API error: {response.status} - {error_text}",
                            status=response.status,
                        )

                    result = await response.json()
                    return result["choices"][0]["message"]["content"].strip()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientServiceError(f"ChatGPT network error: {e}") from e

    async def validate(self, previous_context: str, new_text: str) -> str:
        """Return only the genuinely new part of ``new_text``, or the duplicate sentinel."""
        logger.debug("Running duplicate validation")
        return await self.send_prompt(build_validation_prompt(previous_context, new_text))


def build_validation_prompt(previous_context: str, new_text: str) -> str:
    return f"""You are a transcription quality control system.

PREVIOUS TRANSCRIPT (already finalized):
"{previous_context}"

NEW TRANSCRIPTION (current audio slice):
"{new_text}"

Your task:
1. Determine if the NEW TRANSCRIPTION contains any duplicate content from the PREVIOUS TRANSCRIPT
2. If yes, remove ONLY the duplicate parts and return the clean, new content
3. If no duplicates, return the NEW TRANSCRIPTION as-is
4. If the NEW TRANSCRIPTION is entirely a duplicate, return: {DUPLICATE_SENTINEL}

Rules:
- Remove any text that repeats or paraphrases the previous transcript
- Keep only the genuinely new spoken content
- Maintain the original capitalization and punctuation of new content
- Do NOT add, modify, or interpret - only remove duplicates
- Return ONLY the cleaned text, no explanations or formatting

Output the cleaned transcription now:"""
