"""
Shared plumbing for Gemini calls: rate limiting, bounded retry, JSON fences.
"""

import logging
from typing import Optional

from google import genai

from tools.rate_limiter import gemini_limiter
from tools.retry import retry_with_backoff

logger = logging.getLogger('GeminiCall')


def strip_json_fences(text: str) -> str:
    """Extract the payload from a ```json fenced block, if the model added one."""
    text = (text or "").strip()
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0].strip()
    elif "```" in text:
        text = text.split("```")[1].split("```")[0].strip()
    return text


async def generate_text(
    client,
    model_id: str,
    prompt: str,
    system_instruction: str,
    temperature: float = 0.7,
    limiter=None,
    max_retries: int = 3,
    initial_delay: float = 1.0,
    label: str = "gemini",
) -> str:
    """One generate_content call behind the shared limiter and retry policy.

    Raises:
        RetryExhaustedError: every attempt hit a transient failure.
        Exception: any non-transient failure, unretried.
    """
    limiter = limiter or gemini_limiter

    async def _call():
        await limiter.acquire()
        return await client.aio.models.generate_content(
            model=model_id,
            contents=prompt,
            config=genai.types.GenerateContentConfig(
                system_instruction=system_instruction,
                temperature=temperature,
            )
        )

    response = await retry_with_backoff(_call, max_retries=max_retries, initial_delay=initial_delay, label=label)
    text: Optional[str] = getattr(response, "text", None)
    return (text or "").strip()
