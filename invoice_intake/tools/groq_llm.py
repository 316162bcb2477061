import json
import logging
from typing import Any, Optional
from groq import AsyncGroq
from invoice_intake.config import settings

logger = logging.getLogger(__name__)

class GroqLLMTool:
    """
    Thin completion client over Groq chat completions.
    One instance is built at startup and shared by every pipeline run.
    """

    def __init__(self, client: Optional[AsyncGroq] = None, model: Optional[str] = None):
        self.client = client or AsyncGroq(api_key=settings.GROQ_API_KEY)
        self.model = model or settings.GROQ_MODEL

    async def complete(self, prompt: str, max_tokens: int = 300) -> str:
        """Send a single user prompt and return the trimmed reply text ("" when empty)."""
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=max_tokens
            )
        except Exception as e:
            logger.error(f"LLM completion failed: {e}")
            raise

        if not completion.choices:
            return ""
        content = completion.choices[0].message.content
        return (content or "").strip()


def loads_json_reply(reply: str) -> Any:
    """
    Parse a model reply as JSON. Models often wrap JSON in a ```json fence,
    which is stripped first. Raises ValueError on anything unparsable.
    """
    text = reply.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return json.loads(text)
