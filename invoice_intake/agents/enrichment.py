import json
import logging
from typing import Optional

from pydantic import ValidationError

from invoice_intake.config import settings
from invoice_intake.errors import EnrichmentParseError
from invoice_intake.models.invoice import ExtractedFields
from invoice_intake.tools.groq_llm import GroqLLMTool, loads_json_reply

logger = logging.getLogger(__name__)

FALLBACK_PROMPT_TEMPLATE = """Extract missing invoice fields from this text. Current data: {current}

Text:
{document_text}

Return JSON with: building, unit, description, amount (fill in any null/missing fields)"""


def needs_enrichment(fields: ExtractedFields) -> bool:
    return not fields.is_complete


def parse_enrichment_reply(reply: str) -> dict:
    """Decode the model reply into a field dict, or raise EnrichmentParseError."""
    try:
        payload = loads_json_reply(reply)
    except ValueError as e:
        raise EnrichmentParseError(f"Fallback reply is not JSON: {e}") from e
    if not isinstance(payload, dict):
        raise EnrichmentParseError(f"Fallback reply is not a JSON object: {type(payload).__name__}")
    return {k: v for k, v in payload.items() if k in ExtractedFields.model_fields}


def merge_fields(current: ExtractedFields, proposed: dict) -> ExtractedFields:
    """
    Shallow merge: any key present in `proposed` replaces the current value,
    including null or blank ones.
    """
    # TODO: only fill keys that are still None once precedence over primary extraction is confirmed
    return ExtractedFields(**{**current.model_dump(), **proposed})


class FallbackEnricher:
    """
    Second extraction pass over the raw document text for whatever Document AI
    could not find.
    """

    def __init__(self, llm: GroqLLMTool, text_limit: Optional[int] = None):
        self.llm = llm
        self.text_limit = text_limit if text_limit is not None else settings.FALLBACK_TEXT_LIMIT

    def build_prompt(self, fields: ExtractedFields, document_text: str) -> str:
        current = json.dumps(fields.model_dump(mode="json", exclude_none=True))
        return FALLBACK_PROMPT_TEMPLATE.format(
            current=current,
            document_text=(document_text or "")[:self.text_limit]
        )

    async def enrich(self, fields: ExtractedFields, document_text: str) -> ExtractedFields:
        if not needs_enrichment(fields):
            return fields

        logger.info(f"Using language model to fill missing fields: {fields.missing()}")
        reply = await self.llm.complete(self.build_prompt(fields, document_text), max_tokens=300)
        if not reply:
            return fields

        try:
            return merge_fields(fields, parse_enrichment_reply(reply))
        except (EnrichmentParseError, ValidationError) as e:
            logger.warning(f"Failed to parse fallback response, keeping partial fields: {e}")
            return fields
