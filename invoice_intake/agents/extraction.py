import logging
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from invoice_intake.models.document import DocumentEntity
from invoice_intake.models.invoice import ExtractedFields, parse_amount
from invoice_intake.tools.address_parser import parse_receiver_address

logger = logging.getLogger(__name__)

RECEIVER_ADDRESS = "receiver_address"
LINE_ITEM = "line_item"

# Document AI entity type -> field it feeds
ENTITY_FIELD_ALIASES: Dict[str, str] = {
    "building": "building",
    "property": "building",
    "property_name": "building",
    "unit": "unit",
    "unit_number": "unit",
    "total_amount": "amount",
    "amount": "amount",
    "invoice_total": "amount",
    RECEIVER_ADDRESS: RECEIVER_ADDRESS,
}

LINE_ITEM_DESCRIPTION_TYPES = ("line_item/description", "description")


class ExtractionResult(BaseModel):
    fields: ExtractedFields = Field(default_factory=ExtractedFields)
    receiver_address: Optional[str] = None


def line_item_descriptions(entities: List[DocumentEntity]) -> List[str]:
    """Non-empty line item descriptions in document order."""
    descriptions = []
    for entity in entities:
        if entity.type != LINE_ITEM:
            continue
        description = entity.property_text(*LINE_ITEM_DESCRIPTION_TYPES)
        if description:
            descriptions.append(description)
    return descriptions


def extract_fields(entities: List[DocumentEntity]) -> ExtractionResult:
    """
    Map Document AI entities onto building / unit / description / amount.

    The first entity of each category wins. A receiver address only fills
    building and unit when no dedicated entity supplied them. Pure: the same
    entity list always yields the same result.
    """
    found: Dict[str, object] = {}

    for entity in entities:
        target = ENTITY_FIELD_ALIASES.get(entity.type)
        if target is None or target in found:
            continue
        value = entity.mention_text or ""
        if target == "amount":
            amount = parse_amount(value)
            if amount is not None:
                found["amount"] = amount
        elif value.strip():
            found[target] = value

    receiver_address = found.pop(RECEIVER_ADDRESS, None)

    descriptions = line_item_descriptions(entities)
    if descriptions:
        found["description"] = "; ".join(descriptions)

    fields = ExtractedFields(**found)

    if receiver_address:
        parsed = parse_receiver_address(receiver_address)
        logger.debug(f"Parsed receiver address: {parsed}")
        if parsed.street_address and not fields.building:
            fields.building = parsed.street_address
        if parsed.unit and not fields.unit:
            fields.unit = parsed.unit

    return ExtractionResult(fields=fields, receiver_address=receiver_address)
