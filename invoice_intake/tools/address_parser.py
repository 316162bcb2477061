import re
import logging
from typing import Dict, List, Optional, Tuple

import usaddress
from pydantic import BaseModel

logger = logging.getLogger(__name__)

_STREET_LABELS = (
    "AddressNumberPrefix",
    "AddressNumber",
    "AddressNumberSuffix",
    "StreetNamePreModifier",
    "StreetNamePreDirectional",
    "StreetNamePreType",
    "StreetName",
    "StreetNamePostType",
    "StreetNamePostDirectional",
    "StreetNamePostModifier",
)

_UNIT_KEYWORD_PREFIX = re.compile(r"^(unit|apt|apartment|suite|ste|#)\s*", re.IGNORECASE)

# Tried in order against the original text; first hit wins.
UNIT_PATTERNS = [
    re.compile(r"\b(?:unit|apt|apartment|suite|ste|#)\s*[#.]?\s*(\w+)", re.IGNORECASE),
    re.compile(r"\n\s*(?:unit|apt|apartment|suite|ste|#)\s*[#.]?\s*(\w+)", re.IGNORECASE),
    re.compile(r"\n\s*(\d+[a-z]?)\s*$", re.IGNORECASE),
]


class ParsedAddress(BaseModel):
    street_address: Optional[str] = None  # "1038 S Mariposa Ave"
    unit: Optional[str] = None  # "501"
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None


def _group_first_runs(tokens: List[Tuple[str, str]]) -> Dict[str, str]:
    """Keep the first contiguous run of tokens for each label."""
    grouped: Dict[str, List[str]] = {}
    closed = set()
    last_label = None
    for token, label in tokens:
        if label != last_label and last_label is not None:
            closed.add(last_label)
        if label not in closed:
            grouped.setdefault(label, []).append(token)
        last_label = label
    return {label: " ".join(parts) for label, parts in grouped.items()}


def _tag(address: str) -> Dict[str, str]:
    try:
        tagged, _ = usaddress.tag(address)
        return dict(tagged)
    except usaddress.RepeatedLabelError as e:
        # Ambiguous parse: use the first reading of every component
        logger.debug(f"Ambiguous address parse for {address!r}: {e}")
        return _group_first_runs(e.parsed_string)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip(" ,;")
    return value or None


def _secondary(tagged: Dict[str, str]) -> Optional[str]:
    parts = [tagged.get(label) for label in ("OccupancyType", "OccupancyIdentifier")]
    if not parts[1]:
        parts = [tagged.get(label) for label in ("SubaddressType", "SubaddressIdentifier")]
    return _clean(" ".join(p for p in parts if p))


def parse_receiver_address(address: str) -> ParsedAddress:
    """
    Split a free-text mailing address (line breaks allowed) into street,
    unit, city, state and zip. Missing components come back as None.
    """
    normalized = re.sub(r"[\r\n]+", " ", address).strip()
    if not normalized:
        return ParsedAddress()

    tagged = _tag(normalized)
    logger.debug(f"Parsed address raw: {tagged}")

    unit = None
    secondary = _secondary(tagged)
    if secondary:
        unit = _UNIT_KEYWORD_PREFIX.sub("", secondary).strip() or None

    # Line breaks carry unit cues the tagger cannot see
    if not unit:
        for pattern in UNIT_PATTERNS:
            match = pattern.search(address)
            if match and match.group(1):
                unit = match.group(1).strip()
                break

    street = " ".join(tagged[label] for label in _STREET_LABELS if tagged.get(label))

    return ParsedAddress(
        street_address=_clean(street),
        unit=unit,
        city=_clean(tagged.get("PlaceName")),
        state=_clean(tagged.get("StateName")),
        zip=_clean(tagged.get("ZipCode")),
    )
