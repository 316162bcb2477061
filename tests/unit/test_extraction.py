from decimal import Decimal
from unittest.mock import patch

from conftest import entity, line_item
from invoice_intake.agents.extraction import extract_fields, line_item_descriptions
from invoice_intake.tools.address_parser import ParsedAddress


def test_complete_entities_map_to_fields(complete_entities):
    result = extract_fields(complete_entities)

    assert result.fields.building == "1038 S Mariposa Ave"
    assert result.fields.unit == "501"
    assert result.fields.amount == Decimal("450.00")
    assert result.fields.description == "Leak repair; Faucet replacement"
    assert result.receiver_address is None


def test_aliases_are_synonyms():
    for building_type in ("building", "property", "property_name"):
        result = extract_fields([entity(building_type, "Sunset Towers")])
        assert result.fields.building == "Sunset Towers"

    for unit_type in ("unit", "unit_number"):
        result = extract_fields([entity(unit_type, "12")])
        assert result.fields.unit == "12"

    for amount_type in ("total_amount", "amount", "invoice_total"):
        result = extract_fields([entity(amount_type, "99.50")])
        assert result.fields.amount == Decimal("99.50")


def test_first_match_per_category_wins():
    result = extract_fields([
        entity("building", "First Building"),
        entity("property", "Second Building"),
        entity("total_amount", "$10.00"),
        entity("invoice_total", "$20.00"),
    ])

    assert result.fields.building == "First Building"
    assert result.fields.amount == Decimal("10.00")


def test_amount_strips_currency_symbol_and_commas():
    result = extract_fields([entity("total_amount", "$1,234.56")])
    assert result.fields.amount == Decimal("1234.56")


def test_non_numeric_amount_stays_none():
    result = extract_fields([entity("total_amount", "see attached")])
    assert result.fields.amount is None


def test_no_building_entity_means_no_building():
    result = extract_fields([entity("unit", "5"), entity("total_amount", "$5")])
    assert result.fields.building is None


def test_line_item_descriptions_drop_empty_and_keep_order():
    entities = [line_item("Leak repair"), line_item(""), line_item("Faucet replacement")]

    result = extract_fields(entities)

    assert result.fields.description == "Leak repair; Faucet replacement"


def test_line_item_description_property_fallback():
    entities = [
        entity("line_item", "", {"description": "Drain cleaning"}),
        entity("line_item", "", {"line_item/description": "Preferred", "description": "Ignored"}),
        entity("line_item", "", {"line_item/amount": "$50"}),
    ]

    assert line_item_descriptions(entities) == ["Drain cleaning", "Preferred"]


def test_receiver_address_fills_missing_building_and_unit():
    parsed = ParsedAddress(street_address="1038 S Mariposa Ave", unit="501", city="Los Angeles")
    with patch("invoice_intake.agents.extraction.parse_receiver_address", return_value=parsed) as parser:
        result = extract_fields([entity("receiver_address", "1038 S Mariposa Ave #501\nLos Angeles")])

    parser.assert_called_once_with("1038 S Mariposa Ave #501\nLos Angeles")
    assert result.receiver_address == "1038 S Mariposa Ave #501\nLos Angeles"
    assert result.fields.building == "1038 S Mariposa Ave"
    assert result.fields.unit == "501"


def test_entity_values_take_priority_over_receiver_address():
    parsed = ParsedAddress(street_address="1038 S Mariposa Ave", unit="501")
    with patch("invoice_intake.agents.extraction.parse_receiver_address", return_value=parsed):
        result = extract_fields([
            entity("receiver_address", "1038 S Mariposa Ave #501"),
            entity("building", "Mariposa Court"),
            entity("unit", "7"),
        ])

    assert result.fields.building == "Mariposa Court"
    assert result.fields.unit == "7"


def test_extraction_is_repeatable(complete_entities):
    entities = complete_entities + [entity("receiver_address", "123 Main St Apt 4B\nLos Angeles, CA 90012")]

    first = extract_fields(entities)
    second = extract_fields(entities)

    assert first == second


def test_unknown_entity_types_ignored():
    result = extract_fields([entity("supplier_name", "Acme Plumbing"), entity("invoice_id", "123")])
    assert result.fields.missing() == ["building", "unit", "description", "amount"]
