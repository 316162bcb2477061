import pytest
from unittest.mock import AsyncMock, MagicMock

from invoice_intake.models.document import DocumentEntity, ProcessedDocument
from invoice_intake.models.issue import Issue


def entity(type_: str, text: str = "", properties=None) -> DocumentEntity:
    """Build a Document AI style entity; `properties` maps child type -> mention text."""
    return DocumentEntity(
        type=type_,
        mention_text=text,
        properties=[DocumentEntity(type=k, mention_text=v) for k, v in (properties or {}).items()]
    )


def line_item(description: str) -> DocumentEntity:
    return entity("line_item", description, {"line_item/description": description})


@pytest.fixture
def mock_llm():
    llm = MagicMock()
    llm.complete = AsyncMock(return_value="")
    return llm


@pytest.fixture
def complete_entities():
    return [
        entity("property_name", "1038 S Mariposa Ave"),
        entity("unit_number", "501"),
        entity("total_amount", "$450.00"),
        line_item("Leak repair"),
        line_item("Faucet replacement"),
    ]


@pytest.fixture
def complete_document(complete_entities):
    return ProcessedDocument(text="INVOICE\nBill to: 1038 S Mariposa Ave #501\nTotal $450.00", entities=complete_entities)


@pytest.fixture
def sample_issues():
    return [
        Issue(id="issue-sink", building="1038 S Mariposa Ave", unit="501", description="Kitchen sink leaking"),
        Issue(id="issue-faucet", building="1038 s mariposa ave", unit="501", description="Bathroom faucet dripping"),
        Issue(id="issue-heater", building="123 Main St", unit="4B", description="Heater not turning on"),
    ]


@pytest.fixture
def mock_invoices():
    repo = MagicMock()
    repo.complete_processing = AsyncMock(return_value=MagicMock())
    repo.fail_processing = AsyncMock(return_value=MagicMock())
    return repo


@pytest.fixture
def mock_issues(sample_issues):
    repo = MagicMock()
    repo.list_issues = AsyncMock(return_value=sample_issues)
    return repo
