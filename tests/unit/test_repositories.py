from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson.decimal128 import Decimal128

from invoice_intake.models.invoice import ExtractedFields, Invoice, InvoiceStatus
from invoice_intake.models.issue import Issue
from invoice_intake.monitoring.metrics import ProcessingMetrics
from invoice_intake.repositories.invoice import InvoiceRepository
from invoice_intake.repositories.issue import IssueRepository


def _invoice_doc(**overrides):
    doc = {"_id": "665f1c2e9b1e8a3d2c4b5a69", "invoice_id": "INV-1", "file_path": "1_a.pdf",
           "file_name": "a.pdf", "processing_status": "completed"}
    doc.update(overrides)
    return doc


@pytest.fixture
def collection():
    coll = MagicMock()
    coll.find_one_and_update = AsyncMock(return_value=_invoice_doc())
    return coll


@pytest.mark.asyncio
async def test_complete_processing_only_touches_in_flight_records(collection):
    repo = InvoiceRepository(collection, Invoice)
    fields = ExtractedFields(building="A", unit="1", description="Paint", amount="12.50")

    invoice = await repo.complete_processing("INV-1", fields, "issue-9")

    assert invoice.invoice_id == "INV-1"
    filter, update = collection.find_one_and_update.await_args.args
    assert filter == {"invoice_id": "INV-1", "processing_status": {"$in": ["pending", "processing"]}}
    assert update["$set"] == {
        "building": "A",
        "unit": "1",
        "description": "Paint",
        "amount": Decimal128("12.50"),
        "issue_id": "issue-9",
        "processing_status": "completed",
    }


@pytest.mark.asyncio
async def test_complete_processing_stores_oversized_amount(collection):
    repo = InvoiceRepository(collection, Invoice)
    fields = ExtractedFields(amount="$1234567890123456789012345678901234567.89")

    await repo.complete_processing("INV-1", fields, None)

    _, update = collection.find_one_and_update.await_args.args
    assert update["$set"]["amount"] == Decimal128("1.234567890123456789012345678901235E+36")


@pytest.mark.asyncio
async def test_fail_processing_writes_only_status_and_message(collection):
    collection.find_one_and_update.return_value = None
    repo = InvoiceRepository(collection, Invoice)

    assert await repo.fail_processing("INV-1", "boom") is None
    _, update = collection.find_one_and_update.await_args.args
    assert update["$set"] == {"processing_status": "failed", "error_message": "boom"}


@pytest.mark.asyncio
async def test_update_status_leaves_processing_status_alone(collection):
    collection.find_one_and_update.return_value = _invoice_doc(status="Paid")
    repo = InvoiceRepository(collection, Invoice)

    invoice = await repo.update_status("INV-1", InvoiceStatus.PAID)

    assert invoice.status == InvoiceStatus.PAID
    filter, update = collection.find_one_and_update.await_args.args
    assert filter == {"invoice_id": "INV-1"}
    assert update["$set"] == {"status": "Paid"}


@pytest.mark.asyncio
async def test_list_issues_reads_everything_in_store_order():
    cursor = MagicMock()
    cursor.to_list = AsyncMock(return_value=[
        {"_id": "b", "building": "X", "unit": "1", "description": "second"},
        {"_id": "a", "building": "X", "unit": "1", "description": None},
    ])
    coll = MagicMock()
    coll.find.return_value = cursor

    issues = await IssueRepository(coll, Issue).list_issues()

    assert [i.id for i in issues] == ["b", "a"]
    assert coll.find.call_args.args[0] == {}
    cursor.to_list.assert_awaited_once_with(length=None)


@pytest.mark.asyncio
async def test_processing_health_fills_missing_states():
    invoices = MagicMock()
    invoices.processing_status_counts = AsyncMock(return_value={"completed": 3, "failed": 1, "processing": 2})

    health = await ProcessingMetrics(invoices).get_processing_health()

    assert health["status_distribution"] == {"pending": 0, "processing": 2, "completed": 3, "failed": 1}
    assert health["total_invoices"] == 6
    assert health["in_flight"] == 2
    assert health["failed"] == 1
    assert health["success_rate"] == 75.0


@pytest.mark.asyncio
async def test_get_reprocess_of_looks_up_by_source_invoice(collection):
    collection.find_one = AsyncMock(return_value=_invoice_doc(invoice_id="INV-2", reprocessed_from="INV-1"))
    repo = InvoiceRepository(collection, Invoice)

    retry = await repo.get_reprocess_of("INV-1")

    assert retry.invoice_id == "INV-2"
    collection.find_one.assert_awaited_once_with({"reprocessed_from": "INV-1"})
