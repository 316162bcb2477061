from typing import Dict, List, Optional
from pymongo import DESCENDING
from invoice_intake.repositories.base import BaseRepository
from invoice_intake.models.invoice import Invoice, InvoiceStatus, ProcessingStatus, ExtractedFields

class InvoiceRepository(BaseRepository[Invoice]):

    async def get_by_invoice_id(self, invoice_id: str) -> Optional[Invoice]:
        return await self.get_by_field("invoice_id", invoice_id)

    async def get_reprocess_of(self, invoice_id: str) -> Optional[Invoice]:
        """The record re-running `invoice_id`, if one was already created."""
        return await self.get_by_field("reprocessed_from", invoice_id)

    async def list_recent(self, skip: int = 0, limit: int = 100) -> List[Invoice]:
        """Newest uploads first."""
        return await self.list(skip=skip, limit=limit, sort=[("uploaded_at", DESCENDING)])

    async def update_status(self, invoice_id: str, status: InvoiceStatus) -> Optional[Invoice]:
        """Change the payment status. Does not touch processing_status."""
        return await self.update_where({"invoice_id": invoice_id}, {"status": status.value})

    async def complete_processing(self, invoice_id: str, fields: ExtractedFields,
                                  issue_id: Optional[str]) -> Optional[Invoice]:
        """
        Terminal success write. Only applies while the record is still in flight,
        so a finished invoice never re-enters the pipeline lifecycle.
        """
        update = fields.model_dump()
        update["issue_id"] = issue_id
        update["processing_status"] = ProcessingStatus.COMPLETED.value
        return await self.update_where(self._in_flight(invoice_id), update)

    async def fail_processing(self, invoice_id: str, error_message: str) -> Optional[Invoice]:
        """Terminal failure write. Extracted fields are left untouched."""
        return await self.update_where(self._in_flight(invoice_id), {
            "processing_status": ProcessingStatus.FAILED.value,
            "error_message": error_message
        })

    async def processing_status_counts(self) -> Dict[str, int]:
        pipeline = [{"$group": {"_id": "$processing_status", "count": {"$sum": 1}}}]
        results = await self.collection.aggregate(pipeline).to_list(length=None)
        return {item["_id"]: item["count"] for item in results}

    @staticmethod
    def _in_flight(invoice_id: str) -> dict:
        return {
            "invoice_id": invoice_id,
            "processing_status": {"$in": [ProcessingStatus.PENDING.value, ProcessingStatus.PROCESSING.value]}
        }
