import logging
from typing import Dict, Any

from invoice_intake.models.invoice import ProcessingStatus
from invoice_intake.repositories.invoice import InvoiceRepository

logger = logging.getLogger(__name__)

class ProcessingMetrics:
    def __init__(self, invoices: InvoiceRepository):
        self.invoices = invoices

    async def get_processing_health(self) -> Dict[str, Any]:
        """
        Aggregate pipeline status counts.
        """
        status_map = await self.invoices.processing_status_counts()

        # Ensure we return 0 for missing categories
        distribution = {status.value: status_map.get(status.value, 0) for status in ProcessingStatus}

        finished = distribution[ProcessingStatus.COMPLETED.value] + distribution[ProcessingStatus.FAILED.value]
        success_rate = 0.0
        if finished > 0:
            success_rate = distribution[ProcessingStatus.COMPLETED.value] / finished * 100

        return {
            "status_distribution": distribution,
            "total_invoices": sum(distribution.values()),
            "in_flight": distribution[ProcessingStatus.PENDING.value] + distribution[ProcessingStatus.PROCESSING.value],
            "failed": distribution[ProcessingStatus.FAILED.value],
            "success_rate": round(success_rate, 2)
        }
