from fastapi import APIRouter, Depends

from invoice_intake.database import Database, get_db
from invoice_intake.monitoring.metrics import ProcessingMetrics

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])

@router.get("/processing")
async def processing_health(db: Database = Depends(get_db)):
    """Pipeline lifecycle counts, including invoices stuck in `failed`."""
    return await ProcessingMetrics(db.invoices).get_processing_health()
