import uuid
import logging
from typing import List
from datetime import datetime

from fastapi import APIRouter, UploadFile, File, HTTPException, BackgroundTasks, Depends, Request
from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError

from invoice_intake.database import Database, get_db
from invoice_intake.models.invoice import Invoice, InvoiceStatus, ProcessingStatus
from invoice_intake.tools.storage import BlobStorage
from invoice_intake.workflow.graph import InvoicePipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/invoices", tags=["Invoices"])

PDF_MIME_TYPE = "application/pdf"

# Request Models
class StatusUpdate(BaseModel):
    status: InvoiceStatus

# Dependencies
def get_pipeline(request: Request) -> InvoicePipeline:
    return request.app.state.pipeline

def get_storage(db: Database = Depends(get_db)) -> BlobStorage:
    return BlobStorage(db.fs)

def new_invoice_id() -> str:
    return f"INV-{uuid.uuid4().hex[:8].upper()}"

async def discard_upload(storage: BlobStorage, file_path: str):
    try:
        await storage.delete(file_path)
    except Exception as e:
        logger.error(f"Failed to remove orphaned upload {file_path}: {e}")

@router.post("/upload", response_model=Invoice, status_code=201)
async def upload_invoice(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    db: Database = Depends(get_db),
    storage: BlobStorage = Depends(get_storage),
    pipeline: InvoicePipeline = Depends(get_pipeline)
):
    if file.content_type != PDF_MIME_TYPE:
        raise HTTPException(status_code=400, detail="Only PDF files are allowed")

    file_name = file.filename or "invoice.pdf"
    try:
        file_path = await storage.upload(file_name, await file.read(), PDF_MIME_TYPE)
    except Exception as e:
        logger.error(f"Failed to upload file: {e}")
        raise HTTPException(status_code=500, detail="Failed to upload file")

    new_invoice = Invoice(
        invoice_id=new_invoice_id(),
        uploaded_at=datetime.utcnow(),
        file_path=file_path,
        file_name=file_name,
        status=InvoiceStatus.PENDING,
        processing_status=ProcessingStatus.PROCESSING
    )
    try:
        await db.invoices.create(new_invoice)
    except Exception as e:
        logger.error(f"Failed to create invoice record: {e}")
        await discard_upload(storage, file_path)
        raise HTTPException(status_code=500, detail="Failed to create invoice record")

    # Detached: the uploader only gets the acknowledgment
    background_tasks.add_task(pipeline.process_invoice, new_invoice.invoice_id, file_path)

    return new_invoice

@router.get("/", response_model=List[Invoice])
async def list_invoices(limit: int = 100, skip: int = 0, db: Database = Depends(get_db)):
    return await db.invoices.list_recent(skip=skip, limit=limit)

@router.get("/{invoice_id}", response_model=Invoice)
async def get_invoice(invoice_id: str, db: Database = Depends(get_db)):
    invoice = await db.invoices.get_by_invoice_id(invoice_id)
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice

@router.patch("/{invoice_id}/status", response_model=Invoice)
async def update_invoice_status(invoice_id: str, update: StatusUpdate, db: Database = Depends(get_db)):
    invoice = await db.invoices.update_status(invoice_id, update.status)
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice

@router.post("/{invoice_id}/reprocess", response_model=Invoice, status_code=201)
async def reprocess_invoice(
    invoice_id: str,
    background_tasks: BackgroundTasks,
    db: Database = Depends(get_db),
    pipeline: InvoicePipeline = Depends(get_pipeline)
):
    """
    Re-run extraction for a failed invoice. The failed record stays as it is;
    a fresh record over the same stored file goes through the pipeline.
    """
    invoice = await db.invoices.get_by_invoice_id(invoice_id)
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")

    if invoice.processing_status != ProcessingStatus.FAILED:
        raise HTTPException(status_code=409, detail="Only failed invoices can be reprocessed")

    if await db.invoices.get_reprocess_of(invoice_id):
        raise HTTPException(status_code=409, detail="Invoice has already been reprocessed")

    retry = Invoice(
        invoice_id=new_invoice_id(),
        uploaded_at=datetime.utcnow(),
        file_path=invoice.file_path,
        file_name=invoice.file_name,
        status=invoice.status,
        processing_status=ProcessingStatus.PROCESSING,
        reprocessed_from=invoice.invoice_id
    )
    try:
        await db.invoices.create(retry)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Invoice has already been reprocessed")

    background_tasks.add_task(pipeline.process_invoice, retry.invoice_id, retry.file_path)

    return retry
