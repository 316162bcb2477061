from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
import logging

from invoice_intake.config import settings
from invoice_intake.database import db
from invoice_intake.api import invoices, dashboard
from invoice_intake.agents.enrichment import FallbackEnricher
from invoice_intake.agents.matching import IssueMatcher
from invoice_intake.tools.document_ai import DocumentAITool
from invoice_intake.tools.groq_llm import GroqLLMTool
from invoice_intake.tools.storage import BlobStorage
from invoice_intake.workflow.graph import InvoicePipeline

# Setup Logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def build_pipeline() -> InvoicePipeline:
    """Construct the service clients once and wire them into the pipeline."""
    llm = GroqLLMTool()
    return InvoicePipeline(
        storage=BlobStorage(db.fs),
        documents=DocumentAITool(),
        enricher=FallbackEnricher(llm),
        matcher=IssueMatcher(llm),
        invoices=db.invoices,
        issues=db.issues
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    db.connect()
    app.state.pipeline = build_pipeline()
    yield
    db.close()


app = FastAPI(
    title="Maintenance Invoice Intake API",
    description="Invoice upload, field extraction and issue matching",
    version="1.0.0",
    lifespan=lifespan
)

# CORS Config
origins = [
    "http://localhost:3000",
    "http://localhost:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Router Registration
app.include_router(invoices.router)
app.include_router(dashboard.router)

# Health Check
@app.get("/health")
async def health_check():
    return {"status": "ok", "environment": settings.ENVIRONMENT}

if __name__ == "__main__":
    uvicorn.run("invoice_intake.main:app", host="0.0.0.0", port=8000, reload=True)
