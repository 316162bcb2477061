import re
from datetime import datetime
from decimal import Context, Decimal, InvalidOperation, Overflow
from enum import Enum
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from invoice_intake.models.base import MongoModel, MongoDecimal

# Leading numeric prefix, the way a lenient float parse reads "450.00 USD"
_NUMERIC_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

# BSON Decimal128 limits: 34 significant digits, exponent -6176..6111
_DECIMAL128_CONTEXT = Context(prec=34, Emin=-6143, Emax=6144, clamp=1)


def _fit_decimal128(value: Decimal) -> Optional[Decimal]:
    """Round to what Decimal128 can hold; None if it is out of range."""
    if not value.is_finite():
        return None
    try:
        return _DECIMAL128_CONTEXT.create_decimal(value)
    except Overflow:
        return None


def parse_amount(value: Any) -> Optional[Decimal]:
    """
    Parse a currency amount such as "$1,234.56" into a Decimal.
    Returns None for anything that does not start with a number. Values with
    more precision than Decimal128 holds are rounded to 34 significant digits.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return _fit_decimal128(value)
    if isinstance(value, (int, float)):
        try:
            parsed = Decimal(str(value))
        except InvalidOperation:
            return None
        return _fit_decimal128(parsed)
    if not isinstance(value, str):
        return None

    match = _NUMERIC_PREFIX.match(value.replace("$", "").replace(",", ""))
    if not match:
        return None
    return _fit_decimal128(Decimal(match.group(1)))


class InvoiceStatus(str, Enum):
    """Business/payment status, changed only by explicit user action."""
    PENDING = "Pending"
    APPROVED = "Approved"
    PAID = "Paid"


class ProcessingStatus(str, Enum):
    """Extraction pipeline lifecycle."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED)


class ExtractedFields(BaseModel):
    """Fields recovered from an invoice document, merged into the record at the end."""
    model_config = ConfigDict(extra="ignore")

    building: Optional[str] = None
    unit: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[Decimal] = None

    @field_validator("building", "unit", "description", mode="before")
    @classmethod
    def coerce_text(cls, v):
        # The language model sometimes answers with bare numbers ("unit": 5)
        if isinstance(v, str):
            return v if v.strip() else None
        if v is None:
            return None
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return None

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v):
        return parse_amount(v)

    def missing(self) -> List[str]:
        """Names of the fields that are still unknown."""
        return [name for name, value in self.model_dump().items() if value is None]

    @property
    def is_complete(self) -> bool:
        return not self.missing()


class Invoice(MongoModel):
    """
    Invoice document, one per uploaded PDF.
    """
    invoice_id: str = Field(..., description="Opaque id generated at ingest (INV-XXXXXXXX)")

    uploaded_at: datetime = Field(default_factory=datetime.utcnow)
    file_path: str = Field(..., description="Stored blob name")
    file_name: str = Field(..., description="Original upload file name")

    # Extracted Data
    building: Optional[str] = None
    unit: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[MongoDecimal] = None
    issue_id: Optional[str] = None

    status: InvoiceStatus = Field(default=InvoiceStatus.PENDING)
    processing_status: ProcessingStatus = Field(default=ProcessingStatus.PENDING)
    error_message: Optional[str] = None

    reprocessed_from: Optional[str] = Field(None, description="Failed invoice this record re-runs")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "invoice_id": "INV-1A2B3C4D",
                "file_path": "1718035200000_plumbing_invoice.pdf",
                "file_name": "plumbing invoice.pdf",
                "building": "1038 S Mariposa Ave",
                "unit": "501",
                "description": "Leak repair; Faucet replacement",
                "amount": "450.00",
                "status": "Pending",
                "processing_status": "completed"
            }
        }
    )
