from typing import TypedDict, Optional

from invoice_intake.models.document import ProcessedDocument
from invoice_intake.models.invoice import ExtractedFields

class PipelineState(TypedDict, total=False):
    """
    Flow state of one invoice through the extraction pipeline.
    Lives only for a single run; nothing here is shared between invoices.
    """
    # Core Identity
    invoice_id: str
    file_path: str

    # Stage outputs
    content: Optional[bytes]
    document: Optional[ProcessedDocument]
    fields: Optional[ExtractedFields]
    receiver_address: Optional[str]
    issue_id: Optional[str]

    # Error Handling
    error: Optional[str]
