from invoice_intake.models.base import MongoModel
from invoice_intake.models.invoice import Invoice, InvoiceStatus, ProcessingStatus, ExtractedFields, parse_amount
from invoice_intake.models.issue import Issue
from invoice_intake.models.document import DocumentEntity, ProcessedDocument
