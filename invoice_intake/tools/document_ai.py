import logging
from typing import Optional
from google.cloud import documentai

from invoice_intake.config import settings
from invoice_intake.errors import DocumentServiceError, NoDocumentError
from invoice_intake.models.document import DocumentEntity, ProcessedDocument

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"


def _to_entity(entity) -> DocumentEntity:
    return DocumentEntity(
        type=entity.type_ or "",
        mention_text=entity.mention_text or "",
        properties=[_to_entity(p) for p in entity.properties]
    )


class DocumentAITool:
    """
    Runs invoices through a Google Document AI processor.
    Credentials come from Application Default Credentials
    (`gcloud auth application-default login` locally).
    """

    def __init__(self, client: Optional[documentai.DocumentProcessorServiceAsyncClient] = None,
                 processor_name: Optional[str] = None):
        self.client = client or documentai.DocumentProcessorServiceAsyncClient()
        self.processor_name = processor_name or documentai.DocumentProcessorServiceClient.processor_path(
            settings.GOOGLE_CLOUD_PROJECT_ID,
            settings.GOOGLE_CLOUD_LOCATION,
            settings.DOCUMENT_AI_PROCESSOR_ID
        )

    async def process_pdf(self, content: bytes) -> ProcessedDocument:
        """
        Send raw PDF bytes (the client base64-encodes them on the wire) and
        return the document text and entities.
        """
        request = documentai.ProcessRequest(
            name=self.processor_name,
            raw_document=documentai.RawDocument(content=content, mime_type=PDF_MIME_TYPE)
        )
        try:
            result = await self.client.process_document(request=request)
        except Exception as e:
            logger.error(f"Document AI request failed: {e}")
            raise DocumentServiceError(f"Document AI request failed: {e}") from e

        if result is None or "document" not in result:
            raise NoDocumentError()

        document = result.document
        entities = [_to_entity(e) for e in document.entities]
        logger.info(f"Document AI entity types found: {[e.type for e in entities if e.type]}")
        return ProcessedDocument(text=document.text or "", entities=entities)
