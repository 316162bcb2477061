import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Literal, Optional

from langgraph.graph import StateGraph, END

from invoice_intake.agents.enrichment import FallbackEnricher, needs_enrichment
from invoice_intake.agents.extraction import extract_fields
from invoice_intake.agents.matching import IssueMatcher
from invoice_intake.config import settings
from invoice_intake.errors import PersistenceError, StageTimeoutError
from invoice_intake.repositories.invoice import InvoiceRepository
from invoice_intake.repositories.issue import IssueRepository
from invoice_intake.tools.document_ai import DocumentAITool
from invoice_intake.tools.storage import BlobStorage
from invoice_intake.workflow.state import PipelineState

logger = logging.getLogger(__name__)

Node = Callable[[PipelineState], Awaitable[Dict[str, Any]]]


def describe_error(error: BaseException) -> str:
    return str(error) or type(error).__name__


class InvoicePipeline:
    """
    Extraction pipeline for a single uploaded invoice:

        download -> analyze -> extract -> [enrich] -> match -> persist
                                    any failure -> fail

    Every run ends with exactly one terminal write to its own invoice record.
    Issues are only read. Service clients are injected so tests can pass fakes.
    """

    def __init__(self,
                 storage: BlobStorage,
                 documents: DocumentAITool,
                 enricher: FallbackEnricher,
                 matcher: IssueMatcher,
                 invoices: InvoiceRepository,
                 issues: IssueRepository,
                 stage_timeout: Optional[float] = None):
        self.storage = storage
        self.documents = documents
        self.enricher = enricher
        self.matcher = matcher
        self.invoices = invoices
        self.issues = issues
        self.stage_timeout = stage_timeout if stage_timeout is not None else settings.STAGE_TIMEOUT_SECONDS

        self.workflow = StateGraph(PipelineState)
        self._build_graph()

    def _build_graph(self):
        # 1. Add Nodes
        self.workflow.add_node("download", self._guarded("download", self.download_node))
        self.workflow.add_node("analyze", self._guarded("document analysis", self.analyze_node))
        self.workflow.add_node("extract", self._guarded("field extraction", self.extract_node))
        self.workflow.add_node("enrich", self._guarded("fallback enrichment", self.enrich_node))
        self.workflow.add_node("match", self._guarded("issue matching", self.match_node))
        self.workflow.add_node("persist", self._guarded("persist", self.persist_node))
        self.workflow.add_node("fail", self.fail_node)

        # 2. Set Entry Point
        self.workflow.set_entry_point("download")

        # 3. Add Edges & Conditional Logic
        def next_or_fail(next_node: str):
            def route(state: PipelineState) -> str:
                return "fail" if state.get("error") else next_node
            return route

        def route_extraction(state: PipelineState) -> Literal["enrich", "match", "fail"]:
            if state.get("error"):
                return "fail"
            if needs_enrichment(state["fields"]):
                return "enrich"
            return "match"

        self.workflow.add_conditional_edges("download", next_or_fail("analyze"), ["analyze", "fail"])
        self.workflow.add_conditional_edges("analyze", next_or_fail("extract"), ["extract", "fail"])
        self.workflow.add_conditional_edges("extract", route_extraction, ["enrich", "match", "fail"])
        self.workflow.add_conditional_edges("enrich", next_or_fail("match"), ["match", "fail"])
        self.workflow.add_conditional_edges("match", next_or_fail("persist"), ["persist", "fail"])
        self.workflow.add_conditional_edges("persist", next_or_fail(END), [END, "fail"])
        self.workflow.add_edge("fail", END)

        # 4. Compile
        self.app = self.workflow.compile()

    def get_runnable(self):
        return self.app

    async def process_invoice(self, invoice_id: str, file_path: str) -> Optional[PipelineState]:
        """
        Run the pipeline for one invoice. Never raises: this is scheduled as a
        detached background task and has nobody to report to.
        """
        logger.info(f"Processing invoice {invoice_id} ({file_path})")
        try:
            return await self.app.ainvoke(PipelineState(invoice_id=invoice_id, file_path=file_path))
        except Exception as e:
            logger.exception(f"Invoice pipeline crashed for {invoice_id}")
            await self._record_failure(invoice_id, describe_error(e))
            return None

    # Nodes

    async def download_node(self, state: PipelineState) -> Dict[str, Any]:
        content = await self._with_timeout("download", self.storage.download(state["file_path"]))
        return {"content": content}

    async def analyze_node(self, state: PipelineState) -> Dict[str, Any]:
        document = await self._with_timeout("document analysis", self.documents.process_pdf(state["content"]))
        # Bytes are not needed past this point
        return {"document": document, "content": None}

    async def extract_node(self, state: PipelineState) -> Dict[str, Any]:
        document = state["document"]
        result = extract_fields(document.entities)
        logger.info(f"Extracted data from Document AI for {state['invoice_id']}: {result.fields.model_dump(mode='json')}")
        return {"fields": result.fields, "receiver_address": result.receiver_address}

    async def enrich_node(self, state: PipelineState) -> Dict[str, Any]:
        fields = await self._with_timeout(
            "fallback enrichment",
            self.enricher.enrich(state["fields"], state["document"].text)
        )
        logger.info(f"Final extracted data for {state['invoice_id']}: {fields.model_dump(mode='json')}")
        return {"fields": fields}

    async def match_node(self, state: PipelineState) -> Dict[str, Any]:
        fields = state["fields"]
        if not fields.building or not fields.unit:
            return {"issue_id": None}
        issues = await self._with_timeout("issue lookup", self.issues.list_issues())
        issue_id = await self._with_timeout("issue matching", self.matcher.match(fields, issues))
        return {"issue_id": issue_id}

    async def persist_node(self, state: PipelineState) -> Dict[str, Any]:
        updated = await self.invoices.complete_processing(state["invoice_id"], state["fields"], state.get("issue_id"))
        if updated is None:
            raise PersistenceError(f"Invoice {state['invoice_id']} is no longer in flight")
        logger.info(f"Invoice {state['invoice_id']} completed (issue: {state.get('issue_id')})")
        return {}

    async def fail_node(self, state: PipelineState) -> Dict[str, Any]:
        await self._record_failure(state["invoice_id"], state["error"])
        return {}

    # Helpers

    def _guarded(self, stage: str, node: Node) -> Node:
        """Turn a raised exception into an `error` entry so the graph routes to `fail`."""
        async def run(state: PipelineState) -> Dict[str, Any]:
            try:
                return await node(state)
            except Exception as e:
                logger.error(f"Invoice {state['invoice_id']} failed during {stage}: {e}")
                return {"error": describe_error(e)}
        return run

    async def _with_timeout(self, stage: str, awaitable: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.stage_timeout)
        except asyncio.TimeoutError as e:
            raise StageTimeoutError(stage, self.stage_timeout) from e

    async def _record_failure(self, invoice_id: str, error_message: str):
        try:
            updated = await self.invoices.fail_processing(invoice_id, error_message)
            if updated is None:
                raise PersistenceError(f"Invoice {invoice_id} is no longer in flight")
        except Exception:
            logger.exception(f"Could not record failure for invoice {invoice_id}: {error_message}")
