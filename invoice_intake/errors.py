class PipelineError(Exception):
    """Base class for failures inside the invoice extraction pipeline."""


class DownloadError(PipelineError):
    """The stored invoice file could not be fetched."""


class DocumentServiceError(PipelineError):
    """The document-understanding service call failed."""


class NoDocumentError(DocumentServiceError):
    def __init__(self, message: str = "No document returned from Document AI"):
        super().__init__(message)


class StageTimeoutError(PipelineError):
    def __init__(self, stage: str, seconds: float):
        self.stage = stage
        self.seconds = seconds
        super().__init__(f"{stage} timed out after {seconds:g}s")


class EnrichmentParseError(PipelineError):
    """Fallback model response was not a usable JSON object. Recovered locally."""


class MatchRankingParseError(PipelineError):
    """Ranking model response was not a valid candidate index. Recovered locally."""


class PersistenceError(PipelineError):
    """Writing the terminal invoice update failed."""
