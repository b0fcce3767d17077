"""Failures a single turn can end in. None of them are fatal to the process."""


class PipelineError(Exception):
    """Base class for per-request failures surfaced as the fallback message."""


class EmbeddingError(PipelineError):
    """The embedding service failed or returned no vector."""


class SearchError(PipelineError):
    """The vector index query failed."""


class NoRelevantContext(PipelineError):
    """No retrieved passage cleared the relevance threshold."""


class CompletionError(PipelineError):
    """The language model call failed or returned nothing."""
