"""Reasoning layer: context retrieval, completions and the response pipeline."""

from .completion import CompletionService
from .pipeline import PipelineOutcome, PipelineResult, ResponsePipeline
from .retriever import ContextRetriever

__all__ = [
    "CompletionService",
    "ContextRetriever",
    "PipelineOutcome",
    "PipelineResult",
    "ResponsePipeline",
]
