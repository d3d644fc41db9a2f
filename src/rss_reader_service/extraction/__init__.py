"""Full-text extraction of article pages."""

from .exceptions import (
    ContentTooLargeError,
    EmptyContentError,
    ExtractionError,
    FetchTimeoutError,
    NetworkError,
)
from .html_extractor import ExtractionResult, HTMLExtractor
from .pipeline import ExtractionPipeline, PipelineConfig, get_extraction_pipeline

__all__ = [
    "ContentTooLargeError",
    "EmptyContentError",
    "ExtractionError",
    "ExtractionPipeline",
    "ExtractionResult",
    "FetchTimeoutError",
    "HTMLExtractor",
    "NetworkError",
    "PipelineConfig",
    "get_extraction_pipeline",
]
