# Core module exports
from .config import Settings, get_settings
from .logging import configure_logging, JSONFormatter
from .errors import (
    PipelineError,
    TransportError,
    DecodeError,
    GenerationError,
    EntityNotFoundError,
    DuplicateKeyError,
    StoreWriteError,
    VectorIndexError,
    CollectionNotFoundError,
    handle_pipeline_error,
)

__all__ = [
    "Settings",
    "get_settings",
    "configure_logging",
    "JSONFormatter",
    "PipelineError",
    "TransportError",
    "DecodeError",
    "GenerationError",
    "EntityNotFoundError",
    "DuplicateKeyError",
    "StoreWriteError",
    "VectorIndexError",
    "CollectionNotFoundError",
    "handle_pipeline_error",
]
