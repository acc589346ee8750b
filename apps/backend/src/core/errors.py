"""
Pipeline error hierarchy.

Callees raise; callers decide whether a failure is fatal to the whole
operation or only to the current item.
"""
from fastapi import HTTPException


class PipelineError(Exception):
    """Base class for every error raised by the pipeline."""
    pass


class TransportError(PipelineError):
    """Network or provider failure. Fatal for the call; never retried in place."""
    pass


class DecodeError(PipelineError):
    """Structured payload could not be decoded."""
    pass


class GenerationError(TransportError):
    """Completion or embedding request failed or returned nothing usable."""
    pass


class EntityNotFoundError(PipelineError):
    """
    Raised when a referenced entity is absent.
    Kept apart from I/O failures so callers can tell "missing" from "broken".
    """
    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} not found: {entity_id}")


class DuplicateKeyError(PipelineError):
    """Composite key already present; the write was suppressed."""
    pass


class StoreWriteError(PipelineError):
    """Persistence failure; the logical create/update did not happen."""
    pass


class VectorIndexError(PipelineError):
    """Vector index operation failed."""
    pass


class CollectionNotFoundError(VectorIndexError):
    def __init__(self, collection: str):
        self.collection = collection
        super().__init__(f"Collection not found: {collection}")


def handle_pipeline_error(e: PipelineError) -> HTTPException:
    """Converts pipeline exceptions to HTTP responses for the control routes."""
    if isinstance(e, (EntityNotFoundError, CollectionNotFoundError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (TransportError, DecodeError)):
        return HTTPException(status_code=502, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))
