"""Source pipeline: shared control discipline for discovery sources."""

from discovery.pipeline.context import Event, HandlerContext
from discovery.pipeline.dispatcher import Dispatcher
from discovery.pipeline.handler import Handler, Registry
from discovery.pipeline.pipeline import SourcePipeline
from discovery.pipeline.retrieval import FirstCredential, Paginated, RetrievalResult, Single
from discovery.pipeline.source import SourceSpec

__all__ = [
    "Dispatcher",
    "Event",
    "FirstCredential",
    "Handler",
    "HandlerContext",
    "Paginated",
    "Registry",
    "RetrievalResult",
    "Single",
    "SourcePipeline",
    "SourceSpec",
]
