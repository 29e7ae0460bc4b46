"""Concrete sources and default registration."""

from typing import List

from discovery.pipeline.handler import Registry
from discovery.pipeline.pipeline import SourcePipeline
from discovery.pipeline.source import SourceSpec
from discovery.sources.api import chaos, crtsh, securitytrails
from discovery.sources.rdap import AutnumHandler
from discovery.sources.scrape import duckduckgo, sitedossier


def default_sources() -> List[SourceSpec]:
    return [crtsh(), chaos(), securitytrails(), duckduckgo(), sitedossier()]


def register_defaults(registry: Registry) -> List[SourcePipeline]:
    pipelines = [SourcePipeline(spec) for spec in default_sources()]
    for pipeline in pipelines:
        registry.register_handler(pipeline.handler())
    registry.register_handler(AutnumHandler().handler())
    return pipelines


__all__ = [
    "AutnumHandler",
    "chaos",
    "crtsh",
    "default_sources",
    "duckduckgo",
    "register_defaults",
    "securitytrails",
    "sitedossier",
]
