"""SourceSpec: the capability bundle a concrete source supplies."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

from discovery.assets import Asset, AssetKind, FQDN, Source, URL
from discovery.dedup import normalize_name
from discovery.pipeline.retrieval import RetrievalPolicy

_CANDIDATE_TYPES = {
    AssetKind.FQDN: lambda value: FQDN(name=value),
    AssetKind.URL: lambda value: URL(raw=value),
}


@dataclass
class SourceSpec:
    name: str
    confidence: int
    retrieval: RetrievalPolicy
    rate: float = 1.0  # requests per second
    subject_kind: AssetKind = AssetKind.FQDN
    evidence_kind: AssetKind = AssetKind.FQDN
    priority: int = 5
    max_instances: int = 10
    relation: Optional[str] = None
    normalize: Callable[[str], str] = normalize_name
    candidate: Optional[Callable[[str], Asset]] = None
    source: Source = field(init=False)

    def __post_init__(self):
        self.source = Source(name=self.name, confidence=self.confidence)
        if self.relation is None:
            self.relation = f"{self.name}-discovered"
        if self.candidate is None:
            self.candidate = _CANDIDATE_TYPES[self.evidence_kind]

    @property
    def handler_name(self) -> str:
        return f"{self.name}-Handler"

    @property
    def credentialed(self) -> bool:
        return self.retrieval.credentialed
