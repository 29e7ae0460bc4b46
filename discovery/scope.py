"""Scope filter: decides which assets a run may expand into."""

from __future__ import annotations

from typing import Iterable, Optional, Protocol, Tuple

from discovery.assets import Asset, AutnumRecord, FQDN
from discovery.config import ScopeConfig


class ScopeFilter(Protocol):
    def is_asset_in_scope(self, asset: Asset, conf: int = 0) -> Tuple[Optional[Asset], int]:
        """Return (canonical asset, confidence). Confidence 0 means out of scope."""
        ...


class DomainScope:
    """Root-domain and ASN scope.

    A name is in scope when it equals or is a subdomain of a configured root.
    """

    def __init__(self, domains: Iterable[str] = (), asns: Iterable[int] = ()):
        self.domains = {d.strip().lower().rstrip(".") for d in domains if d.strip()}
        self.asns = set(asns)

    @classmethod
    def from_config(cls, scope: ScopeConfig) -> "DomainScope":
        return cls(scope.domains, scope.asns)

    def add_domain(self, domain: str) -> None:
        self.domains.add(domain.strip().lower().rstrip("."))

    def is_asset_in_scope(self, asset: Asset, conf: int = 0) -> Tuple[Optional[Asset], int]:
        if isinstance(asset, FQDN):
            name = asset.name.strip().lower().rstrip(".")
            if not name:
                return None, 0
            for root in self.domains:
                if name == root or name.endswith("." + root):
                    return FQDN(name=name), 100
            return None, 0
        if isinstance(asset, AutnumRecord):
            if asset.number in self.asns:
                return asset, 100
            return None, 0
        return None, 0
