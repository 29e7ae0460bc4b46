"""Asset kinds: the closed set of things the graph can hold.

Every handler declares the AssetKind it accepts; the pipeline dispatches on
``asset.kind`` instead of inspecting concrete classes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import ClassVar, Tuple, Union


class AssetKind(StrEnum):
    FQDN = "FQDN"
    AutnumRecord = "AutnumRecord"
    URL = "URL"
    ContactRecord = "ContactRecord"
    Source = "Source"


@dataclass(frozen=True)
class FQDN:
    kind: ClassVar[AssetKind] = AssetKind.FQDN

    name: str

    @property
    def key(self) -> str:
        return self.name.lower()

    @property
    def label(self) -> str:
        return self.name


@dataclass(frozen=True)
class AutnumRecord:
    kind: ClassVar[AssetKind] = AssetKind.AutnumRecord

    handle: str
    number: int
    name: str = ""
    whois_server: str = ""
    status: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def key(self) -> str:
        return self.handle

    @property
    def label(self) -> str:
        return f"AutnumRecord: {self.handle}"


@dataclass(frozen=True)
class URL:
    kind: ClassVar[AssetKind] = AssetKind.URL

    raw: str

    @property
    def key(self) -> str:
        return self.raw

    @property
    def label(self) -> str:
        return self.raw


@dataclass(frozen=True)
class ContactRecord:
    """A registry contact, identified by the RDAP object it was read from."""
    kind: ClassVar[AssetKind] = AssetKind.ContactRecord

    discovered_at: str
    handle: str = ""
    name: str = ""
    organization: str = ""
    email: str = ""

    @property
    def key(self) -> str:
        return self.discovered_at

    @property
    def label(self) -> str:
        return f"ContactRecord: {self.discovered_at}"


@dataclass(frozen=True)
class Source:
    """Persisted descriptor of one data source."""
    kind: ClassVar[AssetKind] = AssetKind.Source

    name: str
    confidence: int = 0

    def __post_init__(self):
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"confidence must be within 0-100, got {self.confidence}")

    @property
    def key(self) -> str:
        return self.name

    @property
    def label(self) -> str:
        return self.name


Asset = Union[FQDN, AutnumRecord, URL, ContactRecord, Source]

ASSET_TYPES = {cls.kind: cls for cls in (FQDN, AutnumRecord, URL, ContactRecord, Source)}


def asset_to_dict(asset: Asset) -> dict:
    """Serialize an asset for storage as JSON content."""
    if isinstance(asset, AutnumRecord):
        return {
            "handle": asset.handle,
            "number": asset.number,
            "name": asset.name,
            "whois_server": asset.whois_server,
            "status": list(asset.status),
        }
    if isinstance(asset, FQDN):
        return {"name": asset.name}
    if isinstance(asset, URL):
        return {"raw": asset.raw}
    if isinstance(asset, ContactRecord):
        return {
            "discovered_at": asset.discovered_at,
            "handle": asset.handle,
            "name": asset.name,
            "organization": asset.organization,
            "email": asset.email,
        }
    return {"name": asset.name, "confidence": asset.confidence}


def asset_from_dict(kind: str, content: dict) -> Asset:
    cls = ASSET_TYPES[AssetKind(kind)]
    if cls is AutnumRecord:
        return AutnumRecord(
            handle=content["handle"],
            number=int(content["number"]),
            name=content.get("name", ""),
            whois_server=content.get("whois_server", ""),
            status=tuple(content.get("status") or ()),
        )
    return cls(**content)
