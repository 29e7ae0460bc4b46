"""
Discovery configuration

Pydantic models for the JSON configuration file plus process-level tunables
read from the environment.

Transformations are keyed ``"FROM->TO"`` where TO is an asset kind, a source
name, or ``"all"``. TTLs are in minutes.

Example:

    {
      "scope": {"domains": ["example.com"], "asns": [64496]},
      "transformations": {
        "FQDN->FQDN": {"ttl": 1440},
        "FQDN->crt.sh": {"ttl": 4320},
        "AutnumRecord->all": {"ttl": 10080}
      },
      "datasources": [
        {"name": "Chaos", "creds": [{"apikey": "..."}]}
      ]
    }
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from discovery.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV = "DISCOVERY_CONFIG"

HTTP_TIMEOUT = float(os.getenv("DISCOVERY_HTTP_TIMEOUT", "30"))
HTTP_RETRIES = int(os.getenv("DISCOVERY_HTTP_RETRIES", "3"))
USER_AGENT = os.getenv(
    "DISCOVERY_USER_AGENT",
    "Mozilla/5.0 (compatible; discovery/0.1; +https://example.invalid/bot)",
)

ALL = "all"


class Credential(BaseModel):
    model_config = ConfigDict(extra="forbid")

    apikey: str = ""
    username: str = ""
    password: str = ""


class DataSource(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    creds: List[Credential] = []
    ttl: Optional[int] = Field(default=None, ge=0)  # minutes; overrides transformation TTLs for this source


class Transformation(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ttl: Optional[int] = Field(default=None, ge=0)
    exclude: bool = False


class ScopeConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    domains: List[str] = []
    asns: List[int] = []


class Matches:
    """Result of matching one FROM kind against a set of targets."""

    def __init__(self, ttls: Dict[str, Optional[int]]):
        self._ttls = ttls

    def is_match(self, to: str) -> bool:
        return to in self._ttls

    def ttl(self, to: str) -> Optional[int]:
        return self._ttls.get(to)

    def __len__(self) -> int:
        return len(self._ttls)

    def __repr__(self) -> str:
        return f"Matches({self._ttls})"


class Config(BaseModel):
    model_config = ConfigDict(extra="forbid")

    scope: ScopeConfig = ScopeConfig()
    transformations: Dict[str, Transformation] = {}
    datasources: List[DataSource] = []

    def _transformation(self, from_kind: str, to: str) -> Optional[Transformation]:
        return self.transformations.get(f"{from_kind}->{to}")

    def check_transformations(self, from_kind: str, *tos: str) -> Matches:
        """Return the subset of ``tos`` enabled for ``from_kind``, with TTLs.

        A target matches through its own ``FROM->TO`` entry, or through
        ``FROM->all`` when it has none. An excluded entry never matches.
        """
        catch_all = self._transformation(from_kind, ALL)
        ttls: Dict[str, Optional[int]] = {}
        for to in tos:
            tf = self._transformation(from_kind, to)
            if tf is None:
                tf = catch_all
            if tf is None or tf.exclude:
                continue
            ttls[to] = tf.ttl
        return Matches(ttls)

    def ttl_minutes(self, from_kind: str, evidence_kind: str, source_name: str) -> Optional[int]:
        """Most specific TTL: datasource override, FROM->source, FROM->evidence, FROM->all."""
        ds = self.datasource(source_name)
        if ds is not None and ds.ttl is not None:
            return ds.ttl
        for to in (source_name, evidence_kind, ALL):
            tf = self._transformation(from_kind, to)
            if tf is None:
                continue
            if tf.exclude:
                return None
            if tf.ttl is not None:
                return tf.ttl
        return None

    def datasource(self, name: str) -> Optional[DataSource]:
        for ds in self.datasources:
            if ds.name.lower() == name.lower():
                return ds
        return None

    def credentials(self, name: str) -> List[str]:
        """Non-empty API keys configured for a source, in file order."""
        ds = self.datasource(name)
        if ds is None:
            return []
        return [cr.apikey for cr in ds.creds if cr.apikey]


def load_config(path: Optional[str] = None) -> Config:
    """Load configuration from a JSON file (or $DISCOVERY_CONFIG)."""
    path = path or os.getenv(CONFIG_ENV)
    if not path:
        logger.warning(f"No configuration file given and {CONFIG_ENV} is unset; using empty config")
        return Config()

    try:
        raw = json.loads(Path(path).read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read configuration {path}: {e}") from e

    try:
        config = Config.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration {path}: {e}") from e

    logger.info(
        f"Loaded configuration {path} "
        f"({len(config.transformations)} transformations, {len(config.datasources)} datasources)"
    )
    return config
