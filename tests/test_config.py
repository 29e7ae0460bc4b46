"""Tests for discovery/config.py and discovery/scope.py."""

from __future__ import annotations

import json

import pytest

from discovery.assets import AutnumRecord, FQDN, URL
from discovery.config import Config, DataSource, Credential, Transformation, load_config
from discovery.errors import ConfigError
from discovery.scope import DomainScope


# =============================================================================
# TTL resolution
# =============================================================================


def test_source_specific_ttl_wins():
    config = Config(transformations={
        "FQDN->FQDN": Transformation(ttl=60),
        "FQDN->crt.sh": Transformation(ttl=10),
        "FQDN->all": Transformation(ttl=999),
    })
    assert config.ttl_minutes("FQDN", "FQDN", "crt.sh") == 10
    assert config.ttl_minutes("FQDN", "FQDN", "Chaos") == 60


def test_catch_all_ttl_used_last():
    config = Config(transformations={"AutnumRecord->all": Transformation(ttl=30)})
    assert config.ttl_minutes("AutnumRecord", "URL", "RDAP") == 30
    assert config.ttl_minutes("FQDN", "FQDN", "RDAP") is None


def test_excluded_transformation_has_no_ttl():
    config = Config(transformations={
        "FQDN->crt.sh": Transformation(ttl=10, exclude=True),
        "FQDN->FQDN": Transformation(ttl=60),
    })
    assert config.ttl_minutes("FQDN", "FQDN", "crt.sh") is None


def test_datasource_ttl_override():
    config = Config(
        transformations={"FQDN->FQDN": Transformation(ttl=60)},
        datasources=[DataSource(name="Chaos", ttl=5)],
    )
    assert config.ttl_minutes("FQDN", "FQDN", "chaos") == 5


def test_check_transformations():
    config = Config(transformations={
        "AutnumRecord->URL": Transformation(ttl=10),
        "AutnumRecord->FQDN": Transformation(exclude=True),
    })
    matches = config.check_transformations("AutnumRecord", "URL", "FQDN", "RDAP")
    assert matches.is_match("URL")
    assert not matches.is_match("FQDN")
    assert not matches.is_match("RDAP")
    assert len(matches) == 1
    assert matches.ttl("URL") == 10


def test_credentials_skip_empty_keys():
    config = Config(datasources=[
        DataSource(name="SecurityTrails", creds=[Credential(apikey=""), Credential(apikey="k1"), Credential(apikey="k2")]),
    ])
    assert config.credentials("SecurityTrails") == ["k1", "k2"]
    assert config.credentials("Unknown") == []


# =============================================================================
# Loading
# =============================================================================


def test_load_config_from_file(tmp_path):
    path = tmp_path / "discovery.json"
    path.write_text(json.dumps({
        "scope": {"domains": ["example.com"]},
        "transformations": {"FQDN->FQDN": {"ttl": 1440}},
        "datasources": [{"name": "Chaos", "creds": [{"apikey": "abc"}]}],
    }))
    config = load_config(str(path))
    assert config.scope.domains == ["example.com"]
    assert config.ttl_minutes("FQDN", "FQDN", "crt.sh") == 1440
    assert config.credentials("Chaos") == ["abc"]


def test_load_config_from_env(tmp_path, monkeypatch):
    path = tmp_path / "env.json"
    path.write_text(json.dumps({"transformations": {"FQDN->all": {"ttl": 5}}}))
    monkeypatch.setenv("DISCOVERY_CONFIG", str(path))
    assert load_config().ttl_minutes("FQDN", "FQDN", "x") == 5


def test_load_config_without_path_is_empty(monkeypatch):
    monkeypatch.delenv("DISCOVERY_CONFIG", raising=False)
    assert load_config().transformations == {}


def test_invalid_config_raises(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"transformations": {"FQDN->FQDN": {"ttl": -1}}}))
    with pytest.raises(ConfigError):
        load_config(str(path))

    path.write_text("{not json")
    with pytest.raises(ConfigError):
        load_config(str(path))


# =============================================================================
# Scope
# =============================================================================


def test_domain_scope_matches_subdomains():
    scope = DomainScope(["Example.com"])
    asset, conf = scope.is_asset_in_scope(FQDN("WWW.example.com"))
    assert conf == 100
    assert asset == FQDN("www.example.com")
    assert scope.is_asset_in_scope(FQDN("example.com"))[1] == 100


def test_domain_scope_rejects_lookalikes():
    scope = DomainScope(["example.com"])
    assert scope.is_asset_in_scope(FQDN("badexample.com")) == (None, 0)
    assert scope.is_asset_in_scope(FQDN("example.org")) == (None, 0)
    assert scope.is_asset_in_scope(FQDN("")) == (None, 0)


def test_domain_scope_asns_and_other_kinds():
    scope = DomainScope([], asns=[64496])
    record = AutnumRecord(handle="AS64496", number=64496)
    assert scope.is_asset_in_scope(record) == (record, 100)
    assert scope.is_asset_in_scope(AutnumRecord(handle="AS1", number=1)) == (None, 0)
    assert scope.is_asset_in_scope(URL("https://example.com")) == (None, 0)


def test_negative_datasource_ttl_is_rejected(tmp_path):
    path = tmp_path / "negative.json"
    path.write_text(json.dumps({"datasources": [{"name": "Chaos", "ttl": -5}]}))
    with pytest.raises(ConfigError):
        load_config(str(path))
