"""Unit tests for configuration validation."""
from pathlib import Path

import pytest
from pydantic import ValidationError

from orderrecon.common.config_validator import load_and_validate_config
from orderrecon.ingestion_utils import load_config


def test_defaults_cover_every_knob():
    config = load_and_validate_config(None)
    assert config.build.chunk_rows == 1500
    assert config.build.soft_limit_seconds == pytest.approx(318)
    assert config.build.state_key == "CLEAN_MASTER_BUILD_STATE_V2"
    assert config.sheets.clean_output == "All_Orders_Clean"
    assert "Tusk" in config.exclusions.banned_product_keywords
    assert config.exclusions.renewal_rule.keyword_groups == [["montana", "mt"], ["llc"], ["renew"]]


def test_legacy_keyword_list_moves_under_exclusions():
    config = load_and_validate_config({"banned_product_keywords": ["Foo", " "]})
    assert config.exclusions.banned_product_keywords == ["Foo"]


def test_invalid_values_are_rejected():
    with pytest.raises(ValidationError):
        load_and_validate_config({"build": {"chunk_rows": 0}})
    with pytest.raises(ValidationError):
        load_and_validate_config({"exclusions": {"renewal_rule": {"keyword_groups": [["llc"], []]}}})
    with pytest.raises(ValidationError):
        load_and_validate_config({"logging": {"level": "loud"}})


def test_repository_config_file_validates():
    root = Path(__file__).resolve().parents[2]
    config = load_and_validate_config(load_config(root / "config.yaml"))
    assert config.exclusions.always_banned_domains == ["dirtlegal.com"]
    assert len(config.exclusions.banned_product_keywords) == 35
