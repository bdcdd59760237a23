"""ServerConfig.json generation and override merging."""

from __future__ import annotations

import dataclasses
import json

import pytest

from nomad_egg.config_document import (
    DEFAULT_CONFIG,
    coerce_override,
    ensure_default_document,
    load_document,
    merge_overrides,
    synthesize_config,
)
from nomad_egg.errors import ConfigurationError, DocumentError


def with_overrides(settings, **overrides):
    return dataclasses.replace(settings, overrides=overrides)


def test_default_template_has_eighteen_keys() -> None:
    assert len(DEFAULT_CONFIG) == 18


def test_writes_defaults_when_missing(settings) -> None:
    assert ensure_default_document(settings.config_document) is True
    assert json.loads(settings.config_document.read_text()) == DEFAULT_CONFIG
    assert ensure_default_document(settings.config_document) is False


def test_synthesize_without_overrides_keeps_defaults(settings) -> None:
    assert synthesize_config(settings) == DEFAULT_CONFIG


def test_overrides_are_typed_by_existing_value(settings) -> None:
    settings = with_overrides(
        settings,
        Port="7777",
        ServerName="Desert Riders",
        PvPEnabled="false",
        MoneyMultiplier="2.5",
    )
    document = synthesize_config(settings)

    assert document["Port"] == 7777
    assert document["ServerName"] == "Desert Riders"
    assert document["PvPEnabled"] is False
    assert document["MoneyMultiplier"] == 2.5
    assert json.loads(settings.config_document.read_text()) == document


def test_unset_overrides_leave_existing_values(settings) -> None:
    existing = dict(DEFAULT_CONFIG, MaxPlayers=64, Password="hunter2", CustomKey=[1, 2])
    settings.config_document.parent.mkdir(parents=True)
    settings.config_document.write_text(json.dumps(existing))

    document = synthesize_config(with_overrides(settings, Port="30000"))

    assert document["MaxPlayers"] == 64
    assert document["Password"] == "hunter2"
    assert document["CustomKey"] == [1, 2]
    assert document["Port"] == 30000


def test_template_keys_are_restored(settings) -> None:
    settings.config_document.parent.mkdir(parents=True)
    settings.config_document.write_text(json.dumps({"ServerName": "Old"}))

    document = synthesize_config(settings)

    assert set(DEFAULT_CONFIG) <= set(document)
    assert document["ServerName"] == "Old"


def test_rerun_is_byte_identical(settings) -> None:
    settings = with_overrides(settings, MaxPlayers="10", XpMultiplier="3")
    synthesize_config(settings)
    first = settings.config_document.read_bytes()
    synthesize_config(settings)
    assert settings.config_document.read_bytes() == first


def test_malformed_document_is_fatal(settings) -> None:
    settings.config_document.parent.mkdir(parents=True)
    settings.config_document.write_text("{not json")
    with pytest.raises(DocumentError):
        synthesize_config(settings)
    assert settings.config_document.read_text() == "{not json"


def test_non_object_document_is_fatal(settings) -> None:
    settings.config_document.parent.mkdir(parents=True)
    settings.config_document.write_text("[1, 2, 3]")
    with pytest.raises(DocumentError, match="JSON object"):
        load_document(settings.config_document)


@pytest.mark.parametrize(
    ("raw", "current", "expected"),
    [
        ("yes", True, True),
        ("OFF", True, False),
        ("1", False, True),
        ("42", 0, 42),
        ("0.75", 1.0, 0.75),
        ("text", "", "text"),
    ],
)
def test_coerce_override(raw, current, expected) -> None:
    assert coerce_override("Key", raw, current) == expected


def test_coerce_rejects_bad_numbers() -> None:
    with pytest.raises(ConfigurationError, match="MaxPlayers"):
        coerce_override("MaxPlayers", "lots", 32)


def test_merge_does_not_mutate_input() -> None:
    document = {"Port": 1}
    merged = merge_overrides(document, {"Port": "2"})
    assert document == {"Port": 1}
    assert merged["Port"] == 2


@pytest.mark.parametrize("raw", ["inf", "-inf", "nan", "Infinity"])
def test_coerce_rejects_non_finite_floats(raw) -> None:
    with pytest.raises(ConfigurationError, match="finite"):
        coerce_override("MoneyMultiplier", raw, 1.0)


def test_non_finite_override_leaves_document_untouched(settings) -> None:
    synthesize_config(settings)
    before = settings.config_document.read_bytes()
    with pytest.raises(ConfigurationError):
        synthesize_config(with_overrides(settings, XpMultiplier="nan"))
    assert settings.config_document.read_bytes() == before


@pytest.mark.parametrize(
    ("value", "current"),
    [
        ([1], 32),
        (True, 32),
        (1, True),
        ({"a": 1}, "name"),
        (None, 1.0),
    ],
)
def test_coerce_rejects_wrong_json_types(value, current) -> None:
    with pytest.raises(ConfigurationError):
        coerce_override("Key", value, current)


def test_coerce_accepts_typed_json_values() -> None:
    assert coerce_override("MaxPlayers", 48, 32) == 48
    assert coerce_override("PvPEnabled", False, True) is False
    assert coerce_override("XpMultiplier", 2, 1.0) == 2.0
    assert coerce_override("ServerName", "X", "Nomad") == "X"
