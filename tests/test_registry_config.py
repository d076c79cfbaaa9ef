"""
Tests for registry configuration: defaults, environment overrides, YAML
files checked against the bundled schema, and building a registry from a
loaded configuration.
"""

import json
import logging
from decimal import Decimal

import pytest
import yaml

from pharmaledger.registry.batch import CallContext
from pharmaledger.registry.config import (
    CONFIG_SCHEMA,
    NULL_PRINCIPAL,
    ConfigError,
    ConfigManager,
    ConfigValidationError,
    LedgerConfig,
    get_config,
    get_config_manager,
)
from pharmaledger.registry.errors import ErrorKind
from pharmaledger.registry.gateway import LedgerFeeTransfer, StaticAuthorityGateway
from pharmaledger.registry.observability import ROOT_LOGGER_NAME, configure_logging
from pharmaledger.registry.registry import BatchRegistry

ENV_VARS = (
    "PHARMALEDGER_BATCH_CAPACITY",
    "PHARMALEDGER_MINT_FEE",
    "PHARMALEDGER_NULL_PRINCIPAL",
    "PHARMALEDGER_CHECK_INVARIANTS",
    "PHARMALEDGER_LOG_LEVEL",
    "PHARMALEDGER_LOG_FORMAT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def manager() -> ConfigManager:
    return ConfigManager()


def write_yaml(tmp_path, data, name="registry.yaml"):
    path = tmp_path / name
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


class TestDefaults:
    def test_registry_defaults(self, manager):
        assert manager.get("registry.batch_capacity") == 100000
        assert manager.get("registry.mint_fee") == Decimal("500")
        assert manager.get("registry.null_principal") == NULL_PRINCIPAL
        assert manager.get("registry.check_invariants") is False

    def test_observability_defaults(self, manager):
        assert manager.get("observability.log_level") == "info"
        assert manager.get("observability.log_format") == "json"

    def test_defaults_validate(self, manager):
        assert manager.validate() == []

    def test_schema_file_is_bundled(self):
        assert CONFIG_SCHEMA.is_file()

    def test_default_manager_is_shared(self):
        assert get_config_manager() is get_config_manager()
        assert get_config() is get_config_manager().config


class TestEnvironment:
    def test_env_overrides_default(self, manager, monkeypatch):
        monkeypatch.setenv("PHARMALEDGER_BATCH_CAPACITY", "7")
        monkeypatch.setenv("PHARMALEDGER_MINT_FEE", "12.5")
        monkeypatch.setenv("PHARMALEDGER_CHECK_INVARIANTS", "yes")

        assert manager.get("registry.batch_capacity") == 7
        assert manager.get("registry.mint_fee") == Decimal("12.5")
        assert manager.get("registry.check_invariants") is True

    def test_env_beats_explicit_set(self, manager, monkeypatch):
        manager.set("observability.log_level", "debug")
        monkeypatch.setenv("PHARMALEDGER_LOG_LEVEL", "error")
        assert manager.get("observability.log_level") == "error"

    def test_bad_env_values_reported_by_validate(self, manager, monkeypatch):
        monkeypatch.setenv("PHARMALEDGER_LOG_FORMAT", "xml")
        monkeypatch.setenv("PHARMALEDGER_MINT_FEE", "lots")

        errors = manager.validate()

        assert any(e.startswith("observability.log_format") for e in errors)
        assert any(e.startswith("registry.mint_fee") for e in errors)


class TestSetAndGet:
    def test_set_coerces(self, manager):
        manager.set("registry.batch_capacity", "25")
        manager.set("registry.mint_fee", 3)
        assert manager.get("registry.batch_capacity") == 25
        assert manager.get("registry.mint_fee") == Decimal("3")

    def test_set_rejects_invalid(self, manager):
        with pytest.raises(ConfigValidationError):
            manager.set("registry.batch_capacity", -1)
        with pytest.raises(ConfigValidationError):
            manager.set("observability.log_format", "xml")
        assert manager.get("registry.batch_capacity") == 100000

    def test_set_unknown_path(self, manager):
        with pytest.raises(ConfigError):
            manager.set("registry.max_batches", 1)

    def test_get_section(self, manager):
        section = manager.get("registry")
        assert section is manager.config.registry

    def test_reset(self, manager):
        manager.set("registry.batch_capacity", 3)
        manager.config.registry.batch_capacity.reset()
        assert manager.get("registry.batch_capacity") == 100000


class TestFiles:
    def test_load_from_file(self, manager, tmp_path):
        path = write_yaml(tmp_path, {
            "registry": {"batch_capacity": 10, "mint_fee": "0.25", "check_invariants": True},
            "observability": {"log_format": "text"},
        })

        manager.load_from_file(path)

        assert manager.get("registry.batch_capacity") == 10
        assert manager.get("registry.mint_fee") == Decimal("0.25")
        assert manager.get("registry.check_invariants") is True
        assert manager.get("observability.log_format") == "text"
        assert manager.get("observability.log_level") == "info"

    def test_load_is_logged(self, manager, tmp_path, log_stream):
        configure_logging(level="info", log_format="json", stream=log_stream)
        path = write_yaml(tmp_path, {"registry": {"batch_capacity": 10}})

        manager.load_from_file(path)
        with pytest.raises(ConfigValidationError):
            manager.apply_dict({"registry": {"batch_capacity": -1}}, source="override")

        lines = [json.loads(line) for line in log_stream.getvalue().splitlines()]
        assert [(e["layer"], e["message"]) for e in lines] == [
            ("config", "configuration loaded"),
            ("config", "configuration rejected"),
        ]
        assert lines[1]["context"]["source"] == "override"

    def test_integer_fee(self, manager, tmp_path):
        manager.load_from_file(write_yaml(tmp_path, {"registry": {"mint_fee": 750}}))
        assert manager.get("registry.mint_fee") == Decimal("750")

    def test_missing_file(self, manager, tmp_path):
        with pytest.raises(ConfigError):
            manager.load_from_file(tmp_path / "absent.yaml")

    def test_empty_file_changes_nothing(self, manager, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        manager.load_from_file(path)
        assert manager.config.to_dict() == LedgerConfig().to_dict()

    @pytest.mark.parametrize("data", [
        {"registry": {"batch_capacity": -1}},
        {"registry": {"batch_capacity": "many"}},
        {"registry": {"mint_fee": "1e3"}},
        {"registry": {"mint_fee": 1.5}},
        {"registry": {"null_principal": ""}},
        {"registry": {"unknown": 1}},
        {"observability": {"log_level": "verbose"}},
        {"storage": {}},
    ])
    def test_schema_rejects(self, manager, tmp_path, data):
        with pytest.raises(ConfigValidationError):
            manager.load_from_file(write_yaml(tmp_path, data))

    def test_rejected_file_is_not_partially_applied(self, manager, tmp_path):
        path = write_yaml(tmp_path, {"registry": {"batch_capacity": 5, "unknown": 1}})
        with pytest.raises(ConfigValidationError):
            manager.load_from_file(path)
        assert manager.get("registry.batch_capacity") == 100000

    def test_reload_picks_up_changes(self, manager, tmp_path):
        path = write_yaml(tmp_path, {"registry": {"batch_capacity": 10}})
        manager.load_from_file(path)

        write_yaml(tmp_path, {"registry": {"batch_capacity": 20}})
        manager.reload()

        assert manager.get("registry.batch_capacity") == 20


class TestExport:
    def test_to_dict(self):
        exported = LedgerConfig().to_dict()
        assert exported["registry"]["mint_fee"] == "500"
        assert exported["registry"]["batch_capacity"] == 100000

    def test_to_yaml_round_trips_through_loader(self, manager, tmp_path):
        manager.set("registry.batch_capacity", 42)
        path = tmp_path / "exported.yaml"
        path.write_text(manager.config.to_yaml(), encoding="utf-8")

        fresh = ConfigManager()
        fresh.load_from_file(path)

        assert fresh.config.to_dict() == manager.config.to_dict()

    def test_export_schema(self, manager):
        schema = manager.export_schema()["properties"]
        capacity = schema["registry"]["batch_capacity"]
        assert capacity["type"] == "int"
        assert capacity["env_var"] == "PHARMALEDGER_BATCH_CAPACITY"
        assert schema["registry"]["mint_fee"]["default"] == "500"


class TestRegistryFromConfig:
    def test_settings_flow_into_registry(self, manager, log_stream):
        manager.apply_dict({"registry": {"batch_capacity": 1, "mint_fee": "7", "check_invariants": True}})
        reg = BatchRegistry.from_config(
            manager.config, StaticAuthorityGateway(["ST1"]), LedgerFeeTransfer(), log_stream=log_stream
        )

        assert reg.state.batch_capacity == 1
        assert reg.get_mint_fee() == Decimal("7")

    def test_configured_null_principal_is_enforced(self, manager, log_stream):
        manager.set("registry.null_principal", "ST000NULL")
        reg = BatchRegistry.from_config(manager.config, StaticAuthorityGateway(), LedgerFeeTransfer(), log_stream)
        ctx = CallContext("ST1", 0)

        assert reg.set_authority_gateway(ctx, "ST000NULL").error == ErrorKind.INVALID_UPDATE_PARAMETER
        assert reg.set_authority_gateway(ctx, NULL_PRINCIPAL).ok

    def test_logging_settings_are_applied(self, manager, log_stream):
        manager.apply_dict({"observability": {"log_level": "warning", "log_format": "json"}})
        reg = BatchRegistry.from_config(
            manager.config, StaticAuthorityGateway(["ST1"]), LedgerFeeTransfer(), log_stream=log_stream
        )
        ctx = CallContext("ST1", 0)

        reg.set_authority_gateway(ctx, "ST2")
        reg.verify_batch(ctx, 0)

        lines = [json.loads(line) for line in log_stream.getvalue().splitlines()]
        assert [e["level"] for e in lines] == ["warning"]
        assert lines[0]["error_code"] == "107"
        assert logging.getLogger(ROOT_LOGGER_NAME).level == logging.WARNING

    def test_text_format_from_config(self, manager, log_stream):
        manager.set("observability.log_format", "text")
        reg = BatchRegistry.from_config(
            manager.config, StaticAuthorityGateway(["ST1"]), LedgerFeeTransfer(), log_stream=log_stream
        )

        reg.set_authority_gateway(CallContext("ST1", 0), "ST2")

        assert "[set_authority_gateway] authority gateway configured" in log_stream.getvalue()
