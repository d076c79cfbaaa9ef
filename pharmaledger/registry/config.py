"""
Batch Registry Configuration System

Configuration management with YAML files, environment variables and
validation.

Configuration Sources (in order of precedence):
    1. Environment variables (PHARMALEDGER_*)
    2. Runtime overrides and loaded files (last write wins)
    3. Default values

YAML files are checked against registry.config.schema.json before any value
is applied, so a malformed file changes nothing.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar, Union

import yaml

from pharmaledger.common.core import SCHEMAS_DIR, load_yaml
from pharmaledger.common.schema import validate_against_schema
from pharmaledger.registry.observability import LedgerLayer, get_logger
from pharmaledger.registry.state import DEFAULT_BATCH_CAPACITY, DEFAULT_MINT_FEE

T = TypeVar("T")

CONFIG_SCHEMA = SCHEMAS_DIR / "registry.config.schema.json"
NULL_PRINCIPAL = "SP000000000000000000002Q6VF78"

logger = get_logger("config_manager", LedgerLayer.CONFIG)


class ConfigError(Exception):
    """Configuration error."""
    pass


class ConfigValidationError(ConfigError):
    """Configuration validation error."""
    pass


@dataclass
class ConfigValue(Generic[T]):
    """
    A single configuration value with metadata.

    Supports default values, environment variable binding and validation.
    """
    default: T
    env_var: Optional[str] = None
    description: str = ""
    validator: Optional[Callable[[T], bool]] = None
    _value: Optional[T] = field(default=None, repr=False)

    def get(self) -> T:
        """Get the current value."""
        if self.env_var and self.env_var in os.environ:
            return self.coerce(os.environ[self.env_var])

        return self._value if self._value is not None else self.default

    def set(self, value: Any) -> None:
        """Set the value with coercion and validation."""
        value = self.coerce(value)
        if self.validator and not self.validator(value):
            raise ConfigValidationError(f"Invalid value for config: {value}")
        self._value = value

    def reset(self) -> None:
        self._value = None

    def coerce(self, value: Any) -> T:
        """Coerce a raw value (env string or YAML scalar) to the default's type."""
        target_type = type(self.default)

        if isinstance(value, target_type) and not (target_type is int and isinstance(value, bool)):
            return value
        if target_type == bool:
            return str(value).lower() in ("true", "1", "yes", "on")  # type: ignore
        elif target_type == int:
            return int(value)  # type: ignore
        elif target_type == Decimal:
            return Decimal(str(value))  # type: ignore
        else:
            return str(value)  # type: ignore


@dataclass
class RegistrySettings:
    """Configuration for the batch registry."""
    batch_capacity: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=DEFAULT_BATCH_CAPACITY,
        env_var="PHARMALEDGER_BATCH_CAPACITY",
        description="Maximum number of batches a registry will ever mint",
        validator=lambda x: x >= 0,
    ))
    mint_fee: ConfigValue[Decimal] = field(default_factory=lambda: ConfigValue(
        default=DEFAULT_MINT_FEE,
        env_var="PHARMALEDGER_MINT_FEE",
        description="Initial fee charged per mint",
        validator=lambda x: x.is_finite(),
    ))
    null_principal: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default=NULL_PRINCIPAL,
        env_var="PHARMALEDGER_NULL_PRINCIPAL",
        description="Reserved principal that can never be the authority gateway",
        validator=lambda x: bool(x),
    ))
    check_invariants: ConfigValue[bool] = field(default_factory=lambda: ConfigValue(
        default=False,
        env_var="PHARMALEDGER_CHECK_INVARIANTS",
        description="Re-check state invariants after every mutation",
    ))


@dataclass
class ObservabilityConfig:
    """Configuration for logging."""
    log_level: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="info",
        env_var="PHARMALEDGER_LOG_LEVEL",
        description="Log level (debug, info, warning, error, critical)",
        validator=lambda x: x in ("debug", "info", "warning", "error", "critical"),
    ))
    log_format: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="json",
        env_var="PHARMALEDGER_LOG_FORMAT",
        description="Log format (json, text)",
        validator=lambda x: x in ("json", "text"),
    ))


@dataclass
class LedgerConfig:
    """
    Root configuration.

    Aggregates all component configurations.
    """
    registry: RegistrySettings = field(default_factory=RegistrySettings)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    def to_dict(self) -> Dict[str, Any]:
        def extract_values(obj: Any) -> Any:
            if isinstance(obj, ConfigValue):
                value = obj.get()
                return str(value) if isinstance(value, Decimal) else value
            elif hasattr(obj, "__dataclass_fields__"):
                return {k: extract_values(getattr(obj, k)) for k in obj.__dataclass_fields__}
            return obj

        return extract_values(self)

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), default_flow_style=False)


class ConfigManager:
    """
    Configuration manager with file loading and environment binding.

    Each manager owns its own LedgerConfig; get_config_manager() returns a
    process default for callers that do not build their own.
    """

    def __init__(self, config: Optional[LedgerConfig] = None):
        self._config = config or LedgerConfig()
        self._config_paths: List[Path] = []

    @property
    def config(self) -> LedgerConfig:
        return self._config

    def load_from_file(self, path: Union[str, Path]) -> None:
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        data = load_yaml(path)
        if data is None:
            return
        self.apply_dict(data, source=str(path))
        self._config_paths.append(path)
        logger.info("configuration loaded", operation="load_from_file", source=str(path))

    def apply_dict(self, data: Dict[str, Any], source: str = "<dict>") -> None:
        """Validate a config mapping against the schema, then apply it."""
        errors = validate_against_schema(data, CONFIG_SCHEMA)
        if errors:
            logger.warning(
                "configuration rejected",
                operation="apply_dict",
                source=source,
                error_count=len(errors),
            )
            raise ConfigValidationError(f"invalid registry config {source}: {errors[0]}")

        def apply_to_config(config_obj: Any, values: Dict[str, Any]) -> None:
            for key, value in values.items():
                attr = getattr(config_obj, key)
                if isinstance(attr, ConfigValue):
                    attr.set(value)
                elif isinstance(value, dict):
                    apply_to_config(attr, value)

        apply_to_config(self._config, data)

    def set(self, path: str, value: Any) -> None:
        """
        Set a configuration value by path.

        Example: manager.set("registry.batch_capacity", 10)
        """
        parts = path.split(".")
        obj: Any = self._config

        for part in parts[:-1]:
            obj = getattr(obj, part)

        attr = getattr(obj, parts[-1], None)
        if not isinstance(attr, ConfigValue):
            raise ConfigError(f"Invalid config path: {path}")
        attr.set(value)

    def get(self, path: str) -> Any:
        """
        Get a configuration value by path.

        Example: manager.get("registry.mint_fee")
        """
        obj: Any = self._config
        for part in path.split("."):
            obj = getattr(obj, part)

        if isinstance(obj, ConfigValue):
            return obj.get()
        return obj

    def reload(self) -> None:
        """Reload configuration from all loaded files."""
        paths, self._config_paths = self._config_paths, []
        for path in paths:
            self.load_from_file(path)

    def validate(self) -> List[str]:
        """
        Validate all configuration values.

        Returns list of validation errors.
        """
        errors: List[str] = []

        def validate_config(obj: Any, path: str = "") -> None:
            if isinstance(obj, ConfigValue):
                try:
                    value = obj.get()
                except (ValueError, ArithmeticError) as e:
                    errors.append(f"{path}: {e}")
                    return
                if obj.validator and not obj.validator(value):
                    errors.append(f"{path}: validation failed for value {value}")
            elif hasattr(obj, "__dataclass_fields__"):
                for field_name in obj.__dataclass_fields__:
                    field_path = f"{path}.{field_name}" if path else field_name
                    validate_config(getattr(obj, field_name), field_path)

        validate_config(self._config)
        return errors

    def export_schema(self) -> Dict[str, Any]:
        """Export configuration schema for documentation."""
        schema: Dict[str, Any] = {"properties": {}}

        def extract_schema(obj: Any, properties: Dict[str, Any]) -> None:
            if isinstance(obj, ConfigValue):
                properties["type"] = type(obj.default).__name__
                properties["default"] = str(obj.default)
                properties["description"] = obj.description
                if obj.env_var:
                    properties["env_var"] = obj.env_var
            elif hasattr(obj, "__dataclass_fields__"):
                for field_name in obj.__dataclass_fields__:
                    properties[field_name] = {}
                    extract_schema(getattr(obj, field_name), properties[field_name])

        extract_schema(self._config, schema["properties"])
        return schema


_default_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get the process default configuration manager."""
    global _default_manager
    if _default_manager is None:
        _default_manager = ConfigManager()
    return _default_manager


def get_config() -> LedgerConfig:
    """Get the process default configuration."""
    return get_config_manager().config
