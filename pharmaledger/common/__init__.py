"""Shared primitives for the pharmaledger stack.

Architecture:
    common/
    ├── __init__.py      # Package entry, version, public API
    ├── core.py          # Primitives: sha256, canonical JSON, YAML, paths
    └── schema.py        # JSON Schema validation infrastructure

The batch registry (``pharmaledger.registry``) builds its state digests,
audit-chain digests and configuration loading on these helpers.
"""

__version__ = "0.3.0"

from pharmaledger.common.core import (
    PACKAGE_ROOT,
    SCHEMAS_DIR,
    canonical_json_bytes,
    is_valid_sha256,
    load_json,
    load_yaml,
    now_iso8601,
    sha256_bytes,
)

from pharmaledger.common.schema import (
    schema_validator,
    validate_against_schema,
)

__all__ = [
    "__version__",
    "PACKAGE_ROOT",
    "SCHEMAS_DIR",
    "canonical_json_bytes",
    "is_valid_sha256",
    "load_json",
    "load_yaml",
    "now_iso8601",
    "sha256_bytes",
    "schema_validator",
    "validate_against_schema",
]
