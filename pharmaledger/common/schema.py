"""JSON Schema validation infrastructure.

Provides schema validation for the documents the stack reads from disk:
- Automatic schema resolution via $ref across bundled schemas
- Cached registry for performance
- Clear error reporting
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, List

from jsonschema import Draft202012Validator
from referencing import Registry, Resource
from referencing.jsonschema import DRAFT202012

from pharmaledger.common.core import SCHEMAS_DIR, load_json


@lru_cache(maxsize=1)
def _schema_registry(schemas_dir: Path = SCHEMAS_DIR) -> Registry:
    """Build a schema registry for all bundled schemas.

    This enables $ref resolution across the schema corpus.
    """
    if not schemas_dir.is_dir():
        return Registry()

    resources = []
    for schema_path in sorted(schemas_dir.glob("**/*.schema.json")):
        schema = load_json(schema_path)
        if not isinstance(schema, dict):
            continue

        schema_id = schema.get("$id", "")
        if not schema_id:
            rel = schema_path.relative_to(schemas_dir)
            schema_id = f"https://schemas.pharmaledger.dev/{rel.as_posix()}"

        resource = Resource.from_contents(schema, default_specification=DRAFT202012)
        resources.append((schema_id, resource))

    return Registry().with_resources(resources)


def schema_validator(
    schema_path: Path,
    schemas_dir: Path = SCHEMAS_DIR,
) -> Draft202012Validator:
    """Create a validator for a schema file.

    Args:
        schema_path: Path to the JSON Schema file
        schemas_dir: Directory used to resolve cross-schema references

    Returns:
        A configured Draft202012Validator
    """
    schema = load_json(schema_path)
    return Draft202012Validator(schema, registry=_schema_registry(schemas_dir))


def validate_against_schema(
    obj: Any,
    schema_path: Path,
    schemas_dir: Path = SCHEMAS_DIR,
) -> List[str]:
    """Validate an object against a schema.

    Returns:
        List of validation error messages (empty if valid)
    """
    validator = schema_validator(schema_path, schemas_dir)
    return [
        f"{error.json_path}: {error.message}"
        for error in validator.iter_errors(obj)
    ]
