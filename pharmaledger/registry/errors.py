"""
Batch Registry Error Taxonomy and Outcomes

Every registry operation returns an Outcome: a tagged result that either
carries a value (ok) or exactly one ErrorKind. Error kinds have stable numeric
codes and belong to one category of the taxonomy:

    AUTHORIZATION   caller lacks the required role or relationship
    VALIDATION      a malformed input field
    RESOURCE_LIMIT  batch capacity exhausted
    CONFLICT        duplicate external batch code
    NOT_FOUND       unknown batch identifier
    EXPIRATION      time-based invalidity
    CONFIGURATION   authority not yet set, or an immutable setting touched

Failures are never partial: an Outcome.failure means the registry state is
exactly what it was before the call.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


# =============================================================================
# ERROR KINDS
# =============================================================================

class ErrorCategory(Enum):
    """Coarse classification of registry failures."""
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    RESOURCE_LIMIT = "resource_limit"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    EXPIRATION = "expiration"
    CONFIGURATION = "configuration"


class ErrorKind(Enum):
    """Registry error kinds with their stable wire codes."""
    NOT_AUTHORIZED = 100
    INVALID_CODE = 101
    INVALID_EXPIRATION = 102
    INVALID_COMPOSITION = 103
    INVALID_DIGEST = 104
    ALREADY_EXISTS = 106
    NOT_FOUND = 107
    AUTHORITY_NOT_CONFIGURED = 109
    INVALID_QUANTITY = 110
    INVALID_DOSAGE = 111
    INVALID_UPDATE_PARAMETER = 113
    CAPACITY_EXCEEDED = 114
    INVALID_DRUG_TYPE = 115
    INVALID_STORAGE_CONDITIONS = 116
    INVALID_PACKAGING = 117
    INVALID_LOCATION = 118
    INVALID_CURRENCY = 119
    INVALID_TARGET_HOLDER = 121
    EXPIRED = 123
    INVALID_FEE = 124
    INVALID_BATCH_NUMBER = 125

    @property
    def code(self) -> int:
        return self.value

    @property
    def category(self) -> ErrorCategory:
        return _CATEGORIES.get(self, ErrorCategory.VALIDATION)

    @classmethod
    def from_code(cls, code: int) -> "ErrorKind":
        """Look up an error kind by its numeric code."""
        return cls(code)


_CATEGORIES: Dict[ErrorKind, ErrorCategory] = {
    ErrorKind.NOT_AUTHORIZED: ErrorCategory.AUTHORIZATION,
    ErrorKind.CAPACITY_EXCEEDED: ErrorCategory.RESOURCE_LIMIT,
    ErrorKind.ALREADY_EXISTS: ErrorCategory.CONFLICT,
    ErrorKind.NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorKind.EXPIRED: ErrorCategory.EXPIRATION,
    ErrorKind.AUTHORITY_NOT_CONFIGURED: ErrorCategory.CONFIGURATION,
    ErrorKind.INVALID_UPDATE_PARAMETER: ErrorCategory.CONFIGURATION,
}


# =============================================================================
# EXCEPTIONS
# =============================================================================

class RegistryError(Exception):
    """Raised by Outcome.unwrap() for callers that prefer exceptions."""

    def __init__(self, kind: ErrorKind, message: str = ""):
        self.kind = kind
        self.message = message or kind.name.lower()
        super().__init__(f"[{kind.code}] {kind.category.value}: {self.message}")


class InvariantViolation(Exception):
    """Registry invariant violated, or the host broke the calling contract."""
    pass


# =============================================================================
# OUTCOME
# =============================================================================

@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a registry operation."""
    ok: bool
    value: Optional[T] = None
    error: Optional[ErrorKind] = None

    @classmethod
    def success(cls, value: Any = True) -> "Outcome":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: ErrorKind) -> "Outcome":
        return cls(ok=False, error=error)

    @property
    def category(self) -> Optional[ErrorCategory]:
        return self.error.category if self.error is not None else None

    def unwrap(self) -> T:
        """Return the value, or raise RegistryError for a failed outcome."""
        if not self.ok:
            raise RegistryError(self.error)
        return self.value

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True, "value": self.value}
        return {
            "ok": False,
            "error": self.error.name,
            "code": self.error.code,
            "category": self.error.category.value,
        }
