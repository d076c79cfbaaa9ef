"""
Batch Registry Validation and Hardening Module

Field-level validators and invariant helpers used by the validation pipeline,
the update path and the reference collaborators:

1. Input validation for bounded strings, fixed-size digests and counts
2. Fixed-point amount parsing (Decimal, never float)
3. State invariant enforcement

Security Model:
    - All inputs are untrusted until validated
    - Validators are pure: they never touch registry state
    - Amounts are Decimal end to end

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional

from pharmaledger.registry.errors import InvariantViolation


# =============================================================================
# VALIDATION ERROR TYPES
# =============================================================================

class ValidationError(Exception):
    """Base exception for validation failures."""

    def __init__(self, field: str, message: str, value: Any = None):
        self.field = field
        self.message = message
        self.value = value
        super().__init__(f"{field}: {message}")


class ValidationErrors(Exception):
    """Collection of validation errors."""

    def __init__(self, errors: List[ValidationError]):
        self.errors = errors
        messages = "; ".join(f"{e.field}: {e.message}" for e in errors)
        super().__init__(f"Validation failed: {messages}")


# =============================================================================
# VALIDATION RESULT
# =============================================================================

@dataclass
class ValidationResult:
    """Result of a validation operation."""
    is_valid: bool
    errors: List[ValidationError] = field(default_factory=list)
    sanitized_value: Any = None

    def raise_if_invalid(self) -> None:
        """Raise ValidationErrors if validation failed."""
        if not self.is_valid:
            raise ValidationErrors(self.errors)

    @classmethod
    def success(cls, sanitized_value: Any = None) -> 'ValidationResult':
        return cls(is_valid=True, sanitized_value=sanitized_value)

    @classmethod
    def failure(cls, errors: List[ValidationError]) -> 'ValidationResult':
        return cls(is_valid=False, errors=errors)


# =============================================================================
# INPUT VALIDATORS
# =============================================================================

class Validators:
    """Collection of input validators."""

    # Limits
    MAX_CODE_LENGTH = 50
    MAX_DRUG_TYPE_LENGTH = 50
    MAX_COMPOSITION_LENGTH = 200
    MAX_DESCRIPTOR_LENGTH = 100
    MAX_PRINCIPAL_LENGTH = 128
    DIGEST_LENGTH = 32

    @classmethod
    def validate_string(
        cls,
        value: Any,
        field_name: str,
        min_length: int = 1,
        max_length: int = MAX_DESCRIPTOR_LENGTH,
    ) -> ValidationResult:
        """Validate a bounded string.

        Values are taken verbatim: no trimming, so a string of spaces counts
        as non-empty and every character counts toward the bound.
        """
        if not isinstance(value, str):
            return ValidationResult.failure([
                ValidationError(field_name, f"Expected string, got {type(value).__name__}", value)
            ])

        errors = []
        if len(value) < min_length:
            errors.append(ValidationError(field_name, f"Too short (min {min_length} chars)", value))
        if len(value) > max_length:
            errors.append(ValidationError(field_name, f"Too long (max {max_length} chars)", value))

        if errors:
            return ValidationResult.failure(errors)
        return ValidationResult.success(value)

    @classmethod
    def validate_bytes(
        cls,
        value: Any,
        field_name: str,
        min_length: int = 0,
        max_length: int = 65536,
    ) -> ValidationResult:
        """Validate bytes. Hex strings are decoded first."""
        errors = []

        if isinstance(value, str):
            try:
                value = bytes.fromhex(value)
            except ValueError:
                errors.append(ValidationError(field_name, "Invalid hex string", value))
                return ValidationResult.failure(errors)

        if isinstance(value, (bytearray, memoryview)):
            value = bytes(value)

        if not isinstance(value, bytes):
            errors.append(ValidationError(field_name, f"Expected bytes, got {type(value).__name__}", value))
            return ValidationResult.failure(errors)

        if len(value) < min_length:
            errors.append(ValidationError(field_name, f"Too short (min {min_length} bytes)", value))

        if len(value) > max_length:
            errors.append(ValidationError(field_name, f"Too long (max {max_length} bytes)", value))

        if errors:
            return ValidationResult.failure(errors)

        return ValidationResult.success(value)

    @classmethod
    def validate_digest(cls, value: Any, field_name: str = "certificate_digest") -> ValidationResult:
        """Validate a fixed 32-byte digest."""
        return cls.validate_bytes(
            value, field_name,
            min_length=cls.DIGEST_LENGTH, max_length=cls.DIGEST_LENGTH,
        )

    @classmethod
    def validate_principal(cls, value: Any, field_name: str = "principal") -> ValidationResult:
        """Validate a principal: a non-empty string, no whitespace."""
        result = cls.validate_string(value, field_name, max_length=cls.MAX_PRINCIPAL_LENGTH)
        if not result.is_valid:
            return result

        if any(ch.isspace() for ch in value):
            return ValidationResult.failure([
                ValidationError(field_name, "Must not contain whitespace", value)
            ])

        return ValidationResult.success(value)

    @classmethod
    def validate_positive_int(cls, value: Any, field_name: str) -> ValidationResult:
        """Validate a strictly positive integer (bools rejected)."""
        if isinstance(value, bool) or not isinstance(value, int):
            return ValidationResult.failure([
                ValidationError(field_name, f"Expected integer, got {type(value).__name__}", value)
            ])
        if value <= 0:
            return ValidationResult.failure([
                ValidationError(field_name, "Must be greater than zero", value)
            ])
        return ValidationResult.success(value)

    @classmethod
    def validate_height_after(
        cls,
        value: Any,
        current_height: int,
        field_name: str = "expiration_height",
    ) -> ValidationResult:
        """Validate a logical height strictly after the current one."""
        if isinstance(value, bool) or not isinstance(value, int):
            return ValidationResult.failure([
                ValidationError(field_name, f"Expected integer, got {type(value).__name__}", value)
            ])
        if value <= current_height:
            return ValidationResult.failure([
                ValidationError(field_name, f"Must be after height {current_height}", value)
            ])
        return ValidationResult.success(value)

    @classmethod
    def validate_amount(
        cls,
        value: Any,
        field_name: str = "amount",
        min_value: Optional[Decimal] = None,
        max_value: Optional[Decimal] = None,
    ) -> ValidationResult:
        """Validate a fixed-point amount. Bounds apply only when given."""
        errors = []

        try:
            if isinstance(value, bool):
                raise TypeError
            if isinstance(value, str):
                amount = Decimal(value)
            elif isinstance(value, int):
                amount = Decimal(value)
            elif isinstance(value, Decimal):
                amount = value
            else:
                raise TypeError
        except InvalidOperation:
            errors.append(ValidationError(field_name, "Invalid decimal value", value))
            return ValidationResult.failure(errors)
        except TypeError:
            errors.append(ValidationError(field_name, f"Cannot convert {type(value).__name__} to Decimal", value))
            return ValidationResult.failure(errors)

        # Check for NaN, Inf
        if not amount.is_finite():
            errors.append(ValidationError(field_name, "Must be a finite number", value))
            return ValidationResult.failure(errors)

        if min_value is not None and amount < min_value:
            errors.append(ValidationError(field_name, f"Below minimum ({min_value})", value))

        if max_value is not None and amount > max_value:
            errors.append(ValidationError(field_name, f"Exceeds maximum ({max_value})", value))

        if errors:
            return ValidationResult.failure(errors)

        return ValidationResult.success(amount)


# =============================================================================
# STATE MACHINE INVARIANTS
# =============================================================================

class InvariantChecker:
    """Enforces state machine invariants."""

    @staticmethod
    def check_monotonic_increase(
        field_name: str,
        old_value: int,
        new_value: int,
    ) -> None:
        """Ensure value never decreases."""
        if new_value < old_value:
            raise InvariantViolation(
                f"{field_name} must be monotonically increasing: "
                f"cannot go from {old_value} to {new_value}"
            )

    @staticmethod
    def check_balance_sufficient(
        available: Decimal,
        required: Decimal,
        field_name: str = "balance",
    ) -> None:
        """Ensure sufficient balance for operation."""
        if available < required:
            raise InvariantViolation(
                f"Insufficient {field_name}: have {available}, need {required}"
            )
