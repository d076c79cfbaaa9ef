"""
Batch Records

The principal entity of the registry is the Batch: one record per manufactured
drug lot. Batches are frozen; every change goes through dataclasses.replace so
a record handed out by a query can never be mutated behind the registry's back.

    Batch            immutable snapshot of one minted lot
    BatchAmendment   latest amendment written by an update
    MintRequest      the caller-supplied fields for a mint
    CallContext      who is calling, and at which logical height

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union


# =============================================================================
# CURRENCY
# =============================================================================

class Currency(Enum):
    """Settlement currencies a batch may be denominated in."""
    STX = "STX"
    USD = "USD"
    BTC = "BTC"

    @classmethod
    def parse(cls, value: Union[str, "Currency"]) -> Optional["Currency"]:
        """Return the matching currency, or None when unsupported."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value)
            except ValueError:
                return None
        return None


# =============================================================================
# CALL CONTEXT
# =============================================================================

@dataclass(frozen=True)
class CallContext:
    """The caller principal and the logical height a call executes at."""
    caller: str
    height: int = 0

    def at(self, height: int) -> "CallContext":
        return CallContext(caller=self.caller, height=height)

    def as_caller(self, caller: str) -> "CallContext":
        return CallContext(caller=caller, height=self.height)


# =============================================================================
# MINT REQUEST
# =============================================================================

@dataclass(frozen=True)
class MintRequest:
    """Unvalidated mint inputs, exactly as the caller supplied them."""
    external_code: Any
    expiration_height: Any
    composition: Any
    certificate_digest: Any
    drug_type: Any
    quantity: Any
    dosage: Any
    storage_conditions: Any
    packaging: Any
    location: Any
    currency: Any
    batch_number: Any


# =============================================================================
# BATCH
# =============================================================================

@dataclass(frozen=True)
class Batch:
    """
    A minted drug batch.

    minter and manufacturer are fixed at creation. current_holder moves only
    through transfer; composition, expiration_height and modified_at_height
    only through update.
    """
    identifier: int
    external_code: str
    expiration_height: int
    composition: str
    certificate_digest: bytes
    manufacturer: str
    created_at_height: int
    modified_at_height: int
    minter: str
    drug_type: str
    quantity: int
    dosage: str
    storage_conditions: str
    packaging: str
    location: str
    currency: Currency
    active: bool
    current_holder: str
    batch_number: int

    def is_expired_at(self, height: int) -> bool:
        return self.expiration_height <= height

    def is_valid_at(self, height: int) -> bool:
        """Valid means active and not yet expired."""
        return self.active and not self.is_expired_at(height)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier,
            "external_code": self.external_code,
            "expiration_height": self.expiration_height,
            "composition": self.composition,
            "certificate_digest": self.certificate_digest.hex(),
            "manufacturer": self.manufacturer,
            "created_at_height": self.created_at_height,
            "modified_at_height": self.modified_at_height,
            "minter": self.minter,
            "drug_type": self.drug_type,
            "quantity": self.quantity,
            "dosage": self.dosage,
            "storage_conditions": self.storage_conditions,
            "packaging": self.packaging,
            "location": self.location,
            "currency": self.currency.value,
            "active": self.active,
            "current_holder": self.current_holder,
            "batch_number": self.batch_number,
        }


@dataclass(frozen=True)
class BatchAmendment:
    """The most recent amendment applied to a batch."""
    updated_expiration_height: int
    updated_composition: str
    amendment_height: int
    amender: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "updated_expiration_height": self.updated_expiration_height,
            "updated_composition": self.updated_composition,
            "amendment_height": self.amendment_height,
            "amender": self.amender,
        }
