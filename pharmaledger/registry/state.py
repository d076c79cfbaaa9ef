"""
Batch Registry State

RegistryState is the single source of truth for one registry instance: the
identifier counter, the configured capacity and fee, the authority address,
the batch table, the amendment table and the code index.

The batch table and the code index are colocated and only ever written
together by BatchRegistry. check_invariants() cross-checks them, and digest()
commits to the whole state so tests can assert that a failed call left it
byte-for-byte unchanged.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pharmaledger.common.core import canonical_json_bytes, sha256_bytes
from pharmaledger.registry.batch import Batch, BatchAmendment


DEFAULT_BATCH_CAPACITY = 100000
DEFAULT_MINT_FEE = Decimal("500")


@dataclass
class RegistryState:
    """Mutable registry state, owned by exactly one BatchRegistry."""
    batch_capacity: int = DEFAULT_BATCH_CAPACITY
    mint_fee: Decimal = DEFAULT_MINT_FEE
    next_identifier: int = 0
    authority_gateway: Optional[str] = None
    batches: Dict[int, Batch] = field(default_factory=dict)  # identifier -> Batch
    amendments: Dict[int, BatchAmendment] = field(default_factory=dict)  # identifier -> amendment
    code_index: Dict[str, int] = field(default_factory=dict)  # external_code -> identifier

    @property
    def is_configured(self) -> bool:
        return self.authority_gateway is not None

    @property
    def is_full(self) -> bool:
        return self.next_identifier >= self.batch_capacity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "next_identifier": self.next_identifier,
            "batch_capacity": self.batch_capacity,
            "mint_fee": str(self.mint_fee),
            "authority_gateway": self.authority_gateway,
            "batches": {str(k): v.to_dict() for k, v in self.batches.items()},
            "amendments": {str(k): v.to_dict() for k, v in self.amendments.items()},
            "code_index": dict(self.code_index),
        }

    def digest(self) -> str:
        """SHA-256 over the canonical JSON form of the whole state."""
        return sha256_bytes(canonical_json_bytes(self.to_dict()))

    def check_invariants(self) -> List[str]:
        """
        Cross-check the tables.

        Returns: list of violations (empty when consistent)
        """
        errors: List[str] = []

        for code, identifier in self.code_index.items():
            batch = self.batches.get(identifier)
            if batch is None:
                errors.append(f"code_index[{code!r}] -> {identifier} has no batch")
            elif batch.external_code != code:
                errors.append(
                    f"code_index[{code!r}] -> {identifier} but batch code is {batch.external_code!r}"
                )

        for identifier, batch in self.batches.items():
            if batch.identifier != identifier:
                errors.append(f"batches[{identifier}] carries identifier {batch.identifier}")
            if self.code_index.get(batch.external_code) != identifier:
                errors.append(f"batch {identifier} code {batch.external_code!r} missing from code_index")
            if batch.minter != batch.manufacturer:
                errors.append(f"batch {identifier} minter and manufacturer diverge")

        if sorted(self.batches) != list(range(self.next_identifier)):
            errors.append(
                f"identifiers {sorted(self.batches)} do not match counter {self.next_identifier}"
            )

        if len(self.batches) > self.batch_capacity:
            errors.append(f"{len(self.batches)} batches exceed capacity {self.batch_capacity}")

        for identifier in self.amendments:
            if identifier not in self.batches:
                errors.append(f"amendment for unknown batch {identifier}")

        return errors
