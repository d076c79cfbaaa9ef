"""
External Collaborators

The registry consults two collaborators it does not own:

    AuthorityGateway   decides whether a principal may mint
    FeeTransfer        moves the mint fee from the caller to the authority

Both are protocols. Neither ever sees RegistryState: they receive principals
and amounts and hand back a plain answer.

Reference implementations for tests and local deployments:

    StaticAuthorityGateway   in-memory allow-list
    LedgerFeeTransfer        in-memory transfer recorder with optional balances

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Protocol, Set

from pharmaledger.registry.errors import ErrorKind, InvariantViolation, Outcome
from pharmaledger.registry.hardening import InvariantChecker, Validators


# =============================================================================
# PROTOCOLS
# =============================================================================

class AuthorityGateway(Protocol):
    """Answers whether a principal is a recognized minting authority."""

    def is_authorized(self, principal: str) -> bool:
        """Must be synchronous and side-effect free."""
        ...


class FeeTransfer(Protocol):
    """Moves a fixed-point amount between principals."""

    def transfer(self, amount: Decimal, sender: str, recipient: str) -> Outcome:
        """
        Move amount from sender to recipient.

        A failed Outcome means nothing moved.
        """
        ...


# =============================================================================
# REFERENCE AUTHORITY GATEWAY
# =============================================================================

class StaticAuthorityGateway:
    """
    Allow-list authority gateway.

    Simulates the authority-verification subsystem without any network calls.
    """

    def __init__(self, authorities: Iterable[str] = ()):
        self._authorities: Set[str] = set(authorities)

    def is_authorized(self, principal: str) -> bool:
        return principal in self._authorities

    def grant(self, principal: str) -> None:
        self._authorities.add(principal)

    def revoke(self, principal: str) -> None:
        self._authorities.discard(principal)

    @property
    def authorities(self) -> Set[str]:
        return set(self._authorities)


# =============================================================================
# REFERENCE FEE TRANSFER
# =============================================================================

@dataclass(frozen=True)
class FeeTransferRecord:
    """One completed fee movement."""
    amount: Decimal
    sender: str
    recipient: str


class LedgerFeeTransfer:
    """
    In-memory fee transfer.

    Without balances every well-formed transfer succeeds and is recorded.
    When balances are supplied, a sender without enough funds is refused.
    Refused transfers record nothing and move nothing.
    """

    def __init__(self, balances: Optional[Dict[str, Decimal]] = None):
        self._balances: Optional[Dict[str, Decimal]] = (
            {k: Decimal(v) for k, v in balances.items()} if balances is not None else None
        )
        self._records: List[FeeTransferRecord] = []

    def transfer(self, amount: Decimal, sender: str, recipient: str) -> Outcome:
        checked = Validators.validate_amount(amount, "fee", min_value=Decimal("0"))
        if not checked.is_valid:
            return Outcome.failure(ErrorKind.INVALID_FEE)
        amount = checked.sanitized_value

        if self._balances is not None:
            try:
                InvariantChecker.check_balance_sufficient(
                    self._balances.get(sender, Decimal("0")), amount, f"balance of {sender}"
                )
            except InvariantViolation:
                return Outcome.failure(ErrorKind.INVALID_FEE)
            self._balances[sender] = self._balances.get(sender, Decimal("0")) - amount
            self._balances[recipient] = self._balances.get(recipient, Decimal("0")) + amount

        self._records.append(FeeTransferRecord(amount=amount, sender=sender, recipient=recipient))
        return Outcome.success()

    def balance_of(self, principal: str) -> Decimal:
        if self._balances is None:
            return Decimal("0")
        return self._balances.get(principal, Decimal("0"))

    @property
    def records(self) -> List[FeeTransferRecord]:
        return list(self._records)
