"""
Mint Validation Pipeline

A fixed, ordered sequence of guards applied to mint inputs. Evaluation stops
at the first failing guard and reports its error kind, so the order decides
which single error surfaces when several inputs are bad:

     1. capacity                 CAPACITY_EXCEEDED
     2. external code            INVALID_CODE
     3. expiration height        INVALID_EXPIRATION
     4. composition              INVALID_COMPOSITION
     5. certificate digest       INVALID_DIGEST
     6. drug type                INVALID_DRUG_TYPE
     7. quantity                 INVALID_QUANTITY
     8. dosage                   INVALID_DOSAGE
     9. storage conditions       INVALID_STORAGE_CONDITIONS
    10. packaging                INVALID_PACKAGING
    11. location                 INVALID_LOCATION
    12. currency                 INVALID_CURRENCY
    13. batch number             INVALID_BATCH_NUMBER
    14. caller authorization     NOT_AUTHORIZED
    15. code uniqueness          ALREADY_EXISTS
    16. authority configured     AUTHORITY_NOT_CONFIGURED

Every guard is a pure predicate over the request, the call context and the
current state. The pipeline never mutates anything.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from pharmaledger.registry.batch import CallContext, Currency, MintRequest
from pharmaledger.registry.errors import ErrorKind, Outcome
from pharmaledger.registry.gateway import AuthorityGateway
from pharmaledger.registry.hardening import Validators
from pharmaledger.registry.observability import LedgerLayer, get_logger
from pharmaledger.registry.state import RegistryState


logger = get_logger("mint_pipeline", LedgerLayer.PIPELINE)


@dataclass(frozen=True)
class GuardInput:
    """Everything a guard may read."""
    request: MintRequest
    ctx: CallContext
    state: RegistryState
    gateway: AuthorityGateway


@dataclass(frozen=True)
class Guard:
    """A named predicate and the error it reports when it does not hold."""
    name: str
    error: ErrorKind
    predicate: Callable[[GuardInput], bool]

    def holds(self, inp: GuardInput) -> bool:
        return self.predicate(inp)


def _bounded(attr: str, max_length: int) -> Callable[[GuardInput], bool]:
    def predicate(inp: GuardInput) -> bool:
        return Validators.validate_string(
            getattr(inp.request, attr), attr, max_length=max_length
        ).is_valid
    return predicate


def _positive(attr: str) -> Callable[[GuardInput], bool]:
    def predicate(inp: GuardInput) -> bool:
        return Validators.validate_positive_int(getattr(inp.request, attr), attr).is_valid
    return predicate


MINT_GUARDS: Tuple[Guard, ...] = (
    Guard("capacity", ErrorKind.CAPACITY_EXCEEDED,
          lambda inp: not inp.state.is_full),
    Guard("external_code", ErrorKind.INVALID_CODE,
          _bounded("external_code", Validators.MAX_CODE_LENGTH)),
    Guard("expiration_height", ErrorKind.INVALID_EXPIRATION,
          lambda inp: Validators.validate_height_after(
              inp.request.expiration_height, inp.ctx.height).is_valid),
    Guard("composition", ErrorKind.INVALID_COMPOSITION,
          _bounded("composition", Validators.MAX_COMPOSITION_LENGTH)),
    Guard("certificate_digest", ErrorKind.INVALID_DIGEST,
          lambda inp: Validators.validate_digest(inp.request.certificate_digest).is_valid),
    Guard("drug_type", ErrorKind.INVALID_DRUG_TYPE,
          _bounded("drug_type", Validators.MAX_DRUG_TYPE_LENGTH)),
    Guard("quantity", ErrorKind.INVALID_QUANTITY,
          _positive("quantity")),
    Guard("dosage", ErrorKind.INVALID_DOSAGE,
          _bounded("dosage", Validators.MAX_DESCRIPTOR_LENGTH)),
    Guard("storage_conditions", ErrorKind.INVALID_STORAGE_CONDITIONS,
          _bounded("storage_conditions", Validators.MAX_DESCRIPTOR_LENGTH)),
    Guard("packaging", ErrorKind.INVALID_PACKAGING,
          _bounded("packaging", Validators.MAX_DESCRIPTOR_LENGTH)),
    Guard("location", ErrorKind.INVALID_LOCATION,
          _bounded("location", Validators.MAX_DESCRIPTOR_LENGTH)),
    Guard("currency", ErrorKind.INVALID_CURRENCY,
          lambda inp: Currency.parse(inp.request.currency) is not None),
    Guard("batch_number", ErrorKind.INVALID_BATCH_NUMBER,
          _positive("batch_number")),
    Guard("authorization", ErrorKind.NOT_AUTHORIZED,
          lambda inp: bool(inp.gateway.is_authorized(inp.ctx.caller))),
    Guard("uniqueness", ErrorKind.ALREADY_EXISTS,
          lambda inp: inp.request.external_code not in inp.state.code_index),
    Guard("authority_configured", ErrorKind.AUTHORITY_NOT_CONFIGURED,
          lambda inp: inp.state.is_configured),
)


def first_failure(inp: GuardInput, guards: Tuple[Guard, ...] = MINT_GUARDS) -> Optional[Guard]:
    """Return the first guard that does not hold, or None."""
    for guard in guards:
        if not guard.holds(inp):
            return guard
    return None


def run_mint_pipeline(
    request: MintRequest,
    ctx: CallContext,
    state: RegistryState,
    gateway: AuthorityGateway,
) -> Outcome:
    """Evaluate the mint guards in order.

    Returns: Outcome.success() on pass, else the first failing guard's error
    """
    failed = first_failure(GuardInput(request=request, ctx=ctx, state=state, gateway=gateway))
    if failed is not None:
        logger.debug(
            f"guard {failed.name} failed",
            operation="mint_batch",
            error_code=str(failed.error.code),
            caller=ctx.caller,
        )
        return Outcome.failure(failed.error)
    return Outcome.success()
