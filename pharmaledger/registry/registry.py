"""
Batch Registry State Machine

BatchRegistry owns one RegistryState and exposes every operation on it. Each
call is a single atomic transition: all guards run before anything is
written, so a call either applies all of its effects or none of them.

Operations:

    mint_batch / mint        validate, collect fee, record a new batch
    update_batch             minter amends expiration and composition
    transfer_batch           holder hands the batch to a new holder
    verify_batch             active and not expired
    set_authority_gateway    one-time authority configuration
    set_mint_fee             fee change, once the authority is configured

Queries (never fail, never mutate):

    get_batch, get_batch_by_code, get_batch_amendment, get_batch_count,
    batch_exists_by_code, get_mint_fee, get_authority_gateway

Heights are supplied by the host on every call through CallContext. The
registry treats them as a monotonic logical clock and refuses a call whose
height is below one it has already seen.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import Any, Dict, Optional

from pharmaledger.registry.audit import AuditEventType, AuditTrail
from pharmaledger.registry.batch import (
    Batch,
    BatchAmendment,
    CallContext,
    Currency,
    MintRequest,
)
from pharmaledger.registry.config import NULL_PRINCIPAL, LedgerConfig
from pharmaledger.registry.errors import ErrorKind, InvariantViolation, Outcome
from pharmaledger.registry.gateway import AuthorityGateway, FeeTransfer
from pharmaledger.registry.hardening import InvariantChecker, Validators
from pharmaledger.registry.observability import (
    LedgerLayer,
    configure_logging,
    get_logger,
    timed_operation,
)
from pharmaledger.registry.pipeline import run_mint_pipeline
from pharmaledger.registry.state import RegistryState


logger = get_logger("batch_registry", LedgerLayer.REGISTRY)
admin_logger = get_logger("batch_registry", LedgerLayer.ADMIN)


class BatchRegistry:
    """
    Pharmaceutical batch registry.

    The registry is not thread-safe. The host serializes calls: one call
    completes before the next begins.
    """

    def __init__(
        self,
        gateway: AuthorityGateway,
        fee_transfer: FeeTransfer,
        state: Optional[RegistryState] = None,
        *,
        null_principal: str = NULL_PRINCIPAL,
        check_invariants: bool = False,
        audit: Optional[AuditTrail] = None,
    ):
        self._gateway = gateway
        self._fee_transfer = fee_transfer
        self._state = state if state is not None else RegistryState()
        self._null_principal = null_principal
        self._check_invariants = check_invariants
        self._audit = audit if audit is not None else AuditTrail()
        self._last_height = 0

    @classmethod
    def from_config(
        cls,
        config: LedgerConfig,
        gateway: AuthorityGateway,
        fee_transfer: FeeTransfer,
        log_stream: Any = None,
    ) -> "BatchRegistry":
        """
        Build a registry with capacity, fee and checks taken from config.

        Also installs package logging at the configured level and format.
        """
        configure_logging(
            config.observability.log_level.get(),
            config.observability.log_format.get(),
            stream=log_stream,
        )
        settings = config.registry
        state = RegistryState(
            batch_capacity=settings.batch_capacity.get(),
            mint_fee=settings.mint_fee.get(),
        )
        return cls(
            gateway,
            fee_transfer,
            state,
            null_principal=settings.null_principal.get(),
            check_invariants=settings.check_invariants.get(),
        )

    @property
    def state(self) -> RegistryState:
        """The owned state. Read it; do not write it."""
        return self._state

    @property
    def audit(self) -> AuditTrail:
        return self._audit

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _observe_height(self, ctx: CallContext) -> None:
        InvariantChecker.check_monotonic_increase("height", self._last_height, ctx.height)
        self._last_height = ctx.height

    def _after_commit(self) -> None:
        if not self._check_invariants:
            return
        errors = self._state.check_invariants()
        if errors:
            raise InvariantViolation(f"registry invariants broken: {errors[0]}")

    def _reject(
        self,
        ctx: CallContext,
        action: str,
        resource_id: Any,
        error: ErrorKind,
        **details: Any,
    ) -> Outcome:
        logger.warning(
            f"{action} rejected: {error.name}",
            operation=action,
            error_code=str(error.code),
            caller=ctx.caller,
            height=ctx.height,
            resource_id=str(resource_id),
        )
        self._audit.record(
            AuditEventType.OPERATION_REJECTED,
            actor=ctx.caller,
            resource_id=str(resource_id),
            action=action,
            outcome="failure",
            height=ctx.height,
            details={"error": error.name, "code": error.code, **details},
        )
        return Outcome.failure(error)

    # -------------------------------------------------------------------------
    # Administrative operations
    # -------------------------------------------------------------------------

    @timed_operation(admin_logger, "set_authority_gateway")
    def set_authority_gateway(self, ctx: CallContext, address: str) -> Outcome:
        """Configure the authority address. Succeeds at most once."""
        self._observe_height(ctx)

        if not Validators.validate_principal(address, "address").is_valid:
            return self._reject(ctx, "set_authority_gateway", address, ErrorKind.INVALID_UPDATE_PARAMETER)
        if address == self._null_principal:
            return self._reject(ctx, "set_authority_gateway", address, ErrorKind.INVALID_UPDATE_PARAMETER)
        if self._state.authority_gateway is not None:
            return self._reject(ctx, "set_authority_gateway", address, ErrorKind.INVALID_UPDATE_PARAMETER)

        self._state.authority_gateway = address
        self._after_commit()

        admin_logger.info("authority gateway configured", operation="set_authority_gateway", address=address)
        self._audit.record(
            AuditEventType.AUTHORITY_CONFIGURED,
            actor=ctx.caller,
            resource_id=address,
            action="set_authority_gateway",
            outcome="success",
            height=ctx.height,
        )
        return Outcome.success()

    @timed_operation(admin_logger, "set_mint_fee")
    def set_mint_fee(self, ctx: CallContext, amount: Any) -> Outcome:
        """
        Replace the mint fee.

        Fails until the authority gateway is configured. The amount is not
        bounds-checked; it only has to be a finite fixed-point number.
        """
        self._observe_height(ctx)

        if not self._state.is_configured:
            return self._reject(ctx, "set_mint_fee", "mint_fee", ErrorKind.AUTHORITY_NOT_CONFIGURED)

        checked = Validators.validate_amount(amount, "mint_fee")
        if not checked.is_valid:
            return self._reject(ctx, "set_mint_fee", "mint_fee", ErrorKind.INVALID_FEE)

        previous = self._state.mint_fee
        self._state.mint_fee = checked.sanitized_value
        self._after_commit()

        admin_logger.info(
            "mint fee changed",
            operation="set_mint_fee",
            previous=str(previous),
            fee=str(self._state.mint_fee),
        )
        self._audit.record(
            AuditEventType.MINT_FEE_CHANGED,
            actor=ctx.caller,
            resource_id="mint_fee",
            action="set_mint_fee",
            outcome="success",
            height=ctx.height,
            details={"previous": previous, "fee": self._state.mint_fee},
        )
        return Outcome.success()

    # -------------------------------------------------------------------------
    # Mint
    # -------------------------------------------------------------------------

    def mint_batch(
        self,
        ctx: CallContext,
        external_code: str,
        expiration_height: int,
        composition: str,
        certificate_digest: bytes,
        drug_type: str,
        quantity: int,
        dosage: str,
        storage_conditions: str,
        packaging: str,
        location: str,
        currency: Any,
        batch_number: int,
    ) -> Outcome:
        """Mint a batch from positional fields. See mint()."""
        return self.mint(ctx, MintRequest(
            external_code=external_code,
            expiration_height=expiration_height,
            composition=composition,
            certificate_digest=certificate_digest,
            drug_type=drug_type,
            quantity=quantity,
            dosage=dosage,
            storage_conditions=storage_conditions,
            packaging=packaging,
            location=location,
            currency=currency,
            batch_number=batch_number,
        ))

    @timed_operation(logger, "mint_batch")
    def mint(self, ctx: CallContext, request: MintRequest) -> Outcome:
        """
        Mint a new batch.

        Order of effects: validation pipeline, fee transfer, identifier
        allocation, record insertion into batches and code_index, counter
        increment. Nothing is written and no fee moves unless every guard
        passes; a refused fee transfer aborts the mint.

        certificate_digest must come to exactly 32 bytes. Besides bytes,
        bytearray and memoryview, a 64-character hex string is accepted and
        decoded; the stored digest is always raw bytes.

        Returns: Outcome carrying the new identifier
        """
        self._observe_height(ctx)

        checked = run_mint_pipeline(request, ctx, self._state, self._gateway)
        if not checked.ok:
            return self._reject(ctx, "mint_batch", request.external_code, checked.error)

        authority = self._state.authority_gateway
        fee = self._state.mint_fee
        paid = self._fee_transfer.transfer(fee, ctx.caller, authority)
        if not paid.ok:
            return self._reject(
                ctx, "mint_batch", request.external_code,
                paid.error or ErrorKind.INVALID_FEE, fee=fee,
            )

        identifier = self._state.next_identifier
        batch = Batch(
            identifier=identifier,
            external_code=request.external_code,
            expiration_height=request.expiration_height,
            composition=request.composition,
            certificate_digest=Validators.validate_digest(request.certificate_digest).sanitized_value,
            manufacturer=ctx.caller,
            created_at_height=ctx.height,
            modified_at_height=ctx.height,
            minter=ctx.caller,
            drug_type=request.drug_type,
            quantity=request.quantity,
            dosage=request.dosage,
            storage_conditions=request.storage_conditions,
            packaging=request.packaging,
            location=request.location,
            currency=Currency.parse(request.currency),
            active=True,
            current_holder=ctx.caller,
            batch_number=request.batch_number,
        )
        self._state.batches[identifier] = batch
        self._state.code_index[batch.external_code] = identifier
        self._state.next_identifier = identifier + 1
        self._after_commit()

        logger.info(
            "batch minted",
            operation="mint_batch",
            identifier=identifier,
            external_code=batch.external_code,
            caller=ctx.caller,
            fee=str(fee),
        )
        self._audit.record(
            AuditEventType.BATCH_MINTED,
            actor=ctx.caller,
            resource_id=str(identifier),
            action="mint_batch",
            outcome="success",
            height=ctx.height,
            details={"external_code": batch.external_code, "fee": fee, "paid_to": authority},
        )
        return Outcome.success(identifier)

    # -------------------------------------------------------------------------
    # Update
    # -------------------------------------------------------------------------

    @timed_operation(logger, "update_batch")
    def update_batch(
        self,
        ctx: CallContext,
        identifier: int,
        new_expiration_height: int,
        new_composition: str,
    ) -> Outcome:
        """Amend expiration and composition. Only the original minter may."""
        self._observe_height(ctx)

        batch = self._state.batches.get(identifier)
        if batch is None:
            return self._reject(ctx, "update_batch", identifier, ErrorKind.NOT_FOUND)
        if batch.minter != ctx.caller:
            return self._reject(ctx, "update_batch", identifier, ErrorKind.NOT_AUTHORIZED)
        if not Validators.validate_height_after(new_expiration_height, ctx.height).is_valid:
            return self._reject(ctx, "update_batch", identifier, ErrorKind.INVALID_EXPIRATION)
        if not Validators.validate_string(
            new_composition, "composition", max_length=Validators.MAX_COMPOSITION_LENGTH
        ).is_valid:
            return self._reject(ctx, "update_batch", identifier, ErrorKind.INVALID_COMPOSITION)

        self._state.batches[identifier] = replace(
            batch,
            expiration_height=new_expiration_height,
            composition=new_composition,
            modified_at_height=ctx.height,
        )
        self._state.amendments[identifier] = BatchAmendment(
            updated_expiration_height=new_expiration_height,
            updated_composition=new_composition,
            amendment_height=ctx.height,
            amender=ctx.caller,
        )
        self._after_commit()

        logger.info(
            "batch updated",
            operation="update_batch",
            identifier=identifier,
            expiration_height=new_expiration_height,
            caller=ctx.caller,
        )
        self._audit.record(
            AuditEventType.BATCH_UPDATED,
            actor=ctx.caller,
            resource_id=str(identifier),
            action="update_batch",
            outcome="success",
            height=ctx.height,
            details={
                "previous_expiration_height": batch.expiration_height,
                "expiration_height": new_expiration_height,
            },
        )
        return Outcome.success()

    # -------------------------------------------------------------------------
    # Transfer
    # -------------------------------------------------------------------------

    @timed_operation(logger, "transfer_batch")
    def transfer_batch(self, ctx: CallContext, identifier: int, new_holder: str) -> Outcome:
        """Hand the batch to a new holder. Only the current holder may, and
        only while the batch has not expired."""
        self._observe_height(ctx)

        batch = self._state.batches.get(identifier)
        if batch is None:
            return self._reject(ctx, "transfer_batch", identifier, ErrorKind.NOT_FOUND)
        if batch.current_holder != ctx.caller:
            return self._reject(ctx, "transfer_batch", identifier, ErrorKind.NOT_AUTHORIZED)
        if batch.is_expired_at(ctx.height):
            return self._reject(ctx, "transfer_batch", identifier, ErrorKind.EXPIRED)
        if not Validators.validate_principal(new_holder, "new_holder").is_valid:
            return self._reject(ctx, "transfer_batch", identifier, ErrorKind.INVALID_TARGET_HOLDER)
        if new_holder == ctx.caller:
            return self._reject(ctx, "transfer_batch", identifier, ErrorKind.INVALID_TARGET_HOLDER)

        self._state.batches[identifier] = replace(batch, current_holder=new_holder)
        self._after_commit()

        logger.info(
            "batch transferred",
            operation="transfer_batch",
            identifier=identifier,
            previous_holder=ctx.caller,
            holder=new_holder,
        )
        self._audit.record(
            AuditEventType.BATCH_TRANSFERRED,
            actor=ctx.caller,
            resource_id=str(identifier),
            action="transfer_batch",
            outcome="success",
            height=ctx.height,
            details={"holder": new_holder},
        )
        return Outcome.success()

    # -------------------------------------------------------------------------
    # Verify
    # -------------------------------------------------------------------------

    def verify_batch(self, ctx: CallContext, identifier: int) -> Outcome:
        """Succeeds iff the batch is active and its expiration is still ahead."""
        self._observe_height(ctx)

        batch = self._state.batches.get(identifier)
        if batch is None:
            return self._reject(ctx, "verify_batch", identifier, ErrorKind.NOT_FOUND)
        if not batch.is_valid_at(ctx.height):
            return self._reject(ctx, "verify_batch", identifier, ErrorKind.EXPIRED)

        logger.debug("batch verified", operation="verify_batch", identifier=identifier, caller=ctx.caller)
        self._audit.record(
            AuditEventType.BATCH_VERIFIED,
            actor=ctx.caller,
            resource_id=str(identifier),
            action="verify_batch",
            outcome="success",
            height=ctx.height,
        )
        return Outcome.success()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_batch(self, identifier: int) -> Optional[Batch]:
        return self._state.batches.get(identifier)

    def get_batch_by_code(self, external_code: str) -> Optional[Batch]:
        identifier = self._state.code_index.get(external_code)
        if identifier is None:
            return None
        return self._state.batches.get(identifier)

    def get_batch_amendment(self, identifier: int) -> Optional[BatchAmendment]:
        return self._state.amendments.get(identifier)

    def get_batch_count(self) -> int:
        """Total batches ever minted (not only active ones)."""
        return self._state.next_identifier

    def batch_exists_by_code(self, external_code: str) -> bool:
        return external_code in self._state.code_index

    def get_mint_fee(self) -> Decimal:
        return self._state.mint_fee

    def get_authority_gateway(self) -> Optional[str]:
        return self._state.authority_gateway

    def summary(self) -> Dict[str, Any]:
        """Headline figures for dashboards and health checks."""
        return {
            "batch_count": self._state.next_identifier,
            "batch_capacity": self._state.batch_capacity,
            "mint_fee": str(self._state.mint_fee),
            "authority_gateway": self._state.authority_gateway,
            "amended_batches": len(self._state.amendments),
            "state_digest": self._state.digest(),
        }
