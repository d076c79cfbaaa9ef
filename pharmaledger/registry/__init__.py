"""
Pharmaceutical Batch Registry

A record-keeping ledger that issues one unique record per manufactured drug
batch, validates every field at issuance, tracks expiration and the current
holder, and keeps the latest amendment of each batch.

Architecture
────────────

    ┌─────────────────────────────────────────────────────────────────────────┐
    │                           BATCH REGISTRY                                 │
    │                                                                          │
    │  STATE MACHINE                                                          │
    │    registry.py       Mint, update, transfer, verify, admin, queries     │
    │    pipeline.py       Ordered mint guards with early exit                │
    │    state.py          Batch table, code index, counter, digest           │
    │                                                                          │
    │  RECORDS                                                                │
    │    batch.py          Batch, BatchAmendment, MintRequest, CallContext    │
    │    errors.py         ErrorKind codes, categories, Outcome               │
    │                                                                          │
    │  COLLABORATORS                                                          │
    │    gateway.py        Authority gateway and fee transfer protocols       │
    │                                                                          │
    │  AMBIENT                                                                │
    │    hardening.py      Field validators, invariant checks                 │
    │    config.py         YAML + env configuration                           │
    │    observability.py  Structured logging, correlation IDs                │
    │    audit.py          Hash-chained audit trail                           │
    │                                                                          │
    └─────────────────────────────────────────────────────────────────────────┘

Core Concepts
─────────────

    Batch: one minted lot. Its minter never changes and is the only principal
    allowed to amend it. Its holder changes only through transfer.

    Height: a logical clock supplied by the host on every call. Expiration is
    a height; a batch is expired once the current height reaches it.

    Outcome: every operation returns success with a value, or failure with
    exactly one ErrorKind. A failure never leaves a partial write behind.

Copyright © 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

__version__ = "0.3.0"


# Lazy imports keep `import pharmaledger.registry` cheap
def __getattr__(name):
    """Lazy import registry modules on first access."""

    if name in ("BatchRegistry",):
        from pharmaledger.registry import registry
        return getattr(registry, name)

    if name in ("RegistryState", "DEFAULT_BATCH_CAPACITY", "DEFAULT_MINT_FEE"):
        from pharmaledger.registry import state
        return getattr(state, name)

    if name in ("Batch", "BatchAmendment", "CallContext", "Currency", "MintRequest"):
        from pharmaledger.registry import batch
        return getattr(batch, name)

    if name in ("ErrorKind", "ErrorCategory", "Outcome", "RegistryError",
                "InvariantViolation"):
        from pharmaledger.registry import errors
        return getattr(errors, name)

    if name in ("Guard", "GuardInput", "MINT_GUARDS", "run_mint_pipeline"):
        from pharmaledger.registry import pipeline
        return getattr(pipeline, name)

    if name in ("AuthorityGateway", "FeeTransfer", "StaticAuthorityGateway",
                "LedgerFeeTransfer", "FeeTransferRecord"):
        from pharmaledger.registry import gateway
        return getattr(gateway, name)

    if name in ("AuditTrail", "AuditEvent", "AuditEventType"):
        from pharmaledger.registry import audit
        return getattr(audit, name)

    if name in ("LedgerConfig", "ConfigManager", "ConfigError", "get_config",
                "get_config_manager"):
        from pharmaledger.registry import config
        return getattr(config, name)

    raise AttributeError(f"module 'pharmaledger.registry' has no attribute '{name}'")


__all__ = [
    "__version__",
    # State machine
    "BatchRegistry",
    "RegistryState",
    # Records
    "Batch",
    "BatchAmendment",
    "CallContext",
    "Currency",
    "MintRequest",
    # Errors
    "ErrorKind",
    "ErrorCategory",
    "Outcome",
    "RegistryError",
    "InvariantViolation",
    # Collaborators
    "AuthorityGateway",
    "FeeTransfer",
    "StaticAuthorityGateway",
    "LedgerFeeTransfer",
    # Audit
    "AuditTrail",
    "AuditEventType",
    # Config
    "LedgerConfig",
    "ConfigManager",
]
