"""
Batch Registry Audit Trail

Tamper-evident, hash-chained record of every registry operation, accepted or
rejected. Each event commits to the digest of the event before it, so editing
or dropping an entry breaks verify_chain().

The trail sits beside RegistryState, not inside it: recording a rejected
attempt never changes the state digest.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pharmaledger.common.core import canonical_json_bytes, now_iso8601, sha256_bytes


class AuditEventType(Enum):
    """Types of audit events."""
    BATCH_MINTED = "batch_minted"
    BATCH_UPDATED = "batch_updated"
    BATCH_TRANSFERRED = "batch_transferred"
    BATCH_VERIFIED = "batch_verified"
    AUTHORITY_CONFIGURED = "authority_configured"
    MINT_FEE_CHANGED = "mint_fee_changed"
    OPERATION_REJECTED = "operation_rejected"


@dataclass
class AuditEvent:
    """An audit log entry."""
    event_id: str
    event_type: AuditEventType
    timestamp: str
    height: int
    actor: str
    resource_id: str
    action: str
    outcome: str  # success, failure
    details: Dict[str, Any]

    # Tamper evidence
    previous_event_digest: Optional[str] = None
    event_digest: str = ""

    def __post_init__(self):
        if not self.event_digest:
            self.event_digest = self._compute_digest()

    def _compute_digest(self) -> str:
        content = {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "height": self.height,
            "actor": self.actor,
            "resource_id": self.resource_id,
            "action": self.action,
            "outcome": self.outcome,
            "details": self.details,
            "previous_event_digest": self.previous_event_digest,
        }
        return sha256_bytes(canonical_json_bytes(content))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "height": self.height,
            "actor": self.actor,
            "resource_id": self.resource_id,
            "action": self.action,
            "outcome": self.outcome,
            "details": self.details,
            "previous_event_digest": self.previous_event_digest,
            "event_digest": self.event_digest,
        }


class AuditTrail:
    """
    Hash-chained audit trail.

    Registry calls are serialized by the host, so the trail needs no lock.
    """

    def __init__(self):
        self._events: List[AuditEvent] = []

    def record(
        self,
        event_type: AuditEventType,
        actor: str,
        resource_id: str,
        action: str,
        outcome: str,
        height: int = 0,
        details: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        """Append an event to the chain."""
        previous_digest = self._events[-1].event_digest if self._events else None
        event = AuditEvent(
            event_id=f"evt-{len(self._events) + 1:012d}",
            event_type=event_type,
            timestamp=now_iso8601(),
            height=height,
            actor=actor,
            resource_id=resource_id,
            action=action,
            outcome=outcome,
            details=details or {},
            previous_event_digest=previous_digest,
        )
        self._events.append(event)
        return event

    def verify_chain(self) -> Tuple[bool, Optional[int]]:
        """
        Verify the audit chain integrity.

        Returns (valid, first_invalid_index).
        """
        for i, event in enumerate(self._events):
            if event._compute_digest() != event.event_digest:
                return (False, i)
            expected_prev = self._events[i - 1].event_digest if i > 0 else None
            if event.previous_event_digest != expected_prev:
                return (False, i)
        return (True, None)

    def get_events(
        self,
        actor: Optional[str] = None,
        event_type: Optional[AuditEventType] = None,
        resource_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditEvent]:
        """Query audit events, most recent last."""
        events = list(self._events)

        if actor:
            events = [e for e in events if e.actor == actor]
        if event_type:
            events = [e for e in events if e.event_type == event_type]
        if resource_id:
            events = [e for e in events if e.resource_id == resource_id]

        return events[-limit:]

    def export(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self._events]

    def __len__(self) -> int:
        return len(self._events)
