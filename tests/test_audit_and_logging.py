"""
Tests for the audit trail and structured logging around registry operations.
"""

import json
from decimal import Decimal

import pytest

from pharmaledger.registry.audit import AuditEventType, AuditTrail
from pharmaledger.registry.observability import (
    LedgerLayer,
    configure_logging,
    generate_correlation_id,
    get_correlation_id,
    get_logger,
    set_correlation_id,
    timed_operation,
)

MINTER = "ST1TEST"


def json_lines(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


# =============================================================================
# AUDIT TRAIL
# =============================================================================

class TestAuditTrail:
    def test_operations_are_recorded_in_order(self, configured, ctx, mint_request):
        configured.mint(ctx, mint_request())
        configured.update_batch(ctx.at(1), 0, 2000, "Comp2")
        configured.transfer_batch(ctx.at(2), 0, "ST4A")
        configured.verify_batch(ctx.at(3), 0)

        types = [e.event_type for e in configured.audit.get_events()]
        assert types == [
            AuditEventType.AUTHORITY_CONFIGURED,
            AuditEventType.BATCH_MINTED,
            AuditEventType.BATCH_UPDATED,
            AuditEventType.BATCH_TRANSFERRED,
            AuditEventType.BATCH_VERIFIED,
        ]
        assert [e.height for e in configured.audit.get_events()] == [0, 0, 1, 2, 3]

    def test_rejections_are_recorded_without_touching_state(self, configured, ctx):
        before = configured.state.digest()

        assert not configured.verify_batch(ctx, 7).ok

        assert configured.state.digest() == before
        rejected = configured.audit.get_events(event_type=AuditEventType.OPERATION_REJECTED)
        assert len(rejected) == 1
        assert rejected[0].outcome == "failure"
        assert rejected[0].action == "verify_batch"
        assert rejected[0].details == {"error": "NOT_FOUND", "code": 107}

    def test_fee_change_is_audited(self, configured, ctx):
        configured.set_mint_fee(ctx, "12.5")
        event = configured.audit.get_events(event_type=AuditEventType.MINT_FEE_CHANGED)[0]
        assert event.details == {"previous": Decimal("500"), "fee": Decimal("12.5")}
        assert configured.audit.verify_chain() == (True, None)

    def test_chain_verifies(self, configured, ctx, mint_request):
        configured.mint(ctx, mint_request())
        configured.mint(ctx, mint_request())
        assert configured.audit.verify_chain() == (True, None)

    def test_chain_links(self):
        trail = AuditTrail()
        first = trail.record(AuditEventType.BATCH_MINTED, MINTER, "0", "mint_batch", "success")
        second = trail.record(AuditEventType.BATCH_VERIFIED, MINTER, "0", "verify_batch", "success")

        assert first.previous_event_digest is None
        assert second.previous_event_digest == first.event_digest
        assert first.event_id == "evt-000000000001"
        assert len(trail) == 2

    def test_tampered_event_detected(self):
        trail = AuditTrail()
        for i in range(3):
            trail.record(AuditEventType.BATCH_MINTED, MINTER, str(i), "mint_batch", "success")

        trail.get_events()[1].details["external_code"] = "FORGED"

        assert trail.verify_chain() == (False, 1)

    def test_relinked_event_detected(self):
        trail = AuditTrail()
        for i in range(3):
            trail.record(AuditEventType.BATCH_MINTED, MINTER, str(i), "mint_batch", "success")

        event = trail.get_events()[2]
        event.previous_event_digest = None
        event.event_digest = event._compute_digest()

        assert trail.verify_chain() == (False, 2)

    def test_filters_and_limit(self):
        trail = AuditTrail()
        trail.record(AuditEventType.BATCH_MINTED, "ST1", "0", "mint_batch", "success")
        trail.record(AuditEventType.BATCH_MINTED, "ST2", "1", "mint_batch", "success")
        trail.record(AuditEventType.BATCH_TRANSFERRED, "ST1", "0", "transfer_batch", "success")

        assert [e.resource_id for e in trail.get_events(actor="ST1")] == ["0", "0"]
        assert len(trail.get_events(event_type=AuditEventType.BATCH_MINTED)) == 2
        assert [e.actor for e in trail.get_events(resource_id="1")] == ["ST2"]
        assert [e.action for e in trail.get_events(limit=1)] == ["transfer_batch"]

    def test_export(self):
        trail = AuditTrail()
        trail.record(AuditEventType.AUTHORITY_CONFIGURED, MINTER, "ST2", "set_authority_gateway", "success")

        exported = trail.export()

        assert exported[0]["event_type"] == "authority_configured"
        assert len(exported[0]["event_digest"]) == 64
        json.dumps(exported)


# =============================================================================
# STRUCTURED LOGGING
# =============================================================================

class TestStructuredLogging:
    def test_mint_emits_json_event(self, log_stream, configured, ctx, mint_request):
        configure_logging(level="info", log_format="json", stream=log_stream)
        set_correlation_id("corr-test")

        configured.mint(ctx, mint_request())

        minted = [e for e in json_lines(log_stream) if e["message"] == "batch minted"]
        assert len(minted) == 1
        event = minted[0]
        assert event["level"] == "info"
        assert event["layer"] == "registry"
        assert event["operation"] == "mint_batch"
        assert event["correlation_id"] == "corr-test"
        assert event["logger"] == "pharmaledger.registry.batch_registry"
        assert event["context"]["identifier"] == 0
        assert event["context"]["fee"] == "500"

    def test_rejection_logs_warning_with_error_code(self, log_stream, configured, ctx):
        configure_logging(level="warning", log_format="json", stream=log_stream)

        configured.transfer_batch(ctx, 3, "ST4A")

        events = json_lines(log_stream)
        assert [e["error_code"] for e in events] == ["107"]
        assert events[0]["level"] == "warning"
        assert events[0]["operation"] == "transfer_batch"

    def test_admin_events_use_admin_layer(self, log_stream, registry, ctx):
        configure_logging(level="info", log_format="json", stream=log_stream)

        registry.set_authority_gateway(ctx, "ST2TEST")

        events = json_lines(log_stream)
        assert events[0]["layer"] == "admin"
        assert events[0]["message"] == "authority gateway configured"

    def test_debug_level_includes_timings(self, log_stream, configured, ctx, mint_request):
        configure_logging(level="debug", log_format="json", stream=log_stream)

        configured.mint(ctx, mint_request())

        timings = [e for e in json_lines(log_stream) if "duration_ms" in e]
        assert timings
        assert timings[-1]["message"] == "Operation mint_batch completed"

    def test_text_format(self, log_stream, configured, ctx, mint_request):
        configure_logging(level="info", log_format="text", stream=log_stream)

        configured.mint(ctx, mint_request())

        assert "[mint_batch] batch minted" in log_stream.getvalue()

    def test_pipeline_reports_failing_guard(self, log_stream, configured, ctx, mint_request):
        configure_logging(level="debug", log_format="json", stream=log_stream)

        configured.mint(ctx, mint_request(quantity=0))

        pipeline = [e for e in json_lines(log_stream) if e.get("layer") == "pipeline"]
        assert [e["message"] for e in pipeline] == ["guard quantity failed"]
        assert pipeline[0]["error_code"] == "110"

    def test_configure_replaces_handlers(self, log_stream):
        configure_logging(stream=log_stream)
        root = configure_logging(stream=log_stream)
        assert len(root.handlers) == 1


class TestCorrelationAndTiming:
    def test_correlation_id_generated_on_demand(self):
        set_correlation_id("")
        cid = get_correlation_id()
        assert cid.startswith("corr-")
        assert get_correlation_id() == cid

    def test_generated_ids_differ(self):
        assert generate_correlation_id() != generate_correlation_id()

    def test_timed_operation_logs_and_reraises(self, log_stream):
        configure_logging(level="debug", log_format="json", stream=log_stream)
        log = get_logger("sampler", LedgerLayer.PIPELINE)

        @timed_operation(log, "explode")
        def explode():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            explode()

        events = json_lines(log_stream)
        assert events[-1]["level"] == "warning"
        assert events[-1]["message"] == "Operation explode raised"
        assert events[-1]["layer"] == "pipeline"

    def test_timed_operation_preserves_metadata(self):
        log = get_logger("sampler", LedgerLayer.PIPELINE)

        @timed_operation(log, "noop")
        def noop():
            """Does nothing."""
            return 1

        assert noop() == 1
        assert noop.__name__ == "noop"
        assert noop.__doc__ == "Does nothing."
