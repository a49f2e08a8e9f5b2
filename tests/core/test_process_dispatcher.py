"""
Tests for core.dispatch — resolver, target registry and dispatcher.
"""

import logging
import threading

import pytest

from core.dispatch import (
    DispatchCancelled,
    DuplicateTargetError,
    InvalidInput,
    InvalidStrategyResult,
    ProcessDispatcher,
    StrategyResolver,
    TargetRegistry,
    UnknownProcess,
    UnknownStrategy,
    UnknownTarget,
    is_valid_trace_id,
    new_trace_id,
)
from core.manifest import StaticManifestStore, manifest_from_dict
from core.strategies import StrategyRegistry, build_default_registry

PROCESS = "billing/send-invoice"


def _manifest(name=PROCESS, **overrides):
    record = {
        "input_schema": {
            "type": "object",
            "required": ["invoice_id"],
            "properties": {"invoice_id": {"type": "string"}},
        },
        "strategy": {"address": "strategies.direct"},
        "variants": [
            {"id": "v1", "target": "billing.send_invoice.v1"},
            {"id": "v2", "target": "billing.send_invoice.v2"},
        ],
    }
    record.update(overrides)
    return manifest_from_dict(name, record)


class RecordingTarget:
    def __init__(self, result="sent"):
        self.calls = []
        self.result = result

    def __call__(self, input_args, trace_id):
        self.calls.append((dict(input_args), trace_id))
        return self.result


@pytest.fixture
def targets():
    registry = TargetRegistry()
    registry.register("billing.send_invoice.v1", RecordingTarget("v1-result"))
    registry.register("billing.send_invoice.v2", RecordingTarget("v2-result"))
    return registry


def _dispatcher(targets, *manifests, strategies=None):
    store = StaticManifestStore.from_manifests(*(manifests or (_manifest(),)))
    resolver = StrategyResolver(store, strategies or build_default_registry())
    return ProcessDispatcher(resolver, targets)


# ── Trace ids ────────────────────────────────────────────────

def test_new_trace_ids_are_unique_and_valid():
    first, second = new_trace_id(), new_trace_id()
    assert first != second
    assert is_valid_trace_id(first)
    assert not is_valid_trace_id("  ")
    assert not is_valid_trace_id(None)


# ── Target registry ──────────────────────────────────────────

class TestTargetRegistry:
    def test_duplicate_address_rejected(self):
        registry = TargetRegistry()
        registry.register("x.v1", RecordingTarget())
        with pytest.raises(DuplicateTargetError):
            registry.register("x.v1", RecordingTarget())

    def test_unknown_address(self):
        with pytest.raises(UnknownTarget) as exc_info:
            TargetRegistry().get("x.v1")
        assert exc_info.value.address == "x.v1"

    def test_rejects_non_callable(self):
        with pytest.raises(TypeError):
            TargetRegistry().register("x.v1", "module.function")


# ── Resolver ─────────────────────────────────────────────────

class TestStrategyResolver:
    def test_resolution_carries_decision(self):
        store = StaticManifestStore.from_manifests(_manifest())
        resolver = StrategyResolver(store, build_default_registry())
        resolution = resolver.resolve(PROCESS, {}, {"invoice_id": "inv-1"}, "trace-1")
        assert resolution.variant_id == "v1"
        assert resolution.target == "billing.send_invoice.v1"
        assert resolution.strategy_address == "strategies.direct"
        assert resolution.manifest_version == store.current().version
        assert resolution.experiment_id is None

    def test_decision_is_logged_with_structured_record(self, caplog):
        store = StaticManifestStore.from_manifests(_manifest())
        resolver = StrategyResolver(store, build_default_registry())
        with caplog.at_level(logging.INFO, logger="ledgerline.dispatch"):
            resolver.resolve(PROCESS, {}, {"invoice_id": "inv-1"}, "trace-1")
        records = [r for r in caplog.records if hasattr(r, "decision")]
        assert len(records) == 1
        decision = records[0].decision
        assert decision["variant_id"] == "v1"
        assert decision["trace_id"] == "trace-1"
        assert decision["strategy"] == "strategies.direct"

    def test_unregistered_strategy(self):
        manifest = _manifest(strategy={"address": "strategies.missing"})
        resolver = StrategyResolver(
            StaticManifestStore.from_manifests(manifest), build_default_registry()
        )
        with pytest.raises(UnknownStrategy):
            resolver.resolve(PROCESS, {}, {"invoice_id": "inv-1"}, "trace-1")

    def test_strategy_returning_none(self):
        strategies = StrategyRegistry()
        strategies.register("strategies.silent", lambda context, variants, args: None)
        manifest = _manifest(strategy={"address": "strategies.silent"})
        resolver = StrategyResolver(StaticManifestStore.from_manifests(manifest), strategies)
        with pytest.raises(InvalidStrategyResult, match="no variant"):
            resolver.resolve(PROCESS, {}, {"invoice_id": "inv-1"}, "trace-1")

    def test_strategy_returning_foreign_variant(self):
        from core.manifest import Variant

        strategies = StrategyRegistry()
        strategies.register(
            "strategies.rogue", lambda context, variants, args: Variant("v9", "elsewhere")
        )
        manifest = _manifest(strategy={"address": "strategies.rogue"})
        resolver = StrategyResolver(StaticManifestStore.from_manifests(manifest), strategies)
        with pytest.raises(InvalidStrategyResult, match="v9"):
            resolver.resolve(PROCESS, {}, {"invoice_id": "inv-1"}, "trace-1")

    def test_missing_context_attribute_is_invalid_input(self):
        manifest = _manifest(
            strategy={"address": "strategies.percentage_rollout"},
            variants=[
                {"id": "v1", "target": "billing.send_invoice.v1", "weight": 0.5},
                {"id": "v2", "target": "billing.send_invoice.v2", "weight": 0.5},
            ],
        )
        resolver = StrategyResolver(
            StaticManifestStore.from_manifests(manifest), build_default_registry()
        )
        with pytest.raises(InvalidInput) as exc_info:
            resolver.resolve(PROCESS, {}, {"invoice_id": "inv-1"}, "trace-1")
        assert exc_info.value.field == "caller_context.user_id"

    def test_strategy_misconfiguration_is_invalid_strategy_result(self):
        manifest = _manifest(
            strategy={"address": "strategies.attribute_filter",
                      "static_args": {"rules": [], "default_variant": "v7"}},
        )
        resolver = StrategyResolver(
            StaticManifestStore.from_manifests(manifest), build_default_registry()
        )
        with pytest.raises(InvalidStrategyResult, match="v7"):
            resolver.resolve(PROCESS, {}, {"invoice_id": "inv-1"}, "trace-1")


# ── Dispatcher ───────────────────────────────────────────────

class TestProcessDispatcher:
    def test_invokes_target_with_original_arguments(self, targets):
        dispatcher = _dispatcher(targets)
        input_args = {"invoice_id": "inv-1"}
        result = dispatcher.dispatch(PROCESS, {}, input_args, "trace-1")

        target = targets.get("billing.send_invoice.v1")
        assert result == "v1-result"
        assert target.calls == [({"invoice_id": "inv-1"}, "trace-1")]

    def test_variant_change_is_manifest_data(self, targets):
        manifest = _manifest(
            strategy={"address": "strategies.attribute_filter",
                      "static_args": {"default_variant": "v2"}},
        )
        result = _dispatcher(targets, manifest).dispatch(
            PROCESS, {}, {"invoice_id": "inv-1"}, "trace-1"
        )
        assert result == "v2-result"

    def test_unknown_process_before_any_target(self, targets):
        with pytest.raises(UnknownProcess) as exc_info:
            _dispatcher(targets).dispatch("nope/nothing", {}, {}, "trace-1")
        assert exc_info.value.to_dict() == {
            "error": "UnknownProcess",
            "process_name": "nope/nothing",
        }
        assert targets.get("billing.send_invoice.v1").calls == []

    def test_invalid_input_before_any_target(self, targets):
        with pytest.raises(InvalidInput) as exc_info:
            _dispatcher(targets).dispatch(PROCESS, {}, {"invoice_id": 7}, "trace-1")
        assert exc_info.value.field == "input_args.invoice_id"
        assert targets.get("billing.send_invoice.v1").calls == []

    def test_malformed_date_rejected_before_any_target(self, targets):
        manifest = _manifest(input_schema={
            "type": "object",
            "required": ["invoice_id", "due_on"],
            "properties": {
                "invoice_id": {"type": "string"},
                "due_on": {"type": "string", "format": "date"},
            },
        })
        with pytest.raises(InvalidInput) as exc_info:
            _dispatcher(targets, manifest).dispatch(
                PROCESS, {}, {"invoice_id": "inv-1", "due_on": "2026-02-30"}, "trace-1"
            )
        assert exc_info.value.field == "input_args.due_on"
        assert targets.get("billing.send_invoice.v1").calls == []

    def test_empty_trace_id_rejected(self, targets):
        with pytest.raises(InvalidInput) as exc_info:
            _dispatcher(targets).dispatch(PROCESS, {}, {"invoice_id": "inv-1"}, "")
        assert exc_info.value.field == "trace_id"

    def test_unknown_target_before_invocation(self):
        registry = TargetRegistry()
        with pytest.raises(UnknownTarget):
            _dispatcher(registry).dispatch(PROCESS, {}, {"invoice_id": "inv-1"}, "trace-1")

    def test_cancellation_before_invocation(self, targets):
        cancelled = threading.Event()
        cancelled.set()
        with pytest.raises(DispatchCancelled):
            _dispatcher(targets).dispatch(
                PROCESS, {}, {"invoice_id": "inv-1"}, "trace-1", cancellation=cancelled
            )
        assert targets.get("billing.send_invoice.v1").calls == []

    def test_unset_cancellation_does_not_interfere(self, targets):
        result = _dispatcher(targets).dispatch(
            PROCESS, {}, {"invoice_id": "inv-1"}, "trace-1", cancellation=threading.Event()
        )
        assert result == "v1-result"

    def test_target_failure_propagates_unchanged(self):
        class Boom(Exception):
            pass

        def failing(input_args, trace_id):
            raise Boom("provider down")

        registry = TargetRegistry()
        registry.register("billing.send_invoice.v1", failing)
        with pytest.raises(Boom, match="provider down"):
            _dispatcher(registry).dispatch(PROCESS, {}, {"invoice_id": "inv-1"}, "trace-1")
