"""
Tests for core.bootstrap — startup self-check and platform wiring.
"""

from pathlib import Path

import pytest

from core.bootstrap import SystemBootstrapError, build_platform, run_bootstrap_checks
from core.config import PlatformSettings
from core.dispatch import TargetRegistry
from core.events.sinks import InMemoryEventSink, NullEventSink
from core.manifest import StaticManifestStore, manifest_from_dict
from core.strategies import build_default_registry

REPO_MANIFESTS = Path(__file__).resolve().parents[2] / "manifests"


def _snapshot(strategy, variants):
    manifest = manifest_from_dict(
        "demo/process", {"strategy": strategy, "variants": variants}
    )
    return StaticManifestStore.from_manifests(manifest).current()


def _targets(*addresses):
    registry = TargetRegistry()
    for address in addresses:
        registry.register(address, lambda input_args, trace_id: None)
    return registry


class TestBootstrapChecks:
    def test_consistent_wiring_passes(self):
        snapshot = _snapshot({"address": "strategies.direct"}, [{"id": "v1", "target": "demo.v1"}])
        run_bootstrap_checks(snapshot, build_default_registry(), _targets("demo.v1"))

    def test_unregistered_strategy(self):
        snapshot = _snapshot({"address": "strategies.oracle"}, [{"id": "v1", "target": "demo.v1"}])
        with pytest.raises(SystemBootstrapError) as exc_info:
            run_bootstrap_checks(snapshot, build_default_registry(), _targets("demo.v1"))
        assert exc_info.value.invariant == "STRATEGY_REGISTERED"

    def test_unregistered_target(self):
        snapshot = _snapshot({"address": "strategies.direct"}, [{"id": "v1", "target": "demo.v1"}])
        with pytest.raises(SystemBootstrapError) as exc_info:
            run_bootstrap_checks(snapshot, build_default_registry(), _targets())
        assert exc_info.value.invariant == "TARGET_REGISTERED"
        assert "demo.v1" in exc_info.value.detail

    def test_default_variant_must_be_declared(self):
        snapshot = _snapshot(
            {"address": "strategies.attribute_filter",
             "static_args": {"default_variant": "v9"}},
            [{"id": "v1", "target": "demo.v1"}],
        )
        with pytest.raises(SystemBootstrapError) as exc_info:
            run_bootstrap_checks(snapshot, build_default_registry(), _targets("demo.v1"))
        assert exc_info.value.invariant == "STRATEGY_ARGUMENTS"

    def test_rule_must_be_mapping(self):
        snapshot = _snapshot(
            {"address": "strategies.attribute_filter",
             "static_args": {"default_variant": "v1", "rules": ["v1"]}},
            [{"id": "v1", "target": "demo.v1"}],
        )
        with pytest.raises(SystemBootstrapError, match="must be a mapping"):
            run_bootstrap_checks(snapshot, build_default_registry(), _targets("demo.v1"))

    def test_rollout_needs_weights(self):
        snapshot = _snapshot(
            {"address": "strategies.percentage_rollout"},
            [{"id": "v1", "target": "demo.v1"}],
        )
        with pytest.raises(SystemBootstrapError, match="no weight"):
            run_bootstrap_checks(snapshot, build_default_registry(), _targets("demo.v1"))

    def test_bandit_needs_namespace(self):
        snapshot = _snapshot({"address": "strategies.bandit"}, [{"id": "v1", "target": "demo.v1"}])
        with pytest.raises(SystemBootstrapError, match="namespace"):
            run_bootstrap_checks(snapshot, build_default_registry(), _targets("demo.v1"))

    def test_error_is_structured(self):
        error = SystemBootstrapError("TARGET_REGISTERED", "missing")
        assert error.to_dict() == {
            "error": "SystemBootstrapError",
            "invariant": "TARGET_REGISTERED",
            "detail": "missing",
        }


class TestBuildPlatform:
    def test_wires_repository_manifests(self):
        platform = build_platform(
            PlatformSettings(manifest_dir=str(REPO_MANIFESTS)),
            event_sink=InMemoryEventSink(),
            trigger_sink=InMemoryEventSink(),
        )
        snapshot = platform.manifests.current()
        assert "lifecycle_management/handle-price-increase" in snapshot.process_names()
        assert platform.targets.is_registered("lifecycle_management.handle_price_increase.v1")
        assert platform.runtime.max_attempts == 3
        assert not platform.task_service.allows_direct_completion

    def test_settings_flow_into_components(self):
        platform = build_platform(
            PlatformSettings(command_max_attempts=5, task_allow_direct_completion=True),
            event_sink=NullEventSink(),
            trigger_sink=NullEventSink(),
        )
        assert platform.runtime.max_attempts == 5
        assert platform.task_service.allows_direct_completion
        assert platform.manifests.current().process_names() == ()

    def test_missing_sink_urls_fall_back_to_null_sinks(self, caplog):
        build_platform(PlatformSettings())
        assert "No event sink URL configured" in caplog.text

    def test_dangling_manifest_refuses_to_start(self):
        manifest = manifest_from_dict(
            "demo/process",
            {"strategy": {"address": "strategies.direct"},
             "variants": [{"id": "v1", "target": "demo.nowhere"}]},
        )
        with pytest.raises(SystemBootstrapError):
            build_platform(
                PlatformSettings(),
                manifests=StaticManifestStore.from_manifests(manifest),
                event_sink=NullEventSink(),
                trigger_sink=NullEventSink(),
            )


@pytest.mark.django_db
def test_persistence_checks_pass_after_migrations():
    from core.ledger.django_repository import DjangoEntityRepository

    platform = build_platform(
        PlatformSettings(),
        repository=DjangoEntityRepository(),
        event_sink=NullEventSink(),
        trigger_sink=NullEventSink(),
        check_persistence=True,
    )
    assert isinstance(platform.repository, DjangoEntityRepository)
