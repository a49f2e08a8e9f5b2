"""
Tests for core.manifest — manifest models, input schema and stores.
"""

from pathlib import Path

import pytest

from core.manifest import (
    InvalidSchemaDefinition,
    MalformedManifest,
    ManifestError,
    ManifestSnapshot,
    RefreshableManifestStore,
    StaticManifestStore,
    check_schema,
    manifest_from_dict,
    mapping_loader,
    validate_against_schema,
    yaml_directory_loader,
)

REPO_MANIFESTS = Path(__file__).resolve().parents[2] / "manifests"


def _record(**overrides):
    record = {
        "description": "Demo",
        "owner": "team-a",
        "input_schema": {
            "type": "object",
            "required": ["contract_id"],
            "properties": {"contract_id": {"type": "string"}},
        },
        "strategy": {"address": "strategies.direct"},
        "variants": [{"id": "v1", "target": "demo.v1"}],
    }
    record.update(overrides)
    return record


# ── Models ───────────────────────────────────────────────────

class TestManifestFromDict:
    def test_builds_manifest(self):
        manifest = manifest_from_dict("demo/process", _record())
        assert manifest.process_name == "demo/process"
        assert manifest.strategy.address == "strategies.direct"
        assert manifest.variant_ids == frozenset({"v1"})
        assert manifest.get_variant("v1").target == "demo.v1"
        assert manifest.experiment is None

    def test_experiment_parsed(self):
        manifest = manifest_from_dict(
            "demo/process",
            _record(experiment={"experiment_id": "exp-1", "started_on": "2026-09-01",
                                "metrics": ["m1"]}),
        )
        assert manifest.experiment.experiment_id == "exp-1"
        assert manifest.experiment.started_on.isoformat() == "2026-09-01"
        assert manifest.experiment.metrics == ("m1",)

    def test_at_least_one_variant(self):
        with pytest.raises(MalformedManifest, match="at least one variant"):
            manifest_from_dict("demo/process", _record(variants=[]))

    def test_duplicate_variant_ids(self):
        variants = [{"id": "v1", "target": "a"}, {"id": "v1", "target": "b"}]
        with pytest.raises(MalformedManifest, match="duplicate variant id"):
            manifest_from_dict("demo/process", _record(variants=variants))

    def test_weight_out_of_range(self):
        variants = [{"id": "v1", "target": "a", "weight": 1.5}]
        with pytest.raises(MalformedManifest, match="outside"):
            manifest_from_dict("demo/process", _record(variants=variants))

    def test_weights_all_or_none(self):
        variants = [{"id": "v1", "target": "a", "weight": 0.5}, {"id": "v2", "target": "b"}]
        with pytest.raises(MalformedManifest, match="every variant"):
            manifest_from_dict("demo/process", _record(variants=variants))

    def test_weights_sum_at_most_one(self):
        variants = [
            {"id": "v1", "target": "a", "weight": 0.7},
            {"id": "v2", "target": "b", "weight": 0.4},
        ]
        with pytest.raises(MalformedManifest, match="sum"):
            manifest_from_dict("demo/process", _record(variants=variants))

    def test_strategy_address_required(self):
        with pytest.raises(MalformedManifest, match="strategy address"):
            manifest_from_dict("demo/process", _record(strategy={"static_args": {}}))

    def test_unsupported_schema_keyword(self):
        with pytest.raises(MalformedManifest, match="unsupported keywords"):
            manifest_from_dict("demo/process", _record(input_schema={"pattern": "x"}))

    def test_malformed_error_is_structured(self):
        with pytest.raises(MalformedManifest) as exc_info:
            manifest_from_dict("demo/process", _record(variants="v1"))
        assert exc_info.value.to_dict() == {
            "error": "MalformedManifest",
            "process_name": "demo/process",
            "detail": "variants must be a list.",
        }


# ── Schema ───────────────────────────────────────────────────

class TestInputSchema:
    SCHEMA = {
        "type": "object",
        "required": ["contract_id", "new_monthly_fee"],
        "additionalProperties": False,
        "properties": {
            "contract_id": {"type": "string", "minLength": 1},
            "new_monthly_fee": {"type": "number", "minimum": 0},
            "tags": {"type": "array", "items": {"type": "string"}},
        },
    }

    def test_conforming_value(self):
        value = {"contract_id": "c-1", "new_monthly_fee": 42, "tags": ["x"]}
        assert validate_against_schema(value, self.SCHEMA, "input_args") is None

    def test_missing_required(self):
        violation = validate_against_schema({"contract_id": "c-1"}, self.SCHEMA, "input_args")
        assert violation.field == "input_args.new_monthly_fee"
        assert violation.reason == "is required"

    def test_wrong_type(self):
        violation = validate_against_schema(
            {"contract_id": "c-1", "new_monthly_fee": "42"}, self.SCHEMA, "input_args"
        )
        assert violation.field == "input_args.new_monthly_fee"
        assert "expected number" in violation.reason

    def test_booleans_are_not_numbers(self):
        violation = validate_against_schema(
            {"contract_id": "c-1", "new_monthly_fee": True}, self.SCHEMA, "input_args"
        )
        assert violation.field == "input_args.new_monthly_fee"

    def test_minimum(self):
        violation = validate_against_schema(
            {"contract_id": "c-1", "new_monthly_fee": -1}, self.SCHEMA, "input_args"
        )
        assert violation.reason == "must be >= 0"

    def test_additional_properties_rejected(self):
        violation = validate_against_schema(
            {"contract_id": "c-1", "new_monthly_fee": 1, "extra": 1}, self.SCHEMA, "input_args"
        )
        assert violation.field == "input_args.extra"

    def test_array_items(self):
        violation = validate_against_schema(
            {"contract_id": "c-1", "new_monthly_fee": 1, "tags": ["a", 2]},
            self.SCHEMA,
            "input_args",
        )
        assert violation.field == "input_args.tags[1]"

    def test_unknown_type_rejected_at_load(self):
        with pytest.raises(InvalidSchemaDefinition, match="unknown type"):
            check_schema({"type": "date"})

    @pytest.mark.parametrize("value", ["2026-02-30", "not-a-date", "20261201", "2026-W49-1"])
    def test_date_format(self, value):
        schema = {"type": "string", "format": "date"}
        assert validate_against_schema("2026-12-01", schema, "input_args.on") is None
        violation = validate_against_schema(value, schema, "input_args.on")
        assert violation.field == "input_args.on"
        assert "ISO date" in violation.reason

    def test_exclusive_minimum(self):
        schema = {"type": "number", "exclusiveMinimum": 0}
        assert validate_against_schema(0.01, schema, "fee") is None
        assert validate_against_schema(0, schema, "fee").reason == "must be > 0"

    def test_unknown_format_rejected_at_load(self):
        with pytest.raises(InvalidSchemaDefinition, match="unknown format"):
            check_schema({"type": "string", "format": "email"})


# ── Stores ───────────────────────────────────────────────────

class TestManifestSnapshot:
    def test_version_is_content_hash(self):
        first = ManifestSnapshot.build([manifest_from_dict("demo/a", _record())])
        second = ManifestSnapshot.build([manifest_from_dict("demo/a", _record())])
        changed = ManifestSnapshot.build(
            [manifest_from_dict("demo/a", _record(owner="team-b"))]
        )
        assert first.version == second.version
        assert first.version != changed.version

    def test_duplicate_process_name(self):
        manifest = manifest_from_dict("demo/a", _record())
        with pytest.raises(MalformedManifest, match="declared twice"):
            ManifestSnapshot.build([manifest, manifest])

    def test_static_store(self):
        store = StaticManifestStore.from_manifests(manifest_from_dict("demo/a", _record()))
        assert store.current().process_names() == ("demo/a",)


class TestRefreshableManifestStore:
    def test_loads_lazily_and_refreshes(self):
        records = {"demo/a": _record()}
        store = RefreshableManifestStore(mapping_loader(records))
        assert store.current().process_names() == ("demo/a",)

        records["demo/b"] = _record()
        assert store.current().process_names() == ("demo/a",)
        assert store.refresh().process_names() == ("demo/a", "demo/b")

    def test_failed_refresh_keeps_previous_snapshot(self):
        records = {"demo/a": _record()}
        store = RefreshableManifestStore(mapping_loader(records))
        previous = store.current()

        records["demo/b"] = _record(variants=[])
        with pytest.raises(MalformedManifest):
            store.refresh()
        assert store.current() is previous

    def test_invalidate_forces_reload(self):
        records = {"demo/a": _record()}
        store = RefreshableManifestStore(mapping_loader(records))
        store.current()
        records["demo/b"] = _record()
        store.invalidate()
        assert len(store.current()) == 2


class TestYamlDirectoryLoader:
    def test_process_name_from_relative_path(self, tmp_path):
        (tmp_path / "billing").mkdir()
        (tmp_path / "billing" / "send-invoice.yaml").write_text(
            "strategy:\n  address: strategies.direct\n"
            "variants:\n  - id: v1\n    target: billing.send_invoice.v1\n",
            encoding="utf-8",
        )
        snapshot = yaml_directory_loader(tmp_path)()
        assert snapshot.process_names() == ("billing/send-invoice",)

    def test_invalid_yaml(self, tmp_path):
        (tmp_path / "broken.yaml").write_text("variants: [\n", encoding="utf-8")
        with pytest.raises(MalformedManifest, match="invalid YAML"):
            yaml_directory_loader(tmp_path)()

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ManifestError, match="does not exist"):
            yaml_directory_loader(tmp_path / "nope")()

    def test_repository_manifests_load(self):
        snapshot = yaml_directory_loader(REPO_MANIFESTS)()
        manifest = snapshot.get("lifecycle_management/handle-price-increase")
        assert manifest is not None
        assert manifest.strategy.address == "strategies.percentage_rollout"
        assert [(v.variant_id, v.weight) for v in manifest.variants] == [
            ("v1", 0.8),
            ("v2", 0.2),
        ]
        assert manifest.experiment.experiment_id == "price-increase-ai-agent"
