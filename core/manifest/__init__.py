"""
Ledgerline Manifest Store — Public API
======================================
Versioned, validated routing configuration per process name.
"""

from core.manifest.errors import (
    InvalidSchemaDefinition,
    MalformedManifest,
    ManifestError,
)
from core.manifest.models import (
    Experiment,
    ProcessManifest,
    StrategyRef,
    Variant,
    manifest_from_dict,
)
from core.manifest.schema import (
    SchemaViolation,
    check_schema,
    validate_against_schema,
)
from core.manifest.store import (
    ManifestLoader,
    ManifestSnapshot,
    RefreshableManifestStore,
    StaticManifestStore,
    mapping_loader,
    yaml_directory_loader,
)

__all__ = [
    "Experiment",
    "InvalidSchemaDefinition",
    "MalformedManifest",
    "ManifestError",
    "ManifestLoader",
    "ManifestSnapshot",
    "ProcessManifest",
    "RefreshableManifestStore",
    "SchemaViolation",
    "StaticManifestStore",
    "StrategyRef",
    "Variant",
    "check_schema",
    "manifest_from_dict",
    "mapping_loader",
    "validate_against_schema",
    "yaml_directory_loader",
]
