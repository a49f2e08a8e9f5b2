"""
Ledgerline Manifest Store — Versioned Snapshots
===============================================
The routing manifest is injected configuration, never ambient state.

A ManifestSnapshot is an immutable, versioned view of every
manifest. The resolver takes ONE snapshot per request, so a refresh
can never change routing half-way through a dispatch.

Refresh contract:
- current() returns the loaded snapshot, loading on first use
- invalidate() drops it; the next current() reloads from the loader
- refresh() reloads immediately and returns the new snapshot
- a failed reload keeps the previous snapshot and re-raises
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Iterable, Mapping, Optional

import yaml

from core.manifest.errors import ManifestError, MalformedManifest
from core.manifest.models import ProcessManifest, manifest_from_dict

logger = logging.getLogger("ledgerline.manifest")


# ══════════════════════════════════════════════════════════════
# SNAPSHOT
# ══════════════════════════════════════════════════════════════

def _compute_version(manifests: Mapping[str, ProcessManifest]) -> str:
    canonical = json.dumps(
        [manifests[name].to_dict() for name in sorted(manifests)],
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class ManifestSnapshot:
    """
    Immutable set of manifests keyed by process name.

    version is the SHA-256 of the canonical JSON of all records, so
    identical configuration always yields the same version.
    """

    version: str
    manifests: Mapping[str, ProcessManifest]

    @classmethod
    def build(cls, manifests: Iterable[ProcessManifest]) -> "ManifestSnapshot":
        by_name: dict[str, ProcessManifest] = {}
        for manifest in manifests:
            if manifest.process_name in by_name:
                raise MalformedManifest(
                    manifest.process_name, "process name declared twice."
                )
            by_name[manifest.process_name] = manifest
        return cls(version=_compute_version(by_name), manifests=by_name)

    def get(self, process_name: str) -> Optional[ProcessManifest]:
        return self.manifests.get(process_name)

    def process_names(self) -> tuple[str, ...]:
        return tuple(sorted(self.manifests))

    def __len__(self) -> int:
        return len(self.manifests)


# ══════════════════════════════════════════════════════════════
# LOADERS
# ══════════════════════════════════════════════════════════════

ManifestLoader = Callable[[], ManifestSnapshot]


def mapping_loader(records: Mapping[str, Mapping[str, Any]]) -> ManifestLoader:
    """Loader over in-memory raw records, keyed by process name."""

    def load() -> ManifestSnapshot:
        return ManifestSnapshot.build(
            manifest_from_dict(name, record) for name, record in records.items()
        )

    return load


def yaml_directory_loader(root: Path | str) -> ManifestLoader:
    """
    Loader over a directory tree of YAML files.

    <root>/lifecycle_management/handle-price-increase.yaml
        → process 'lifecycle_management/handle-price-increase'
    """
    root_path = Path(root)

    def load() -> ManifestSnapshot:
        if not root_path.is_dir():
            raise ManifestError(f"Manifest directory '{root_path}' does not exist.")

        manifests = []
        for path in sorted(root_path.rglob("*.yaml")):
            process_name = path.relative_to(root_path).with_suffix("").as_posix()
            try:
                record = yaml.safe_load(path.read_text(encoding="utf-8"))
            except yaml.YAMLError as exc:
                raise MalformedManifest(process_name, f"invalid YAML: {exc}") from exc
            manifests.append(manifest_from_dict(process_name, record or {}))

        snapshot = ManifestSnapshot.build(manifests)
        logger.info(
            f"Loaded {len(snapshot)} manifests from {root_path} "
            f"(version {snapshot.version[:12]})"
        )
        return snapshot

    return load


# ══════════════════════════════════════════════════════════════
# STORES
# ══════════════════════════════════════════════════════════════

class StaticManifestStore:
    """Holds one snapshot forever. Used by tests and fixed deployments."""

    def __init__(self, snapshot: ManifestSnapshot):
        self._snapshot = snapshot

    @classmethod
    def from_manifests(cls, *manifests: ProcessManifest) -> "StaticManifestStore":
        return cls(ManifestSnapshot.build(manifests))

    def current(self) -> ManifestSnapshot:
        return self._snapshot


class RefreshableManifestStore:
    """Lazily loaded snapshot with explicit invalidation."""

    def __init__(self, loader: ManifestLoader):
        self._loader = loader
        self._snapshot: Optional[ManifestSnapshot] = None
        self._lock = Lock()

    def current(self) -> ManifestSnapshot:
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self._loader()
            return self._snapshot

    def invalidate(self) -> None:
        with self._lock:
            self._snapshot = None
        logger.info("Manifest snapshot invalidated")

    def refresh(self) -> ManifestSnapshot:
        with self._lock:
            previous = self._snapshot
            try:
                self._snapshot = self._loader()
            except ManifestError:
                self._snapshot = previous
                logger.error("Manifest refresh failed; keeping previous snapshot", exc_info=True)
                raise
            if previous is None or previous.version != self._snapshot.version:
                logger.info(f"Manifest snapshot now at version {self._snapshot.version[:12]}")
            return self._snapshot
