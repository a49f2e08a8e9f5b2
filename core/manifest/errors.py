"""
Ledgerline Manifest Store — Errors
==================================
Configuration errors. Surfaced synchronously, never retried;
they need a reviewed manifest change to fix.
"""


class ManifestError(Exception):
    """Base error for manifest loading and validation."""
    pass


class MalformedManifest(ManifestError):
    """A manifest record violates its structural invariants."""

    def __init__(self, process_name: str, detail: str):
        self.process_name = process_name
        self.detail = detail
        super().__init__(f"Manifest '{process_name}' is malformed: {detail}")

    def to_dict(self) -> dict:
        return {
            "error": "MalformedManifest",
            "process_name": self.process_name,
            "detail": self.detail,
        }


class InvalidSchemaDefinition(ManifestError):
    """An input schema uses an unsupported or inconsistent construct."""

    def __init__(self, path: str, detail: str):
        self.path = path
        self.detail = detail
        super().__init__(f"Invalid schema at '{path}': {detail}")
