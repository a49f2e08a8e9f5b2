"""
Ledgerline Dispatch — Trace Identifiers
=======================================
A trace_id is created once at the first ingestion point and then
passed through unchanged: dispatcher → resolver → target → command
handlers → history entries → event envelopes.
"""

from __future__ import annotations

import uuid


def new_trace_id() -> str:
    """Fresh opaque trace id for an ingestion point."""
    return uuid.uuid4().hex


def is_valid_trace_id(trace_id: object) -> bool:
    return isinstance(trace_id, str) and bool(trace_id.strip())
