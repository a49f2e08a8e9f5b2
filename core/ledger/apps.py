"""
Ledgerline Core — Ledger App Configuration
==========================================
Persistent storage for ledger-owned entities and their history.

This app:
- Stores the current snapshot of each entity
- Stores the append-only history of applied commands

This app does NOT:
- Decide which transitions are legal (core.ledger.handler)
- Emit events (core.events)
"""

from django.apps import AppConfig


class LedgerConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core.ledger"
    label = "ledger"
    verbose_name = "Ledgerline Entity Ledger"
