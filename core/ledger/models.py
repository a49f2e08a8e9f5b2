"""
Ledgerline Ledger — Persistent Models
=====================================
Two tables back the DjangoEntityRepository:

    LedgerEntity        — current snapshot, one row per entity
    LedgerHistoryEntry  — one row per applied command, insert-only

RULES (NON-NEGOTIABLE):
- History rows are never updated or deleted
- Entity rows are never deleted; they change only through the
  repository's conditional UPDATE (version + status precondition)
- (entity, sequence) and event_id are unique

This file contains NO business logic.
"""

from django.db import models


class LedgerEntity(models.Model):
    entity_id = models.CharField(
        primary_key=True,
        max_length=255,
        help_text="Stable identifier of the entity.",
    )

    entity_type = models.CharField(
        max_length=100,
        help_text="Entity type, e.g. Contract or Task.",
    )

    status = models.CharField(
        max_length=64,
        help_text="Current state machine status.",
    )

    attributes = models.JSONField(
        default=dict,
        help_text="Current attribute values.",
    )

    version = models.PositiveIntegerField(
        help_text="Optimistic concurrency version. Equals the history length.",
    )

    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        db_table = "ledgerline_entity"
        ordering = ["entity_id"]
        indexes = [
            models.Index(
                fields=["entity_type", "status"],
                name="idx_entity_type_status",
            ),
            models.Index(
                fields=["updated_at"],
                name="idx_entity_updated_at",
            ),
        ]

    def save(self, *args, **kwargs):
        """
        GUARD: INSERT only. State changes go through the repository's
        conditional update so the version precondition is never skipped.
        """
        if not self._state.adding:
            raise PermissionError(
                "Ledger entities change only through a committed command."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise PermissionError("Ledger entities are never deleted.")

    def __str__(self):
        return f"{self.entity_type} {self.entity_id} ({self.status} v{self.version})"


class LedgerHistoryEntry(models.Model):
    entry_id = models.CharField(max_length=64, unique=True)

    entity = models.ForeignKey(
        LedgerEntity,
        on_delete=models.PROTECT,
        related_name="history",
    )

    sequence = models.PositiveIntegerField(
        help_text="1-based position in the entity's history.",
    )

    command = models.CharField(max_length=100)
    from_status = models.CharField(max_length=64, null=True, blank=True)
    to_status = models.CharField(max_length=64)
    occurred_at = models.DateTimeField()
    trace_id = models.CharField(max_length=255)
    actor_id = models.CharField(max_length=255)

    event_id = models.CharField(
        max_length=64,
        unique=True,
        help_text="Id of the event emitted for this entry. Used by reconciliation.",
    )

    event_type = models.CharField(max_length=255)
    context = models.JSONField(default=dict, blank=True)
    data = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "ledgerline_history_entry"
        ordering = ["entity_id", "sequence"]
        constraints = [
            models.UniqueConstraint(
                fields=("entity", "sequence"),
                name="uq_history_entity_sequence",
            ),
        ]
        indexes = [
            models.Index(
                fields=["occurred_at"],
                name="idx_history_occurred_at",
            ),
            models.Index(
                fields=["trace_id"],
                name="idx_history_trace",
            ),
        ]

    def save(self, *args, **kwargs):
        """GUARD: history is append-only."""
        if not self._state.adding:
            raise PermissionError("History entries are immutable.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise PermissionError("History entries are never deleted.")

    def __str__(self):
        return f"{self.entity_id}#{self.sequence} {self.command}"
