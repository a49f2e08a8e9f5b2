import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="LedgerEntity",
            fields=[
                (
                    "entity_id",
                    models.CharField(
                        help_text="Stable identifier of the entity.",
                        max_length=255,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "entity_type",
                    models.CharField(
                        help_text="Entity type, e.g. Contract or Task.",
                        max_length=100,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        help_text="Current state machine status.",
                        max_length=64,
                    ),
                ),
                (
                    "attributes",
                    models.JSONField(
                        default=dict,
                        help_text="Current attribute values.",
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        help_text="Optimistic concurrency version. Equals the history length.",
                    ),
                ),
                ("created_at", models.DateTimeField()),
                ("updated_at", models.DateTimeField()),
            ],
            options={
                "db_table": "ledgerline_entity",
                "ordering": ["entity_id"],
                "indexes": [
                    models.Index(
                        fields=["entity_type", "status"],
                        name="idx_entity_type_status",
                    ),
                    models.Index(
                        fields=["updated_at"],
                        name="idx_entity_updated_at",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="LedgerHistoryEntry",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("entry_id", models.CharField(max_length=64, unique=True)),
                (
                    "sequence",
                    models.PositiveIntegerField(
                        help_text="1-based position in the entity's history.",
                    ),
                ),
                ("command", models.CharField(max_length=100)),
                (
                    "from_status",
                    models.CharField(blank=True, max_length=64, null=True),
                ),
                ("to_status", models.CharField(max_length=64)),
                ("occurred_at", models.DateTimeField()),
                ("trace_id", models.CharField(max_length=255)),
                ("actor_id", models.CharField(max_length=255)),
                (
                    "event_id",
                    models.CharField(
                        help_text="Id of the event emitted for this entry. Used by reconciliation.",
                        max_length=64,
                        unique=True,
                    ),
                ),
                ("event_type", models.CharField(max_length=255)),
                ("context", models.JSONField(blank=True, default=dict)),
                ("data", models.JSONField(blank=True, default=dict)),
                (
                    "entity",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="history",
                        to="ledger.ledgerentity",
                    ),
                ),
            ],
            options={
                "db_table": "ledgerline_history_entry",
                "ordering": ["entity_id", "sequence"],
                "indexes": [
                    models.Index(
                        fields=["occurred_at"],
                        name="idx_history_occurred_at",
                    ),
                    models.Index(
                        fields=["trace_id"],
                        name="idx_history_trace",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("entity", "sequence"),
                        name="uq_history_entity_sequence",
                    ),
                ],
            },
        ),
    ]
