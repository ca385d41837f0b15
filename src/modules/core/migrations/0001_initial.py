import uuid6
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ChangeLogEntry",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid6.uuid7,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("topic", models.CharField(max_length=100)),
                ("kind", models.CharField(max_length=20)),
                ("aggregate_id", models.CharField(max_length=255)),
                ("version", models.PositiveIntegerField(default=0)),
                ("payload", models.JSONField(blank=True, default=None, null=True)),
            ],
            options={
                "db_table": "change_log",
                "ordering": ["id"],
                "indexes": [
                    models.Index(fields=["topic", "id"], name="change_log_topic_id_idx"),
                    models.Index(fields=["aggregate_id"], name="change_log_aggregate_idx"),
                ],
            },
        ),
    ]
