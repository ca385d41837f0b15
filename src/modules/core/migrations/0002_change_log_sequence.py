from django.db import migrations, models


def backfill_sequences(apps, schema_editor):
    ChangeLogEntry = apps.get_model("core", "ChangeLogEntry")
    ChangeLogCounter = apps.get_model("core", "ChangeLogCounter")

    last = {}
    for entry in ChangeLogEntry.objects.order_by("id").iterator():
        last[entry.topic] = last.get(entry.topic, 0) + 1
        ChangeLogEntry.objects.filter(pk=entry.pk).update(sequence=last[entry.topic])

    ChangeLogCounter.objects.bulk_create(
        ChangeLogCounter(topic=topic, value=value) for topic, value in last.items()
    )


class Migration(migrations.Migration):
    dependencies = [
        ("core", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="ChangeLogCounter",
            fields=[
                ("topic", models.CharField(max_length=100, primary_key=True, serialize=False)),
                ("value", models.PositiveBigIntegerField(default=0)),
            ],
            options={
                "db_table": "change_log_counter",
            },
        ),
        migrations.AddField(
            model_name="changelogentry",
            name="sequence",
            field=models.PositiveBigIntegerField(default=0, editable=False),
            preserve_default=False,
        ),
        migrations.RunPython(backfill_sequences, migrations.RunPython.noop),
        migrations.RemoveIndex(
            model_name="changelogentry",
            name="change_log_topic_id_idx",
        ),
        migrations.AddConstraint(
            model_name="changelogentry",
            constraint=models.UniqueConstraint(
                fields=("topic", "sequence"),
                name="change_log_topic_sequence_uniq",
            ),
        ),
        migrations.AlterModelOptions(
            name="changelogentry",
            options={"ordering": ["sequence", "id"]},
        ),
    ]
