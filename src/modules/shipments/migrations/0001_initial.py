import django.core.validators
import django.db.models.deletion
import uuid6
from django.db import migrations, models


STATUS_CHOICES = [
    ("Order Created", "Order Created"),
    ("Shipment Picked Up", "Shipment Picked Up"),
    ("Arrived at Hub", "Arrived at Hub"),
    ("Departed from Hub", "Departed from Hub"),
    ("In Transit", "In Transit"),
    ("Arrived at Destination Facility", "Arrived at Destination Facility"),
    ("Out for Delivery", "Out for Delivery"),
    ("Delivered", "Delivered"),
    ("On Hold", "On Hold"),
]


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Shipment",
            fields=[
                (
                    "tracking_number",
                    models.CharField(
                        editable=False,
                        max_length=11,
                        primary_key=True,
                        serialize=False,
                        validators=[
                            django.core.validators.RegexValidator("^OM[0-9]{9}\\Z")
                        ],
                    ),
                ),
                (
                    "current_status",
                    models.CharField(
                        choices=STATUS_CHOICES, default="Order Created", max_length=40
                    ),
                ),
                ("estimated_delivery", models.CharField(max_length=40)),
                ("origin", models.CharField(max_length=120)),
                ("destination", models.CharField(max_length=120)),
                (
                    "weight",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=8,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                ("dimensions", models.CharField(blank=True, max_length=60, null=True)),
                (
                    "piece_count",
                    models.PositiveIntegerField(
                        blank=True,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(1)],
                    ),
                ),
                (
                    "shipment_type",
                    models.CharField(
                        choices=[
                            ("Parcel", "Parcel"),
                            ("Document", "Document"),
                            ("Pallet", "Pallet"),
                            ("Container", "Container"),
                        ],
                        default="Parcel",
                        max_length=20,
                    ),
                ),
                ("version", models.PositiveIntegerField(default=1)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "shipments",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["current_status"], name="shipments_status_idx"),
                    models.Index(fields=["-created_at"], name="shipments_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TrackingEvent",
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
                ("status", models.CharField(choices=STATUS_CHOICES, max_length=40)),
                ("location", models.CharField(max_length=120)),
                ("timestamp", models.CharField(max_length=40)),
                ("details", models.TextField(blank=True, default="")),
                (
                    "shipment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="history",
                        to="shipments.shipment",
                    ),
                ),
            ],
            options={
                "db_table": "shipment_tracking_events",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(
                        fields=["shipment", "-created_at"],
                        name="ste_shipment_created_idx",
                    ),
                ],
            },
        ),
    ]
