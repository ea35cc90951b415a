from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("cases", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="AllocationRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "allocated_by_name",
                    models.CharField(
                        help_text="Display name of the acting user at the time of allocation.",
                        max_length=301,
                        verbose_name="Allocated By (name)",
                    ),
                ),
                ("reason", models.TextField(blank=True, default="", verbose_name="Reason")),
                (
                    "method",
                    models.CharField(
                        choices=[
                            ("self_assign", "Self-Assigned"),
                            ("rotation", "Rotation"),
                            ("fallback_self_assign", "Self-Assigned (empty pool fallback)"),
                            ("manual", "Manual Reassignment"),
                        ],
                        max_length=24,
                        verbose_name="Method",
                    ),
                ),
                ("policy_version", models.CharField(max_length=32, verbose_name="Policy Version")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Allocated At")),
                (
                    "allocated_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Allocated By",
                    ),
                ),
                (
                    "case",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="allocation_records",
                        to="cases.case",
                        verbose_name="Case",
                    ),
                ),
                (
                    "new_receiver",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="New Receiver",
                    ),
                ),
                (
                    "previous_receiver",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Previous Receiver",
                    ),
                ),
            ],
            options={
                "verbose_name": "Allocation Record",
                "verbose_name_plural": "Allocation Records",
                "ordering": ["pk"],
            },
        ),
        migrations.CreateModel(
            name="RotationCursor",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "bucket",
                    models.CharField(
                        choices=[
                            ("general", "General"),
                            ("developer_first", "Developer First Registration"),
                            ("developer_transfer", "Developer Transfer"),
                            ("state_owned", "State-Owned"),
                        ],
                        max_length=32,
                        unique=True,
                        verbose_name="Bucket",
                    ),
                ),
                (
                    "position",
                    models.PositiveBigIntegerField(
                        default=0,
                        help_text="Number of rotated allocations made in this bucket.",
                        verbose_name="Position",
                    ),
                ),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                (
                    "last_receiver",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Last Receiver",
                    ),
                ),
            ],
            options={
                "verbose_name": "Rotation Cursor",
                "verbose_name_plural": "Rotation Cursors",
            },
        ),
    ]
