from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Case",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("case_number", models.CharField(max_length=64, unique=True, verbose_name="Case Number")),
                (
                    "case_type",
                    models.CharField(
                        choices=[
                            ("general", "General"),
                            ("complex", "Complex"),
                            ("special", "Special"),
                            ("partition_transfer", "Partition / Transfer"),
                            ("self_built_house", "Self-Built House"),
                            ("developer_first", "Developer First Registration"),
                            ("developer_transfer", "Developer Transfer"),
                            ("developer_transfer_registration", "Developer Transfer Registration"),
                            ("state_owned_enterprise", "State-Owned Enterprise"),
                            ("enterprise", "Enterprise"),
                            ("other", "Other"),
                        ],
                        db_index=True,
                        max_length=40,
                        verbose_name="Case Type",
                    ),
                ),
                ("case_date", models.DateField(verbose_name="Case Date")),
                ("requesting_party", models.CharField(blank=True, default="", max_length=255, verbose_name="Requesting Party")),
                ("agent", models.CharField(blank=True, default="", max_length=255, verbose_name="Agent")),
                ("contact_phone", models.CharField(blank=True, default="", max_length=32, verbose_name="Contact Phone")),
                ("developer_name", models.CharField(blank=True, default="", max_length=255, verbose_name="Developer")),
                ("description", models.TextField(blank=True, default="", verbose_name="Description")),
                ("allocated_at", models.DateTimeField(blank=True, null=True, verbose_name="Allocated At")),
                ("completed_at", models.DateTimeField(blank=True, null=True, verbose_name="Completed At")),
                (
                    "created_by",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="created_cases",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Created By",
                    ),
                ),
                (
                    "receiver",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="received_cases",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Current Receiver",
                    ),
                ),
            ],
            options={
                "verbose_name": "Case",
                "verbose_name_plural": "Cases",
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["case_type", "created_at"], name="cases_case_type_created_idx")],
            },
        ),
    ]
