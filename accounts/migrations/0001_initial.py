"""Create the principal (auth) table."""

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Principal",
            fields=[
                (
                    "id",
                    models.CharField(max_length=150, primary_key=True, serialize=False),
                ),
                (
                    "scheme",
                    models.CharField(
                        choices=[("BASIC", "Basic (password)")],
                        default="BASIC",
                        max_length=20,
                    ),
                ),
                ("secret_data", models.TextField()),
            ],
            options={
                "verbose_name": "principal",
                "verbose_name_plural": "principals",
                "db_table": "auth",
                "ordering": ["id"],
            },
        ),
    ]
