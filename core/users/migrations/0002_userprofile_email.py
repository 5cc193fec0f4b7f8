from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("users", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="userprofile",
            name="email",
            field=models.EmailField(
                blank=True,
                help_text="Normalized sign-in email, unique across accounts.",
                max_length=254,
                null=True,
                unique=True,
            ),
        ),
    ]
