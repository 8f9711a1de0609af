import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("donations", "0001_initial"),
        ("installments", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="donationpayment",
            name="installment",
            field=models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.PROTECT,
                related_name="payments",
                to="installments.installment",
            ),
        ),
    ]
