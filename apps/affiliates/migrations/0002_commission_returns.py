# Generated manually for commission returns

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    """
    Return rows share the order id of their sale: uniqueness moves to
    (order_id, type), the click becomes optional and returns point at the sale.
    """

    dependencies = [
        ("affiliates", "0001_initial"),
    ]

    operations = [
        migrations.AlterField(
            model_name="commissiontransaction",
            name="order_id",
            field=models.CharField(max_length=100),
        ),
        migrations.AlterField(
            model_name="commissiontransaction",
            name="click",
            field=models.OneToOneField(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.PROTECT,
                related_name="commission_transaction",
                to="affiliates.referralclick",
            ),
        ),
        migrations.AddField(
            model_name="commissiontransaction",
            name="parent",
            field=models.ForeignKey(
                blank=True,
                help_text="Sale this return claws back",
                null=True,
                on_delete=django.db.models.deletion.PROTECT,
                related_name="returns",
                to="affiliates.commissiontransaction",
            ),
        ),
        migrations.AddConstraint(
            model_name="commissiontransaction",
            constraint=models.UniqueConstraint(fields=("order_id", "type"), name="affiliate_txn_order_type_unique"),
        ),
    ]
