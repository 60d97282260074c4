from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('loan', '0001_initial'),
    ]

    operations = [
        migrations.AlterField(
            model_name='loan',
            name='principal_amount',
            field=models.DecimalField(decimal_places=8, max_digits=21),
        ),
        migrations.AlterField(
            model_name='loan',
            name='total_amount',
            field=models.DecimalField(decimal_places=8, max_digits=28),
        ),
        migrations.AlterField(
            model_name='loan',
            name='interest_rate',
            field=models.DecimalField(decimal_places=8, help_text='Annual rate in percent', max_digits=12),
        ),
        migrations.AlterField(
            model_name='loan',
            name='monthly_emi',
            field=models.DecimalField(decimal_places=8, max_digits=28),
        ),
        migrations.AlterField(
            model_name='payment',
            name='amount',
            field=models.DecimalField(decimal_places=8, max_digits=21),
        ),
    ]
