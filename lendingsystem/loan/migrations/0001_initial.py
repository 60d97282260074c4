import django.db.models.deletion
import django.utils.timezone
import loan.models
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('customer', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Loan',
            fields=[
                ('loan_id', models.CharField(default=loan.models.generate_id, editable=False, max_length=36, primary_key=True, serialize=False)),
                ('principal_amount', models.DecimalField(decimal_places=2, max_digits=14)),
                ('total_amount', models.DecimalField(decimal_places=8, max_digits=20)),
                ('interest_rate', models.DecimalField(decimal_places=4, help_text='Annual rate in percent', max_digits=9)),
                ('loan_period_years', models.PositiveIntegerField()),
                ('monthly_emi', models.DecimalField(decimal_places=8, max_digits=20)),
                ('status', models.CharField(choices=[('ACTIVE', 'Active'), ('PAID_OFF', 'Paid off')], default='ACTIVE', max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('customer', models.ForeignKey(db_constraint=False, on_delete=django.db.models.deletion.DO_NOTHING, related_name='loans', to='customer.customer')),
            ],
            options={
                'db_table': 'loans',
                'indexes': [models.Index(fields=['customer'], name='loans_customer_idx')],
            },
        ),
        migrations.CreateModel(
            name='Payment',
            fields=[
                ('payment_id', models.CharField(default=loan.models.generate_id, editable=False, max_length=36, primary_key=True, serialize=False)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=14)),
                ('payment_type', models.CharField(choices=[('EMI', 'EMI'), ('LUMP_SUM', 'Lump sum')], max_length=10)),
                ('payment_date', models.DateTimeField(default=django.utils.timezone.now)),
                ('sequence', models.PositiveIntegerField(help_text="1-based position within the loan's ledger")),
                ('loan', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='payments', to='loan.loan')),
            ],
            options={
                'db_table': 'payments',
                'ordering': ['payment_date', 'sequence'],
                'indexes': [models.Index(fields=['loan', 'payment_date'], name='payments_loan_date_idx')],
                'constraints': [models.UniqueConstraint(fields=('loan', 'sequence'), name='unique_payment_sequence_per_loan')],
            },
        ),
    ]
