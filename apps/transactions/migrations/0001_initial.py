import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Transaction',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('amount_in_cents', models.PositiveBigIntegerField()),
                ('date', models.DateField()),
                ('due_date', models.DateField(blank=True, null=True)),
                ('description', models.CharField(max_length=255)),
                ('type', models.CharField(choices=[('INCOME', 'Income'), ('EXPENSE', 'Expense'), ('TRANSFER', 'Transfer'), ('RECURRING', 'Recurring'), ('INSTALLMENT', 'Installment')], max_length=20)),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('PAID', 'Paid'), ('RECEIVED', 'Received'), ('COMPLETED', 'Completed'), ('CANCELLED', 'Cancelled')], default='PENDING', max_length=20)),
                ('date_occurred', models.DateTimeField(blank=True, null=True)),
                ('installment_number', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('total_installments', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('recurrence_pattern', models.CharField(blank=True, choices=[('MONTHLY', 'Monthly'), ('WEEKLY', 'Weekly'), ('YEARLY', 'Yearly')], max_length=10, null=True)),
                ('next_occurrence', models.DateField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('parent_transaction', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='installments', to='transactions.transaction')),
                ('recurring_template', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='occurrences', to='transactions.transaction')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='transactions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'transactions',
                'ordering': ['date', 'created_at'],
                'indexes': [
                    models.Index(fields=['user', 'date'], name='transaction_user_id_0a1f3c_idx'),
                    models.Index(fields=['user', 'type', 'date'], name='transaction_user_id_5d2b7e_idx'),
                    models.Index(fields=['parent_transaction', 'installment_number'], name='transaction_parent__8c4e91_idx'),
                    models.Index(fields=['type', 'status', 'next_occurrence'], name='transaction_type_3b7f02_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('parent_transaction__isnull', False)), fields=('parent_transaction', 'installment_number'), name='unique_installment_number_per_parent'),
                    models.UniqueConstraint(condition=models.Q(('recurring_template__isnull', False)), fields=('recurring_template', 'date'), name='unique_occurrence_per_period'),
                ],
            },
        ),
    ]
