# Generated manually for the settlements app

import uuid
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import apps.settlements.models


CATEGORY_CHOICES = [
    ('Food', 'Food'),
    ('Transport', 'Transport'),
    ('Entertainment', 'Entertainment'),
    ('Shopping', 'Shopping'),
    ('Bills', 'Bills'),
    ('Health', 'Health'),
    ('Other', 'Other'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('groups', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Expense',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('description', models.CharField(max_length=200)),
                ('amount_minor', models.PositiveBigIntegerField()),
                ('currency', models.CharField(default=apps.settlements.models.default_currency, max_length=3)),
                ('category', models.CharField(choices=CATEGORY_CHOICES, default='Other', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('group', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='expenses', to='groups.group')),
                ('payer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='expenses_paid', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'expenses',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['group', 'created_at'], name='expenses_group_created_idx'),
                    models.Index(fields=['payer', 'created_at'], name='expenses_payer_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SplitBill',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('description', models.CharField(max_length=200)),
                ('total_amount_minor', models.PositiveBigIntegerField()),
                ('currency', models.CharField(default=apps.settlements.models.default_currency, max_length=3)),
                ('split_type', models.CharField(choices=[('equal', 'Equal'), ('percentage', 'Percentage'), ('custom', 'Custom')], default='equal', max_length=20)),
                ('category', models.CharField(choices=CATEGORY_CHOICES, default='Other', max_length=20)),
                ('notes', models.TextField(blank=True, max_length=500)),
                ('is_settled', models.BooleanField(default=False)),
                ('settled_at', models.DateTimeField(blank=True, null=True)),
                ('is_cancelled', models.BooleanField(default=False)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='split_bills_created', to=settings.AUTH_USER_MODEL)),
                ('group', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='split_bills', to='groups.group')),
                ('paid_by', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='split_bills_paid', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'split_bills',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['group', 'created_at'], name='split_bills_group_created_idx'),
                    models.Index(fields=['created_by', 'created_at'], name='split_bills_creator_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SplitBillParticipant',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('amount_owed_minor', models.PositiveBigIntegerField()),
                ('percentage_bp', models.PositiveIntegerField(blank=True, null=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('paid', 'Paid'), ('rejected', 'Rejected')], default='pending', max_length=20)),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('payment_method', models.CharField(blank=True, choices=[('self', 'Self (payer share)'), ('cash', 'Cash'), ('upi', 'UPI'), ('bank_transfer', 'Bank transfer'), ('card', 'Card'), ('google_pay', 'Google Pay'), ('other', 'Other')], max_length=20)),
                ('note', models.CharField(blank=True, max_length=500)),
                ('rejected_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('split_bill', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='participants', to='settlements.splitbill')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='split_bill_shares', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'split_bill_participants',
                'ordering': ['created_at'],
                'indexes': [
                    models.Index(fields=['user', 'status'], name='participants_user_status_idx'),
                    models.Index(fields=['split_bill', 'status'], name='participants_bill_status_idx'),
                ],
                'unique_together': {('split_bill', 'user')},
            },
        ),
    ]
