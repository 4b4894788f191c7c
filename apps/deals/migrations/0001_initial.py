# Generated manually for the deals app

import uuid
from decimal import Decimal
import apps.deals.models
import django.core.validators
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
            name='Deal',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(max_length=200)),
                ('title_tr', models.CharField(blank=True, max_length=200)),
                ('description', models.TextField(blank=True)),
                ('description_tr', models.TextField(blank=True)),
                ('category', models.CharField(db_index=True, max_length=100)),
                ('vendor', models.CharField(blank=True, max_length=200)),
                ('image_url', models.URLField(blank=True)),
                ('original_price', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))])),
                ('discounted_price', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))])),
                ('discount_percentage', models.PositiveSmallIntegerField(blank=True, null=True, validators=[django.core.validators.MaxValueValidator(100)])),
                ('required_tier', models.CharField(choices=[('NONE', 'None'), ('FREE', 'Free'), ('BASIC', 'Basic'), ('PREMIUM', 'Premium'), ('VIP', 'VIP')], default='FREE', max_length=10)),
                ('expires_at', models.DateTimeField(db_index=True, default=apps.deals.models.never_expires)),
                ('redemption_code', models.CharField(blank=True, db_index=True, max_length=64)),
                ('max_redemptions', models.PositiveIntegerField(blank=True, null=True)),
                ('max_redemptions_per_user', models.PositiveIntegerField(blank=True, null=True)),
                ('redemptions_count', models.PositiveIntegerField(default=0)),
                ('is_sold_out', models.BooleanField(default=False)),
                ('requires_confirmation', models.BooleanField(default=False)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('partner', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='partner_deals', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'deals',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['required_tier', 'expires_at'], name='deals_tier_expiry_idx'), models.Index(fields=['partner', 'created_at'], name='deals_partner_idx')],
            },
        ),
        migrations.CreateModel(
            name='SavedDeal',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('saved_at', models.DateTimeField(auto_now_add=True)),
                ('deal', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='saved_by', to='deals.deal')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='saved_deals', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'saved_deals',
                'ordering': ['-saved_at'],
                'unique_together': {('user', 'deal')},
            },
        ),
    ]
