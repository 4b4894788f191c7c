# Generated manually for the wallet app

import uuid
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('deals', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='WalletItem',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('redemption_code', models.CharField(editable=False, max_length=32, unique=True)),
                ('status', models.CharField(choices=[('active', 'Active'), ('redeemed', 'Redeemed'), ('expired', 'Expired')], db_index=True, default='active', max_length=10)),
                ('acquired_at', models.DateTimeField(auto_now_add=True)),
                ('redeemed_at', models.DateTimeField(blank=True, null=True)),
                ('deal', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='wallet_items', to='deals.deal')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='wallet_items', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'wallet_items',
                'ordering': ['-acquired_at'],
                'indexes': [models.Index(fields=['user', 'status'], name='wallet_user_status_idx'), models.Index(fields=['user', 'deal'], name='wallet_user_deal_idx')],
            },
        ),
        migrations.CreateModel(
            name='PendingConfirmation',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('token', models.CharField(editable=False, max_length=64, unique=True)),
                ('state', models.CharField(choices=[('pending', 'Pending'), ('confirmed', 'Confirmed'), ('denied', 'Denied'), ('expired', 'Expired'), ('superseded', 'Superseded')], default='pending', max_length=12)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('expires_at', models.DateTimeField()),
                ('resolved_at', models.DateTimeField(blank=True, null=True)),
                ('initiated_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='initiated_confirmations', to=settings.AUTH_USER_MODEL)),
                ('wallet_item', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='confirmations', to='wallet.walletitem')),
            ],
            options={
                'db_table': 'pending_confirmations',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['wallet_item', 'state'], name='confirm_item_state_idx'), models.Index(fields=['state', 'expires_at'], name='confirm_state_expiry_idx')],
            },
        ),
        migrations.CreateModel(
            name='DealRedemption',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('redeemed_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('deal', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='redemptions', to='deals.deal')),
                ('redeemed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='processed_redemptions', to=settings.AUTH_USER_MODEL)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='redemptions', to=settings.AUTH_USER_MODEL)),
                ('wallet_item', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='redemption', to='wallet.walletitem')),
            ],
            options={
                'db_table': 'deal_redemptions',
                'ordering': ['-redeemed_at'],
                'indexes': [models.Index(fields=['user', 'redeemed_at'], name='redemption_user_time_idx'), models.Index(fields=['deal', 'redeemed_at'], name='redemption_deal_time_idx')],
            },
        ),
    ]
