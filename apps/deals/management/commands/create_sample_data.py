"""
Management command to create sample data for testing the API.

Usage:
    python manage.py create_sample_data [--clear]

This creates:
- 1 admin, 1 partner and one member per subscription tier
- Subscription plans for the paid tiers
- 8 deals across tiers, including a high-value, a capped and an expired one
- A few claimed wallet items and past redemptions
"""

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone
from decimal import Decimal
from datetime import date, timedelta

from apps.accounts.models import BillingPeriod, SubscriptionPlan, SubscriptionTier, User
from apps.deals.models import Deal, SavedDeal
from apps.wallet.models import DealRedemption, PendingConfirmation, WalletItem, WalletItemStatus
from apps.wallet.services import claim_deal


class Command(BaseCommand):
    help = 'Create sample data for testing the API'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before creating new sample data',
        )

    @transaction.atomic
    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self.clear_data()

        self.stdout.write('Creating sample data...')

        users = self.create_users()
        self.create_plans()
        deals = self.create_deals(users['partner'])
        self.create_wallets(users, deals)

        self.stdout.write(self.style.SUCCESS('Sample data created successfully!'))
        self.stdout.write('')
        self.stdout.write('Test accounts:')
        self.stdout.write('  admin@example.com / admin123 (superuser)')
        self.stdout.write('  partner@example.com / password123 (partner)')
        for tier in ('free', 'basic', 'premium', 'vip'):
            self.stdout.write(f'  {tier}@example.com / password123')

    def clear_data(self):
        """Clear all data from the database."""
        PendingConfirmation.objects.all().delete()
        DealRedemption.objects.all().delete()
        WalletItem.objects.all().delete()
        SavedDeal.objects.all().delete()
        Deal.objects.all().delete()
        SubscriptionPlan.objects.all().delete()
        User.objects.filter(is_superuser=False).delete()
        User.objects.filter(email='admin@example.com').delete()

    def create_users(self):
        """Create admin, partner and one member per tier."""
        self.stdout.write('  Creating users...')

        admin, _ = User.objects.get_or_create(
            email='admin@example.com',
            defaults={
                'display_name': 'Admin User',
                'is_staff': True,
                'is_superuser': True,
            }
        )
        admin.set_password('admin123')
        admin.save()

        partner, _ = User.objects.get_or_create(
            email='partner@example.com',
            defaults={
                'display_name': 'Bean Bar',
                'is_partner': True,
            }
        )
        partner.set_password('password123')
        partner.save()

        users = {'admin': admin, 'partner': partner}
        members = [
            ('free', 'Fatma Free', SubscriptionTier.FREE),
            ('basic', 'Bora Basic', SubscriptionTier.BASIC),
            ('premium', 'Pelin Premium', SubscriptionTier.PREMIUM),
            ('vip', 'Volkan VIP', SubscriptionTier.VIP),
        ]
        for key, name, tier in members:
            member, _ = User.objects.get_or_create(
                email=f'{key}@example.com',
                defaults={
                    'display_name': name,
                    'tier': tier,
                    'subscription_start_date': date.today() - timedelta(days=90),
                }
            )
            member.set_password('password123')
            member.save()
            users[key] = member

        return users

    def create_plans(self):
        """Create the paid plan catalog."""
        self.stdout.write('  Creating subscription plans...')

        plans = [
            (SubscriptionTier.BASIC, 'Basic', 'Temel', Decimal('49.90'), BillingPeriod.MONTHLY, 5),
            (SubscriptionTier.PREMIUM, 'Premium', 'Premium', Decimal('1490.00'), BillingPeriod.YEARLY, 240),
            (SubscriptionTier.VIP, 'VIP', 'VIP', Decimal('299.00'), BillingPeriod.MONTHLY, 999999),
        ]
        for tier, name, name_tr, price, period, allowance in plans:
            SubscriptionPlan.objects.update_or_create(
                tier=tier,
                defaults={
                    'name': name,
                    'name_tr': name_tr,
                    'price': price,
                    'billing_period': period,
                    'redemptions_per_period': allowance,
                }
            )

    def create_deals(self, partner):
        """Create deals across tiers."""
        self.stdout.write('  Creating deals...')

        now = timezone.now()
        deals_data = [
            {
                'title': 'Coffee for two',
                'title_tr': 'İki kişilik kahve',
                'category': 'Food',
                'vendor': 'Bean Bar',
                'original_price': Decimal('180.00'),
                'discounted_price': Decimal('120.00'),
                'required_tier': SubscriptionTier.FREE,
            },
            {
                'title': 'Weekend brunch',
                'title_tr': 'Hafta sonu brunch',
                'category': 'Food',
                'vendor': 'Bean Bar',
                'original_price': Decimal('450.00'),
                'discount_percentage': 25,
                'required_tier': SubscriptionTier.BASIC,
                'max_redemptions_per_user': 1,
            },
            {
                'title': 'Cinema ticket',
                'title_tr': 'Sinema bileti',
                'category': 'Entertainment',
                'vendor': 'Bean Bar',
                'original_price': Decimal('200.00'),
                'discounted_price': Decimal('140.00'),
                'required_tier': SubscriptionTier.BASIC,
                'expires_at': now + timedelta(days=30),
            },
            {
                'title': 'Spa weekend',
                'title_tr': 'Spa hafta sonu',
                'category': 'Wellness',
                'vendor': 'Thermal Springs',
                'original_price': Decimal('3000.00'),
                'discounted_price': Decimal('1800.00'),
                'required_tier': SubscriptionTier.PREMIUM,
            },
            {
                'title': 'Airport lounge pass',
                'title_tr': 'Havalimanı salon girişi',
                'category': 'Travel',
                'vendor': 'Sky Lounge',
                'original_price': Decimal('60.00'),
                'discounted_price': Decimal('30.00'),
                'required_tier': SubscriptionTier.VIP,
                'requires_confirmation': True,
            },
            {
                'title': 'Limited roastery tour',
                'title_tr': 'Sınırlı kavurma turu',
                'category': 'Experiences',
                'vendor': 'Bean Bar',
                'original_price': Decimal('90.00'),
                'discounted_price': Decimal('45.00'),
                'required_tier': SubscriptionTier.FREE,
                'max_redemptions': 3,
            },
            {
                'title': 'Summer smoothie',
                'title_tr': 'Yaz smoothiesi',
                'category': 'Food',
                'vendor': 'Bean Bar',
                'original_price': Decimal('70.00'),
                'discounted_price': Decimal('50.00'),
                'required_tier': SubscriptionTier.FREE,
                'expires_at': now - timedelta(days=10),
            },
            {
                'title': 'Legacy printed voucher',
                'title_tr': 'Eski basılı kupon',
                'category': 'Food',
                'vendor': 'Bean Bar',
                'original_price': Decimal('40.00'),
                'discounted_price': Decimal('30.00'),
                'required_tier': SubscriptionTier.FREE,
                'redemption_code': 'SUMMER24',
            },
        ]

        deals = {}
        for data in deals_data:
            deal, _ = Deal.objects.get_or_create(
                title=data['title'],
                defaults={**data, 'partner': partner}
            )
            deals[data['title']] = deal

        return deals

    def create_wallets(self, users, deals):
        """Claim a few deals and record past redemptions."""
        self.stdout.write('  Creating wallet items...')

        claims = [
            ('free', 'Coffee for two'),
            ('basic', 'Weekend brunch'),
            ('basic', 'Cinema ticket'),
            ('premium', 'Spa weekend'),
            ('vip', 'Airport lounge pass'),
        ]
        for key, title in claims:
            member = users[key]
            if WalletItem.objects.filter(user=member, deal=deals[title]).exists():
                continue
            claim_deal(user=member, deal_id=deals[title].id)

        # Last month's history does not count against this month's quota
        last_month = timezone.now().replace(day=1) - timedelta(days=3)
        coffee = deals['Coffee for two']
        for key in ('basic', 'premium'):
            member = users[key]
            if DealRedemption.objects.filter(user=member, deal=coffee).exists():
                continue
            item = WalletItem.objects.create(
                user=member,
                deal=coffee,
                redemption_code=f'FOOB-HIST{key[:4].upper():X<4}',
                status=WalletItemStatus.REDEEMED,
                redeemed_at=last_month,
            )
            DealRedemption.objects.create(
                deal=coffee,
                user=member,
                wallet_item=item,
                redeemed_by=users['partner'],
                redeemed_at=last_month,
            )
            coffee.redemptions_count += 1
        coffee.save(update_fields=['redemptions_count'])
