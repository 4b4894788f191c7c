"""
Management command to persist expiry of wallet items.

Active items whose deal has expired already report as expired on read;
this writes that status so lists and admin filters agree.

Usage:
    python manage.py expire_wallet_items [--dry-run]
"""

import logging

from django.core.management.base import BaseCommand
from django.utils import timezone

from apps.wallet.models import WalletItem, WalletItemStatus
from apps.wallet.services import expire_wallet_items


logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Mark active wallet items of expired deals as expired'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be updated without making changes',
        )

    def handle(self, *args, **options):
        now = timezone.now()
        overdue = WalletItem.objects.filter(
            status=WalletItemStatus.ACTIVE,
            deal__expires_at__lte=now,
        )
        count = overdue.count()

        if count == 0:
            self.stdout.write(self.style.SUCCESS('No wallet items to expire.'))
            return

        self.stdout.write(f'Found {count} wallet item(s) past their deal expiry.')

        if options['dry_run']:
            self.stdout.write(self.style.WARNING('--dry-run mode: No changes made.'))
            return

        expired = expire_wallet_items(now=now)
        logger.info("expire_wallet_items sweep expired %d item(s)", expired)
        self.stdout.write(self.style.SUCCESS(f'Expired {expired} wallet item(s).'))
